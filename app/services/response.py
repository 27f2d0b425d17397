class ListResponseMixin:
    """Adds ``list_response`` to service classes exposing ``list``.

    ``list`` must take ``limit`` and ``offset`` as its last two positional
    arguments.
    """

    @classmethod
    def list_response(cls, db, *args, **kwargs):
        items = cls.list(db, *args, **kwargs)
        limit = args[-2] if len(args) >= 2 else kwargs.get("limit")
        offset = args[-1] if len(args) >= 2 else kwargs.get("offset")
        return {
            "items": items,
            "count": len(items),
            "limit": limit,
            "offset": offset,
        }
