from app.models.messaging import (  # noqa: F401
    FAR_FUTURE,
    AutoGrantReason,
    MessagingPermission,
    PermissionKind,
    PermissionStatus,
    ResponseDecision,
)
