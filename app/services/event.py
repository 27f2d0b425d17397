import enum
import logging
import uuid

logger = logging.getLogger(__name__)


class EventType(enum.Enum):
    permission_requested = "messaging_permission.requested"
    permission_approved = "messaging_permission.approved"
    permission_rejected = "messaging_permission.rejected"
    permission_blocked = "messaging_permission.blocked"
    permission_unblocked = "messaging_permission.unblocked"
    permission_revoked = "messaging_permission.revoked"
    permission_auto_granted = "messaging_permission.auto_granted"
    permission_renewed = "messaging_permission.renewed"
    permission_expired = "messaging_permission.expired"


def publish_event(
    event_type: EventType,
    recipient_id: str | uuid.UUID,
    entity_id: str | uuid.UUID,
    actor_id: str | uuid.UUID | None = None,
    payload: dict | None = None,
) -> None:
    """Fire-and-forget notification to ``recipient_id``.

    Queues a Celery task that delivers to the notification service.
    Never raises; failures are logged.
    """
    try:
        from app.tasks.notifications import notify_user

        notify_user.delay(
            recipient_id=str(recipient_id),
            event_type=event_type.value,
            entity_type="messaging_permission",
            entity_id=str(entity_id),
            actor_id=str(actor_id) if actor_id else None,
            payload=payload or {},
        )
        logger.debug(
            "Published event %s for %s to %s",
            event_type.value,
            entity_id,
            recipient_id,
        )
    except Exception as e:
        logger.exception("Failed to publish event %s: %s", event_type.value, e)
