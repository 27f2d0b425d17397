import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.tasks.notifications.notify_user",
    ignore_result=True,
    bind=True,
    max_retries=3,
    default_retry_delay=10,
)
def notify_user(
    self: "celery_app.Task",  # type: ignore[name-defined]
    recipient_id: str,
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """Deliver a messaging-permission event to the notification service.

    Delivery is best effort: failures are retried a few times and then
    dropped with an error log.
    """
    import httpx

    from app.config import settings

    body = {
        "user_id": recipient_id,
        "title": _title_for(event_type),
        "event_type": event_type,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "actor_id": actor_id,
        "payload": payload or {},
    }
    try:
        with httpx.Client(
            base_url=settings.notifications_service_url.rstrip("/"), timeout=10.0
        ) as client:
            resp = client.post("/notifications", json=body)
        resp.raise_for_status()
        logger.info("Notified user %s of %s", recipient_id, event_type)
    except (httpx.HTTPError, OSError) as e:
        logger.warning(
            "Notification %s to user %s failed: %s", event_type, recipient_id, e
        )
        try:
            self.retry(countdown=10 * (2 ** (self.request.retries or 0)))
        except self.MaxRetriesExceededError:
            logger.error(
                "Notification %s to user %s exhausted retries", event_type, recipient_id
            )


def _title_for(event_type: str) -> str:
    action = event_type.split(".")[-1].replace("_", " ")
    return f"Messaging permission {action}"
