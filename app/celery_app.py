from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "messaging_permissions",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.notifications", "app.tasks.maintenance"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
)

celery_app.conf.beat_schedule = {
    "sweep-stale-messaging-requests": {
        "task": "app.tasks.maintenance.sweep_stale_pending",
        "schedule": crontab(
            minute=0,
            hour=settings.messaging_sweep_hour,
            day_of_week=settings.messaging_sweep_day_of_week,
        ),
    },
}
