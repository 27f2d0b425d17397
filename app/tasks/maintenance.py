import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.maintenance.sweep_stale_pending", ignore_result=True)
def sweep_stale_pending() -> None:
    """Weekly cleanup of abandoned messaging permission requests."""
    from app.db import SessionLocal
    from app.services.messaging_maintenance import sweep_stale_pending as sweep

    db = SessionLocal()
    try:
        result = sweep(db)
        logger.info(
            "Weekly sweep rejected %d stale requests", result["modified_count"]
        )
    except Exception as e:
        db.rollback()
        logger.exception("Failed to sweep stale messaging requests: %s", e)
    finally:
        db.close()
