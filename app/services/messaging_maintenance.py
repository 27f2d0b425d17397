import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.models.messaging import MessagingPermission, PermissionStatus
from app.services.common import utc_now

logger = logging.getLogger(__name__)


def sweep_stale_pending(db: Session) -> dict:
    """Reject pending requests whose expiry has passed.

    Approved rows are left alone; their expiry is handled when a message is
    attempted.
    """
    now = utc_now()
    stmt = (
        update(MessagingPermission)
        .where(
            MessagingPermission.status == PermissionStatus.pending,
            MessagingPermission.expires_at < now,
        )
        .values(status=PermissionStatus.rejected, is_active=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    modified = db.execute(stmt).rowcount
    db.commit()
    logger.info("Rejected %d stale messaging permission requests", modified)
    return {"modified_count": modified}
