import logging

from fastapi import HTTPException
from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from app.models.messaging import FAR_FUTURE, MessagingPermission, PermissionStatus
from app.services.common import coerce_uuid, utc_now
from app.services.event import EventType, publish_event
from app.services.messaging_store import PermissionStore

logger = logging.getLogger(__name__)


def _validate_pair(user_id, target_id):
    user_uuid = coerce_uuid(user_id)
    target_uuid = coerce_uuid(target_id)
    if user_uuid == target_uuid:
        raise HTTPException(status_code=400, detail="Cannot block yourself")
    return user_uuid, target_uuid


class Blocking:
    @staticmethod
    def block(db: Session, blocker_id: str, blocked_id: str) -> MessagingPermission:
        """Block both directions of the pair, whoever initiated it."""
        blocker, blocked = _validate_pair(blocker_id, blocked_id)
        values = {
            "status": PermissionStatus.blocked,
            "is_active": False,
            "expires_at": FAR_FUTURE,
            "blocked_by": blocker,
        }
        permission = PermissionStore.force_state(db, blocker, blocked, **values)
        PermissionStore.force_state(db, blocked, blocker, **values)
        db.commit()
        db.refresh(permission)
        logger.info("User %s blocked user %s", blocker, blocked)
        publish_event(
            EventType.permission_blocked,
            recipient_id=blocked,
            entity_id=permission.id,
            actor_id=blocker,
        )
        return permission

    @staticmethod
    def unblock(db: Session, user_id: str, target_id: str) -> int:
        """Reset the pair's blocked rows to pending. Only the blocker may unblock.

        Unblocking never restores a prior grant. The rows are left already
        expired, so a fresh request may reuse them and the sweep rejects
        them if nobody does.
        """
        user, target = _validate_pair(user_id, target_id)
        for requester, recipient in ((user, target), (target, user)):
            permission = PermissionStore.find(db, requester, recipient)
            if (
                permission is not None
                and permission.status == PermissionStatus.blocked
                and permission.blocked_by is not None
                and permission.blocked_by != user
            ):
                raise HTTPException(
                    status_code=403,
                    detail="Only the user who blocked this conversation can unblock it",
                )
        now = utc_now()
        stmt = (
            update(MessagingPermission)
            .where(
                or_(
                    and_(
                        MessagingPermission.requester_id == user,
                        MessagingPermission.target_id == target,
                    ),
                    and_(
                        MessagingPermission.requester_id == target,
                        MessagingPermission.target_id == user,
                    ),
                ),
                MessagingPermission.status == PermissionStatus.blocked,
            )
            .values(
                status=PermissionStatus.pending,
                is_active=False,
                expires_at=now,
                blocked_by=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        changed = db.execute(stmt).rowcount
        db.commit()
        db.expire_all()
        logger.info("User %s unblocked user %s (%d rows)", user, target, changed)
        if changed:
            publish_event(
                EventType.permission_unblocked,
                recipient_id=target,
                entity_id=target,
                actor_id=user,
            )
        return changed

    @staticmethod
    def is_blocked(db: Session, requester_id: str, target_id: str) -> bool:
        permission = PermissionStore.find(db, requester_id, target_id)
        return permission is not None and permission.status == PermissionStatus.blocked


blocking = Blocking()
