"""Persistence for messaging permissions.

At most one row exists per ordered ``(requester_id, target_id)`` pair. All
writes that could race on a pair go through an atomic conditional statement
(``INSERT .. ON CONFLICT`` or a status-guarded ``UPDATE``) rather than a
read-then-write, so no in-process locking is needed.
"""

import logging
import uuid
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.messaging import MessagingPermission, PermissionStatus
from app.services.common import as_utc, coerce_uuid, utc_now

logger = logging.getLogger(__name__)

_PAIR = ["requester_id", "target_id"]


def _dialect_insert(db: Session):
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return pg_insert
    if name == "sqlite":
        return sqlite_insert
    return None


def is_expired(permission: MessagingPermission, now: datetime | None = None) -> bool:
    now = now or utc_now()
    return as_utc(permission.expires_at) <= now


def is_live(permission: MessagingPermission, now: datetime | None = None) -> bool:
    """Approved, flagged active and not past its expiry."""
    return (
        permission.status == PermissionStatus.approved
        and permission.is_active
        and not is_expired(permission, now)
    )


class PermissionStore:
    @staticmethod
    def get(db: Session, permission_id: str) -> MessagingPermission:
        permission = db.get(MessagingPermission, coerce_uuid(permission_id))
        if not permission:
            raise HTTPException(status_code=404, detail="Permission not found")
        return permission

    @staticmethod
    def find(db: Session, requester_id, target_id) -> MessagingPermission | None:
        stmt = (
            select(MessagingPermission)
            .where(
                MessagingPermission.requester_id == coerce_uuid(requester_id),
                MessagingPermission.target_id == coerce_uuid(target_id),
            )
            .execution_options(populate_existing=True)
        )
        return db.scalars(stmt).first()

    @staticmethod
    def insert_if_absent(
        db: Session, requester_id, target_id, **values
    ) -> tuple[MessagingPermission, bool]:
        """Create the pair's row unless one exists. Never touches an existing row."""
        now = utc_now()
        row = {
            "id": uuid.uuid4(),
            "requester_id": coerce_uuid(requester_id),
            "target_id": coerce_uuid(target_id),
            "created_at": now,
            "updated_at": now,
            **values,
        }
        insert = _dialect_insert(db)
        if insert is not None:
            stmt = (
                insert(MessagingPermission)
                .values(**row)
                .on_conflict_do_nothing(index_elements=_PAIR)
            )
            created = db.execute(stmt).rowcount == 1
        else:
            try:
                with db.begin_nested():
                    db.add(MessagingPermission(**row))
                created = True
            except IntegrityError:
                created = False
        permission = PermissionStore.find(db, requester_id, target_id)
        return permission, created

    @staticmethod
    def force_state(db: Session, requester_id, target_id, **values) -> MessagingPermission:
        """Insert the pair's row or overwrite the given columns on the existing one."""
        now = utc_now()
        row = {
            "id": uuid.uuid4(),
            "requester_id": coerce_uuid(requester_id),
            "target_id": coerce_uuid(target_id),
            "created_at": now,
            "updated_at": now,
            **values,
        }
        insert = _dialect_insert(db)
        if insert is not None:
            stmt = (
                insert(MessagingPermission)
                .values(**row)
                .on_conflict_do_update(
                    index_elements=_PAIR, set_={**values, "updated_at": now}
                )
            )
            db.execute(stmt)
            return PermissionStore.find(db, requester_id, target_id)

        permission, created = PermissionStore.insert_if_absent(
            db, requester_id, target_id, **values
        )
        if not created:
            for key, value in values.items():
                setattr(permission, key, value)
            db.flush()
        return permission

    @staticmethod
    def compare_and_set(
        db: Session,
        permission: MessagingPermission,
        expected_status: PermissionStatus,
        **values,
    ) -> bool:
        """Apply ``values`` only if the row still has ``expected_status``."""
        stmt = (
            update(MessagingPermission)
            .where(
                MessagingPermission.id == permission.id,
                MessagingPermission.status == expected_status,
            )
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        applied = db.execute(stmt).rowcount == 1
        db.refresh(permission)
        if not applied:
            logger.info(
                "Concurrent update on permission %s (expected %s, found %s)",
                permission.id,
                expected_status.value,
                permission.status.value,
            )
        return applied
