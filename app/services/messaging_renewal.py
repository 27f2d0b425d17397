"""Re-evaluation of approved permissions whose expiry has passed.

Auto grants are renewable as long as the sponsoring employer's subscription
still qualifies at the moment of use. Explicit grants never renew.
"""

import logging
from datetime import timedelta

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import settings
from app.models.messaging import MessagingPermission, PermissionKind, PermissionStatus
from app.services.common import coerce_uuid, utc_now
from app.services.event import EventType, publish_event
from app.services.messaging_oracles import MessagingOracles, get_oracles
from app.services.messaging_resolvers import EntitlementResolver
from app.services.messaging_store import PermissionStore, is_live

logger = logging.getLogger(__name__)


class ExpiryRenewal:
    def __init__(self, oracles: MessagingOracles | None = None):
        self.entitlements = EntitlementResolver(oracles or get_oracles())

    def is_renewable(self, permission: MessagingPermission) -> bool:
        # Keyed to the sponsor whichever direction is being checked.
        return (
            permission.kind == PermissionKind.auto_relationship
            and permission.sponsor_id is not None
            and self.entitlements.allows_auto_messaging(permission.sponsor_id)
        )

    def reevaluate(
        self, db: Session, permission: MessagingPermission
    ) -> tuple[bool, MessagingPermission]:
        if self.is_renewable(permission):
            applied = PermissionStore.compare_and_set(
                db,
                permission,
                PermissionStatus.approved,
                expires_at=utc_now() + timedelta(days=settings.messaging_auto_grant_days),
                is_active=True,
            )
            db.commit()
            if not applied:
                return is_live(permission), permission
            logger.info(
                "Renewed messaging permission %s for sponsor %s",
                permission.id,
                permission.sponsor_id,
            )
            publish_event(
                EventType.permission_renewed,
                recipient_id=permission.requester_id,
                entity_id=permission.id,
                actor_id=permission.sponsor_id,
            )
            return True, permission

        was_active = permission.is_active
        PermissionStore.compare_and_set(
            db, permission, PermissionStatus.approved, is_active=False
        )
        db.commit()
        logger.info("Messaging permission %s expired", permission.id)
        if was_active:
            publish_event(
                EventType.permission_expired,
                recipient_id=permission.requester_id,
                entity_id=permission.id,
            )
        return False, permission

    def renew_all_for_sponsor(self, db: Session, employer_id: str) -> dict:
        employer = coerce_uuid(employer_id)
        if not self.entitlements.allows_auto_messaging(employer):
            raise HTTPException(
                status_code=403,
                detail="Current subscription does not include direct messaging",
            )
        now = utc_now()
        stmt = (
            update(MessagingPermission)
            .where(
                MessagingPermission.kind == PermissionKind.auto_relationship,
                MessagingPermission.sponsor_id == employer,
                MessagingPermission.status == PermissionStatus.approved,
                MessagingPermission.expires_at <= now,
            )
            .values(
                expires_at=now + timedelta(days=settings.messaging_auto_grant_days),
                is_active=True,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        renewed = db.execute(stmt).rowcount
        db.commit()
        db.expire_all()
        logger.info("Renewed %d expired permissions for sponsor %s", renewed, employer)
        return {"renewed_count": renewed}
