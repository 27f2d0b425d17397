"""Implicit messaging grants between employers and candidates.

A pair qualifies when the candidate applied to one of the employer's jobs,
or, failing that, when the employer's subscription includes direct
messaging. A qualifying pair gets approved rows in both directions.
"""

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.models.messaging import (
    AutoGrantReason,
    MessagingPermission,
    PermissionKind,
    PermissionStatus,
)
from app.services.common import coerce_uuid, utc_now
from app.services.event import EventType, publish_event
from app.services.messaging_oracles import MessagingOracles, UserRole, get_oracles
from app.services.messaging_resolvers import (
    EntitlementResolver,
    RelationshipResolver,
    RoleResolver,
)
from app.services.messaging_store import PermissionStore, is_expired

logger = logging.getLogger(__name__)


def is_open_request(permission: MessagingPermission) -> bool:
    # Unblocked rows are pending but already expired, so they never qualify.
    return (
        permission.status == PermissionStatus.pending
        and permission.kind == PermissionKind.explicit
        and not is_expired(permission)
    )


def employer_candidate_pair(
    sender_id, recipient_id, sender_role: UserRole | None, recipient_role: UserRole | None
):
    """Return ``(employer_id, candidate_id)`` or None if not a recruiter/candidate pair."""
    if sender_role == UserRole.employer and recipient_role == UserRole.job_seeker:
        return coerce_uuid(sender_id), coerce_uuid(recipient_id)
    if sender_role == UserRole.job_seeker and recipient_role == UserRole.employer:
        return coerce_uuid(recipient_id), coerce_uuid(sender_id)
    return None


class AutoGrantEngine:
    def __init__(self, oracles: MessagingOracles | None = None):
        oracles = oracles or get_oracles()
        self.roles = RoleResolver(oracles)
        self.relationships = RelationshipResolver(oracles)
        self.entitlements = EntitlementResolver(oracles)

    def qualifying_reason(self, employer_id, candidate_id) -> AutoGrantReason | None:
        if self.relationships.has_applied(candidate_id, employer_id):
            return AutoGrantReason.application
        if self.entitlements.allows_auto_messaging(employer_id):
            return AutoGrantReason.sponsor_subscription
        return None

    def try_auto_grant(
        self,
        db: Session,
        sender_id,
        recipient_id,
        sender_role: UserRole | None = None,
        recipient_role: UserRole | None = None,
    ) -> MessagingPermission | None:
        """Ensure the pair's implicit grant exists and return the sender's row.

        Returns None when the pair does not qualify. The returned row is
        whatever is stored for ``(sender, recipient)``; a row that existed
        before (blocked, rejected, expired, ...) is returned unchanged and
        the caller decides what it means.
        """
        if sender_role is None:
            sender_role = self.roles.role_of(sender_id)
        if recipient_role is None:
            recipient_role = self.roles.role_of(recipient_id)
        pair = employer_candidate_pair(
            sender_id, recipient_id, sender_role, recipient_role
        )
        if pair is None:
            return None
        employer_id, candidate_id = pair

        reason = self.qualifying_reason(employer_id, candidate_id)
        if reason is None:
            logger.debug(
                "No qualifying relationship between employer %s and candidate %s",
                employer_id,
                candidate_id,
            )
            return None

        forward, backward = self.grant(db, employer_id, candidate_id, reason)
        if forward.requester_id == coerce_uuid(sender_id):
            return forward
        return backward

    def grant(
        self,
        db: Session,
        employer_id,
        candidate_id,
        reason: AutoGrantReason,
    ) -> tuple[MessagingPermission, MessagingPermission]:
        """Create both directions if absent.

        An open explicit request on either side is promoted to the implicit
        grant so the pair ends up approved both ways. Blocked, rejected,
        approved and lapsed rows are left as they are.
        """
        employer_id = coerce_uuid(employer_id)
        candidate_id = coerce_uuid(candidate_id)
        values = {
            "status": PermissionStatus.approved,
            "kind": PermissionKind.auto_relationship,
            "grant_reason": reason,
            "sponsor_id": employer_id,
            "is_active": True,
            "expires_at": utc_now() + timedelta(days=settings.messaging_auto_grant_days),
        }
        forward, forward_created = PermissionStore.insert_if_absent(
            db, employer_id, candidate_id, **values
        )
        backward, backward_created = PermissionStore.insert_if_absent(
            db, candidate_id, employer_id, **values
        )
        changed = forward_created or backward_created
        for permission, created in ((forward, forward_created), (backward, backward_created)):
            if not created and is_open_request(permission):
                changed |= PermissionStore.compare_and_set(
                    db, permission, PermissionStatus.pending, **values
                )
        if changed:
            db.commit()
            db.refresh(forward)
            db.refresh(backward)
            logger.info(
                "Auto-granted messaging between employer %s and candidate %s (%s)",
                employer_id,
                candidate_id,
                reason.value,
            )
            publish_event(
                EventType.permission_auto_granted,
                recipient_id=candidate_id,
                entity_id=backward.id,
                actor_id=employer_id,
                payload={"reason": reason.value},
            )
        return forward, backward
