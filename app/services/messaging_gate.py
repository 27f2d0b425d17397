"""The single decision point for "may this user message that user?".

Tiers are evaluated in a fixed order and the first conclusive one wins:

1. self message
2. either party is an admin
3. implicit employer/candidate grant (created on the fly when missing)
4. stored permission lookup
5. blocked
6. rejected / pending
7. approved and within expiry
8. approved but expired: renew or deactivate

A denial is an ordinary :class:`Decision`, never an exception.
"""

import logging
from dataclasses import dataclass, field

from prometheus_client import Counter
from sqlalchemy.orm import Session

from app.models.messaging import MessagingPermission, PermissionStatus
from app.services.common import coerce_uuid
from app.services.messaging_auto_grant import AutoGrantEngine
from app.services.messaging_oracles import MessagingOracles, UserRole, get_oracles
from app.services.messaging_renewal import ExpiryRenewal
from app.services.messaging_resolvers import RoleResolver
from app.services.messaging_store import PermissionStore, is_expired, is_live

logger = logging.getLogger(__name__)

MESSAGING_DECISIONS = Counter(
    "messaging_permission_decisions_total",
    "Messaging permission decisions by deciding tier",
    ["tier", "allowed"],
)

REASON_SELF = "Users can always message themselves."
REASON_ADMIN = "Administrators can always be messaged."
REASON_RELATIONSHIP = "Messaging is allowed through an employer/candidate relationship."
REASON_NO_PERMISSION = (
    "No messaging permission found. Request permission to start messaging."
)
REASON_BLOCKED = "Messaging has been blocked by this user."
REASON_REJECTED = "Messaging permission was rejected."
REASON_PENDING = "Messaging permission request is still pending approval."
REASON_APPROVED = "Messaging permission is active."
REASON_RENEWED = "Messaging permission was renewed."
REASON_EXPIRED = "Messaging permission has expired."


@dataclass
class Decision:
    allowed: bool
    reason: str
    tier: str
    permission: MessagingPermission | None = None
    trace: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.allowed


class PermissionGate:
    def __init__(self, oracles: MessagingOracles | None = None):
        oracles = oracles or get_oracles()
        self.roles = RoleResolver(oracles)
        self.auto_grants = AutoGrantEngine(oracles)
        self.renewals = ExpiryRenewal(oracles)

    def can_message(self, db: Session, sender_id: str, recipient_id: str) -> Decision:
        trace: list[str] = []
        decision = self._decide(db, coerce_uuid(sender_id), coerce_uuid(recipient_id), trace)
        decision.trace = trace
        MESSAGING_DECISIONS.labels(
            tier=decision.tier, allowed=str(decision.allowed).lower()
        ).inc()
        logger.debug(
            "Messaging decision %s -> %s: %s via %s",
            sender_id,
            recipient_id,
            decision.allowed,
            " > ".join(trace),
        )
        return decision

    def _decide(self, db: Session, sender, recipient, trace: list[str]) -> Decision:
        trace.append("self")
        if sender == recipient:
            return Decision(True, REASON_SELF, "self")

        trace.append("admin")
        sender_role = self.roles.role_of(sender)
        recipient_role = self.roles.role_of(recipient)
        if UserRole.admin in (sender_role, recipient_role):
            return Decision(True, REASON_ADMIN, "admin")

        trace.append("relationship")
        granted = self.auto_grants.try_auto_grant(
            db, sender, recipient, sender_role, recipient_role
        )
        if granted is not None and is_live(granted):
            return Decision(True, REASON_RELATIONSHIP, "relationship", granted)

        trace.append("stored")
        permission = granted or PermissionStore.find(db, sender, recipient)
        if permission is None:
            return Decision(False, REASON_NO_PERMISSION, "stored")

        if permission.status == PermissionStatus.blocked:
            return Decision(False, REASON_BLOCKED, "blocked", permission)
        if permission.status == PermissionStatus.rejected:
            return Decision(False, REASON_REJECTED, "rejected", permission)
        if permission.status == PermissionStatus.pending:
            return Decision(False, REASON_PENDING, "pending", permission)

        if not is_expired(permission):
            if permission.is_active:
                return Decision(True, REASON_APPROVED, "approved", permission)
            return Decision(False, REASON_EXPIRED, "inactive", permission)

        trace.append("renewal")
        allowed, permission = self.renewals.reevaluate(db, permission)
        if allowed:
            return Decision(True, REASON_RENEWED, "renewal", permission)
        return Decision(False, REASON_EXPIRED, "renewal", permission)


def can_message(
    db: Session,
    sender_id: str,
    recipient_id: str,
    oracles: MessagingOracles | None = None,
) -> Decision:
    return PermissionGate(oracles).can_message(db, sender_id, recipient_id)
