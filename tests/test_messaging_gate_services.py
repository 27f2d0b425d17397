import uuid
from datetime import timedelta

from app.models.messaging import MessagingPermission, PermissionKind, PermissionStatus
from app.schemas.messaging import PermissionRequestCreate
from app.services.common import as_utc, utc_now
from app.services.messaging_blocking import Blocking
from app.services.messaging_gate import (
    REASON_ADMIN,
    REASON_BLOCKED,
    REASON_EXPIRED,
    REASON_NO_PERMISSION,
    REASON_PENDING,
    REASON_REJECTED,
    REASON_RELATIONSHIP,
    PermissionGate,
    can_message,
)
from app.services.messaging_requests import PermissionRequests


def _gate(oracles):
    return PermissionGate(oracles)


class TestEarlyTiers:
    def test_self_message(self, db_session, oracles) -> None:
        user = uuid.uuid4()
        decision = _gate(oracles).can_message(db_session, user, user)
        assert decision.allowed is True
        assert decision.tier == "self"
        assert decision.trace == ["self"]

    def test_admin_sender(self, db_session, oracles, admin) -> None:
        decision = _gate(oracles).can_message(db_session, admin, uuid.uuid4())
        assert decision.allowed is True
        assert decision.reason == REASON_ADMIN

    def test_admin_recipient(self, db_session, oracles, admin, candidate) -> None:
        decision = _gate(oracles).can_message(db_session, candidate, admin)
        assert decision.tier == "admin"
        assert bool(decision) is True

    def test_admin_beats_block(
        self, db_session, oracles, admin, candidate, make_permission
    ) -> None:
        make_permission(candidate, admin, status=PermissionStatus.blocked)
        assert _gate(oracles).can_message(db_session, candidate, admin).allowed is True

    def test_no_permission(self, db_session, oracles, candidate, other_candidate) -> None:
        decision = _gate(oracles).can_message(db_session, candidate, other_candidate)
        assert decision.allowed is False
        assert decision.reason == REASON_NO_PERMISSION
        assert decision.trace == ["self", "admin", "relationship", "stored"]

    def test_module_level_helper(self, db_session, oracles) -> None:
        user = uuid.uuid4()
        assert can_message(db_session, user, user, oracles=oracles).allowed is True


class TestRelationshipTier:
    def test_pending_request_then_application_allows_both_directions(
        self, db_session, oracles, employer, candidate
    ) -> None:
        PermissionRequests.request(
            db_session, str(employer), PermissionRequestCreate(target_id=candidate)
        )
        oracles.applications.apply(candidate, employer)
        gate = _gate(oracles)
        employer_side = gate.can_message(db_session, employer, candidate)
        candidate_side = gate.can_message(db_session, candidate, employer)
        assert employer_side.allowed is True
        assert employer_side.tier == "relationship"
        assert candidate_side.allowed is True
        assert db_session.query(MessagingPermission).count() == 2

    def test_application_allows_both_directions(
        self, db_session, oracles, employer, candidate
    ) -> None:
        oracles.applications.apply(candidate, employer)
        gate = _gate(oracles)
        forward = gate.can_message(db_session, candidate, employer)
        backward = gate.can_message(db_session, employer, candidate)
        assert forward.allowed is True
        assert backward.allowed is True
        assert forward.reason == REASON_RELATIONSHIP
        assert db_session.query(MessagingPermission).count() == 2

    def test_repeated_checks_are_idempotent(
        self, db_session, oracles, employer, candidate
    ) -> None:
        oracles.applications.apply(candidate, employer)
        gate = _gate(oracles)
        for _ in range(3):
            assert gate.can_message(db_session, employer, candidate).allowed is True
        assert db_session.query(MessagingPermission).count() == 2

    def test_block_beats_relationship(
        self, db_session, oracles, employer, candidate
    ) -> None:
        oracles.applications.apply(candidate, employer)
        Blocking.block(db_session, str(candidate), str(employer))
        decision = _gate(oracles).can_message(db_session, employer, candidate)
        assert decision.allowed is False
        assert decision.reason == REASON_BLOCKED

    def test_unqualified_pair_falls_through(
        self, db_session, oracles, employer, candidate
    ) -> None:
        decision = _gate(oracles).can_message(db_session, employer, candidate)
        assert decision.allowed is False
        assert decision.tier == "stored"


class TestStoredTiers:
    def test_blocked(self, db_session, oracles, candidate, other_candidate, make_permission) -> None:
        make_permission(candidate, other_candidate, status=PermissionStatus.blocked)
        decision = _gate(oracles).can_message(db_session, candidate, other_candidate)
        assert decision.allowed is False
        assert decision.tier == "blocked"

    def test_rejected(self, db_session, oracles, candidate, other_candidate, make_permission) -> None:
        make_permission(candidate, other_candidate, status=PermissionStatus.rejected)
        decision = _gate(oracles).can_message(db_session, candidate, other_candidate)
        assert decision.reason == REASON_REJECTED

    def test_pending(self, db_session, oracles, candidate, other_candidate, make_permission) -> None:
        make_permission(candidate, other_candidate, status=PermissionStatus.pending)
        decision = _gate(oracles).can_message(db_session, candidate, other_candidate)
        assert decision.reason == REASON_PENDING

    def test_approved(self, db_session, oracles, candidate, other_candidate, make_permission) -> None:
        permission = make_permission(candidate, other_candidate)
        decision = _gate(oracles).can_message(db_session, candidate, other_candidate)
        assert decision.allowed is True
        assert decision.tier == "approved"
        assert decision.permission.id == permission.id

    def test_direction_matters(
        self, db_session, oracles, candidate, other_candidate, make_permission
    ) -> None:
        make_permission(candidate, other_candidate)
        decision = _gate(oracles).can_message(db_session, other_candidate, candidate)
        assert decision.allowed is False

    def test_inactive_approved_is_denied(
        self, db_session, oracles, candidate, other_candidate, make_permission
    ) -> None:
        make_permission(candidate, other_candidate, is_active=False)
        decision = _gate(oracles).can_message(db_session, candidate, other_candidate)
        assert decision.allowed is False
        assert decision.tier == "inactive"


class TestRenewalTier:
    def test_expired_explicit_grant_is_terminal(
        self, db_session, oracles, candidate, other_candidate, make_permission
    ) -> None:
        permission = make_permission(candidate, other_candidate, expires_delta_days=-1)
        decision = _gate(oracles).can_message(db_session, candidate, other_candidate)
        assert decision.allowed is False
        assert decision.reason == REASON_EXPIRED
        assert decision.trace[-1] == "renewal"
        db_session.refresh(permission)
        assert permission.is_active is False
        assert permission.status == PermissionStatus.approved

    def test_expired_auto_grant_renews_while_sponsor_entitled(
        self, db_session, oracles, employer, candidate, make_permission
    ) -> None:
        oracles.subscriptions.subscribe(employer, plan="pro")
        permission = make_permission(
            employer,
            candidate,
            kind=PermissionKind.auto_relationship,
            sponsor_id=employer,
            expires_delta_days=-1,
        )
        decision = _gate(oracles).can_message(db_session, employer, candidate)
        assert decision.allowed is True
        db_session.refresh(permission)
        assert as_utc(permission.expires_at) > utc_now() + timedelta(days=89)

    def test_enterprise_lapse_to_free_denies_and_deactivates(
        self, db_session, oracles, employer, candidate, make_permission
    ) -> None:
        oracles.subscriptions.subscribe(employer, plan="free")
        permission = make_permission(
            employer,
            candidate,
            kind=PermissionKind.auto_relationship,
            sponsor_id=employer,
            expires_delta_days=-1,
        )
        decision = _gate(oracles).can_message(db_session, employer, candidate)
        assert decision.allowed is False
        assert decision.reason == REASON_EXPIRED
        db_session.refresh(permission)
        assert permission.is_active is False

    def test_candidate_direction_keyed_to_sponsor(
        self, db_session, oracles, employer, candidate, make_permission
    ) -> None:
        oracles.subscriptions.subscribe(candidate, plan="enterprise")
        make_permission(
            candidate,
            employer,
            kind=PermissionKind.auto_relationship,
            sponsor_id=employer,
            expires_delta_days=-1,
        )
        decision = _gate(oracles).can_message(db_session, candidate, employer)
        assert decision.allowed is False


class TestBlockUnblockScenario:
    def test_apply_block_unblock(self, db_session, oracles, employer, candidate) -> None:
        oracles.applications.apply(candidate, employer)
        gate = _gate(oracles)
        assert gate.can_message(db_session, employer, candidate).allowed is True

        Blocking.block(db_session, str(candidate), str(employer))
        assert gate.can_message(db_session, employer, candidate).allowed is False
        assert gate.can_message(db_session, candidate, employer).allowed is False

        Blocking.unblock(db_session, str(candidate), str(employer))
        after_employer = gate.can_message(db_session, employer, candidate)
        after_candidate = gate.can_message(db_session, candidate, employer)
        assert after_employer.allowed is False
        assert after_candidate.allowed is False
        assert after_employer.reason == REASON_PENDING
        assert db_session.query(MessagingPermission).count() == 2
