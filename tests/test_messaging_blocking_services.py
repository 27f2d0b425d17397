import uuid

import pytest
from fastapi import HTTPException

from app.models.messaging import MessagingPermission, PermissionStatus
from app.services.common import as_utc, utc_now
from app.services.messaging_blocking import Blocking


def _row(db_session, requester, target):
    return (
        db_session.query(MessagingPermission)
        .filter_by(requester_id=requester, target_id=target)
        .one()
    )


class TestBlock:
    def test_creates_both_directions(self, db_session) -> None:
        a, b = uuid.uuid4(), uuid.uuid4()
        permission = Blocking.block(db_session, str(a), str(b))
        assert permission.requester_id == a
        assert permission.status == PermissionStatus.blocked
        assert permission.is_active is False
        reverse = _row(db_session, b, a)
        assert reverse.status == PermissionStatus.blocked
        assert reverse.blocked_by == a
        assert db_session.query(MessagingPermission).count() == 2

    def test_overwrites_existing_grants(self, db_session, make_permission) -> None:
        a, b = uuid.uuid4(), uuid.uuid4()
        forward = make_permission(a, b)
        backward = make_permission(b, a)
        Blocking.block(db_session, str(b), str(a))
        db_session.refresh(forward)
        db_session.refresh(backward)
        assert forward.status == PermissionStatus.blocked
        assert backward.status == PermissionStatus.blocked
        assert forward.is_active is False
        assert db_session.query(MessagingPermission).count() == 2

    def test_repeated_block_keeps_single_rows(self, db_session) -> None:
        a, b = uuid.uuid4(), uuid.uuid4()
        Blocking.block(db_session, str(a), str(b))
        Blocking.block(db_session, str(a), str(b))
        assert db_session.query(MessagingPermission).count() == 2

    def test_cannot_block_self(self, db_session) -> None:
        a = uuid.uuid4()
        with pytest.raises(HTTPException) as exc:
            Blocking.block(db_session, str(a), str(a))
        assert exc.value.status_code == 400

    def test_is_blocked(self, db_session) -> None:
        a, b = uuid.uuid4(), uuid.uuid4()
        assert Blocking.is_blocked(db_session, str(b), str(a)) is False
        Blocking.block(db_session, str(a), str(b))
        assert Blocking.is_blocked(db_session, str(b), str(a)) is True


class TestUnblock:
    def test_resets_both_directions_to_pending(self, db_session) -> None:
        a, b = uuid.uuid4(), uuid.uuid4()
        Blocking.block(db_session, str(a), str(b))
        changed = Blocking.unblock(db_session, str(a), str(b))
        assert changed == 2
        for requester, target in ((a, b), (b, a)):
            row = _row(db_session, requester, target)
            assert row.status == PermissionStatus.pending
            assert row.is_active is False
            assert row.blocked_by is None
            assert as_utc(row.expires_at) <= utc_now()

    def test_only_blocker_may_unblock(self, db_session) -> None:
        a, b = uuid.uuid4(), uuid.uuid4()
        Blocking.block(db_session, str(a), str(b))
        with pytest.raises(HTTPException) as exc:
            Blocking.unblock(db_session, str(b), str(a))
        assert exc.value.status_code == 403
        assert _row(db_session, a, b).status == PermissionStatus.blocked

    def test_unblock_without_rows(self, db_session, notify_delay) -> None:
        changed = Blocking.unblock(db_session, str(uuid.uuid4()), str(uuid.uuid4()))
        assert changed == 0
        notify_delay.assert_not_called()

    def test_unblock_leaves_unblocked_grants_alone(
        self, db_session, make_permission, notify_delay
    ) -> None:
        a, b = uuid.uuid4(), uuid.uuid4()
        forward = make_permission(a, b)
        backward = make_permission(b, a)
        changed = Blocking.unblock(db_session, str(b), str(a))
        assert changed == 0
        for permission in (forward, backward):
            db_session.refresh(permission)
            assert permission.status == PermissionStatus.approved
            assert permission.is_active is True
        notify_delay.assert_not_called()
