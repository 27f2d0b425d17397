import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"

import uuid  # noqa: E402
from datetime import timedelta  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, SessionLocal, engine  # noqa: E402
from app.models.messaging import (  # noqa: E402
    AutoGrantReason,
    MessagingPermission,
    PermissionKind,
    PermissionStatus,
)
from app.services.common import utc_now  # noqa: E402
from app.services.messaging_oracles import UserRole, get_oracles  # noqa: E402
from tests.mocks import make_fake_oracles  # noqa: E402

Base.metadata.create_all(engine)


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())


@pytest.fixture(autouse=True)
def notify_delay():
    with patch("app.tasks.notifications.notify_user.delay") as mock_delay:
        yield mock_delay


@pytest.fixture()
def oracles():
    return make_fake_oracles()


def _user(oracles, role: UserRole) -> uuid.UUID:
    user_id = uuid.uuid4()
    oracles.users.roles[str(user_id)] = role
    return user_id


@pytest.fixture()
def employer(oracles):
    return _user(oracles, UserRole.employer)


@pytest.fixture()
def candidate(oracles):
    return _user(oracles, UserRole.job_seeker)


@pytest.fixture()
def other_candidate(oracles):
    return _user(oracles, UserRole.job_seeker)


@pytest.fixture()
def admin(oracles):
    return _user(oracles, UserRole.admin)


@pytest.fixture()
def make_permission(db_session):
    def _make(
        requester_id,
        target_id,
        *,
        status=PermissionStatus.approved,
        kind=PermissionKind.explicit,
        expires_delta_days=7,
        is_active=None,
        sponsor_id=None,
    ):
        permission = MessagingPermission(
            requester_id=requester_id,
            target_id=target_id,
            status=status,
            kind=kind,
            grant_reason=(
                AutoGrantReason.sponsor_subscription
                if kind == PermissionKind.auto_relationship
                else None
            ),
            sponsor_id=sponsor_id,
            expires_at=utc_now() + timedelta(days=expires_delta_days),
            is_active=(status == PermissionStatus.approved)
            if is_active is None
            else is_active,
        )
        db_session.add(permission)
        db_session.commit()
        db_session.refresh(permission)
        return permission

    return _make


@pytest.fixture()
def client(db_session, oracles):
    from app.api.deps import get_db
    from app.main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_oracles] = lambda: oracles
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
