import uuid

from fastapi import Depends, Header, HTTPException

from app.db import SessionLocal
from app.services.common import coerce_uuid
from app.services.messaging_oracles import MessagingOracles, UserRole, get_oracles
from app.services.messaging_resolvers import RoleResolver


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def require_user_auth(x_user_id: str | None = Header(default=None)) -> uuid.UUID:
    """Caller identity as asserted by the API gateway."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return coerce_uuid(x_user_id)


def require_admin(
    user_id: uuid.UUID = Depends(require_user_auth),
    oracles: MessagingOracles = Depends(get_oracles),
) -> uuid.UUID:
    if RoleResolver(oracles).role_of(user_id) != UserRole.admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return user_id


__all__ = [
    "get_db",
    "get_oracles",
    "require_admin",
    "require_user_auth",
]
