import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_oracles, require_admin, require_user_auth
from app.schemas.common import ListResponse
from app.schemas.messaging import (
    DecisionRead,
    EntitlementRead,
    MessagingPermissionRead,
    PermissionRequestCreate,
    PermissionRespond,
    PermissionStats,
    RenewalResult,
    SweepResult,
)
from app.services.messaging_blocking import blocking
from app.services.messaging_gate import PermissionGate
from app.services.messaging_maintenance import sweep_stale_pending
from app.services.messaging_oracles import MessagingOracles
from app.services.messaging_renewal import ExpiryRenewal
from app.services.messaging_requests import permission_requests
from app.services.messaging_resolvers import EntitlementResolver

router = APIRouter(prefix="/messaging-permissions", tags=["messaging-permissions"])


# ------------------------------------------------------------------
# Request / respond
# ------------------------------------------------------------------


@router.post(
    "/request",
    response_model=MessagingPermissionRead,
    status_code=status.HTTP_201_CREATED,
)
def request_permission(
    payload: PermissionRequestCreate,
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return permission_requests.request(db, user_id, payload)


@router.patch("/{permission_id}/respond", response_model=MessagingPermissionRead)
def respond_to_request(
    permission_id: str,
    payload: PermissionRespond,
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return permission_requests.respond(db, permission_id, user_id, payload)


@router.patch("/{permission_id}/revoke", response_model=MessagingPermissionRead)
def revoke_permission(
    permission_id: str,
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return permission_requests.revoke(db, permission_id, user_id)


# ------------------------------------------------------------------
# Listings
# ------------------------------------------------------------------


def _list(db, user_id, scope, status_filter, order_by, order_dir, limit, offset):
    return permission_requests.list_response(
        db, user_id, scope, status_filter, order_by, order_dir, limit, offset
    )


@router.get("/my-requests", response_model=ListResponse[MessagingPermissionRead])
def list_outgoing(
    status_filter: str | None = Query(default=None, alias="status"),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return _list(db, user_id, "outgoing", status_filter, order_by, order_dir, limit, offset)


@router.get("/received-requests", response_model=ListResponse[MessagingPermissionRead])
def list_incoming(
    status_filter: str | None = Query(default=None, alias="status"),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return _list(db, user_id, "incoming", status_filter, order_by, order_dir, limit, offset)


@router.get("/active", response_model=ListResponse[MessagingPermissionRead])
def list_active(
    order_by: str = Query(default="updated_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return _list(db, user_id, "active", None, order_by, order_dir, limit, offset)


@router.get("/stats", response_model=PermissionStats)
def get_stats(
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return permission_requests.stats(db, user_id)


# ------------------------------------------------------------------
# Decision, entitlement, renewal
# ------------------------------------------------------------------


@router.get("/check/{target_id}", response_model=DecisionRead)
def check_permission(
    target_id: str,
    user_id: uuid.UUID = Depends(require_user_auth),
    oracles: MessagingOracles = Depends(get_oracles),
    db: Session = Depends(get_db),
):
    decision = PermissionGate(oracles).can_message(db, user_id, target_id)
    return {
        "allowed": decision.allowed,
        "reason": decision.reason,
        "tier": decision.tier,
        "trace": decision.trace,
        "permission": decision.permission,
    }


@router.get("/entitlement", response_model=EntitlementRead)
def check_entitlement(
    user_id: uuid.UUID = Depends(require_user_auth),
    oracles: MessagingOracles = Depends(get_oracles),
):
    allowed = EntitlementResolver(oracles).allows_auto_messaging(user_id)
    return {"user_id": user_id, "allowed": allowed}


@router.post("/renew-expired", response_model=RenewalResult)
def renew_expired(
    user_id: uuid.UUID = Depends(require_user_auth),
    oracles: MessagingOracles = Depends(get_oracles),
    db: Session = Depends(get_db),
):
    return ExpiryRenewal(oracles).renew_all_for_sponsor(db, user_id)


# ------------------------------------------------------------------
# Blocking
# ------------------------------------------------------------------


@router.post("/block/{target_id}", response_model=MessagingPermissionRead)
def block_user(
    target_id: str,
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return blocking.block(db, user_id, target_id)


@router.post("/unblock/{target_id}", status_code=status.HTTP_204_NO_CONTENT)
def unblock_user(
    target_id: str,
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    blocking.unblock(db, user_id, target_id)


# ------------------------------------------------------------------
# Maintenance
# ------------------------------------------------------------------


@router.post("/maintenance/sweep", response_model=SweepResult)
def sweep(
    _admin_id: uuid.UUID = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return sweep_stale_pending(db)


@router.get("/{permission_id}", response_model=MessagingPermissionRead)
def get_permission(
    permission_id: str,
    user_id: uuid.UUID = Depends(require_user_auth),
    db: Session = Depends(get_db),
):
    return permission_requests.get_for_party(db, permission_id, user_id)
