import logging
from datetime import timedelta

from fastapi import HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.config import settings
from app.models.messaging import (
    MessagingPermission,
    PermissionKind,
    PermissionStatus,
    ResponseDecision,
)
from app.schemas.messaging import PermissionRequestCreate, PermissionRespond
from app.services.common import apply_ordering, apply_pagination, coerce_uuid, utc_now
from app.services.event import EventType, publish_event
from app.services.messaging_blocking import Blocking
from app.services.messaging_store import PermissionStore, is_expired, is_live
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_RESPONSE_EVENTS = {
    ResponseDecision.approved: EventType.permission_approved,
    ResponseDecision.rejected: EventType.permission_rejected,
}


def _validate_decision(decision: str) -> ResponseDecision:
    try:
        return ResponseDecision(decision)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid status: {decision}",
        )


def _validate_scope(scope: str) -> None:
    if scope not in {"incoming", "outgoing", "active"}:
        raise HTTPException(status_code=400, detail=f"Invalid scope: {scope}")


class PermissionRequests(ListResponseMixin):
    @staticmethod
    def request(
        db: Session, requester_id: str, payload: PermissionRequestCreate
    ) -> MessagingPermission:
        requester = coerce_uuid(requester_id)
        target = coerce_uuid(payload.target_id)
        if requester == target:
            raise HTTPException(
                status_code=400, detail="Cannot request permission to message yourself"
            )

        ttl_days = payload.expires_in_days or settings.messaging_request_ttl_days
        values = {
            "status": PermissionStatus.pending,
            "kind": PermissionKind.explicit,
            "grant_reason": None,
            "sponsor_id": None,
            "blocked_by": None,
            "related_job_id": payload.related_job_id,
            "related_application_id": payload.related_application_id,
            "request_message": payload.message,
            "response_message": None,
            "is_active": False,
            "expires_at": utc_now() + timedelta(days=ttl_days),
        }
        permission, created = PermissionStore.insert_if_absent(
            db, requester, target, **values
        )
        if not created:
            if permission.status == PermissionStatus.blocked:
                raise HTTPException(
                    status_code=403,
                    detail="Messaging has been blocked between these users",
                )
            if permission.status == PermissionStatus.pending and not is_expired(
                permission
            ):
                raise HTTPException(
                    status_code=409,
                    detail="Messaging permission request already pending",
                )
            if is_live(permission):
                return permission
            # Resolved, stale or lapsed: reuse the pair's row.
            if not PermissionStore.compare_and_set(
                db, permission, permission.status, **values
            ):
                db.rollback()
                raise HTTPException(
                    status_code=409,
                    detail="Messaging permission changed concurrently, retry",
                )
        db.commit()
        db.refresh(permission)
        logger.info(
            "User %s requested messaging permission for %s (%s)",
            requester,
            target,
            permission.id,
        )
        publish_event(
            EventType.permission_requested,
            recipient_id=target,
            entity_id=permission.id,
            actor_id=requester,
            payload={"message": payload.message} if payload.message else None,
        )
        return permission

    @staticmethod
    def respond(
        db: Session, permission_id: str, responder_id: str, payload: PermissionRespond
    ) -> MessagingPermission:
        permission = PermissionStore.get(db, permission_id)
        responder = coerce_uuid(responder_id)
        if permission.target_id != responder:
            raise HTTPException(
                status_code=403,
                detail="You can only respond to permission requests sent to you",
            )
        decision = _validate_decision(payload.status)
        if permission.status != PermissionStatus.pending:
            raise HTTPException(
                status_code=409,
                detail="Permission request has already been responded to",
            )
        if is_expired(permission):
            raise HTTPException(status_code=409, detail="Permission request has expired")

        values = {
            "status": PermissionStatus(decision.value),
            "response_message": payload.response_message,
            "is_active": decision == ResponseDecision.approved,
        }
        if decision == ResponseDecision.blocked:
            values["blocked_by"] = responder
        if not PermissionStore.compare_and_set(
            db, permission, PermissionStatus.pending, **values
        ):
            db.rollback()
            raise HTTPException(
                status_code=409,
                detail="Permission request has already been responded to",
            )

        if decision == ResponseDecision.blocked:
            Blocking.block(db, responder, permission.requester_id)
            db.refresh(permission)
            return permission

        db.commit()
        db.refresh(permission)
        logger.info("Permission request %s %s", permission.id, decision.value)
        publish_event(
            _RESPONSE_EVENTS[decision],
            recipient_id=permission.requester_id,
            entity_id=permission.id,
            actor_id=responder,
        )
        return permission

    @staticmethod
    def get_for_party(db: Session, permission_id: str, user_id: str) -> MessagingPermission:
        permission = PermissionStore.get(db, permission_id)
        user = coerce_uuid(user_id)
        if user not in (permission.requester_id, permission.target_id):
            raise HTTPException(status_code=404, detail="Permission not found")
        return permission

    @staticmethod
    def revoke(db: Session, permission_id: str, user_id: str) -> MessagingPermission:
        permission = PermissionRequests.get_for_party(db, permission_id, user_id)
        if permission.status == PermissionStatus.blocked:
            raise HTTPException(
                status_code=409,
                detail="Blocked permissions must be unblocked, not revoked",
            )
        if not PermissionStore.compare_and_set(
            db,
            permission,
            permission.status,
            status=PermissionStatus.rejected,
            is_active=False,
        ):
            db.rollback()
            raise HTTPException(
                status_code=409, detail="Messaging permission changed concurrently, retry"
            )
        db.commit()
        db.refresh(permission)
        logger.info("User %s revoked messaging permission %s", user_id, permission.id)
        other = (
            permission.target_id
            if permission.requester_id == coerce_uuid(user_id)
            else permission.requester_id
        )
        publish_event(
            EventType.permission_revoked,
            recipient_id=other,
            entity_id=permission.id,
            actor_id=user_id,
        )
        return permission

    @staticmethod
    def list(
        db: Session,
        user_id: str,
        scope: str,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[MessagingPermission]:
        _validate_scope(scope)
        user = coerce_uuid(user_id)
        stmt = select(MessagingPermission)
        if scope == "outgoing":
            stmt = stmt.where(MessagingPermission.requester_id == user)
        elif scope == "incoming":
            stmt = stmt.where(MessagingPermission.target_id == user)
        else:
            stmt = stmt.where(
                or_(
                    MessagingPermission.requester_id == user,
                    MessagingPermission.target_id == user,
                ),
                MessagingPermission.status == PermissionStatus.approved,
                MessagingPermission.is_active.is_(True),
                MessagingPermission.expires_at > utc_now(),
            )
        if status is not None:
            try:
                stmt = stmt.where(MessagingPermission.status == PermissionStatus(status))
            except ValueError:
                raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "created_at": MessagingPermission.created_at,
                "updated_at": MessagingPermission.updated_at,
                "expires_at": MessagingPermission.expires_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def stats(db: Session, user_id: str) -> dict:
        user = coerce_uuid(user_id)

        def _count(*criteria) -> int:
            stmt = select(func.count()).select_from(MessagingPermission).where(*criteria)
            return db.scalar(stmt) or 0

        return {
            "pending_requests": _count(
                MessagingPermission.requester_id == user,
                MessagingPermission.status == PermissionStatus.pending,
            ),
            "received_requests": _count(
                MessagingPermission.target_id == user,
                MessagingPermission.status == PermissionStatus.pending,
            ),
            "active_permissions": _count(
                or_(
                    MessagingPermission.requester_id == user,
                    MessagingPermission.target_id == user,
                ),
                MessagingPermission.status == PermissionStatus.approved,
                MessagingPermission.is_active.is_(True),
                MessagingPermission.expires_at > utc_now(),
            ),
            "blocked_users": _count(
                MessagingPermission.requester_id == user,
                MessagingPermission.status == PermissionStatus.blocked,
                MessagingPermission.blocked_by == user,
            ),
        }


permission_requests = PermissionRequests()
