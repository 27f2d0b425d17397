from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.messaging import AutoGrantReason, PermissionKind, PermissionStatus


# ---------------------------------------------------------------------------
# MessagingPermission
# ---------------------------------------------------------------------------


class PermissionRequestCreate(BaseModel):
    target_id: UUID
    related_job_id: UUID | None = None
    related_application_id: UUID | None = None
    message: str | None = Field(default=None, max_length=2000)
    expires_in_days: int | None = Field(default=None, ge=1, le=365)


class PermissionRespond(BaseModel):
    status: str
    response_message: str | None = Field(default=None, max_length=2000)


class MessagingPermissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requester_id: UUID
    target_id: UUID
    status: PermissionStatus
    kind: PermissionKind
    grant_reason: AutoGrantReason | None = None
    sponsor_id: UUID | None = None
    blocked_by: UUID | None = None
    related_job_id: UUID | None = None
    related_application_id: UUID | None = None
    request_message: str | None = None
    response_message: str | None = None
    expires_at: datetime
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Decisions and summaries
# ---------------------------------------------------------------------------


class DecisionRead(BaseModel):
    allowed: bool
    reason: str
    tier: str
    trace: list[str]
    permission: MessagingPermissionRead | None = None


class PermissionStats(BaseModel):
    pending_requests: int
    received_requests: int
    active_permissions: int
    blocked_users: int


class EntitlementRead(BaseModel):
    user_id: UUID
    allowed: bool


class RenewalResult(BaseModel):
    renewed_count: int


class SweepResult(BaseModel):
    modified_count: int
