import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, Index, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base

# Expiry for records that are not time-boxed (e.g. rows created by a block).
FAR_FUTURE = datetime(9999, 12, 31, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class PermissionStatus(enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    blocked = "blocked"


class PermissionKind(enum.Enum):
    explicit = "explicit"
    auto_relationship = "auto_relationship"


class AutoGrantReason(enum.Enum):
    application = "application"
    sponsor_subscription = "sponsor_subscription"


class ResponseDecision(enum.Enum):
    approved = "approved"
    rejected = "rejected"
    blocked = "blocked"


# ---------------------------------------------------------------------------
# Messaging permissions
# ---------------------------------------------------------------------------


class MessagingPermission(Base):
    """Whether ``requester_id`` may send direct messages to ``target_id``.

    One row per ordered pair. Rows are never deleted; block/unblock and
    re-requests overwrite the existing row.
    """

    __tablename__ = "messaging_permissions"
    __table_args__ = (
        UniqueConstraint(
            "requester_id", "target_id", name="uq_messaging_permissions_pair"
        ),
        Index("ix_messaging_permissions_target_status", "target_id", "status"),
        Index("ix_messaging_permissions_requester_status", "requester_id", "status"),
        Index("ix_messaging_permissions_sponsor_id", "sponsor_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    requester_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    status: Mapped[PermissionStatus] = mapped_column(
        Enum(PermissionStatus), nullable=False, default=PermissionStatus.pending
    )
    kind: Mapped[PermissionKind] = mapped_column(
        Enum(PermissionKind), nullable=False, default=PermissionKind.explicit
    )

    # Provenance of auto_relationship rows
    grant_reason: Mapped[AutoGrantReason | None] = mapped_column(
        Enum(AutoGrantReason)
    )
    sponsor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    related_job_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    related_application_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True)
    )

    request_message: Mapped[str | None] = mapped_column(Text)
    response_message: Mapped[str | None] = mapped_column(Text)

    # Who initiated the block; only they may lift it.
    blocked_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: FAR_FUTURE
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
