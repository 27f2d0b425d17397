"""messaging permissions

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "messaging_permissions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("requester_id", sa.UUID(), nullable=False),
        sa.Column("target_id", sa.UUID(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending", "approved", "rejected", "blocked", name="permissionstatus"
            ),
            nullable=False,
        ),
        sa.Column(
            "kind",
            sa.Enum("explicit", "auto_relationship", name="permissionkind"),
            nullable=False,
        ),
        sa.Column(
            "grant_reason",
            sa.Enum("application", "sponsor_subscription", name="autograntreason"),
            nullable=True,
        ),
        sa.Column("sponsor_id", sa.UUID(), nullable=True),
        sa.Column("related_job_id", sa.UUID(), nullable=True),
        sa.Column("related_application_id", sa.UUID(), nullable=True),
        sa.Column("request_message", sa.Text(), nullable=True),
        sa.Column("response_message", sa.Text(), nullable=True),
        sa.Column("blocked_by", sa.UUID(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "requester_id", "target_id", name="uq_messaging_permissions_pair"
        ),
    )
    op.create_index(
        "ix_messaging_permissions_requester_id",
        "messaging_permissions",
        ["requester_id"],
        unique=False,
    )
    op.create_index(
        "ix_messaging_permissions_target_id",
        "messaging_permissions",
        ["target_id"],
        unique=False,
    )
    op.create_index(
        "ix_messaging_permissions_target_status",
        "messaging_permissions",
        ["target_id", "status"],
        unique=False,
    )
    op.create_index(
        "ix_messaging_permissions_requester_status",
        "messaging_permissions",
        ["requester_id", "status"],
        unique=False,
    )
    op.create_index(
        "ix_messaging_permissions_sponsor_id",
        "messaging_permissions",
        ["sponsor_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index(
        "ix_messaging_permissions_sponsor_id", table_name="messaging_permissions"
    )
    op.drop_index(
        "ix_messaging_permissions_requester_status", table_name="messaging_permissions"
    )
    op.drop_index(
        "ix_messaging_permissions_target_status", table_name="messaging_permissions"
    )
    op.drop_index(
        "ix_messaging_permissions_target_id", table_name="messaging_permissions"
    )
    op.drop_index(
        "ix_messaging_permissions_requester_id", table_name="messaging_permissions"
    )
    op.drop_table("messaging_permissions")
    sa.Enum(name="autograntreason").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="permissionkind").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="permissionstatus").drop(op.get_bind(), checkfirst=True)
