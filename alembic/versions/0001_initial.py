"""initial

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("username", sa.String(length=150), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255)),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="operator"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_org_id", "users", ["org_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer()),
        sa.Column("user_id", sa.Integer()),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("message", sa.String(length=255)),
        sa.Column("metadata", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_org_id", "audit_logs", ["org_id"])

    op.create_table(
        "calls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("users.id")),
        sa.Column("audio_file_url", sa.String(length=1024), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("transcription", sa.Text()),
        sa.Column("diarization", sa.JSON()),
        sa.Column("general_score", sa.Integer()),
        sa.Column("user_satisfaction_index", sa.Integer()),
        sa.Column("communication_skills", sa.Integer()),
        sa.Column("sales_technique", sa.Integer()),
        sa.Column("transcription_score", sa.Integer()),
        sa.Column("summary", sa.Text()),
        sa.Column("feedback", sa.Text()),
        sa.Column("advice", sa.Text()),
        sa.Column("processing_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("processing_step", sa.String(length=20)),
        sa.Column("error_message", sa.Text()),
        sa.Column("error_code", sa.String(length=40)),
        sa.Column("source", sa.String(length=40), nullable=False, server_default="upload"),
        sa.Column("source_call_id", sa.String(length=128)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("org_id", "source", "source_call_id", name="uq_calls_source_call"),
    )
    op.create_index("ix_calls_org_id", "calls", ["org_id"])
    op.create_index("ix_calls_date", "calls", ["date"])
    op.create_index("ix_calls_processing_status", "calls", ["processing_status"])

    op.create_table(
        "telfin_connections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, unique=True),
        sa.Column("client_id", sa.String(length=255), nullable=False),
        sa.Column("client_secret", sa.String(length=255), nullable=False),
        sa.Column("telfin_client_id", sa.String(length=64)),
        sa.Column("access_token", sa.Text()),
        sa.Column("token_expiry", sa.DateTime(timezone=True)),
        sa.Column("last_sync_at", sa.DateTime(timezone=True)),
        sa.Column("last_error", sa.String(length=1024)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "telfin_calls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("call_id", sa.String(length=128), nullable=False),
        sa.Column("extension_id", sa.String(length=64)),
        sa.Column("caller_number", sa.String(length=64)),
        sa.Column("called_number", sa.String(length=64)),
        sa.Column("start_time", sa.DateTime(timezone=True)),
        sa.Column("end_time", sa.DateTime(timezone=True)),
        sa.Column("duration", sa.Integer()),
        sa.Column("has_record", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("record_uuid", sa.String(length=128)),
        sa.Column("disposition", sa.String(length=64)),
        sa.Column("raw_payload", sa.JSON(), nullable=False),
        sa.Column("processing_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("processing_feedback", sa.Text()),
        sa.Column("materialized_call_id", sa.Integer(), sa.ForeignKey("calls.id")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("org_id", "call_id", name="uq_telfin_calls_org_call"),
    )
    op.create_index("ix_telfin_calls_org_id", "telfin_calls", ["org_id"])
    op.create_index("ix_telfin_calls_start_time", "telfin_calls", ["start_time"])
    op.create_index("ix_telfin_calls_processing_status", "telfin_calls", ["processing_status"])

    op.create_table(
        "telegram_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_name", sa.String(length=255)),
        sa.Column("user_role", sa.String(length=20), nullable=False, server_default="operator"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_telegram_sessions_user_id", "telegram_sessions", ["user_id"])

    op.create_table(
        "telegram_links",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("chat_id", sa.BigInteger(), nullable=False, unique=True),
        sa.Column("telegram_username", sa.String(length=255)),
        sa.Column("first_name", sa.String(length=255)),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_telegram_links_user_id", "telegram_links", ["user_id"])
    op.create_index("ix_telegram_links_org_id", "telegram_links", ["org_id"])


def downgrade() -> None:
    op.drop_table("telegram_links")
    op.drop_table("telegram_sessions")
    op.drop_table("telfin_calls")
    op.drop_table("telfin_connections")
    op.drop_table("calls")
    op.drop_table("audit_logs")
    op.drop_table("users")
    op.drop_table("organizations")
