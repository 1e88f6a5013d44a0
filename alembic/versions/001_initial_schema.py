"""Initial schema for Aviator Signals.

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    PURPOSE: Create the initial schema with all tables and indexes.

    Creates tables for:
    - Signals and their alert deliveries
    - Model registry, API keys, audit logs
    - Ingestion rate limit counters
    """
    # Signals Table
    op.create_table(
        "signals",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column("round_id", sa.String(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("predicted_class", sa.String(), nullable=False),
        sa.Column("predicted_multiplier", sa.Float(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("model_version", sa.String(), nullable=False),
        sa.Column("recommended_action", sa.String(), nullable=False),
        sa.Column("suggested_bet_pct", sa.Float(), nullable=True),
        sa.Column("cashout_targets", sa.Text(), nullable=True),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "confidence >= 0 AND confidence <= 1",
            name="ck_signals_confidence_range",
        ),
    )
    op.create_index("ux_signals_platform_round", "signals", ["platform", "round_id"], unique=True)
    op.create_index(
        "ix_signals_platform_time",
        "signals",
        ["platform", sa.text("timestamp DESC")],
    )

    # Alerts Table
    op.create_table(
        "alerts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("signal_id", sa.String(), nullable=False),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("sent_at", sa.BigInteger(), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["signal_id"], ["signals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_alerts_signal", "alerts", ["signal_id"])

    # Model Registry Table
    op.create_table(
        "models",
        sa.Column("model_version", sa.String(), nullable=False),
        sa.Column("model_type", sa.String(), nullable=False),
        sa.Column("trained_on_until", sa.String(), nullable=True),
        sa.Column("metrics", sa.Text(), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("model_version"),
    )

    # API Keys Table
    op.create_table(
        "api_keys",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("key_hash", sa.String(), nullable=False),
        sa.Column("allowed_ips", sa.Text(), nullable=True),
        sa.Column("rate_limit_per_min", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("last_used_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_api_keys_role", "api_keys", ["role"])

    # Audit Logs Table
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("actor", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_created_at", "audit_logs", [sa.text("created_at DESC")])

    # Rate Limits Table
    op.create_table(
        "rate_limits",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("window_start", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """
    PURPOSE: Drop all tables created by upgrade(), dependents first.
    """
    op.drop_table("rate_limits")
    op.drop_index("ix_audit_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_api_keys_role", table_name="api_keys")
    op.drop_table("api_keys")
    op.drop_table("models")
    op.drop_index("ix_alerts_signal", table_name="alerts")
    op.drop_table("alerts")
    op.drop_index("ix_signals_platform_time", table_name="signals")
    op.drop_index("ux_signals_platform_round", table_name="signals")
    op.drop_table("signals")
