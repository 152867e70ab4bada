"""Create rewards ledger tables

Revision ID: 0a1f3c5e7b92
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0a1f3c5e7b92"
down_revision = None
branch_labels = None
depends_on = None

LEDGER_TABLES = ("coin_transactions", "point_transactions")


def upgrade() -> None:
    op.create_table(
        "reward_profiles",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("coin_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("point_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("login_streak", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_claim_date", sa.Date(), nullable=True),
        sa.Column("loyalty_tier", sa.String(20), nullable=False, server_default="bronze"),
        sa.Column("tier_floor", sa.String(20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("coin_balance >= 0", name="ck_reward_profiles_coins_nonneg"),
        sa.CheckConstraint("point_balance >= 0", name="ck_reward_profiles_points_nonneg"),
        sa.CheckConstraint("login_streak >= 0", name="ck_reward_profiles_streak_nonneg"),
    )
    op.create_index("ix_reward_profiles_coin_balance", "reward_profiles", ["coin_balance"])
    op.create_index("ix_reward_profiles_point_balance", "reward_profiles", ["point_balance"])

    for table in LEDGER_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
            sa.Column(
                "user_id", sa.String(64),
                sa.ForeignKey("reward_profiles.user_id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("type", sa.String(32), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("description", sa.String(255), nullable=False, server_default=""),
            sa.Column("reference", sa.String(100), nullable=True),
            sa.Column("idempotency_key", sa.String(128), nullable=True),
            sa.Column(
                "created_at", sa.DateTime(timezone=True),
                nullable=False, server_default=sa.func.now(),
            ),
            sa.CheckConstraint("amount <> 0", name=f"ck_{table}_amount_nonzero"),
            sa.UniqueConstraint(
                "user_id", "idempotency_key", name=f"uq_{table}_user_idempotency_key"
            ),
        )
        op.create_index(f"ix_{table}_user_time", table, ["user_id", "created_at"])
        op.create_index(f"ix_{table}_created_at", table, ["created_at"])

    op.create_table(
        "daily_claims",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column(
            "user_id", sa.String(64),
            sa.ForeignKey("reward_profiles.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("claim_date", sa.Date(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("coins_awarded", sa.Integer(), nullable=False),
        sa.Column("streak", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("user_id", "claim_date", name="uq_daily_claims_user_date"),
    )
    op.create_index("ix_daily_claims_claimed_at", "daily_claims", ["claimed_at"])

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer(), autoincrement=True, primary_key=True),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"]
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value_json", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_settings_category", "settings", ["category"])


def downgrade() -> None:
    op.drop_index("ix_settings_category", table_name="settings")
    op.drop_table("settings")
    op.drop_index("ix_admin_log_target", table_name="admin_log")
    op.drop_index("ix_admin_log_actor_time", table_name="admin_log")
    op.drop_table("admin_log")
    op.drop_index("ix_daily_claims_claimed_at", table_name="daily_claims")
    op.drop_table("daily_claims")
    for table in reversed(LEDGER_TABLES):
        op.drop_index(f"ix_{table}_created_at", table_name=table)
        op.drop_index(f"ix_{table}_user_time", table_name=table)
        op.drop_table(table)
    op.drop_index("ix_reward_profiles_point_balance", table_name="reward_profiles")
    op.drop_index("ix_reward_profiles_coin_balance", table_name="reward_profiles")
    op.drop_table("reward_profiles")
