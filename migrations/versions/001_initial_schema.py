"""Initial schema: promo codes, redemption audit trail and rides.

Revision ID: 001
Create Date: 2026-03-01
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── promo_codes ───────────────────────────────────────────────────
    op.create_table(
        "promo_codes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(64), unique=True, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("discount_type", sa.String(20), nullable=False),
        sa.Column("discount_value", sa.Float, nullable=False),
        sa.Column("max_uses", sa.Integer, nullable=True),
        sa.Column("used_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "applicable_roles",
            sa.Text,
            server_default='["rider", "driver"]',
        ),
        sa.Column("minimum_amount", sa.Float, nullable=True, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "max_uses IS NULL OR used_count <= max_uses",
            name="ck_promo_codes_used_within_max",
        ),
    )
    op.create_index(
        "uq_promo_codes_code_upper",
        "promo_codes",
        [sa.text("upper(code)")],
        unique=True,
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("rider_id", sa.Integer, nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column(
            "vehicle_type",
            sa.String(20),
            nullable=False,
            server_default="standard",
        ),
        sa.Column(
            "is_round_trip", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("estimated_fare", sa.Float, nullable=True),
        sa.Column("final_price", sa.Float, nullable=True),
        sa.Column(
            "promo_code_id",
            sa.Integer,
            sa.ForeignKey("promo_codes.id"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_rides_rider", "rides", ["rider_id"])
    op.create_index("idx_rides_promo_code", "rides", ["promo_code_id"])

    # ── promo_code_usage ──────────────────────────────────────────────
    op.create_table(
        "promo_code_usage",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "promo_code_id",
            sa.Integer,
            sa.ForeignKey("promo_codes.id"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer, nullable=False),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=True),
        sa.Column("original_amount", sa.Float, nullable=False),
        sa.Column("discount_amount", sa.Float, nullable=False),
        sa.Column("final_amount", sa.Float, nullable=False),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        sa.Column(
            "used_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_promo_usage_code", "promo_code_usage", ["promo_code_id"])
    op.create_index("idx_promo_usage_user", "promo_code_usage", ["user_id"])


def downgrade() -> None:
    op.drop_table("promo_code_usage")
    op.drop_table("rides")
    op.drop_table("promo_codes")
