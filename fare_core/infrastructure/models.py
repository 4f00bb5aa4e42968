"""
SQLAlchemy ORM models  (PostgreSQL in production, SQLite in tests).

Tables
------
* ``promo_codes``       -- promotional codes maintained by admins
* ``promo_code_usage``  -- append-only redemption audit trail
* ``rides``             -- the subset of ride columns this service prices

Indexes
-------
* **Unique** on ``upper(promo_codes.code)`` and
  ``promo_code_usage.idempotency_key``.
* **B-Tree** on ``promo_code_usage.promo_code_id`` / ``user_id`` for
  analytics, and on ``rides.promo_code_id``.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base


class PromoCodeModel(Base):
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), unique=True, nullable=False)  # stored upper-case
    description = Column(Text, nullable=False, default="")
    discount_type = Column(String(20), nullable=False)
    discount_value = Column(Float, nullable=False)
    max_uses = Column(Integer, nullable=True)  # NULL = unlimited
    used_count = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # JSON list of role names, kept as text so a bad value can't break reads
    applicable_roles = Column(Text, default='["rider", "driver"]')
    minimum_amount = Column(Float, default=0, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "max_uses IS NULL OR used_count <= max_uses",
            name="ck_promo_codes_used_within_max",
        ),
    )


class PromoCodeUsageModel(Base):
    __tablename__ = "promo_code_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id"), nullable=False)
    user_id = Column(Integer, nullable=False)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    original_amount = Column(Float, nullable=False)
    discount_amount = Column(Float, nullable=False)
    final_amount = Column(Float, nullable=False)
    idempotency_key = Column(String(64), unique=True, nullable=True)
    used_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_promo_usage_code", "promo_code_id"),
        Index("idx_promo_usage_user", "user_id"),
    )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_id = Column(Integer, nullable=False)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)

    vehicle_type = Column(String(20), default="standard", nullable=False)
    is_round_trip = Column(Boolean, default=False, nullable=False)
    estimated_fare = Column(Float, nullable=True)
    final_price = Column(Float, nullable=True)
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_rides_rider", "rider_id"),
        Index("idx_rides_promo_code", "promo_code_id"),
    )


# Codes are matched case-insensitively, so uniqueness is on upper(code)
Index("uq_promo_codes_code_upper", func.upper(PromoCodeModel.code), unique=True)
