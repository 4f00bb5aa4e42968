"""
Domain value objects and entities.

Everything here is immutable: fare inputs and outputs are values, and a
``PromoCode`` is a snapshot of the stored row taken at validation time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import ALL_ROLES, SERVICE_FEES
from .errors import ErrorCode


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class AdditionalServices:
    ramp: bool = False
    companion: bool = False
    stair_chair: bool = False
    wait_time: bool = False

    def fee(self) -> float:
        """Flat fees are independent and additive."""
        return sum(
            amount for name, amount in SERVICE_FEES.items() if getattr(self, name)
        )


@dataclass(frozen=True)
class FareBreakdown:
    base_fare: float
    distance_fare: float
    vehicle_type_premium: float
    services_fee: float
    subtotal: float
    platform_fee: float
    tax: float
    total: float


@dataclass(frozen=True)
class FareEstimate:
    distance: float
    estimated_fare: float
    breakdown: FareBreakdown
    estimated_duration: str
    formatted_distance: str


# ── Promotions ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PromoCode:
    id: int
    code: str
    discount_type: str  # raw value; unknown types are a no-op discount
    discount_value: float
    description: str = ""
    minimum_amount: Optional[float] = None
    max_uses: Optional[int] = None
    used_count: int = 0
    expires_at: Optional[datetime] = None
    is_active: bool = True
    applicable_roles: frozenset[str] = ALL_ROLES


@dataclass(frozen=True)
class DiscountOutcome:
    final_amount: float
    discount_amount: float


@dataclass(frozen=True)
class PromoRedemptionResult:
    success: bool
    description: str
    original_amount: float
    final_amount: float
    discount_amount: float
    promo_code: Optional[PromoCode] = None
    error: Optional[ErrorCode] = None
    idempotent_replay: bool = False


@dataclass(frozen=True)
class PromoUsageRecord:
    promo_code_id: int
    user_id: int
    ride_id: Optional[int]
    original_amount: float
    final_amount: float
    discount_amount: float
    applied_at: datetime
    idempotency_key: Optional[str] = None


@dataclass(frozen=True)
class PromoAnalytics:
    total_usage: int
    total_discount: float
    unique_users: int
    usage_records: list[PromoUsageRecord]
