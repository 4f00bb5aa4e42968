"""
Promo code eligibility rules.

``evaluate`` is the read-only half of redemption: it never touches
storage, so running it any number of times cannot change ``used_count``.
Checks run in a fixed order and stop at the first failure:

1. code exists          4. usage limit not reached
2. code is active       5. minimum amount met
3. code not expired     6. role is eligible
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from .discounts import calculate_discount
from .entities import PromoCode, PromoRedemptionResult
from .enums import ALL_ROLES
from .errors import ErrorCode


def parse_applicable_roles(raw: Any) -> frozenset[str]:
    """Stored roles are a JSON list; anything unreadable means every role."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return ALL_ROLES
    if isinstance(raw, (list, tuple, set, frozenset)) and all(
        isinstance(role, str) for role in raw
    ):
        return frozenset(raw)
    return ALL_ROLES


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored in UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def rejection(
    code: ErrorCode, description: str, amount: float
) -> PromoRedemptionResult:
    return PromoRedemptionResult(
        success=False,
        description=description,
        original_amount=amount,
        final_amount=amount,
        discount_amount=0.0,
        error=code,
    )


def evaluate(
    promo: Optional[PromoCode],
    amount: float,
    role: str,
    now: Optional[datetime] = None,
) -> PromoRedemptionResult:
    now = now or datetime.now(timezone.utc)

    if promo is None:
        return rejection(ErrorCode.PROMO_CODE_NOT_FOUND, "Invalid promo code", amount)

    if not promo.is_active:
        return rejection(
            ErrorCode.PROMO_CODE_INACTIVE, "This promo code is no longer active", amount
        )

    if promo.expires_at is not None and _as_utc(now) > _as_utc(promo.expires_at):
        return rejection(
            ErrorCode.PROMO_CODE_EXPIRED, "This promo code has expired", amount
        )

    if promo.max_uses is not None and promo.used_count >= promo.max_uses:
        return rejection(
            ErrorCode.PROMO_USAGE_LIMIT_REACHED,
            "This promo code has reached its usage limit",
            amount,
        )

    if promo.minimum_amount and amount < promo.minimum_amount:
        return rejection(
            ErrorCode.PROMO_MINIMUM_AMOUNT_NOT_MET,
            f"Minimum order amount of ${promo.minimum_amount:.2f} required",
            amount,
        )

    if role not in promo.applicable_roles:
        return rejection(
            ErrorCode.PROMO_ROLE_INELIGIBLE,
            "This promo code is not applicable to your account type",
            amount,
        )

    outcome = calculate_discount(promo, amount)
    return PromoRedemptionResult(
        success=True,
        description="Promo code applied successfully",
        original_amount=amount,
        final_amount=outcome.final_amount,
        discount_amount=outcome.discount_amount,
        promo_code=promo,
    )
