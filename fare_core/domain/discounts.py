"""
Promo discount strategies  (Strategy Pattern)
=============================================

* **fixed_amount** -- take ``value`` off, never below zero.
* **percentage**   -- take ``value`` percent off.
* **set_price**    -- the rider pays exactly ``value``.  When ``value`` is
  above the original amount the final amount goes *up*; kept as-is until
  product confirms the intended behaviour.
* anything else    -- no discount.

Complexity: O(1).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .entities import DiscountOutcome, PromoCode
from .enums import DiscountType


class DiscountStrategy(ABC):
    @abstractmethod
    def apply(self, original_amount: float, value: float) -> DiscountOutcome: ...


class FixedAmountDiscount(DiscountStrategy):
    def apply(self, original_amount: float, value: float) -> DiscountOutcome:
        discount = min(value, original_amount)
        return DiscountOutcome(max(0.0, original_amount - discount), discount)


class PercentageDiscount(DiscountStrategy):
    def apply(self, original_amount: float, value: float) -> DiscountOutcome:
        discount = original_amount * value / 100
        return DiscountOutcome(max(0.0, original_amount - discount), discount)


class SetPriceDiscount(DiscountStrategy):
    def apply(self, original_amount: float, value: float) -> DiscountOutcome:
        return DiscountOutcome(value, max(0.0, original_amount - value))


class NoDiscount(DiscountStrategy):
    def apply(self, original_amount: float, value: float) -> DiscountOutcome:
        return DiscountOutcome(original_amount, 0.0)


STRATEGIES: dict[str, DiscountStrategy] = {
    DiscountType.FIXED_AMOUNT.value: FixedAmountDiscount(),
    DiscountType.PERCENTAGE.value: PercentageDiscount(),
    DiscountType.SET_PRICE.value: SetPriceDiscount(),
}


def strategy_for(discount_type: str) -> DiscountStrategy:
    return STRATEGIES.get(getattr(discount_type, "value", discount_type), NoDiscount())


def calculate_discount(promo: PromoCode, original_amount: float) -> DiscountOutcome:
    return strategy_for(promo.discount_type).apply(original_amount, promo.discount_value)
