"""FastAPI dependency injection helpers."""

from fare_core.config import settings
from fare_core.domain.pricing import FareCalculator
from fare_core.infrastructure.database import async_session_factory
from fare_core.infrastructure.locks import DistributedLock
from fare_core.infrastructure.redis_client import get_redis
from fare_core.services.promo_redemption import PromoRedemptionService


def get_fare_calculator() -> FareCalculator:
    return FareCalculator(
        distance_rate=settings.distance_rate_per_mile,
        platform_fee_rate=settings.platform_fee_rate,
        tax_rate=settings.tax_rate,
        round_trip_discount=settings.round_trip_discount,
    )


async def get_promo_service() -> PromoRedemptionService:
    """Service bound to the shared session factory and, if enabled, Redis locks."""
    lock_factory = None
    if settings.promo_lock_enabled:
        redis = await get_redis()

        def lock_factory(key: str) -> DistributedLock:
            return DistributedLock(
                redis,
                key,
                ttl_seconds=settings.promo_lock_ttl_seconds,
                wait_seconds=settings.promo_lock_wait_seconds,
            )

    return PromoRedemptionService(async_session_factory, lock_factory=lock_factory)
