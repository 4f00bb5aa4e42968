"""
Promo Redemption Service
========================

``validate`` is read-only.  ``redeem`` consumes one use of a code for a
ride.

Concurrency safety
------------------
* **Conditional UPDATE** -- ``used_count = used_count + 1`` only while
  ``used_count < max_uses``.  Two redeemers that both passed ``validate``
  on a stale count race on the row lock; the loser updates zero rows and
  gets a "usage limit reached" result.  This holds across processes.
* **One transaction** -- the counter increment, the audit row and the ride
  price update commit together or not at all.
* **Redis distributed lock** (optional) -- serialises redeemers of the same
  code so most losers are turned away before they open a write
  transaction.
* **Idempotency key** -- retrying ``redeem`` after an ambiguous failure
  with the same key replays the recorded outcome instead of counting a
  second use.

Reads and writes run in separate sessions: the write transaction starts
with the conditional UPDATE so it never upgrades a read lock.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fare_core.domain.discounts import calculate_discount
from fare_core.domain.entities import (
    DiscountOutcome,
    PromoAnalytics,
    PromoCode,
    PromoRedemptionResult,
    PromoUsageRecord,
)
from fare_core.domain.errors import (
    ErrorCode,
    PromoServiceUnavailable,
    RideNotFoundError,
)
from fare_core.domain.promotions import evaluate, rejection
from fare_core.infrastructure.models import PromoCodeUsageModel
from fare_core.infrastructure.repositories import (
    PromoCodeRepository,
    PromoUsageRepository,
    RideRepository,
    normalize_code,
    to_promo_code,
    to_usage_record,
)

logger = logging.getLogger(__name__)


class RedemptionLock(Protocol):
    async def acquire_blocking(self) -> bool: ...

    async def release(self) -> None: ...


LockFactory = Callable[[str], RedemptionLock]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PromoRedemptionService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lock_factory: Optional[LockFactory] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.session_factory = session_factory
        self.lock_factory = lock_factory
        self.clock = clock

    # ── Read path ─────────────────────────────────────────────────────

    async def validate(
        self, code: str, user_id: int, amount: float, role: str = "rider"
    ) -> PromoRedemptionResult:
        promo = await self._load_promo(code)
        return evaluate(promo, amount, role, self.clock())

    @staticmethod
    def calculate_discounted_price(
        original_amount: float, promo: PromoCode
    ) -> DiscountOutcome:
        return calculate_discount(promo, original_amount)

    async def analytics(self, promo_code_id: int) -> PromoAnalytics:
        try:
            async with self.session_factory() as session:
                rows = await PromoUsageRepository(session).list_for_code(promo_code_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load usage for promo code %s", promo_code_id)
            raise PromoServiceUnavailable("Promo store unavailable") from exc

        records = [to_usage_record(r) for r in rows]
        return PromoAnalytics(
            total_usage=len(records),
            total_discount=sum(r.discount_amount for r in records),
            unique_users=len({r.user_id for r in records}),
            usage_records=records,
        )

    # ── Write path ────────────────────────────────────────────────────

    async def redeem(
        self,
        code: str,
        user_id: int,
        ride_id: Optional[int],
        original_amount: float,
        role: str = "rider",
        idempotency_key: Optional[str] = None,
    ) -> PromoRedemptionResult:
        if self.lock_factory is None:
            return await self._redeem(
                code, user_id, ride_id, original_amount, role, idempotency_key
            )

        lock = self.lock_factory(f"promo:{normalize_code(code)}")
        try:
            acquired = await lock.acquire_blocking()
        except RedisError as exc:
            logger.exception("Redemption lock unavailable for %s", code)
            raise PromoServiceUnavailable("Redemption lock unavailable") from exc
        if not acquired:
            raise PromoServiceUnavailable(f"Promo code {code} is busy, retry later")

        try:
            return await self._redeem(
                code, user_id, ride_id, original_amount, role, idempotency_key
            )
        finally:
            try:
                await lock.release()
            except RedisError:
                # The TTL frees it; the redemption itself already committed.
                logger.warning("Failed to release redemption lock for %s", code)

    async def _redeem(
        self,
        code: str,
        user_id: int,
        ride_id: Optional[int],
        original_amount: float,
        role: str,
        idempotency_key: Optional[str],
    ) -> PromoRedemptionResult:
        if idempotency_key:
            replay = await self._replay(idempotency_key)
            if replay is not None:
                return replay

        validation = await self.validate(code, user_id, original_amount, role)
        if not validation.success:
            return validation

        promo = validation.promo_code
        assert promo is not None
        record = PromoUsageRecord(
            promo_code_id=promo.id,
            user_id=user_id,
            ride_id=ride_id,
            original_amount=original_amount,
            final_amount=original_amount - validation.discount_amount,
            discount_amount=validation.discount_amount,
            applied_at=self.clock(),
            idempotency_key=idempotency_key,
        )

        try:
            async with self.session_factory() as session:
                try:
                    claimed = await PromoCodeRepository(
                        session
                    ).increment_used_count_if_below_limit(promo.id)
                    if not claimed:
                        await session.rollback()
                        # A concurrent retry with the same key may hold the last use
                        if idempotency_key:
                            replay = await self._replay(idempotency_key)
                            if replay is not None:
                                return replay
                        logger.info(
                            "Promo %s reached max_uses=%s during redemption by user %s",
                            promo.code, promo.max_uses, user_id,
                        )
                        return rejection(
                            ErrorCode.PROMO_USAGE_LIMIT_REACHED,
                            "This promo code has reached its usage limit",
                            original_amount,
                        )

                    # Ride first: the usage row references it
                    if ride_id is not None:
                        updated = await RideRepository(session).update_final_price(
                            ride_id, validation.final_amount, promo.id
                        )
                        if not updated:
                            raise RideNotFoundError(f"Ride {ride_id} not found")

                    await PromoUsageRepository(session).append(record)

                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
        except IntegrityError as exc:
            if idempotency_key:
                replay = await self._replay(idempotency_key)
                if replay is not None:
                    return replay
            logger.exception("Integrity error redeeming promo %s", promo.code)
            raise PromoServiceUnavailable("Could not record promo redemption") from exc
        except SQLAlchemyError as exc:
            logger.exception("Storage error redeeming promo %s", promo.code)
            raise PromoServiceUnavailable("Could not record promo redemption") from exc

        logger.info(
            "Promo %s redeemed by user %s (ride=%s): %.2f -> %.2f",
            promo.code, user_id, ride_id, original_amount, validation.final_amount,
        )
        return validation

    # ── Internals ─────────────────────────────────────────────────────

    async def _load_promo(self, code: str) -> Optional[PromoCode]:
        try:
            async with self.session_factory() as session:
                row = await PromoCodeRepository(session).find_by_code(code)
                return to_promo_code(row) if row is not None else None
        except SQLAlchemyError as exc:
            logger.exception("Failed to look up promo code")
            raise PromoServiceUnavailable("Promo store unavailable") from exc

    async def _replay(self, idempotency_key: str) -> Optional[PromoRedemptionResult]:
        try:
            async with self.session_factory() as session:
                prior = await PromoUsageRepository(session).get_by_idempotency_key(
                    idempotency_key
                )
                if prior is None:
                    return None
                promo_row = await PromoCodeRepository(session).get_by_id(
                    prior.promo_code_id
                )
        except SQLAlchemyError as exc:
            logger.exception("Failed to look up idempotency key")
            raise PromoServiceUnavailable("Promo store unavailable") from exc

        logger.info("Replaying promo redemption for idempotency key %s", idempotency_key)
        return _replayed_result(prior, to_promo_code(promo_row) if promo_row else None)


def _replayed_result(
    row: PromoCodeUsageModel, promo: Optional[PromoCode]
) -> PromoRedemptionResult:
    return PromoRedemptionResult(
        success=True,
        description="Promo code already applied",
        original_amount=row.original_amount,
        final_amount=row.final_amount,
        discount_amount=row.discount_amount,
        promo_code=promo,
        idempotent_replay=True,
    )
