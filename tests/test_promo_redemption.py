"""
Integration tests for ``PromoRedemptionService`` against SQLite.

Covers the read path, the all-or-nothing write path, idempotent retries
and the analytics summary.
"""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from fare_core.domain.errors import ErrorCode, PromoServiceUnavailable, RideNotFoundError
from fare_core.infrastructure.models import PromoCodeModel, PromoCodeUsageModel, RideModel
from fare_core.infrastructure.repositories import PromoCodeRepository, RideRepository
from fare_core.services.promo_redemption import PromoRedemptionService


async def used_count(session_factory, promo_id: int) -> int:
    async with session_factory() as session:
        return (await session.get(PromoCodeModel, promo_id)).used_count


async def usage_rows(session_factory) -> list[PromoCodeUsageModel]:
    async with session_factory() as session:
        result = await session.execute(select(PromoCodeUsageModel))
        return list(result.scalars().all())


async def get_ride(session_factory, ride_id: int) -> RideModel:
    async with session_factory() as session:
        return await RideRepository(session).get_by_id(ride_id)


# ── Read path ─────────────────────────────────────────────────────────


class TestValidate:
    @pytest.mark.asyncio
    async def test_valid_code(self, service, add_promo):
        await add_promo(code="WELCOME10", discount_value=10.0)
        result = await service.validate("WELCOME10", 1, 60.0)
        assert result.success
        assert result.discount_amount == 10.0
        assert result.final_amount == 50.0

    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(self, service, add_promo):
        await add_promo(code="WELCOME10")
        result = await service.validate("  welcome10 ", 1, 60.0)
        assert result.success
        assert result.promo_code.code == "WELCOME10"

    @pytest.mark.asyncio
    async def test_unknown_code(self, service):
        result = await service.validate("NOPE", 1, 60.0)
        assert not result.success
        assert result.error == ErrorCode.PROMO_CODE_NOT_FOUND
        assert result.final_amount == 60.0

    @pytest.mark.asyncio
    async def test_expired(self, service, add_promo, now):
        await add_promo(expires_at=now - timedelta(hours=1))
        result = await service.validate("WELCOME10", 1, 60.0)
        assert result.error == ErrorCode.PROMO_CODE_EXPIRED

    @pytest.mark.asyncio
    async def test_malformed_roles_allow_everyone(self, service, add_promo):
        await add_promo(applicable_roles="rider,driver")
        result = await service.validate("WELCOME10", 1, 60.0, role="admin")
        assert result.success

    @pytest.mark.asyncio
    async def test_validate_never_changes_used_count(
        self, service, add_promo, session_factory
    ):
        promo_id = await add_promo(max_uses=3)
        for _ in range(5):
            assert (await service.validate("WELCOME10", 1, 60.0)).success
        assert await used_count(session_factory, promo_id) == 0
        assert await usage_rows(session_factory) == []

    @pytest.mark.asyncio
    async def test_storage_failure_raises(self, service):
        boom = OperationalError("SELECT", {}, Exception("connection refused"))
        with patch.object(PromoCodeRepository, "find_by_code", side_effect=boom):
            with pytest.raises(PromoServiceUnavailable):
                await service.validate("WELCOME10", 1, 60.0)


# ── Write path ────────────────────────────────────────────────────────


class TestRedeem:
    @pytest.mark.asyncio
    async def test_redeem_writes_all_three_effects(
        self, service, add_promo, add_ride, session_factory
    ):
        promo_id = await add_promo(discount_type="percentage", discount_value=15.0)
        ride_id = await add_ride()

        result = await service.redeem("WELCOME10", 7, ride_id, 100.0)

        assert result.success
        assert result.final_amount == 85.0
        assert result.discount_amount == 15.0
        assert await used_count(session_factory, promo_id) == 1

        [usage] = await usage_rows(session_factory)
        assert usage.promo_code_id == promo_id
        assert usage.user_id == 7
        assert usage.ride_id == ride_id
        assert usage.original_amount == 100.0
        assert usage.discount_amount == 15.0
        assert usage.final_amount == 85.0

        ride = await get_ride(session_factory, ride_id)
        assert ride.final_price == 85.0
        assert ride.promo_code_id == promo_id

    @pytest.mark.asyncio
    async def test_rejected_code_writes_nothing(
        self, service, add_promo, add_ride, session_factory
    ):
        promo_id = await add_promo(minimum_amount=100.0)
        ride_id = await add_ride()

        result = await service.redeem("WELCOME10", 1, ride_id, 60.0)

        assert result.error == ErrorCode.PROMO_MINIMUM_AMOUNT_NOT_MET
        assert await used_count(session_factory, promo_id) == 0
        assert await usage_rows(session_factory) == []
        assert (await get_ride(session_factory, ride_id)).final_price is None

    @pytest.mark.asyncio
    async def test_missing_ride_rolls_everything_back(
        self, service, add_promo, session_factory
    ):
        promo_id = await add_promo(max_uses=1)

        with pytest.raises(RideNotFoundError):
            await service.redeem("WELCOME10", 1, 999, 60.0)

        assert await used_count(session_factory, promo_id) == 0
        assert await usage_rows(session_factory) == []
        # The single use is still available
        assert (await service.redeem("WELCOME10", 1, None, 60.0)).success

    @pytest.mark.asyncio
    async def test_redeem_without_ride(self, service, add_promo, session_factory):
        promo_id = await add_promo()
        result = await service.redeem("WELCOME10", 1, None, 60.0)
        assert result.success
        assert await used_count(session_factory, promo_id) == 1
        [usage] = await usage_rows(session_factory)
        assert usage.ride_id is None

    @pytest.mark.asyncio
    async def test_usage_limit_enforced_sequentially(self, service, add_promo, session_factory):
        promo_id = await add_promo(max_uses=2)
        results = [await service.redeem("WELCOME10", uid, None, 60.0) for uid in (1, 2, 3)]
        assert [r.success for r in results] == [True, True, False]
        assert results[2].error == ErrorCode.PROMO_USAGE_LIMIT_REACHED
        assert await used_count(session_factory, promo_id) == 2

    @pytest.mark.asyncio
    async def test_stale_validation_loses_to_conditional_update(
        self, service, add_promo, session_factory
    ):
        """Another redeemer takes the last use between validate and write."""
        promo_id = await add_promo(max_uses=1)
        real_validate = PromoRedemptionService.validate

        async def validate_then_lose_race(self, *args, **kwargs):
            result = await real_validate(self, *args, **kwargs)
            async with session_factory() as session:
                promo = await session.get(PromoCodeModel, promo_id)
                promo.used_count = 1
                await session.commit()
            return result

        with patch.object(PromoRedemptionService, "validate", validate_then_lose_race):
            result = await service.redeem("WELCOME10", 1, None, 60.0)

        assert not result.success
        assert result.error == ErrorCode.PROMO_USAGE_LIMIT_REACHED
        assert await used_count(session_factory, promo_id) == 1
        assert await usage_rows(session_factory) == []

    @pytest.mark.asyncio
    async def test_set_price_above_original(
        self, service, add_promo, add_ride, session_factory
    ):
        await add_promo(discount_type="set_price", discount_value=80.0)
        ride_id = await add_ride()

        result = await service.redeem("WELCOME10", 1, ride_id, 50.0)

        assert result.success
        assert result.final_amount == 80.0
        assert result.discount_amount == 0.0
        assert (await get_ride(session_factory, ride_id)).final_price == 80.0
        [usage] = await usage_rows(session_factory)
        assert usage.final_amount == usage.original_amount - usage.discount_amount

    @pytest.mark.asyncio
    async def test_storage_failure_during_write_raises(
        self, service, add_promo, session_factory
    ):
        promo_id = await add_promo()
        boom = OperationalError("UPDATE", {}, Exception("database is locked"))
        with patch.object(
            PromoCodeRepository, "increment_used_count_if_below_limit", side_effect=boom
        ):
            with pytest.raises(PromoServiceUnavailable):
                await service.redeem("WELCOME10", 1, None, 60.0)
        assert await used_count(session_factory, promo_id) == 0


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_retry_with_same_key_is_replayed(
        self, service, add_promo, add_ride, session_factory
    ):
        promo_id = await add_promo(max_uses=5)
        ride_id = await add_ride()

        first = await service.redeem("WELCOME10", 1, ride_id, 60.0, idempotency_key="k-1")
        second = await service.redeem("WELCOME10", 1, ride_id, 60.0, idempotency_key="k-1")

        assert first.success and not first.idempotent_replay
        assert second.success and second.idempotent_replay
        assert second.final_amount == first.final_amount
        assert second.promo_code.id == promo_id
        assert await used_count(session_factory, promo_id) == 1
        assert len(await usage_rows(session_factory)) == 1

    @pytest.mark.asyncio
    async def test_different_keys_count_separately(self, service, add_promo, session_factory):
        promo_id = await add_promo()
        await service.redeem("WELCOME10", 1, None, 60.0, idempotency_key="a")
        await service.redeem("WELCOME10", 1, None, 60.0, idempotency_key="b")
        assert await used_count(session_factory, promo_id) == 2

    @pytest.mark.asyncio
    async def test_concurrent_retry_of_last_use_is_replayed(
        self, service, add_promo, session_factory
    ):
        """The same request lands twice; the second loses the counter race."""
        promo_id = await add_promo(max_uses=1)
        real_validate = PromoRedemptionService.validate
        racing = []

        async def validate_while_twin_commits(self, *args, **kwargs):
            result = await real_validate(self, *args, **kwargs)
            if not racing:
                racing.append(True)
                twin = await service.redeem("WELCOME10", 1, None, 60.0, idempotency_key="k-9")
                assert twin.success and not twin.idempotent_replay
            return result

        with patch.object(PromoRedemptionService, "validate", validate_while_twin_commits):
            result = await service.redeem("WELCOME10", 1, None, 60.0, idempotency_key="k-9")

        assert result.success
        assert result.idempotent_replay
        assert result.final_amount == 50.0
        assert await used_count(session_factory, promo_id) == 1
        assert len(await usage_rows(session_factory)) == 1


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_summary(self, service, add_promo):
        promo_id = await add_promo(discount_type="fixed_amount", discount_value=10.0)
        for user_id in (1, 1, 2):
            await service.redeem("WELCOME10", user_id, None, 60.0)

        analytics = await service.analytics(promo_id)

        assert analytics.total_usage == 3
        assert analytics.total_discount == 30.0
        assert analytics.unique_users == 2
        assert [r.user_id for r in analytics.usage_records] == [1, 1, 2]

    @pytest.mark.asyncio
    async def test_unused_code(self, service, add_promo):
        promo_id = await add_promo()
        analytics = await service.analytics(promo_id)
        assert analytics.total_usage == 0
        assert analytics.usage_records == []


class TestPromoCodeStorage:
    @pytest.mark.asyncio
    async def test_create_stores_code_upper_case(self, db_session):
        promo = await PromoCodeRepository(db_session).create(
            PromoCodeModel(code=" spring25 ", discount_type="percentage", discount_value=25.0)
        )
        await db_session.commit()
        assert promo.code == "SPRING25"

    @pytest.mark.asyncio
    async def test_mixed_case_duplicate_rejected(self, db_session, add_promo):
        await add_promo(code="SAVE10")
        # Bypasses the repository so the raw lower-case value reaches the table
        db_session.add(
            PromoCodeModel(code="save10", discount_type="fixed_amount", discount_value=5.0)
        )
        with pytest.raises(IntegrityError):
            await db_session.commit()

    @pytest.mark.asyncio
    async def test_lookup_still_unambiguous(self, service, add_promo):
        await add_promo(code="save10")
        result = await service.validate("SAVE10", 1, 60.0)
        assert result.success
        assert result.promo_code.code == "SAVE10"
