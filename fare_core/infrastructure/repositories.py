"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Callers own commit / rollback.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import PromoCodeModel, PromoCodeUsageModel, RideModel
from fare_core.domain.entities import PromoCode, PromoUsageRecord
from fare_core.domain.promotions import parse_applicable_roles


def normalize_code(code: str) -> str:
    return code.strip().upper()


def to_promo_code(row: PromoCodeModel) -> PromoCode:
    return PromoCode(
        id=row.id,
        code=row.code,
        description=row.description or "",
        discount_type=row.discount_type,
        discount_value=row.discount_value,
        minimum_amount=row.minimum_amount,
        max_uses=row.max_uses,
        used_count=row.used_count or 0,
        expires_at=row.expires_at,
        is_active=bool(row.is_active),
        applicable_roles=parse_applicable_roles(row.applicable_roles),
    )


def to_usage_record(row: PromoCodeUsageModel) -> PromoUsageRecord:
    return PromoUsageRecord(
        promo_code_id=row.promo_code_id,
        user_id=row.user_id,
        ride_id=row.ride_id,
        original_amount=row.original_amount,
        final_amount=row.final_amount,
        discount_amount=row.discount_amount,
        applied_at=row.used_at,
        idempotency_key=row.idempotency_key,
    )


class PromoCodeRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, promo: PromoCodeModel) -> PromoCodeModel:
        promo.code = normalize_code(promo.code)
        self.session.add(promo)
        await self.session.flush()
        return promo

    async def get_by_id(self, promo_code_id: int) -> Optional[PromoCodeModel]:
        return await self.session.get(PromoCodeModel, promo_code_id)

    async def find_by_code(self, code: str) -> Optional[PromoCodeModel]:
        result = await self.session.execute(
            select(PromoCodeModel).where(
                func.upper(PromoCodeModel.code) == normalize_code(code)
            )
        )
        return result.scalar_one_or_none()

    async def increment_used_count_if_below_limit(self, promo_code_id: int) -> bool:
        """
        Atomic conditional increment.  The row lock taken by the UPDATE
        serialises concurrent redeemers; the loser sees ``rowcount == 0``.
        """
        result = await self.session.execute(
            update(PromoCodeModel)
            .where(PromoCodeModel.id == promo_code_id)
            .where(
                or_(
                    PromoCodeModel.max_uses.is_(None),
                    PromoCodeModel.used_count < PromoCodeModel.max_uses,
                )
            )
            .values(used_count=PromoCodeModel.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class PromoUsageRepository:
    """Append-only: rows are inserted and read, never updated or deleted."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, record: PromoUsageRecord) -> PromoCodeUsageModel:
        row = PromoCodeUsageModel(
            promo_code_id=record.promo_code_id,
            user_id=record.user_id,
            ride_id=record.ride_id,
            original_amount=record.original_amount,
            discount_amount=record.discount_amount,
            final_amount=record.final_amount,
            idempotency_key=record.idempotency_key,
            used_at=record.applied_at,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_by_idempotency_key(self, key: str) -> Optional[PromoCodeUsageModel]:
        result = await self.session.execute(
            select(PromoCodeUsageModel).where(PromoCodeUsageModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def list_for_code(self, promo_code_id: int) -> list[PromoCodeUsageModel]:
        result = await self.session.execute(
            select(PromoCodeUsageModel)
            .where(PromoCodeUsageModel.promo_code_id == promo_code_id)
            .order_by(PromoCodeUsageModel.id)
        )
        return list(result.scalars().all())


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def update_final_price(
        self, ride_id: int, amount: float, promo_code_id: int
    ) -> bool:
        result = await self.session.execute(
            update(RideModel)
            .where(RideModel.id == ride_id)
            .values(final_price=amount, promo_code_id=promo_code_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
