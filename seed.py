"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample promo codes (one per discount type, plus expired / exhausted /
    role-restricted cases)
  - 5 sample rides between US pickup points and nearby hospitals, priced
    with the fallback fare calculator
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from fare_core.config import settings
from fare_core.domain.entities import AdditionalServices, Coordinate
from fare_core.domain.enums import DiscountType, UserRole, VehicleType
from fare_core.domain.errors import Ok
from fare_core.domain.pricing import FareCalculator
from fare_core.infrastructure.database import async_session_factory, engine
from fare_core.infrastructure.models import PromoCodeModel, RideModel
from fare_core.infrastructure.repositories import PromoCodeRepository, RideRepository

NOW = datetime.now(timezone.utc)


PROMO_CODES = [
    {
        "code": "WELCOME10",
        "description": "$10 off your first ride",
        "discount_type": DiscountType.FIXED_AMOUNT,
        "discount_value": 10.0,
        "max_uses": 1000,
        "expires_at": NOW + timedelta(days=90),
        "minimum_amount": 25.0,
    },
    {
        "code": "SAVE15",
        "description": "15% off any ride",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": 15.0,
        "max_uses": None,
        "expires_at": NOW + timedelta(days=30),
        "minimum_amount": 0,
    },
    {
        "code": "DIALYSIS50",
        "description": "Flat $50 dialysis rides",
        "discount_type": DiscountType.SET_PRICE,
        "discount_value": 50.0,
        "max_uses": 200,
        "expires_at": NOW + timedelta(days=180),
        "minimum_amount": 60.0,
    },
    {
        "code": "SPRING5",
        "description": "Expired seasonal promo",
        "discount_type": DiscountType.FIXED_AMOUNT,
        "discount_value": 5.0,
        "max_uses": None,
        "expires_at": NOW - timedelta(days=7),
        "minimum_amount": 0,
    },
    {
        "code": "LAUNCH1",
        "description": "Single-use launch code (already redeemed)",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": 100.0,
        "max_uses": 1,
        "used_count": 1,
        "expires_at": NOW + timedelta(days=30),
        "minimum_amount": 0,
    },
    {
        "code": "DRIVER20",
        "description": "Driver-only referral credit",
        "discount_type": DiscountType.FIXED_AMOUNT,
        "discount_value": 20.0,
        "max_uses": 500,
        "expires_at": NOW + timedelta(days=60),
        "minimum_amount": 0,
        "roles": [UserRole.DRIVER],
    },
]


RIDES = [
    # Downtown Atlanta -> Piedmont Hospital
    {
        "rider_id": 1,
        "pickup": (33.7490, -84.3880),
        "dropoff": (33.8038, -84.3694),
        "vehicle": VehicleType.STANDARD,
        "services": AdditionalServices(),
    },
    # Midtown Manhattan -> NYU Langone
    {
        "rider_id": 2,
        "pickup": (40.7549, -73.9840),
        "dropoff": (40.7421, -73.9739),
        "vehicle": VehicleType.WHEELCHAIR,
        "services": AdditionalServices(ramp=True),
    },
    # Houston Heights -> Texas Medical Center
    {
        "rider_id": 3,
        "pickup": (29.7989, -95.3980),
        "dropoff": (29.7079, -95.4010),
        "vehicle": VehicleType.STRETCHER,
        "services": AdditionalServices(companion=True, stair_chair=True),
        "round_trip": True,
    },
    # Honolulu -> Queen's Medical Center
    {
        "rider_id": 4,
        "pickup": (21.2793, -157.8292),
        "dropoff": (21.3077, -157.8537),
        "vehicle": VehicleType.WHEELCHAIR,
        "services": AdditionalServices(wait_time=True),
    },
    # Anchorage -> Providence Alaska Medical Center
    {
        "rider_id": 5,
        "pickup": (61.2181, -149.9003),
        "dropoff": (61.1897, -149.8208),
        "vehicle": VehicleType.STANDARD,
        "services": AdditionalServices(companion=True),
        "round_trip": True,
    },
]


async def seed():
    calculator = FareCalculator(
        distance_rate=settings.distance_rate_per_mile,
        platform_fee_rate=settings.platform_fee_rate,
        tax_rate=settings.tax_rate,
        round_trip_discount=settings.round_trip_discount,
    )

    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM promo_codes"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Promo codes ───────────────────────────────────────────────
        promo_repo = PromoCodeRepository(session)
        for p in PROMO_CODES:
            roles = p.get("roles", [UserRole.RIDER, UserRole.DRIVER])
            await promo_repo.create(
                PromoCodeModel(
                    code=p["code"],
                    description=p["description"],
                    discount_type=p["discount_type"].value,
                    discount_value=p["discount_value"],
                    max_uses=p["max_uses"],
                    used_count=p.get("used_count", 0),
                    expires_at=p["expires_at"],
                    is_active=True,
                    applicable_roles=json.dumps([r.value for r in roles]),
                    minimum_amount=p["minimum_amount"],
                )
            )
        print(f"  Created {len(PROMO_CODES)} promo codes")

        # ── Rides ─────────────────────────────────────────────────────
        ride_repo = RideRepository(session)
        for r in RIDES:
            pickup = Coordinate(*r["pickup"])
            dropoff = Coordinate(*r["dropoff"])
            is_round_trip = r.get("round_trip", False)
            estimate = calculator.estimate(
                pickup, dropoff, r["vehicle"], r["services"], is_round_trip
            )
            fare = estimate.value.estimated_fare if isinstance(estimate, Ok) else None

            await ride_repo.create(
                RideModel(
                    rider_id=r["rider_id"],
                    pickup_lat=pickup.lat,
                    pickup_lng=pickup.lng,
                    dropoff_lat=dropoff.lat,
                    dropoff_lng=dropoff.lng,
                    vehicle_type=r["vehicle"].value,
                    is_round_trip=is_round_trip,
                    estimated_fare=fare,
                )
            )
        print(f"  Created {len(RIDES)} rides")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
