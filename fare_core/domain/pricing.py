"""
Fallback Fare Calculator
========================

Used when the routing service cannot quote a trip.  Deterministic: the
same coordinates and trip attributes always produce the same price.

Formula
-------
subtotal      = Base_Fare[vehicle] + Distance x Rate_Per_Mile + Services_Fee
subtotal     *= (1 - Round_Trip_Discount)        if round trip
platform_fee  = subtotal x Platform_Fee_Rate
tax           = (subtotal + platform_fee) x Tax_Rate
total         = subtotal + platform_fee + tax

All arithmetic runs at full float precision.  Each reported field is
rounded to cents on its own; no field is re-derived from rounded ones.

Complexity: O(1) per estimate.
"""

from __future__ import annotations

from .coordinates import CoordinateValidator
from .distance import round_half_up
from .entities import AdditionalServices, Coordinate, FareBreakdown, FareEstimate
from .enums import BASE_FARES, VehicleType
from .errors import Err, Ok, Result

AVERAGE_SPEED_MPH = 30.0


def estimated_duration_label(distance_miles: float) -> str:
    """Drive time at an average 30 mph, e.g. ``"45 min"`` or ``"2h 30m"``."""
    minutes = int(round_half_up(distance_miles / AVERAGE_SPEED_MPH * 60, 0))
    if minutes < 60:
        return f"{minutes} min"
    hours, rest = divmod(minutes, 60)
    return f"{hours}h {rest}m" if rest else f"{hours}h"


def format_distance(distance_miles: float) -> str:
    return f"{distance_miles:.1f} mi"


class FareCalculator:
    """High-level API used by the quoting workflow and the API layer."""

    def __init__(
        self,
        distance_rate: float = 2.50,
        platform_fee_rate: float = 0.05,
        tax_rate: float = 0.08,
        round_trip_discount: float = 0.05,
        validator: type[CoordinateValidator] = CoordinateValidator,
    ):
        self.distance_rate = distance_rate
        self.platform_fee_rate = platform_fee_rate
        self.tax_rate = tax_rate
        self.round_trip_discount = round_trip_discount
        self.validator = validator

    def breakdown(
        self,
        distance: float,
        vehicle_type: VehicleType,
        services: AdditionalServices | None = None,
        is_round_trip: bool = False,
    ) -> FareBreakdown:
        """Price an already validated distance (miles)."""
        vehicle_type = VehicleType(vehicle_type)
        services = services or AdditionalServices()

        base_fare = BASE_FARES[vehicle_type]
        distance_fare = distance * self.distance_rate
        vehicle_type_premium = 0.0
        services_fee = services.fee()

        subtotal = base_fare + distance_fare + vehicle_type_premium + services_fee
        if is_round_trip:
            subtotal *= 1 - self.round_trip_discount

        platform_fee = subtotal * self.platform_fee_rate
        subtotal_with_fee = subtotal + platform_fee
        tax = subtotal_with_fee * self.tax_rate
        total = subtotal_with_fee + tax

        return FareBreakdown(
            base_fare=round_half_up(base_fare),
            distance_fare=round_half_up(distance_fare),
            vehicle_type_premium=vehicle_type_premium,
            services_fee=round_half_up(services_fee),
            subtotal=round_half_up(subtotal),
            platform_fee=round_half_up(platform_fee),
            tax=round_half_up(tax),
            total=round_half_up(total),
        )

    def estimate(
        self,
        pickup: Coordinate,
        dropoff: Coordinate,
        vehicle_type: VehicleType,
        services: AdditionalServices | None = None,
        is_round_trip: bool = False,
    ) -> Result[FareEstimate]:
        distance = self.validator.distance_between(pickup, dropoff)
        if isinstance(distance, Err):
            return distance

        miles = distance.value
        breakdown = self.breakdown(miles, vehicle_type, services, is_round_trip)
        return Ok(
            FareEstimate(
                distance=miles,
                estimated_fare=breakdown.total,
                breakdown=breakdown,
                estimated_duration=estimated_duration_label(miles),
                formatted_distance=format_distance(miles),
            )
        )
