"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from fare_core.domain.enums import UserRole, VehicleType


# ── Requests ──────────────────────────────────────────────────────────


class AdditionalServicesRequest(BaseModel):
    needs_ramp: bool = False
    needs_companion: bool = False
    needs_stair_chair: bool = False
    needs_wait_time: bool = False


class FareEstimateRequest(BaseModel):
    # Range and service-area checks happen in the domain validator so the
    # caller gets a tagged reason rather than a generic 422.
    pickup_lat: float
    pickup_lng: float
    dropoff_lat: float
    dropoff_lng: float
    vehicle_type: VehicleType = VehicleType.STANDARD
    additional_services: AdditionalServicesRequest = Field(
        default_factory=AdditionalServicesRequest
    )
    is_round_trip: bool = False


class PromoValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    user_id: int
    original_amount: float = Field(..., gt=0)
    role: UserRole = UserRole.RIDER


class PromoApplyRequest(PromoValidateRequest):
    ride_id: Optional[int] = None
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID so a retried apply is not counted twice.",
    )


# ── Responses ─────────────────────────────────────────────────────────


class FareBreakdownResponse(BaseModel):
    base_fare: float
    distance_fare: float
    vehicle_type_premium: float
    services_fee: float
    subtotal: float
    platform_fee: float
    tax: float
    total: float

    model_config = {"from_attributes": True}


class FareEstimateResponse(BaseModel):
    distance: float
    estimated_fare: float
    estimated_duration: str
    formatted_distance: str
    breakdown: FareBreakdownResponse

    model_config = {"from_attributes": True}


class PromoCodeResponse(BaseModel):
    id: int
    code: str
    description: str
    discount_type: str
    discount_value: float
    minimum_amount: Optional[float] = None
    max_uses: Optional[int] = None
    used_count: int
    expires_at: Optional[datetime] = None
    is_active: bool

    model_config = {"from_attributes": True}


class DiscountCalculation(BaseModel):
    final_amount: float
    discount_amount: float


class PromoValidateResponse(BaseModel):
    valid: bool = True
    promo_code: PromoCodeResponse
    calculation: DiscountCalculation


class PromoApplyResponse(BaseModel):
    success: bool = True
    description: str
    original_amount: float
    discount_amount: float
    final_amount: float
    idempotent_replay: bool = False


class PromoUsageResponse(BaseModel):
    user_id: int
    ride_id: Optional[int] = None
    original_amount: float
    discount_amount: float
    final_amount: float
    applied_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PromoAnalyticsResponse(BaseModel):
    total_usage: int
    total_discount: float
    unique_users: int
    usage_records: list[PromoUsageResponse] = []

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    code: str
    message: str
    friendly_message: str
