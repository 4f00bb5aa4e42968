"""
Fare endpoints
==============

POST /api/v1/fares/estimate -- fallback fare quote for a trip
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from fare_core.api.dependencies import get_fare_calculator
from fare_core.api.middleware import limiter
from fare_core.api.schemas import ErrorResponse, FareEstimateRequest, FareEstimateResponse
from fare_core.config import settings
from fare_core.domain.entities import AdditionalServices, Coordinate
from fare_core.domain.errors import Err
from fare_core.domain.pricing import FareCalculator

router = APIRouter(prefix="/fares", tags=["fares"])


@router.post(
    "/estimate",
    response_model=FareEstimateResponse,
    summary="Estimate a fare without the routing service",
    responses={422: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def estimate_fare(
    request: Request,
    body: FareEstimateRequest,
    calculator: FareCalculator = Depends(get_fare_calculator),
):
    services = body.additional_services
    result = calculator.estimate(
        Coordinate(body.pickup_lat, body.pickup_lng),
        Coordinate(body.dropoff_lat, body.dropoff_lng),
        body.vehicle_type,
        AdditionalServices(
            ramp=services.needs_ramp,
            companion=services.needs_companion,
            stair_chair=services.needs_stair_chair,
            wait_time=services.needs_wait_time,
        ),
        is_round_trip=body.is_round_trip,
    )
    if isinstance(result, Err):
        raise HTTPException(
            status_code=422,
            detail={
                "code": result.code.value,
                "message": result.message,
                "friendly_message": result.friendly_message,
            },
        )
    return FareEstimateResponse.model_validate(result.value)
