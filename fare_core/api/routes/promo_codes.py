"""
Promo code endpoints
====================

POST /api/v1/promo-codes/validate                   -- check a code (no writes)
POST /api/v1/promo-codes/apply                      -- redeem a code for a ride
GET  /api/v1/promo-codes/{promo_code_id}/analytics  -- usage summary
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from fare_core.api.dependencies import get_promo_service
from fare_core.api.middleware import limiter
from fare_core.api.schemas import (
    DiscountCalculation,
    ErrorResponse,
    PromoAnalyticsResponse,
    PromoApplyRequest,
    PromoApplyResponse,
    PromoCodeResponse,
    PromoValidateRequest,
    PromoValidateResponse,
)
from fare_core.config import settings
from fare_core.domain.entities import PromoRedemptionResult
from fare_core.domain.errors import (
    GENERIC_FRIENDLY_MESSAGE,
    PromoServiceUnavailable,
    RideNotFoundError,
    friendly_message,
)
from fare_core.services.promo_redemption import PromoRedemptionService

router = APIRouter(prefix="/promo-codes", tags=["promo-codes"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def _rejected(result: PromoRedemptionResult) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "code": result.error.value if result.error else "PROMO_REJECTED",
            "message": result.description,
            "friendly_message": friendly_message(result.error),
        },
    )


def _unavailable(exc: PromoServiceUnavailable) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={
            "code": "SERVICE_UNAVAILABLE",
            "message": str(exc),
            "friendly_message": GENERIC_FRIENDLY_MESSAGE,
        },
    )


@router.post(
    "/validate",
    response_model=PromoValidateResponse,
    summary="Validate a promo code against an amount",
    responses=_ERROR_RESPONSES,
)
@limiter.limit(settings.rate_limit)
async def validate_promo_code(
    request: Request,
    body: PromoValidateRequest,
    service: PromoRedemptionService = Depends(get_promo_service),
):
    try:
        result = await service.validate(
            body.code, body.user_id, body.original_amount, body.role.value
        )
    except PromoServiceUnavailable as exc:
        raise _unavailable(exc)

    if not result.success:
        raise _rejected(result)

    calculation = service.calculate_discounted_price(
        body.original_amount, result.promo_code
    )
    return PromoValidateResponse(
        promo_code=PromoCodeResponse.model_validate(result.promo_code),
        calculation=DiscountCalculation(
            final_amount=calculation.final_amount,
            discount_amount=calculation.discount_amount,
        ),
    )


@router.post(
    "/apply",
    response_model=PromoApplyResponse,
    summary="Redeem a promo code for a ride",
    description=(
        "Consumes one use of the code.  The usage record, the counter "
        "increment and the ride price update are committed together. "
        "Send an idempotency_key to make retries safe."
    ),
    responses={**_ERROR_RESPONSES, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def apply_promo_code(
    request: Request,
    body: PromoApplyRequest,
    service: PromoRedemptionService = Depends(get_promo_service),
):
    try:
        result = await service.redeem(
            body.code,
            body.user_id,
            body.ride_id,
            body.original_amount,
            role=body.role.value,
            idempotency_key=body.idempotency_key,
        )
    except PromoServiceUnavailable as exc:
        raise _unavailable(exc)
    except RideNotFoundError as exc:
        raise HTTPException(
            status_code=404,
            detail={
                "code": "RIDE_NOT_FOUND",
                "message": str(exc),
                "friendly_message": GENERIC_FRIENDLY_MESSAGE,
            },
        )

    if not result.success:
        raise _rejected(result)

    return PromoApplyResponse(
        description=result.description,
        original_amount=result.original_amount,
        discount_amount=result.discount_amount,
        final_amount=result.final_amount,
        idempotent_replay=result.idempotent_replay,
    )


@router.get(
    "/{promo_code_id}/analytics",
    response_model=PromoAnalyticsResponse,
    summary="Usage summary for a promo code",
)
@limiter.limit(settings.rate_limit)
async def promo_code_analytics(
    request: Request,
    promo_code_id: int,
    service: PromoRedemptionService = Depends(get_promo_service),
):
    try:
        analytics = await service.analytics(promo_code_id)
    except PromoServiceUnavailable as exc:
        raise _unavailable(exc)
    return PromoAnalyticsResponse.model_validate(analytics)
