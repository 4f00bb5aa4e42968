"""
Error taxonomy and tagged results.

Expected failures (bad coordinates, ineligible promo codes) are returned
to the caller as values.  Exceptions are reserved for collaborator
failures, so callers can tell "your input was rejected" apart from
"we couldn't process this right now".
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class ErrorCode(str, enum.Enum):
    INVALID_COORDINATE_FORMAT = "INVALID_COORDINATE_FORMAT"
    COORDINATE_OUT_OF_RANGE = "COORDINATE_OUT_OF_RANGE"
    COORDINATE_OUT_OF_SERVICE_AREA = "COORDINATE_OUT_OF_SERVICE_AREA"
    DEGENERATE_COORDINATE_DETECTED = "DEGENERATE_COORDINATE_DETECTED"
    DISTANCE_OUT_OF_DOMAIN = "DISTANCE_OUT_OF_DOMAIN"
    PROMO_CODE_NOT_FOUND = "PROMO_CODE_NOT_FOUND"
    PROMO_CODE_INACTIVE = "PROMO_CODE_INACTIVE"
    PROMO_CODE_EXPIRED = "PROMO_CODE_EXPIRED"
    PROMO_USAGE_LIMIT_REACHED = "PROMO_USAGE_LIMIT_REACHED"
    PROMO_MINIMUM_AMOUNT_NOT_MET = "PROMO_MINIMUM_AMOUNT_NOT_MET"
    PROMO_ROLE_INELIGIBLE = "PROMO_ROLE_INELIGIBLE"


GENERIC_FRIENDLY_MESSAGE = "We cannot process this request at this time"

FRIENDLY_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.INVALID_COORDINATE_FORMAT: "Please select a valid address from the suggestions",
    ErrorCode.COORDINATE_OUT_OF_RANGE: "Please select a valid address from the suggestions",
    ErrorCode.COORDINATE_OUT_OF_SERVICE_AREA: "Service is currently available within the United States only",
    ErrorCode.DEGENERATE_COORDINATE_DETECTED: "Please select a different address",
    ErrorCode.DISTANCE_OUT_OF_DOMAIN: "Distance too far for our service area",
    ErrorCode.PROMO_CODE_NOT_FOUND: "That promo code doesn't exist. Please check the spelling",
    ErrorCode.PROMO_CODE_INACTIVE: "This promo code is no longer active",
    ErrorCode.PROMO_CODE_EXPIRED: "This promo code has expired",
    ErrorCode.PROMO_USAGE_LIMIT_REACHED: "This promo code has reached its usage limit",
    ErrorCode.PROMO_MINIMUM_AMOUNT_NOT_MET: "Your ride total is below the minimum for this promo code",
    ErrorCode.PROMO_ROLE_INELIGIBLE: "This promo code is not applicable to your account type",
}


# Validator message text -> code, for callers that only kept the message
MESSAGE_CODES: dict[str, ErrorCode] = {
    "Invalid coordinate format": ErrorCode.INVALID_COORDINATE_FORMAT,
    "Latitude out of valid range": ErrorCode.COORDINATE_OUT_OF_RANGE,
    "Longitude out of valid range": ErrorCode.COORDINATE_OUT_OF_RANGE,
    "Location outside US service area": ErrorCode.COORDINATE_OUT_OF_SERVICE_AREA,
    "Invalid location coordinates detected": ErrorCode.DEGENERATE_COORDINATE_DETECTED,
    "Calculated distance outside reasonable limits": ErrorCode.DISTANCE_OUT_OF_DOMAIN,
}


def friendly_message(code_or_message: ErrorCode | str | None) -> str:
    """
    Translate an error code, or a validator message such as
    ``"Pickup location: Location outside US service area"``, into text
    safe to show users.
    """
    if code_or_message is None:
        return GENERIC_FRIENDLY_MESSAGE
    try:
        code = ErrorCode(code_or_message)
    except ValueError:
        message = str(code_or_message)
        code = MESSAGE_CODES.get(message) or MESSAGE_CODES.get(
            message.rpartition(": ")[2]
        )
    return FRIENDLY_MESSAGES.get(code, GENERIC_FRIENDLY_MESSAGE)


# ── Tagged results ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    code: ErrorCode
    message: str

    @property
    def is_ok(self) -> bool:
        return False

    def with_context(self, prefix: str) -> Err:
        return Err(self.code, f"{prefix}: {self.message}")

    @property
    def friendly_message(self) -> str:
        return friendly_message(self.code)


Result = Union[Ok[T], Err]


# ── Exceptions ────────────────────────────────────────────────────────


class PromoServiceUnavailable(Exception):
    """Raised when the promo store (database / lock) cannot be reached."""


class RideNotFoundError(Exception):
    """Raised when a redemption references a ride that does not exist."""
