"""Domain enumerations and tariff tables."""

import enum


class VehicleType(str, enum.Enum):
    STANDARD = "standard"
    WHEELCHAIR = "wheelchair"
    STRETCHER = "stretcher"


class DiscountType(str, enum.Enum):
    FIXED_AMOUNT = "fixed_amount"
    PERCENTAGE = "percentage"
    SET_PRICE = "set_price"


class UserRole(str, enum.Enum):
    RIDER = "rider"
    DRIVER = "driver"
    ADMIN = "admin"


ALL_ROLES: frozenset[str] = frozenset(r.value for r in UserRole)

# Vehicle premium is folded into the base fare
BASE_FARES: dict[VehicleType, float] = {
    VehicleType.STANDARD: 45.0,
    VehicleType.WHEELCHAIR: 70.0,
    VehicleType.STRETCHER: 95.0,
}

SERVICE_FEES: dict[str, float] = {
    "ramp": 15.0,
    "companion": 20.0,
    "stair_chair": 30.0,
    "wait_time": 35.0,
}
