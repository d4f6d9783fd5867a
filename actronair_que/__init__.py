"""State synchronisation core for ActronAir Que multi-zone HVAC systems."""
from .api import (
    ActronQueError,
    ApiError,
    ApiUnreachableError,
    AuthenticationError,
    CommandRejectedError,
    InitializationError,
    QueApi,
)
from .const import (
    ApiCommand,
    ClimateMode,
    CommandResult,
    CompressorMode,
    FanMode,
    PowerState,
)
from .hvac import HvacUnit, UnitState
from .types import HvacStatus, ZoneStatus
from .zone import HvacZone, ZoneRegistry

__all__ = [
    "ActronQueError",
    "ApiCommand",
    "ApiError",
    "ApiUnreachableError",
    "AuthenticationError",
    "ClimateMode",
    "CommandRejectedError",
    "CommandResult",
    "CompressorMode",
    "FanMode",
    "HvacStatus",
    "HvacUnit",
    "HvacZone",
    "InitializationError",
    "PowerState",
    "QueApi",
    "UnitState",
    "ZoneRegistry",
    "ZoneStatus",
]
