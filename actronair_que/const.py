"""Constants for the ActronAir Que integration."""

from enum import Enum
from typing import Final

# API related constants
API_URL: Final = "https://que.actronair.com.au"
API_TIMEOUT: Final = 30  # seconds
MAX_RETRIES: Final = 3
MAX_REQUESTS_PER_MINUTE: Final = 20
RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({500, 502, 503, 504})
AUTH_REJECTED_STATUS_CODES: Final[frozenset[int]] = frozenset({400, 401, 403})

# Authentication
CLIENT_NAME: Final = "ios"
DEVICE_NAME: Final = "ActronAirQue"
DEVICE_UNIQUE_ID: Final = "actronair-que-core"
TOKEN_FILE_NAME: Final = "actron_que_token.json"
TOKEN_REFRESH_MARGIN: Final = 300  # seconds before expiry

# Zone constants
MAX_ZONES: Final = 8
DEFAULT_ZONE_SETPOINT_VARIANCE: Final = 2.0

# Fan modes with continuous option
FAN_MODE_SUFFIX_CONT: Final = "+CONT"


class PowerState(str, Enum):
    """Unit power state."""

    ON = "ON"
    OFF = "OFF"
    UNKNOWN = "UNKNOWN"


class ClimateMode(str, Enum):
    """User selected operating mode."""

    AUTO = "AUTO"
    COOL = "COOL"
    HEAT = "HEAT"
    FAN = "FAN"
    UNKNOWN = "UNKNOWN"


class CompressorMode(str, Enum):
    """What the compressor is currently doing."""

    COOL = "COOL"
    HEAT = "HEAT"
    OFF = "OFF"
    UNKNOWN = "UNKNOWN"


class FanMode(str, Enum):
    """Fan speed, with and without continuous running."""

    AUTO = "AUTO"
    AUTO_CONT = "AUTO+CONT"
    LOW = "LOW"
    LOW_CONT = "LOW+CONT"
    MEDIUM = "MED"
    MEDIUM_CONT = "MED+CONT"
    HIGH = "HIGH"
    HIGH_CONT = "HIGH+CONT"
    UNKNOWN = "UNKNOWN"

    @property
    def is_continuous(self) -> bool:
        """Return True for the +CONT variants."""
        return self.value.endswith(FAN_MODE_SUFFIX_CONT)


class CommandResult(str, Enum):
    """Outcome of a remote command."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    UNREACHABLE = "UNREACHABLE"


class ApiCommand(str, Enum):
    """Commands understood by QueApi.run_command."""

    ON = "ON"
    OFF = "OFF"
    HEAT_SET_POINT = "HEAT_SET_POINT"
    COOL_SET_POINT = "COOL_SET_POINT"
    HEAT_COOL_SET_POINT = "HEAT_COOL_SET_POINT"
    CLIMATE_MODE_AUTO = "CLIMATE_MODE_AUTO"
    CLIMATE_MODE_COOL = "CLIMATE_MODE_COOL"
    CLIMATE_MODE_HEAT = "CLIMATE_MODE_HEAT"
    CLIMATE_MODE_FAN = "CLIMATE_MODE_FAN"
    FAN_MODE_AUTO = "FAN_MODE_AUTO"
    FAN_MODE_AUTO_CONT = "FAN_MODE_AUTO_CONT"
    FAN_MODE_LOW = "FAN_MODE_LOW"
    FAN_MODE_LOW_CONT = "FAN_MODE_LOW_CONT"
    FAN_MODE_MEDIUM = "FAN_MODE_MEDIUM"
    FAN_MODE_MEDIUM_CONT = "FAN_MODE_MEDIUM_CONT"
    FAN_MODE_HIGH = "FAN_MODE_HIGH"
    FAN_MODE_HIGH_CONT = "FAN_MODE_HIGH_CONT"
    AWAY_MODE_ON = "AWAY_MODE_ON"
    AWAY_MODE_OFF = "AWAY_MODE_OFF"
    QUIET_MODE_ON = "QUIET_MODE_ON"
    QUIET_MODE_OFF = "QUIET_MODE_OFF"
    ZONE_ENABLE = "ZONE_ENABLE"
    ZONE_DISABLE = "ZONE_DISABLE"
    ZONE_HEAT_SET_POINT = "ZONE_HEAT_SET_POINT"
    ZONE_COOL_SET_POINT = "ZONE_COOL_SET_POINT"


CLIMATE_MODE_COMMANDS: Final[dict[ClimateMode, ApiCommand]] = {
    ClimateMode.AUTO: ApiCommand.CLIMATE_MODE_AUTO,
    ClimateMode.COOL: ApiCommand.CLIMATE_MODE_COOL,
    ClimateMode.HEAT: ApiCommand.CLIMATE_MODE_HEAT,
    ClimateMode.FAN: ApiCommand.CLIMATE_MODE_FAN,
}

# Fan speed tiers: base mode -> (plain, continuous) variants
FAN_MODE_TIERS: Final[dict[FanMode, tuple[FanMode, FanMode]]] = {
    FanMode.AUTO: (FanMode.AUTO, FanMode.AUTO_CONT),
    FanMode.LOW: (FanMode.LOW, FanMode.LOW_CONT),
    FanMode.MEDIUM: (FanMode.MEDIUM, FanMode.MEDIUM_CONT),
    FanMode.HIGH: (FanMode.HIGH, FanMode.HIGH_CONT),
}

FAN_MODE_COMMANDS: Final[dict[FanMode, ApiCommand]] = {
    FanMode.AUTO: ApiCommand.FAN_MODE_AUTO,
    FanMode.AUTO_CONT: ApiCommand.FAN_MODE_AUTO_CONT,
    FanMode.LOW: ApiCommand.FAN_MODE_LOW,
    FanMode.LOW_CONT: ApiCommand.FAN_MODE_LOW_CONT,
    FanMode.MEDIUM: ApiCommand.FAN_MODE_MEDIUM,
    FanMode.MEDIUM_CONT: ApiCommand.FAN_MODE_MEDIUM_CONT,
    FanMode.HIGH: ApiCommand.FAN_MODE_HIGH,
    FanMode.HIGH_CONT: ApiCommand.FAN_MODE_HIGH_CONT,
}
