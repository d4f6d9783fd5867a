"""Type definitions for the ActronAir Que integration."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, TypedDict, Union

from .const import ClimateMode, CompressorMode, FanMode, PowerState


class TokenData(TypedDict):
    """Tokens persisted between runs."""
    refresh_token: Optional[str]
    access_token: Optional[str]
    expires_at: Optional[str]


class DeviceInfo(TypedDict):
    """AC system as listed by the cloud."""
    serial: str
    name: str
    type: str
    id: str


class CommandData(TypedDict):
    """Command data structure for API requests."""
    command: Dict[str, Union[bool, str, float]]


class LastKnownState(TypedDict, total=False):
    """Raw lastKnownState section of a status response."""
    MasterInfo: Dict[str, Any]
    LiveAircon: Dict[str, Any]
    UserAirconSettings: Dict[str, Any]
    RemoteZoneInfo: List[Dict[str, Any]]
    AirconSystem: Dict[str, Any]
    Alerts: Dict[str, bool]


class AcStatusResponse(TypedDict, total=False):
    """AC status response."""
    isOnline: bool
    lastKnownState: LastKnownState


@dataclass(frozen=True)
class ZoneStatus:
    """Read-only snapshot of one zone as reported by the cloud."""
    zone_name: str
    zone_index: int
    sensor_id: str = ""
    zone_enabled: bool = False
    current_temp: float = 0.0
    current_humidity: float = 0.0
    current_heating_set_temp: float = 0.0
    current_cooling_set_temp: float = 0.0
    max_heat_set_point: float = 0.0
    min_heat_set_point: float = 0.0
    max_cool_set_point: float = 0.0
    min_cool_set_point: float = 0.0
    zone_sensor_battery: float = 0.0


class HvacStatus(TypedDict, total=False):
    """Partial unit status.

    Only api_error and zone_current_status are always present. Any other key
    that is missing (or None) means the cloud did not report it.
    """
    api_error: bool
    cloud_connected: bool
    power_state: PowerState
    climate_mode: ClimateMode
    compressor_mode: CompressorMode
    fan_mode: FanMode
    fan_running: bool
    master_cooling_set_temp: float
    master_heating_set_temp: float
    compressor_chasing_temp: float
    compressor_current_temp: float
    away_mode: bool
    quiet_mode: bool
    continuous_fan_mode: bool
    control_all_zones: bool
    master_current_temp: float
    master_current_humidity: float
    zone_current_status: List[ZoneStatus]
