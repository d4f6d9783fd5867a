"""Translate raw ActronAir Que status payloads into HvacStatus records."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from .const import (
    DEFAULT_ZONE_SETPOINT_VARIANCE,
    FAN_MODE_SUFFIX_CONT,
    ClimateMode,
    CompressorMode,
    FanMode,
    PowerState,
)
from .types import AcStatusResponse, HvacStatus, ZoneStatus

_LOGGER = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

# UserAirconSettings keys zone snapshots are derived from.
ZONE_SETTINGS_KEYS = ("EnabledZones", "TemperatureSetpoint_Heat_oC", "TemperatureSetpoint_Cool_oC")


def _to_enum(enum_type: Type[E], value: Any) -> E:
    """Map a wire string onto an enum, falling back to UNKNOWN."""
    if value is None:
        return enum_type["UNKNOWN"]
    try:
        return enum_type(str(value).strip().upper())
    except ValueError:
        _LOGGER.debug("Unrecognised %s value '%s'", enum_type.__name__, value)
        return enum_type["UNKNOWN"]


def normalize_fan_mode(value: Any) -> FanMode:
    """Parse a FanMode string, accepting both '+CONT' and '-CONT' suffixes."""
    if value is None:
        return FanMode.UNKNOWN
    mode = str(value).strip().upper().replace("-CONT", FAN_MODE_SUFFIX_CONT)
    return _to_enum(FanMode, mode)


def _copy(
    status: HvacStatus,
    key: str,
    value: Any,
    convert: Optional[Callable[[Any], Any]] = None,
) -> None:
    """Set key on status only when the cloud actually reported a value."""
    if value is None:
        return
    status[key] = convert(value) if convert else value  # type: ignore[literal-required]


def _copy_known(status: HvacStatus, key: str, value: Enum) -> bool:
    """Set an enum on status unless it is UNKNOWN."""
    if value.name == "UNKNOWN":
        return False
    status[key] = value  # type: ignore[literal-required]
    return True


def _first_sensor(zone: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
    sensors = zone.get("Sensors") or {}
    if not isinstance(sensors, dict) or not sensors:
        return "", {}
    sensor_id = next(iter(sensors))
    sensor = sensors[sensor_id]
    return sensor_id, sensor if isinstance(sensor, dict) else {}


def parse_zones(
    remote_zone_info: List[Dict[str, Any]],
    settings: Dict[str, Any],
) -> List[ZoneStatus]:
    """Build zone snapshots for every zone that physically exists.

    Zone setpoint bounds are derived from the master setpoints: a zone may
    heat up to the master heating setpoint and cool down to the master
    cooling setpoint, with the configured variance on the other side.
    """
    enabled_zones = settings.get("EnabledZones") or []
    master_heat = float(settings.get("TemperatureSetpoint_Heat_oC") or 0.0)
    master_cool = float(settings.get("TemperatureSetpoint_Cool_oC") or 0.0)
    variance = float(
        settings.get("ZoneTemperatureSetpointVariance_oC", DEFAULT_ZONE_SETPOINT_VARIANCE)
    )

    zones: List[ZoneStatus] = []
    for index, zone in enumerate(remote_zone_info):
        if not zone.get("NV_Exists", False):
            continue
        sensor_id, sensor = _first_sensor(zone)
        zones.append(
            ZoneStatus(
                zone_name=str(zone.get("NV_Title") or f"Zone {index + 1}"),
                zone_index=index,
                sensor_id=sensor_id,
                zone_enabled=bool(enabled_zones[index]) if index < len(enabled_zones) else False,
                current_temp=float(zone.get("LiveTemp_oC") or 0.0),
                current_humidity=float(zone.get("LiveHumidity_pc") or 0.0),
                current_heating_set_temp=float(zone.get("TemperatureSetpoint_Heat_oC") or 0.0),
                current_cooling_set_temp=float(zone.get("TemperatureSetpoint_Cool_oC") or 0.0),
                max_heat_set_point=master_heat,
                min_heat_set_point=master_heat - variance,
                max_cool_set_point=master_cool + variance,
                min_cool_set_point=master_cool,
                zone_sensor_battery=float(sensor.get("Battery_pc") or 0.0),
            )
        )
    return zones


def parse_status(response: AcStatusResponse) -> HvacStatus:
    """Parse a status/latest response into a partial HvacStatus.

    Values the cloud did not report, and mode strings this package does not
    recognise, are left out so the cached value is kept.

    Raises:
        ValueError: If the payload carries no lastKnownState section
    """
    last_known_state = response.get("lastKnownState") if isinstance(response, dict) else None
    if not isinstance(last_known_state, dict):
        raise ValueError("Status response has no lastKnownState section")

    master_info = last_known_state.get("MasterInfo") or {}
    live_aircon = last_known_state.get("LiveAircon") or {}
    settings = last_known_state.get("UserAirconSettings") or {}
    remote_zone_info = last_known_state.get("RemoteZoneInfo")

    status: HvacStatus = {"api_error": False, "zone_current_status": []}

    _copy(status, "cloud_connected", master_info.get("CloudConnected"),
          lambda value: value is True or str(value) == "Connected")
    _copy(status, "control_all_zones", master_info.get("ControlAllZones"), bool)
    _copy(status, "master_current_temp", master_info.get("LiveTemp_oC"), float)
    _copy(status, "master_current_humidity", master_info.get("LiveHumidity_pc"), float)

    _copy_known(status, "compressor_mode",
                _to_enum(CompressorMode, live_aircon.get("CompressorMode")))
    _copy(status, "fan_running", live_aircon.get("AmRunningFan"), bool)
    _copy(status, "compressor_chasing_temp", live_aircon.get("CompressorChasingTemperature"), float)
    _copy(status, "compressor_current_temp", live_aircon.get("CompressorLiveTemperature"), float)

    _copy(status, "power_state", settings.get("isOn"),
          lambda value: PowerState.ON if value else PowerState.OFF)
    _copy_known(status, "climate_mode", _to_enum(ClimateMode, settings.get("Mode")))
    fan_mode = normalize_fan_mode(settings.get("FanMode"))
    if _copy_known(status, "fan_mode", fan_mode):
        status["continuous_fan_mode"] = fan_mode.is_continuous
    _copy(status, "master_cooling_set_temp", settings.get("TemperatureSetpoint_Cool_oC"), float)
    _copy(status, "master_heating_set_temp", settings.get("TemperatureSetpoint_Heat_oC"), float)
    _copy(status, "away_mode", settings.get("AwayMode"), bool)
    _copy(status, "quiet_mode", settings.get("QuietMode"), bool)

    if isinstance(remote_zone_info, list):
        missing = [key for key in ZONE_SETTINGS_KEYS if settings.get(key) is None]
        if missing:
            # Enabled flags and bounds cannot be derived; keep the previous zones.
            _LOGGER.debug("Skipping zone update, settings missing %s", missing)
        else:
            status["zone_current_status"] = parse_zones(remote_zone_info, settings)

    return status
