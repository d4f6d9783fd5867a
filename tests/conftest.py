"""Fixtures for ActronAir Que tests."""
import pytest
from unittest.mock import MagicMock, AsyncMock

from actronair_que.const import (
    ClimateMode,
    CommandResult,
    CompressorMode,
    FanMode,
    PowerState,
)
from actronair_que.hvac import HvacUnit
from actronair_que.types import ZoneStatus


def _make_zone(name, index=0, temp=22.0, **kwargs):
    """Build a zone snapshot with sensible bounds."""
    values = {
        "zone_name": name,
        "zone_index": index,
        "sensor_id": f"SENSOR{index}",
        "zone_enabled": True,
        "current_temp": temp,
        "current_humidity": 50.0,
        "current_heating_set_temp": 20.0,
        "current_cooling_set_temp": 24.0,
        "max_heat_set_point": 21.0,
        "min_heat_set_point": 19.0,
        "max_cool_set_point": 26.0,
        "min_cool_set_point": 24.0,
        "zone_sensor_battery": 90.0,
    }
    values.update(kwargs)
    return ZoneStatus(**values)


@pytest.fixture
def full_status():
    """Return a complete, successful HvacStatus."""
    return {
        "api_error": False,
        "cloud_connected": True,
        "power_state": PowerState.ON,
        "climate_mode": ClimateMode.COOL,
        "compressor_mode": CompressorMode.COOL,
        "fan_mode": FanMode.HIGH,
        "fan_running": True,
        "master_cooling_set_temp": 24.0,
        "master_heating_set_temp": 21.0,
        "compressor_chasing_temp": 23.0,
        "compressor_current_temp": 25.5,
        "away_mode": False,
        "quiet_mode": False,
        "continuous_fan_mode": False,
        "control_all_zones": False,
        "master_current_temp": 25.0,
        "master_current_humidity": 48.0,
        "zone_current_status": [
            _make_zone("Living", 0, 22.0),
            _make_zone("Bed", 1, 19.0),
        ],
    }


@pytest.fixture
def mock_api(full_status):
    """Create a mock QueApi instance."""
    api = MagicMock()
    api.actron_serial = "ABC123"
    api.initializer = AsyncMock()
    api.get_status = AsyncMock(return_value=full_status)
    api.run_command = AsyncMock(return_value=CommandResult.SUCCESS)
    return api


@pytest.fixture
def unit(mock_api):
    """Create an HvacUnit wired to the mock API."""
    return HvacUnit("Test Unit", api=mock_api)


@pytest.fixture
def mock_ac_status_response():
    """Return a raw status/latest response."""
    return {
        "isOnline": True,
        "lastKnownState": {
            "MasterInfo": {
                "CloudConnected": "Connected",
                "ControlAllZones": False,
                "LiveTemp_oC": 22.5,
                "LiveHumidity_pc": 45.0,
            },
            "LiveAircon": {
                "AmRunningFan": True,
                "CompressorMode": "COOL",
                "CompressorChasingTemperature": 21,
                "CompressorLiveTemperature": 22.8,
            },
            "UserAirconSettings": {
                "isOn": True,
                "Mode": "COOL",
                "FanMode": "HIGH+CONT",
                "TemperatureSetpoint_Cool_oC": 24,
                "TemperatureSetpoint_Heat_oC": 20,
                "ZoneTemperatureSetpointVariance_oC": 2,
                "EnabledZones": [True, False, False, False, False, False, False, False],
                "AwayMode": False,
                "QuietMode": True,
            },
            "RemoteZoneInfo": [
                {
                    "NV_Exists": True,
                    "NV_Title": "Living",
                    "LiveTemp_oC": 23.1,
                    "LiveHumidity_pc": 41.0,
                    "TemperatureSetpoint_Cool_oC": 25,
                    "TemperatureSetpoint_Heat_oC": 19,
                    "Sensors": {"A1B2C3": {"Battery_pc": 87}},
                },
                {
                    "NV_Exists": True,
                    "NV_Title": "Bed",
                    "LiveTemp_oC": 20.4,
                    "LiveHumidity_pc": 50.0,
                    "TemperatureSetpoint_Cool_oC": 24,
                    "TemperatureSetpoint_Heat_oC": 18,
                    "Sensors": {"D4E5F6": {"Battery_pc": 8}},
                },
                {
                    "NV_Exists": False,
                    "NV_Title": "Zone 3",
                },
            ],
        },
    }


@pytest.fixture
def make_zone():
    """Return a factory for zone snapshots."""
    return _make_zone
