"""Unit-wide (master) state and commands for an ActronAir Que system."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

import aiohttp  # type: ignore

from .api import ApiError, AuthenticationError, InitializationError, QueApi
from .command import CommandClient, execute_command
from .const import (
    CLIMATE_MODE_COMMANDS,
    FAN_MODE_COMMANDS,
    FAN_MODE_TIERS,
    ApiCommand,
    ClimateMode,
    CommandResult,
    CompressorMode,
    FanMode,
    PowerState,
)
from .types import HvacStatus, ZoneStatus
from .zone import ZoneRegistry

_LOGGER = logging.getLogger(__name__)

# UnitState attributes fed by a differently named status key.
_STATUS_KEYS: Dict[str, str] = {"master_humidity": "master_current_humidity"}
_IDENTITY_FIELDS = ("name", "serial_number", "zone_snapshots")

E = TypeVar("E", bound=Enum)


@dataclass
class UnitState:
    """Cached master state of the unit."""
    name: str
    serial_number: str = ""
    cloud_connected: bool = False
    power_state: PowerState = PowerState.UNKNOWN
    climate_mode: ClimateMode = ClimateMode.UNKNOWN
    fan_mode: FanMode = FanMode.UNKNOWN
    compressor_mode: CompressorMode = CompressorMode.UNKNOWN
    fan_running: bool = False
    away_mode: bool = False
    quiet_mode: bool = False
    continuous_fan_mode: bool = False
    control_all_zones: bool = False
    master_cooling_set_temp: float = 0.0
    master_heating_set_temp: float = 0.0
    master_current_temp: float = 0.0
    master_humidity: float = 0.0
    compressor_chasing_temp: float = 0.0
    compressor_current_temp: float = 0.0
    zone_snapshots: List[ZoneStatus] = field(default_factory=list)

    def merge(self, status: HvacStatus) -> None:
        """Overwrite only the fields the status actually carries."""
        for state_field in fields(self):
            if state_field.name in _IDENTITY_FIELDS:
                continue
            key = _STATUS_KEYS.get(state_field.name, state_field.name)
            value = status.get(key)  # type: ignore[misc]
            if value is not None:
                setattr(self, state_field.name, value)
        if status.get("zone_current_status"):
            self.zone_snapshots = list(status["zone_current_status"])

    def as_status(self) -> HvacStatus:
        """Render the cached state as a complete, non-error status."""
        status: Dict[str, Any] = {"api_error": False}
        for state_field in fields(self):
            if state_field.name in _IDENTITY_FIELDS:
                continue
            key = _STATUS_KEYS.get(state_field.name, state_field.name)
            status[key] = getattr(self, state_field.name)
        status["zone_current_status"] = list(self.zone_snapshots)
        return status  # type: ignore[return-value]


def _cached(name: str) -> property:
    return property(lambda self: getattr(self.state, name), doc=f"Cached {name}.")


def _as_member(enum_type: Type[E], value: Any) -> E:
    try:
        return enum_type(value)
    except ValueError:
        return enum_type.UNKNOWN


def _fan_tier(fan_mode: FanMode) -> Optional[Tuple[FanMode, FanMode]]:
    """Return the (plain, continuous) pair a fan mode belongs to."""
    for tier in FAN_MODE_TIERS.values():
        if fan_mode in tier:
            return tier
    return None


class HvacUnit:
    """Controller for the unit-wide settings of one ActronAir Que system.

    Getters read the local cache and never touch the network. Mutations send
    one command and reconcile the cache with the outcome; they never raise.
    """

    cloud_connected = _cached("cloud_connected")
    power_state = _cached("power_state")
    climate_mode = _cached("climate_mode")
    fan_mode = _cached("fan_mode")
    compressor_mode = _cached("compressor_mode")
    fan_running = _cached("fan_running")
    away_mode = _cached("away_mode")
    quiet_mode = _cached("quiet_mode")
    continuous_fan_mode = _cached("continuous_fan_mode")
    control_all_zones = _cached("control_all_zones")
    master_cooling_set_temp = _cached("master_cooling_set_temp")
    master_heating_set_temp = _cached("master_heating_set_temp")
    master_current_temp = _cached("master_current_temp")
    master_humidity = _cached("master_humidity")
    compressor_chasing_temp = _cached("compressor_chasing_temp")
    compressor_current_temp = _cached("compressor_current_temp")
    serial_number = _cached("serial_number")

    def __init__(
        self,
        name: str,
        api: Optional[CommandClient] = None,
        storage_path: str = ".",
    ) -> None:
        self.name = name
        self.type = ""
        self.api = api
        self.storage_path = storage_path
        self.state = UnitState(name=name)
        self._lock = asyncio.Lock()
        self._session: Optional[aiohttp.ClientSession] = None
        self.zones = ZoneRegistry(api, self.refresh_status, self._lock)

    async def initialize(
        self,
        username: str,
        password: str,
        serial_number: str = "",
        session: Optional[aiohttp.ClientSession] = None,
    ) -> str:
        """Connect to the cloud and resolve the unit serial number.

        Raises:
            InitializationError: If no serial number could be resolved
        """
        if self.state.serial_number:
            raise InitializationError(
                f"{self.name} is already initialized with serial {self.state.serial_number}"
            )
        owns_client = self.api is None
        if owns_client:
            if session is None:
                session = self._session = aiohttp.ClientSession()
            self.api = QueApi(
                username, password, session,
                storage_path=self.storage_path, serial_number=serial_number,
            )
            self.zones = ZoneRegistry(self.api, self.refresh_status, self._lock)

        try:
            await self.api.initializer()
        except (AuthenticationError, ApiError) as err:
            await self._discard_client(owns_client)
            raise InitializationError(f"Failed to initialize {self.name}: {err}") from err

        serial = getattr(self.api, "actron_serial", "")
        if not serial:
            await self._discard_client(owns_client)
            raise InitializationError(
                "Failed to locate device serial number. Please check your config"
            )
        self.type = "actronQue"
        self.state.serial_number = serial
        return serial

    async def close(self) -> None:
        """Close the HTTP session if this unit created it."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _discard_client(self, owns_client: bool) -> None:
        """Drop a client built by a failed initialize so a retry starts clean."""
        if not owns_client:
            return
        await self.close()
        self.api = None
        self.zones = ZoneRegistry(None, self.refresh_status, self._lock)

    async def refresh_status(self) -> HvacStatus:
        """Fetch status from the cloud and merge it into the cache.

        Never raises. On an API error the error status is returned and the
        cache is left as it was.
        """
        try:
            status = await self.api.get_status()
            if status.get("api_error"):
                _LOGGER.warning(
                    "Failed to refresh status, Actron Que cloud unreachable or returned invalid data"
                )
                return status
            async with self._lock:
                self.state.merge(status)
                self.zones.reconcile(status.get("zone_current_status") or [])
                return self.state.as_status()
        except Exception as err:  # pylint: disable=broad-except
            _LOGGER.error(
                "Unexpected error refreshing status for %s: %s", self.name, err, exc_info=True
            )
            return {"api_error": True, "zone_current_status": []}

    async def _execute(
        self, command: Optional[ApiCommand], description: str, *args: Any, **values: Any
    ) -> CommandResult:
        """Run a command, applying the given state values only if it succeeds."""
        def apply() -> None:
            for key, value in values.items():
                setattr(self.state, key, value)

        return await execute_command(
            self.api,
            command,
            args=args,
            apply=apply,
            refresh=self.refresh_status,
            lock=self._lock,
            description=f"{description} for {self.name}",
        )

    async def set_power(self, on: bool) -> PowerState:
        """Turn the unit on or off, skipping the call if already there."""
        target = PowerState.ON if on else PowerState.OFF
        if self.state.power_state is PowerState.UNKNOWN:
            await self.refresh_status()
        if self.state.power_state is target:
            _LOGGER.debug("%s already %s, not sending command", self.name, target.value)
            return target
        await self._execute(
            ApiCommand.ON if on else ApiCommand.OFF, "power state", power_state=target
        )
        return self.state.power_state

    async def set_heat_setpoint(self, heat_temp: float) -> float:
        await self._execute(
            ApiCommand.HEAT_SET_POINT, "heating temperature", heat_temp,
            master_heating_set_temp=heat_temp,
        )
        return self.state.master_heating_set_temp

    async def set_cool_setpoint(self, cool_temp: float) -> float:
        await self._execute(
            ApiCommand.COOL_SET_POINT, "cooling temperature", cool_temp,
            master_cooling_set_temp=cool_temp,
        )
        return self.state.master_cooling_set_temp

    async def set_heat_cool_setpoint(self, cool_temp: float, heat_temp: float) -> List[float]:
        await self._execute(
            ApiCommand.HEAT_COOL_SET_POINT, "heating and cooling temperature",
            cool_temp, heat_temp,
            master_cooling_set_temp=cool_temp,
            master_heating_set_temp=heat_temp,
        )
        return [self.state.master_cooling_set_temp, self.state.master_heating_set_temp]

    async def set_climate_mode(self, mode: ClimateMode) -> ClimateMode:
        """Set the climate mode to AUTO, COOL, HEAT or FAN.

        Any other value is logged and ignored; the cached mode is returned.
        """
        target = _as_member(ClimateMode, mode)
        if target not in CLIMATE_MODE_COMMANDS:
            _LOGGER.error("Cannot set climate mode %s for %s", mode, self.name)
            return self.state.climate_mode
        await self._execute(CLIMATE_MODE_COMMANDS[target], "climate mode", climate_mode=target)
        return self.state.climate_mode

    async def set_fan_mode(self, mode: FanMode) -> FanMode:
        """Set the fan speed, keeping the current continuous fan setting.

        A value that is not a fan speed is logged and ignored; the cached
        mode is returned.
        """
        tier = _fan_tier(_as_member(FanMode, mode))
        if tier is None:
            _LOGGER.error("Cannot set fan mode %s for %s", mode, self.name)
            return self.state.fan_mode
        target = tier[1] if self.state.continuous_fan_mode else tier[0]
        await self._execute(FAN_MODE_COMMANDS[target], "fan mode", fan_mode=target)
        return self.state.fan_mode

    async def set_away_mode(self, on: bool) -> bool:
        await self._execute(
            ApiCommand.AWAY_MODE_ON if on else ApiCommand.AWAY_MODE_OFF, "away mode",
            away_mode=on,
        )
        return self.state.away_mode

    async def set_quiet_mode(self, on: bool) -> bool:
        await self._execute(
            ApiCommand.QUIET_MODE_ON if on else ApiCommand.QUIET_MODE_OFF, "quiet mode",
            quiet_mode=on,
        )
        return self.state.quiet_mode

    async def set_continuous_fan_mode(self, on: bool) -> bool:
        """Switch continuous fan on or off at the current fan speed.

        With no recognised current fan speed no command is sent; the call is
        treated as a failure and the state is refreshed instead.
        """
        tier = _fan_tier(self.state.fan_mode)
        target = (tier[1] if on else tier[0]) if tier is not None else None
        await self._execute(
            FAN_MODE_COMMANDS[target] if target is not None else None,
            "continuous fan mode",
            continuous_fan_mode=on,
            fan_mode=target,
        )
        return self.state.continuous_fan_mode
