"""Zone state for the ActronAir Que integration."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence

from .command import CommandClient, execute_command
from .const import ApiCommand
from .types import ZoneStatus

_LOGGER = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[Any]]


class HvacZone:
    """Cached state and commands for one zone."""

    def __init__(
        self,
        api: CommandClient,
        status: ZoneStatus,
        refresh: RefreshCallback,
        lock: asyncio.Lock,
    ) -> None:
        self._api = api
        self._refresh = refresh
        self._lock = lock
        self.zone_name = status.zone_name
        self.push_status_update(status)

    def push_status_update(self, status: ZoneStatus) -> None:
        """Overwrite the cached attributes from a refreshed snapshot."""
        self.zone_index = status.zone_index
        self.sensor_id = status.sensor_id
        self.zone_enabled = status.zone_enabled
        self.current_temp = status.current_temp
        self.current_humidity = status.current_humidity
        self.current_heating_set_temp = status.current_heating_set_temp
        self.current_cooling_set_temp = status.current_cooling_set_temp
        self.max_heat_set_point = status.max_heat_set_point
        self.min_heat_set_point = status.min_heat_set_point
        self.max_cool_set_point = status.max_cool_set_point
        self.min_cool_set_point = status.min_cool_set_point
        self.zone_sensor_battery = status.zone_sensor_battery

    def clamp_heat_temp(self, value: float) -> float:
        """Clamp a heating setpoint to this zone's bounds."""
        return min(max(value, self.min_heat_set_point), self.max_heat_set_point)

    def clamp_cool_temp(self, value: float) -> float:
        """Clamp a cooling setpoint to this zone's bounds."""
        return min(max(value, self.min_cool_set_point), self.max_cool_set_point)

    async def _set_enabled(self, enabled: bool) -> bool:
        def apply() -> None:
            self.zone_enabled = enabled

        await execute_command(
            self._api,
            ApiCommand.ZONE_ENABLE if enabled else ApiCommand.ZONE_DISABLE,
            args=(self.zone_index,),
            apply=apply,
            refresh=self._refresh,
            lock=self._lock,
            description=f"zone {self.zone_name} enabled state",
        )
        return self.zone_enabled

    async def set_zone_enable(self) -> bool:
        """Enable the zone, returning the cached enabled flag."""
        return await self._set_enabled(True)

    async def set_zone_disable(self) -> bool:
        """Disable the zone, returning the cached enabled flag."""
        return await self._set_enabled(False)

    async def set_heat_temp(self, heat_temp: float) -> float:
        """Set the zone heating setpoint. The value is expected to be clamped already."""
        def apply() -> None:
            self.current_heating_set_temp = heat_temp

        await execute_command(
            self._api,
            ApiCommand.ZONE_HEAT_SET_POINT,
            args=(self.zone_index, heat_temp),
            apply=apply,
            refresh=self._refresh,
            lock=self._lock,
            description=f"zone {self.zone_name} heating temperature",
        )
        return self.current_heating_set_temp

    async def set_cool_temp(self, cool_temp: float) -> float:
        """Set the zone cooling setpoint. The value is expected to be clamped already."""
        def apply() -> None:
            self.current_cooling_set_temp = cool_temp

        await execute_command(
            self._api,
            ApiCommand.ZONE_COOL_SET_POINT,
            args=(self.zone_index, cool_temp),
            apply=apply,
            refresh=self._refresh,
            lock=self._lock,
            description=f"zone {self.zone_name} cooling temperature",
        )
        return self.current_cooling_set_temp

    def __repr__(self) -> str:
        return f"HvacZone({self.zone_name!r}, index={self.zone_index})"


class ZoneRegistry:
    """Zones keyed by name. Zones are created on first sight and never removed."""

    def __init__(self, api: CommandClient, refresh: RefreshCallback, lock: asyncio.Lock) -> None:
        self._api = api
        self._refresh = refresh
        self._lock = lock
        self._zones: Dict[str, HvacZone] = {}

    def reconcile(self, snapshots: Sequence[ZoneStatus]) -> None:
        """Update known zones in place and register new ones, in snapshot order."""
        for snapshot in snapshots:
            zone = self._zones.get(snapshot.zone_name)
            if zone is not None:
                zone.push_status_update(snapshot)
            else:
                _LOGGER.debug("Registering new zone %s", snapshot.zone_name)
                self._zones[snapshot.zone_name] = HvacZone(
                    self._api, snapshot, self._refresh, self._lock
                )

    def get(self, zone_name: str) -> Optional[HvacZone]:
        return self._zones.get(zone_name)

    @property
    def zone_names(self) -> List[str]:
        return list(self._zones)

    def __contains__(self, zone_name: object) -> bool:
        return zone_name in self._zones

    def __iter__(self) -> Iterator[HvacZone]:
        return iter(list(self._zones.values()))

    def __len__(self) -> int:
        return len(self._zones)
