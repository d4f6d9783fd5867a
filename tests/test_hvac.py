"""Tests for the ActronAir Que unit controller."""
import asyncio
import dataclasses
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from actronair_que.api import ApiUnreachableError, AuthenticationError, InitializationError
from actronair_que.const import (
    ApiCommand,
    ClimateMode,
    CommandResult,
    FanMode,
    PowerState,
)
from actronair_que.hvac import HvacUnit
from actronair_que.parser import parse_status


class TestInitialization:
    """Test unit initialization."""

    @pytest.mark.asyncio
    async def test_initialize_resolves_serial(self, unit, mock_api):
        """Test the serial number is taken from the API client."""
        serial = await unit.initialize("user@example.com", "password")

        assert serial == "ABC123"
        assert unit.serial_number == "ABC123"
        assert unit.type == "actronQue"
        mock_api.initializer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_initialize_without_serial_fails(self, unit, mock_api):
        """Test a missing serial number is fatal."""
        mock_api.actron_serial = ""

        with pytest.raises(InitializationError):
            await unit.initialize("user@example.com", "password")

        assert unit.serial_number == ""

    @pytest.mark.asyncio
    async def test_initialize_auth_failure(self, unit, mock_api):
        """Test authentication failures surface as InitializationError."""
        mock_api.initializer.side_effect = AuthenticationError("bad password")

        with pytest.raises(InitializationError) as exc_info:
            await unit.initialize("user@example.com", "password")

        assert isinstance(exc_info.value.__cause__, AuthenticationError)

    @pytest.mark.asyncio
    async def test_serial_is_assigned_once(self, unit):
        """Test the identity cannot be reassigned."""
        await unit.initialize("user@example.com", "password")

        with pytest.raises(InitializationError):
            await unit.initialize("user@example.com", "password")

        assert unit.serial_number == "ABC123"

    @pytest.mark.asyncio
    async def test_failed_initialize_closes_own_session(self):
        """Test a session created by initialize is closed when it fails."""
        session = MagicMock()
        session.close = AsyncMock()
        client = MagicMock()
        client.initializer = AsyncMock(side_effect=ApiUnreachableError("no route"))

        with patch("actronair_que.hvac.aiohttp.ClientSession", return_value=session), \
                patch("actronair_que.hvac.QueApi", return_value=client):
            unit = HvacUnit("Fresh Unit")
            with pytest.raises(InitializationError):
                await unit.initialize("user@example.com", "password")

        session.close.assert_awaited_once()
        assert unit.api is None

    @pytest.mark.asyncio
    async def test_failed_initialize_keeps_caller_session(self):
        """Test a session passed in by the caller is left open."""
        session = MagicMock()
        session.close = AsyncMock()
        client = MagicMock()
        client.actron_serial = ""
        client.initializer = AsyncMock()

        with patch("actronair_que.hvac.QueApi", return_value=client):
            unit = HvacUnit("Fresh Unit")
            with pytest.raises(InitializationError):
                await unit.initialize("user@example.com", "password", session=session)

        session.close.assert_not_awaited()

    def test_initial_state_is_unknown(self, unit):
        """Test enums start out UNKNOWN before the first refresh."""
        assert unit.power_state is PowerState.UNKNOWN
        assert unit.climate_mode is ClimateMode.UNKNOWN
        assert unit.fan_mode is FanMode.UNKNOWN
        assert len(unit.zones) == 0


class TestRefreshStatus:
    """Test the status refresh algorithm."""

    @pytest.mark.asyncio
    async def test_refresh_populates_cache(self, unit):
        """Test a full refresh populates every field and the zones."""
        result = await unit.refresh_status()

        assert result["api_error"] is False
        assert unit.power_state is PowerState.ON
        assert unit.climate_mode is ClimateMode.COOL
        assert unit.fan_mode is FanMode.HIGH
        assert unit.master_humidity == 48.0
        assert unit.compressor_current_temp == 25.5
        assert unit.zones.zone_names == ["Living", "Bed"]
        assert len(unit.state.zone_snapshots) == 2

    @pytest.mark.asyncio
    async def test_partial_refresh_only_touches_reported_fields(self, unit, mock_api):
        """Test a partial payload leaves every other field untouched."""
        await unit.refresh_status()
        before = dataclasses.replace(unit.state)

        mock_api.get_status.return_value = {
            "api_error": False,
            "master_current_temp": 21.5,
            "zone_current_status": [],
        }
        result = await unit.refresh_status()

        assert result["api_error"] is False
        assert unit.master_current_temp == 21.5
        assert dataclasses.replace(unit.state, master_current_temp=before.master_current_temp) == before
        assert len(unit.zones) == 2

    @pytest.mark.asyncio
    async def test_unrecognised_modes_keep_cached_values(self, unit, mock_api, mock_ac_status_response):
        """Test a later payload with unknown mode strings never reverts to UNKNOWN."""
        mock_api.get_status.return_value = parse_status(mock_ac_status_response)
        await unit.refresh_status()
        settings = mock_ac_status_response["lastKnownState"]["UserAirconSettings"]
        settings["Mode"] = "DRY"
        settings["FanMode"] = "TURBO"
        mock_api.get_status.return_value = parse_status(mock_ac_status_response)

        await unit.refresh_status()

        assert unit.climate_mode is ClimateMode.COOL
        assert unit.fan_mode is FanMode.HIGH_CONT
        assert unit.continuous_fan_mode is True

    @pytest.mark.asyncio
    async def test_api_error_leaves_cache_untouched(self, unit, mock_api):
        """Test an error-flagged status is returned without merging."""
        await unit.refresh_status()
        before = dataclasses.replace(unit.state)
        mock_api.get_status.return_value = {"api_error": True, "zone_current_status": []}

        result = await unit.refresh_status()

        assert result["api_error"] is True
        assert unit.state == before

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, unit, mock_api):
        """Test exceptions during refresh never escape."""
        mock_api.get_status.side_effect = RuntimeError("boom")

        result = await unit.refresh_status()

        assert result == {"api_error": True, "zone_current_status": []}
        assert unit.power_state is PowerState.UNKNOWN

    @pytest.mark.asyncio
    async def test_refresh_without_api_is_contained(self):
        """Test refreshing before initialize reports an API error."""
        result = await HvacUnit("No API").refresh_status()

        assert result["api_error"] is True


class TestPower:
    """Test power commands."""

    @pytest.mark.asyncio
    async def test_power_on_is_idempotent(self, unit, mock_api):
        """Test no command is sent when already on."""
        await unit.refresh_status()

        assert await unit.set_power(True) is PowerState.ON
        assert await unit.set_power(True) is PowerState.ON

        mock_api.run_command.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_power_refreshes_first(self, unit, mock_api):
        """Test an UNKNOWN power state is resolved before deciding."""
        result = await unit.set_power(True)

        assert result is PowerState.ON
        mock_api.get_status.assert_awaited_once()
        mock_api.run_command.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_power_refreshes_then_sends(self, unit, mock_api, full_status):
        """Test the command is sent when the refreshed state differs."""
        full_status["power_state"] = PowerState.OFF

        result = await unit.set_power(True)

        assert result is PowerState.ON
        mock_api.get_status.assert_awaited_once()
        mock_api.run_command.assert_awaited_once_with(ApiCommand.ON)

    @pytest.mark.asyncio
    async def test_power_off(self, unit, mock_api):
        """Test turning the unit off."""
        await unit.refresh_status()

        assert await unit.set_power(False) is PowerState.OFF
        mock_api.run_command.assert_awaited_once_with(ApiCommand.OFF)


class TestCommandProtocol:
    """Test the three command outcomes."""

    @pytest.mark.asyncio
    async def test_success_applies_value(self, unit, mock_api):
        """Test a successful command updates the cache without refreshing."""
        result = await unit.set_heat_setpoint(22.5)

        assert result == 22.5
        assert unit.master_heating_set_temp == 22.5
        mock_api.run_command.assert_awaited_once_with(ApiCommand.HEAT_SET_POINT, 22.5)
        mock_api.get_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_refreshes_once(self, unit, mock_api):
        """Test a rejected command resynchronises from the cloud."""
        mock_api.run_command.return_value = CommandResult.FAILURE

        result = await unit.set_cool_setpoint(19.0)

        assert result == 24.0
        assert unit.master_cooling_set_temp == 24.0
        mock_api.get_status.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_makes_no_further_calls(self, unit, mock_api):
        """Test an unreachable cloud keeps the previous value and does not refresh."""
        await unit.refresh_status()
        mock_api.get_status.reset_mock()
        mock_api.run_command.return_value = CommandResult.UNREACHABLE

        result = await unit.set_away_mode(True)

        assert result is False
        assert unit.away_mode is False
        assert mock_api.run_command.await_count == 1
        mock_api.get_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exception_is_treated_as_failure(self, unit, mock_api):
        """Test an exception in the client triggers a refresh and is not raised."""
        mock_api.run_command.side_effect = RuntimeError("socket closed")

        result = await unit.set_quiet_mode(True)

        assert result is False
        mock_api.get_status.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_heat_cool_setpoint(self, unit, mock_api):
        """Test both setpoints are sent and cached together."""
        result = await unit.set_heat_cool_setpoint(25.0, 19.0)

        assert result == [25.0, 19.0]
        mock_api.run_command.assert_awaited_once_with(ApiCommand.HEAT_COOL_SET_POINT, 25.0, 19.0)

    @pytest.mark.asyncio
    async def test_away_and_quiet_off(self, unit, mock_api, full_status):
        """Test switching flags off."""
        full_status["away_mode"] = True
        full_status["quiet_mode"] = True
        await unit.refresh_status()

        assert await unit.set_away_mode(False) is False
        assert await unit.set_quiet_mode(False) is False
        assert [c.args[0] for c in mock_api.run_command.await_args_list] == [
            ApiCommand.AWAY_MODE_OFF,
            ApiCommand.QUIET_MODE_OFF,
        ]


class TestModes:
    """Test climate and fan mode commands."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "mode,command",
        [
            (ClimateMode.AUTO, ApiCommand.CLIMATE_MODE_AUTO),
            (ClimateMode.HEAT, ApiCommand.CLIMATE_MODE_HEAT),
            (ClimateMode.FAN, ApiCommand.CLIMATE_MODE_FAN),
        ],
    )
    async def test_set_climate_mode(self, unit, mock_api, mode, command):
        """Test each climate mode maps onto its command."""
        assert await unit.set_climate_mode(mode) is mode
        mock_api.run_command.assert_awaited_once_with(command)

    @pytest.mark.asyncio
    async def test_set_climate_mode_unknown_ignored(self, unit, mock_api):
        """Test UNKNOWN is not sent and the cached mode is returned."""
        await unit.refresh_status()

        assert await unit.set_climate_mode(ClimateMode.UNKNOWN) is ClimateMode.COOL
        assert await unit.set_climate_mode("DRY") is ClimateMode.COOL
        mock_api.run_command.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_set_fan_mode_invalid_ignored(self, unit, mock_api):
        """Test a value with no fan speed is not sent."""
        await unit.refresh_status()

        assert await unit.set_fan_mode(FanMode.UNKNOWN) is FanMode.HIGH
        assert await unit.set_fan_mode("TURBO") is FanMode.HIGH
        mock_api.run_command.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fan_mode_follows_continuous_flag(self, unit, mock_api, full_status):
        """Test the continuous variant is chosen before sending."""
        full_status["fan_mode"] = FanMode.LOW_CONT
        full_status["continuous_fan_mode"] = True
        await unit.refresh_status()

        result = await unit.set_fan_mode(FanMode.MEDIUM)

        assert result is FanMode.MEDIUM_CONT
        mock_api.run_command.assert_awaited_once_with(ApiCommand.FAN_MODE_MEDIUM_CONT)

    @pytest.mark.asyncio
    async def test_fan_mode_without_continuous(self, unit, mock_api):
        """Test the plain variant is used when continuous fan is off."""
        await unit.refresh_status()

        assert await unit.set_fan_mode(FanMode.AUTO) is FanMode.AUTO
        mock_api.run_command.assert_awaited_once_with(ApiCommand.FAN_MODE_AUTO)

    @pytest.mark.asyncio
    async def test_continuous_fan_remaps_current_speed(self, unit, mock_api):
        """Test HIGH maps onto HIGH_CONT rather than AUTO_CONT."""
        await unit.refresh_status()

        result = await unit.set_continuous_fan_mode(True)

        assert result is True
        assert unit.fan_mode is FanMode.HIGH_CONT
        mock_api.run_command.assert_awaited_once_with(ApiCommand.FAN_MODE_HIGH_CONT)

    @pytest.mark.asyncio
    async def test_continuous_fan_off(self, unit, mock_api, full_status):
        """Test switching continuous fan off keeps the speed tier."""
        full_status["fan_mode"] = FanMode.LOW_CONT
        full_status["continuous_fan_mode"] = True
        await unit.refresh_status()

        assert await unit.set_continuous_fan_mode(False) is False
        mock_api.run_command.assert_awaited_once_with(ApiCommand.FAN_MODE_LOW)

    @pytest.mark.asyncio
    async def test_continuous_fan_unknown_tier(self, unit, mock_api):
        """Test no command is sent without a known fan speed, and state is refreshed."""
        mock_api.get_status.return_value = {"api_error": True, "zone_current_status": []}

        result = await unit.set_continuous_fan_mode(True)

        assert result is False
        mock_api.run_command.assert_not_awaited()
        mock_api.get_status.assert_awaited_once()


class TestGetters:
    """Test synchronous getters."""

    @pytest.mark.asyncio
    async def test_getters_do_not_call_api(self, unit, mock_api):
        """Test getters read the cache only."""
        await unit.refresh_status()
        mock_api.get_status = AsyncMock()

        assert unit.cloud_connected is True
        assert unit.fan_running is True
        assert unit.master_current_temp == 25.0
        assert unit.compressor_chasing_temp == 23.0

        mock_api.get_status.assert_not_awaited()


class TestConcurrency:
    """Test commands overlapping a refresh."""

    @pytest.mark.asyncio
    async def test_command_completing_after_refresh_wins(self, unit, mock_api):
        """Test a refresh can run while a command is in flight, and the later write wins."""
        release = asyncio.Event()

        async def slow_command(command, *args):
            await release.wait()
            return CommandResult.SUCCESS

        mock_api.run_command.side_effect = slow_command
        command = asyncio.create_task(unit.set_heat_setpoint(22.5))
        await asyncio.sleep(0)

        await unit.refresh_status()
        assert unit.master_heating_set_temp == 21.0

        release.set()
        assert await command == 22.5
        assert unit.master_heating_set_temp == 22.5

    @pytest.mark.asyncio
    async def test_refresh_completing_after_command_wins(self, unit, mock_api, full_status):
        """Test a command can complete while a refresh is in flight, and the later write wins."""
        release = asyncio.Event()

        async def slow_status():
            await release.wait()
            return full_status

        mock_api.get_status.side_effect = slow_status
        refresh = asyncio.create_task(unit.refresh_status())
        await asyncio.sleep(0)

        assert await unit.set_heat_setpoint(22.5) == 22.5

        release.set()
        await refresh
        assert unit.master_heating_set_temp == 21.0
