"""ActronAir Que cloud API client."""

import asyncio
import json
import logging
import os
import time
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, List, Optional

import aiofiles  # type: ignore
import aiofiles.os  # type: ignore
import aiohttp  # type: ignore

from .const import (
    API_TIMEOUT,
    API_URL,
    AUTH_REJECTED_STATUS_CODES,
    CLIENT_NAME,
    DEVICE_NAME,
    DEVICE_UNIQUE_ID,
    MAX_REQUESTS_PER_MINUTE,
    MAX_RETRIES,
    MAX_ZONES,
    RETRYABLE_STATUS_CODES,
    TOKEN_FILE_NAME,
    TOKEN_REFRESH_MARGIN,
    ApiCommand,
    CommandResult,
)
from .parser import parse_status
from .types import CommandData, DeviceInfo, HvacStatus, TokenData

_LOGGER = logging.getLogger(__name__)


class ActronQueError(Exception):
    """Base class for ActronAir Que errors."""


class AuthenticationError(ActronQueError):
    """Raised when authentication fails."""


class InitializationError(ActronQueError):
    """Raised when the unit cannot be set up, e.g. no serial number resolved."""


class ApiError(ActronQueError):
    """Raised when an API call fails."""
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ApiUnreachableError(ApiError):
    """Raised when the cloud cannot be contacted at all."""


class CommandRejectedError(ApiError):
    """Raised when the cloud answers a command with an error."""


class RateLimiter:
    """Sliding one-minute window over outgoing requests.

    Entering waits until the window has room. Nothing is held once the
    request starts, so a token refresh nested inside a request never blocks.
    """

    def __init__(self, calls_per_minute: int, window: float = 60.0) -> None:
        self.calls_per_minute = calls_per_minute
        self.window = window
        self.call_times: Deque[float] = deque()
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "RateLimiter":
        async with self._lock:
            now = time.monotonic()
            while self.call_times and now - self.call_times[0] >= self.window:
                self.call_times.popleft()
            if len(self.call_times) >= self.calls_per_minute:
                delay = self.window - (now - self.call_times[0])
                _LOGGER.debug("Request budget spent, waiting %.1f seconds", delay)
                await asyncio.sleep(delay)
                self.call_times.popleft()
            self.call_times.append(time.monotonic())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None


def _zone_index(zone: int) -> int:
    if not 0 <= zone < MAX_ZONES:
        raise ValueError(f"Zone index {zone} out of bounds")
    return zone


def _settings(**values: Any) -> CommandData:
    return {"command": {**values, "type": "set-settings"}}


# Payload builders keyed by command. The dual setpoint command takes (cool, heat),
# zone commands take the zone index first.
COMMAND_BUILDERS: Dict[ApiCommand, Callable[..., CommandData]] = {
    ApiCommand.ON: lambda: _settings(**{"UserAirconSettings.isOn": True}),
    ApiCommand.OFF: lambda: _settings(**{"UserAirconSettings.isOn": False}),
    ApiCommand.HEAT_SET_POINT: lambda heat: _settings(
        **{"UserAirconSettings.TemperatureSetpoint_Heat_oC": heat}
    ),
    ApiCommand.COOL_SET_POINT: lambda cool: _settings(
        **{"UserAirconSettings.TemperatureSetpoint_Cool_oC": cool}
    ),
    ApiCommand.HEAT_COOL_SET_POINT: lambda cool, heat: _settings(**{
        "UserAirconSettings.TemperatureSetpoint_Cool_oC": cool,
        "UserAirconSettings.TemperatureSetpoint_Heat_oC": heat,
    }),
    ApiCommand.CLIMATE_MODE_AUTO: lambda: _settings(**{"UserAirconSettings.Mode": "AUTO"}),
    ApiCommand.CLIMATE_MODE_COOL: lambda: _settings(**{"UserAirconSettings.Mode": "COOL"}),
    ApiCommand.CLIMATE_MODE_HEAT: lambda: _settings(**{"UserAirconSettings.Mode": "HEAT"}),
    ApiCommand.CLIMATE_MODE_FAN: lambda: _settings(**{"UserAirconSettings.Mode": "FAN"}),
    ApiCommand.FAN_MODE_AUTO: lambda: _settings(**{"UserAirconSettings.FanMode": "AUTO"}),
    ApiCommand.FAN_MODE_AUTO_CONT: lambda: _settings(**{"UserAirconSettings.FanMode": "AUTO+CONT"}),
    ApiCommand.FAN_MODE_LOW: lambda: _settings(**{"UserAirconSettings.FanMode": "LOW"}),
    ApiCommand.FAN_MODE_LOW_CONT: lambda: _settings(**{"UserAirconSettings.FanMode": "LOW+CONT"}),
    ApiCommand.FAN_MODE_MEDIUM: lambda: _settings(**{"UserAirconSettings.FanMode": "MED"}),
    ApiCommand.FAN_MODE_MEDIUM_CONT: lambda: _settings(**{"UserAirconSettings.FanMode": "MED+CONT"}),
    ApiCommand.FAN_MODE_HIGH: lambda: _settings(**{"UserAirconSettings.FanMode": "HIGH"}),
    ApiCommand.FAN_MODE_HIGH_CONT: lambda: _settings(**{"UserAirconSettings.FanMode": "HIGH+CONT"}),
    ApiCommand.AWAY_MODE_ON: lambda: _settings(**{"UserAirconSettings.AwayMode": True}),
    ApiCommand.AWAY_MODE_OFF: lambda: _settings(**{"UserAirconSettings.AwayMode": False}),
    ApiCommand.QUIET_MODE_ON: lambda: _settings(**{"UserAirconSettings.QuietMode": True}),
    ApiCommand.QUIET_MODE_OFF: lambda: _settings(**{"UserAirconSettings.QuietMode": False}),
    ApiCommand.ZONE_ENABLE: lambda zone: _settings(
        **{f"UserAirconSettings.EnabledZones[{_zone_index(zone)}]": True}
    ),
    ApiCommand.ZONE_DISABLE: lambda zone: _settings(
        **{f"UserAirconSettings.EnabledZones[{_zone_index(zone)}]": False}
    ),
    ApiCommand.ZONE_HEAT_SET_POINT: lambda zone, temp: _settings(
        **{f"RemoteZoneInfo[{_zone_index(zone)}].TemperatureSetpoint_Heat_oC": temp}
    ),
    ApiCommand.ZONE_COOL_SET_POINT: lambda zone, temp: _settings(
        **{f"RemoteZoneInfo[{_zone_index(zone)}].TemperatureSetpoint_Cool_oC": temp}
    ),
}


class QueApi:
    """ActronAir Que API class."""

    def __init__(
        self,
        username: str,
        password: str,
        session: aiohttp.ClientSession,
        storage_path: str = ".",
        serial_number: str = "",
    ) -> None:
        """Initialize the QueApi class.

        Args:
            username: ActronAir account username
            password: ActronAir account password
            session: aiohttp client session for API requests
            storage_path: Directory the token file is kept in
            serial_number: Serial of the target unit, discovered when empty
        """
        self.username = username
        self.password = password
        self.session = session

        # Token management
        self.token_file = os.path.join(storage_path, TOKEN_FILE_NAME)
        self.refresh_token_value: Optional[str] = None
        self.access_token: Optional[str] = None
        self.token_expires_at: Optional[datetime] = None

        # Device identification
        self.actron_serial: str = serial_number
        self.actron_system_id: str = ''

        self.rate_limiter = RateLimiter(MAX_REQUESTS_PER_MINUTE)
        self._refresh_lock = asyncio.Lock()

    async def load_tokens(self) -> bool:
        """Load persisted tokens.

        Returns:
            True when a pairing token is available, False when this client
            still has to pair with the account.
        """
        if not await aiofiles.os.path.exists(self.token_file):
            _LOGGER.debug("No token file at %s", self.token_file)
            return False
        try:
            async with aiofiles.open(self.token_file, mode='r') as token_file:
                data: TokenData = json.loads(await token_file.read())
            expires_at = data.get("expires_at")
            self.token_expires_at = datetime.fromisoformat(expires_at) if expires_at else None
        except (OSError, ValueError, AttributeError) as err:
            _LOGGER.warning("Ignoring unreadable token file %s: %s", self.token_file, err)
            return False
        self.refresh_token_value = data.get("refresh_token")
        self.access_token = data.get("access_token")
        return bool(self.refresh_token_value)

    async def save_tokens(self) -> None:
        """Persist the current tokens so a restart can skip pairing."""
        token_data: TokenData = {
            "refresh_token": self.refresh_token_value,
            "access_token": self.access_token,
            "expires_at": self.token_expires_at.isoformat() if self.token_expires_at else None,
        }
        try:
            async with aiofiles.open(self.token_file, mode='w') as token_file:
                await token_file.write(json.dumps(token_data))
        except OSError as err:
            _LOGGER.error("Could not write token file %s: %s", self.token_file, err)

    async def clear_tokens(self) -> None:
        """Forget tokens the cloud has rejected."""
        self.refresh_token_value = None
        self.access_token = None
        self.token_expires_at = None
        if await aiofiles.os.path.exists(self.token_file):
            await aiofiles.os.remove(self.token_file)
        _LOGGER.info("Discarded rejected tokens for %s", self.username)

    async def authenticate(self):
        """Obtain an access token, pairing this client first when needed.

        Raises:
            ApiUnreachableError: If the cloud cannot be contacted
            AuthenticationError: If the account credentials are rejected
        """
        if self.refresh_token_value:
            try:
                await self._get_access_token()
                return
            except AuthenticationError as err:
                _LOGGER.warning("Stored pairing token rejected, pairing again: %s", err)
        await self._get_refresh_token()
        await self._get_access_token()

    async def _auth_request(self, url: str, data: Dict[str, Any]) -> Any:
        """POST to an auth endpoint.

        Only an explicit rejection becomes AuthenticationError. Transport
        failures and server errors propagate unchanged so stored tokens
        survive an outage.
        """
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        try:
            return await self._make_request(
                "POST", url, headers=headers, data=data, auth_required=False
            )
        except ApiError as err:
            if err.status_code not in AUTH_REJECTED_STATUS_CODES:
                raise
            raise AuthenticationError(f"Request to {url} rejected: {err}") from err

    async def _get_refresh_token(self):
        """Pair this client with the account and keep the pairing token."""
        response = await self._auth_request(f"{API_URL}/api/v0/client/user-devices", {
            "username": self.username,
            "password": self.password,
            "client": CLIENT_NAME,
            "deviceName": DEVICE_NAME,
            "deviceUniqueIdentifier": DEVICE_UNIQUE_ID,
        })
        self.refresh_token_value = response.get("pairingToken") if isinstance(response, dict) else None
        if not self.refresh_token_value:
            raise AuthenticationError("No pairing token received in response")
        await self.save_tokens()
        _LOGGER.info("New pairing token obtained and saved")

    async def _get_access_token(self):
        """Exchange the pairing token for an access token."""
        response = await self._auth_request(f"{API_URL}/api/v0/oauth/token", {
            "grant_type": "refresh_token",
            "refresh_token": self.refresh_token_value,
            "client_id": "app",
        })
        if not isinstance(response, dict) or not response.get("access_token"):
            raise AuthenticationError("No access token received in response")
        self.access_token = response["access_token"]
        expires_in = response.get("expires_in", 3600)
        self.token_expires_at = datetime.now() + timedelta(
            seconds=expires_in - TOKEN_REFRESH_MARGIN
        )
        await self.save_tokens()
        _LOGGER.info("New access token obtained and valid until: %s", self.token_expires_at)

    async def refresh_access_token(self):
        """Get a fresh access token, pairing again if the pairing token was rejected.

        Raises:
            ApiUnreachableError: If the cloud cannot be contacted; stored tokens are kept
            AuthenticationError: If pairing again fails
        """
        try:
            await self._get_access_token()
        except AuthenticationError as err:
            _LOGGER.warning("Pairing token rejected, pairing again: %s", err)
            await self.clear_tokens()
            await self._get_refresh_token()
            await self._get_access_token()

    def _token_expired(self) -> bool:
        return (
            not self.access_token
            or self.token_expires_at is None
            or datetime.now() >= self.token_expires_at
        )

    async def _make_request(
        self, method: str, url: str, auth_required: bool = True, **kwargs
    ) -> Any:
        """Make an API request with rate limiting and error handling.

        Raises:
            ApiUnreachableError: If the cloud could not be contacted after all retries
            ApiError: If the cloud answered with an error status
        """
        async with self.rate_limiter:
            for attempt in range(MAX_RETRIES):
                headers = dict(kwargs.pop('headers', None) or {})
                if auth_required:
                    async with self._refresh_lock:
                        if self._token_expired():
                            await self.refresh_access_token()
                    headers['Authorization'] = f'Bearer {self.access_token}'
                kwargs['headers'] = headers

                _LOGGER.debug("Making %s request to: %s", method, url)
                try:
                    async with self.session.request(
                        method, url, timeout=aiohttp.ClientTimeout(total=API_TIMEOUT), **kwargs
                    ) as response:
                        response_text = await response.text()
                        status = response.status
                except (aiohttp.ClientError, asyncio.TimeoutError) as err:
                    _LOGGER.error("Request error on attempt %s: %s", attempt + 1, err)
                    if attempt == MAX_RETRIES - 1:
                        raise ApiUnreachableError(
                            f"Request failed after {MAX_RETRIES} attempts: {err}"
                        ) from err
                    await asyncio.sleep(5 * (2 ** attempt))
                    continue

                _LOGGER.debug("Response status: %s", status)
                if status == 200:
                    try:
                        return json.loads(response_text)
                    except json.JSONDecodeError:
                        _LOGGER.debug("Non-JSON response body:\n%s", response_text)
                        return response_text
                if status == 401 and auth_required:
                    _LOGGER.warning("Token expired, refreshing...")
                    self.access_token = None
                    continue

                _LOGGER.error("API request failed: %s, %s", status, response_text)
                raise ApiError(
                    f"API request failed: {status}, {response_text}",
                    status_code=status
                )

        raise ApiError(f"Failed to make request after {MAX_RETRIES} attempts")

    async def get_devices(self) -> List[DeviceInfo]:
        """Fetch the list of AC systems linked to the account."""
        url = f"{API_URL}/api/v0/client/ac-systems?includeNeo=true"
        response = await self._make_request("GET", url)
        devices: List[DeviceInfo] = []
        embedded = response.get('_embedded', {}) if isinstance(response, dict) else {}
        for system in embedded.get('ac-system', []):
            devices.append({
                'serial': system.get('serial', ''),
                'name': system.get('description', 'Unknown Device'),
                'type': system.get('type', 'Unknown'),
                'id': system.get('id', ''),
            })
        _LOGGER.debug("Found devices: %s", devices)
        return devices

    async def get_ac_systems(self):
        """Resolve the serial number and system ID of the target unit."""
        devices = await self.get_devices()
        if self.actron_serial:
            match = next((d for d in devices if d['serial'] == self.actron_serial), None)
            if match is None:
                _LOGGER.error(
                    "Configured serial %s not found in account systems %s",
                    self.actron_serial,
                    [d['serial'] for d in devices],
                )
                self.actron_serial = ''
                return
            self.actron_system_id = match['id']
        elif devices:
            self.actron_serial = devices[0]['serial']
            self.actron_system_id = devices[0]['id']
        else:
            _LOGGER.error("Could not identify target device from list of returned systems")
            return
        _LOGGER.info(
            "Located serial number %s with ID of %s",
            self.actron_serial,
            self.actron_system_id
        )

    async def initializer(self):
        """Initialize the QueApi by loading tokens, authenticating and finding the unit."""
        _LOGGER.debug("Initializing QueApi")
        if not await self.load_tokens():
            _LOGGER.debug("No pairing token stored, authenticating from scratch")
            await self.authenticate()
        await self.get_ac_systems()
        _LOGGER.debug("QueApi initialization completed")

    async def get_status(self) -> HvacStatus:
        """Get the current status of the unit.

        Never raises; any failure is reported as a status with api_error set.
        """
        url = f"{API_URL}/api/v0/client/ac-systems/status/latest?serial={self.actron_serial}"
        try:
            response = await self._make_request("GET", url)
            return parse_status(response)
        except (ApiError, AuthenticationError) as err:
            _LOGGER.warning("Failed to retrieve status for %s: %s", self.actron_serial, err)
        except (ValueError, TypeError, KeyError) as err:
            _LOGGER.error("Invalid status payload for %s: %s", self.actron_serial, err)
        return {"api_error": True, "zone_current_status": []}

    def create_command(self, command: ApiCommand, *args: Any) -> CommandData:
        """Create the request payload for a command.

        Raises:
            ValueError: If the command is unknown or its arguments are invalid
        """
        try:
            builder = COMMAND_BUILDERS[ApiCommand(command)]
            return builder(*args)
        except (KeyError, TypeError) as err:
            raise ValueError(f"Cannot build command {command} with {args}: {err}") from err

    async def send_command(self, command: CommandData) -> Any:
        """Send a command payload, retrying transient server errors.

        Raises:
            ApiUnreachableError: If the cloud could not be contacted
            CommandRejectedError: If the cloud rejected the command
        """
        url = f"{API_URL}/api/v0/client/ac-systems/cmds/send?serial={self.actron_serial}"
        _LOGGER.debug("Command payload:\n%s", json.dumps(command, indent=2))

        for attempt in range(MAX_RETRIES):
            try:
                return await self._make_request("POST", url, json=command)
            except ApiUnreachableError:
                raise
            except ApiError as e:
                if attempt < MAX_RETRIES - 1 and e.status_code in RETRYABLE_STATUS_CODES:
                    wait_time = 2 ** attempt
                    _LOGGER.warning(
                        "Received %s error, retrying in %s seconds (attempt %s/%s)",
                        e.status_code, wait_time, attempt + 1, MAX_RETRIES
                    )
                    await asyncio.sleep(wait_time)
                    continue
                raise CommandRejectedError(str(e), status_code=e.status_code) from e

        raise CommandRejectedError(f"Failed to send command after {MAX_RETRIES} attempts")

    async def run_command(self, command: ApiCommand, *args: Any) -> CommandResult:
        """Run a command and classify the outcome.

        Returns:
            SUCCESS when the cloud acknowledged the command, FAILURE when it
            was rejected or could not be built, UNREACHABLE when the cloud
            could not be contacted.
        """
        try:
            payload = self.create_command(command, *args)
            await self.send_command(payload)
        except ApiUnreachableError as err:
            _LOGGER.warning("Cloud unreachable while sending %s: %s", command, err)
            return CommandResult.UNREACHABLE
        except (ApiError, AuthenticationError, ValueError) as err:
            _LOGGER.error("Command %s failed: %s", command, err)
            return CommandResult.FAILURE
        _LOGGER.debug("Command %s acknowledged", command)
        return CommandResult.SUCCESS
