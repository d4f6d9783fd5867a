"""Shared command execution for unit and zone mutations."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from .const import ApiCommand, CommandResult

_LOGGER = logging.getLogger(__name__)


class CommandClient(Protocol):
    """What the core needs from the cloud client."""

    async def get_status(self) -> Any:
        ...

    async def run_command(self, command: ApiCommand, *args: Any) -> CommandResult:
        ...


async def execute_command(
    api: CommandClient,
    command: Optional[ApiCommand],
    *,
    args: Sequence[Any] = (),
    apply: Callable[[], None],
    refresh: Callable[[], Awaitable[Any]],
    lock: asyncio.Lock,
    description: str,
) -> CommandResult:
    """Send one command and reconcile the cache with the outcome.

    On SUCCESS the optimistic update is applied under the cache lock. On
    FAILURE, or any unexpected exception, nothing is applied and a single
    refresh resynchronises the cache. On UNREACHABLE nothing is applied and
    no refresh is attempted. A command of None means no valid command could
    be chosen and is handled as a FAILURE without contacting the cloud.
    """
    if command is None:
        _LOGGER.error("No valid command for %s, refreshing state from API", description)
        await refresh()
        return CommandResult.FAILURE

    try:
        result = await api.run_command(command, *args)
    except Exception as err:  # pylint: disable=broad-except
        _LOGGER.error(
            "Error executing command %s for %s: %s", command.value, description, err,
            exc_info=True,
        )
        await refresh()
        return CommandResult.FAILURE

    if result is CommandResult.SUCCESS:
        async with lock:
            apply()
        return result

    if result is CommandResult.UNREACHABLE:
        _LOGGER.warning(
            "Failed to send %s command, Actron Que cloud unreachable", description
        )
        return result

    await refresh()
    _LOGGER.error("Failed to set %s, refreshing state from API", description)
    return CommandResult.FAILURE
