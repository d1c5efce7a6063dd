"""Polling loop for the Telegram adapter.

State machine:

    IDLE --(interval elapsed)--> FETCHING --(batch handled)--> IDLE
    any --(stop())--> STOPPED

Each cycle calls `getUpdates(offset=cursor + 1, limit=10)`. A non-empty batch
first advances the cursor to the last update's `update_id`, then every update
is handed to the update handler in the order received, each awaited before the
next. Fetch errors are logged and the loop keeps its fixed cadence (no
backoff). Only one cycle is ever in flight.

The cursor lives in memory only; a restart begins at the platform's next
unconfirmed update.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Final

import anyio

from .api import TelegramBotApi, TelegramBotApiError

DEFAULT_BATCH_LIMIT: Final[int] = 10

UpdateHandler = Callable[[dict[str, Any]], Awaitable[None]]


class PollState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    STOPPED = "stopped"


def extract_update_id(update: dict[str, Any]) -> int | None:
    """Extract `update_id` from a Telegram update dict (or return `None`)."""

    update_id = update.get("update_id")
    if isinstance(update_id, int):
        return update_id
    return None


class PollingLoop:
    """Self-rescheduling `getUpdates` cycle."""

    def __init__(
        self,
        *,
        api: TelegramBotApi,
        on_update: UpdateHandler,
        logger: logging.Logger,
        interval_ms: int = 500,
        limit: int = DEFAULT_BATCH_LIMIT,
        timeout_seconds: int = 0,
        cursor: int = 0,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be > 0; got {interval_ms}")
        self.api = api
        self.on_update = on_update
        self.logger = logger
        self.interval_ms = interval_ms
        self.limit = limit
        self.timeout_seconds = timeout_seconds
        self.cursor = cursor
        self.state = PollState.IDLE

    @property
    def next_offset(self) -> int:
        return self.cursor + 1

    async def poll_once(self) -> int:
        """Run one fetch cycle; return the number of updates handled.

        Raises:
            RuntimeError: If a cycle is already in flight or the loop stopped.
        """

        if self.state is PollState.FETCHING:
            raise RuntimeError("A poll cycle is already in flight")
        if self.state is PollState.STOPPED:
            raise RuntimeError("Polling loop is stopped")

        self.state = PollState.FETCHING
        try:
            try:
                updates = await self.api.get_updates(
                    offset=self.next_offset,
                    limit=self.limit,
                    timeout_seconds=self.timeout_seconds,
                )
            except TelegramBotApiError as e:
                self.logger.error("Telegram poll error: %s", e)
                return 0

            if not updates:
                return 0

            last_update_id = extract_update_id(updates[-1])
            if last_update_id is not None and last_update_id > self.cursor:
                self.cursor = last_update_id

            for update in updates:
                await self.on_update(update)
            return len(updates)
        finally:
            if self.state is PollState.FETCHING:
                self.state = PollState.IDLE

    async def run_forever(self) -> None:
        """Poll every `interval_ms` until `stop()` is called.

        A stopped loop cannot be restarted.
        """

        if self.state is PollState.STOPPED:
            raise RuntimeError("Polling loop is stopped")

        while self.state is not PollState.STOPPED:
            await anyio.sleep(self.interval_ms / 1000)
            if self.state is PollState.STOPPED:
                break
            await self.poll_once()

    def stop(self) -> None:
        self.state = PollState.STOPPED
