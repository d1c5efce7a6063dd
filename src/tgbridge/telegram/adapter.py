"""Telegram adapter: wires the Bot API to a robot host.

Inbound: poll loop (or webhook) -> `handle_update()` -> dedupe ->
classify (resolving the acting user) -> `robot.receive()`.

Outbound: `send()` / `reply()` / `push()` -> chunked `sendMessage` calls.

Exactly one ingestion path runs: webhook mode when `Config.webhook` is set,
polling otherwise. Running both against one bot is a configuration error and
is not guarded against.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

import anyio
from anyio.abc import TaskGroup

from tgbridge.config import Config
from tgbridge.robot import Robot

from .api import TelegramBotApi, TelegramBotApiError
from .broadcast import BroadcastFilter, NameRule
from .classify import UpdateClassifier, extract_payload, payload_message_id
from .dedupe import UpdateDeduplicator
from .errors import IdentityStoreError, MissingTokenError, UnsupportedUpdateError
from .identity import IdentityResolver
from .models import Destination, OutboundEnvelope
from .outbound import OutboundChunker
from .roster import GroupRoster
from .runner import PollingLoop

INVOKE_EVENT = "telegram:invoke"


class TelegramAdapter:
    """Bridge between a `Robot` and one Telegram bot."""

    def __init__(
        self,
        robot: Robot,
        config: Config,
        *,
        api: TelegramBotApi | None = None,
        roster: GroupRoster | None = None,
    ) -> None:
        self.robot = robot
        self.config = config
        self.logger = robot.logger
        self.api = api if api is not None else TelegramBotApi(token=config.token)
        self.roster = roster if roster is not None else GroupRoster(config.roster_path)

        self.resolver = IdentityResolver(robot.brain, self.logger)
        self.deduplicator = UpdateDeduplicator(
            robot.brain, self.logger, seen_limit=config.seen_limit
        )
        self.chunker = OutboundChunker(self.api, self.logger)
        self.classifier = UpdateClassifier(
            api=self.api,
            resolver=self.resolver,
            roster=self.roster,
            bot_name=robot.name,
            logger=self.logger,
            spawn=self.spawn,
        )
        self.broadcaster = BroadcastFilter(
            roster=self.roster,
            chunker=self.chunker,
            logger=self.logger,
            spawn=self.spawn,
        )
        self.poller = PollingLoop(
            api=self.api,
            on_update=self.handle_update,
            logger=self.logger,
            interval_ms=config.interval,
            timeout_seconds=config.poll_timeout_seconds,
        )

        self.bot_id: int | None = None
        self.bot_username: str | None = None
        self.bot_first_name: str | None = None
        self._task_group: TaskGroup | None = None

    def spawn(self, func: Callable[..., Any], *args: Any) -> None:
        """Start `func(*args)` in the adapter's task group (fire-and-forget)."""

        if self._task_group is None:
            raise RuntimeError("Telegram adapter is not running")
        self._task_group.start_soon(func, *args)

    async def identify(self) -> None:
        """Record the bot's own identity via `getMe`."""

        try:
            me = await self.api.get_me()
        except TelegramBotApiError as e:
            self.logger.error("Telegram getMe failed: %s", e)
            return

        self.bot_id = me.get("id") if isinstance(me.get("id"), int) else None
        self.bot_username = (
            me.get("username") if isinstance(me.get("username"), str) else None
        )
        self.bot_first_name = (
            me.get("first_name") if isinstance(me.get("first_name"), str) else None
        )
        self.logger.info("Telegram Bot Identified: %s", self.bot_first_name)

        if self.bot_username != self.robot.name:
            self.logger.warning(
                "It is advised to use the same bot name as your Telegram Bot: %s",
                self.bot_username,
            )
            self.logger.warning(
                "Having a different bot name can result in an inconsistent "
                "experience when using @mentions"
            )

    async def run(self) -> None:
        """Start ingesting updates; runs until cancelled.

        Raises:
            MissingTokenError: If no bot token is configured.
        """

        if not self.config.token:
            raise MissingTokenError(
                'The environment variable "TELEGRAM_TOKEN" is required.'
            )

        await self.identify()
        self.robot.on(INVOKE_EVENT, self._on_invoke)

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            try:
                if self.config.webhook_mode:
                    await self._start_webhook()
                    await self.robot.emit("connected")
                    self.logger.info("Telegram Adapter Started...")
                    await anyio.sleep_forever()
                else:
                    await self._set_webhook("")
                    await self.robot.emit("connected")
                    self.logger.info("Telegram Adapter Started...")
                    await self.poller.run_forever()
            finally:
                self._task_group = None

    async def _start_webhook(self) -> None:
        endpoint = f"{self.config.webhook}/{self.config.token}"
        # The endpoint embeds the token; only log the base URL.
        self.logger.debug("Listening on %s/<token>", self.config.webhook)
        await self._set_webhook(endpoint)
        self.robot.router.post(f"/{self.config.token}", self.handle_webhook)

    async def _set_webhook(self, url: str) -> None:
        try:
            await self.api.set_webhook(url=url)
        except TelegramBotApiError as e:
            self.logger.error("Telegram setWebHook failed: %s", e)

    async def handle_webhook(self, body: Any) -> str:
        """Webhook route handler; always answers `"OK"`."""

        if isinstance(body, dict) and body.get("message"):
            await self.handle_update(body)
        return "OK"

    async def handle_update(self, update: dict[str, Any]) -> None:
        """Dedupe, classify and hand one raw update to the robot."""

        self.logger.debug("%s", update)

        payload = extract_payload(update)
        if payload is None:
            self.logger.debug(
                "Ignoring update %s without message payload", update.get("update_id")
            )
            return

        message_id = payload_message_id(payload)
        if message_id is None:
            self.logger.warning(
                "Ignoring update %s without message id", update.get("update_id")
            )
            return

        self.logger.info("Receiving message_id: %s", message_id)
        if not self.deduplicator.should_process(message_id):
            return

        try:
            message = self.classifier.classify(update)
        except UnsupportedUpdateError as e:
            self.logger.warning("Dropping message %s: %s", message_id, e)
            return
        except IdentityStoreError as e:
            self.logger.error("Dropping message %s: %s", message_id, e)
            return

        await self.robot.receive(message)

    async def _on_invoke(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        callback: Callable[[TelegramBotApiError | None, Any], Any] | None = None,
    ) -> None:
        error: TelegramBotApiError | None = None
        result: Any = None
        try:
            result = await self.api.invoke(method, params or {})
        except TelegramBotApiError as e:
            error = e
            self.logger.error("Telegram %s failed: %s", method, e)
        if callback is not None:
            outcome = callback(error, result)
            if inspect.isawaitable(outcome):
                await outcome

    async def send(self, envelope: OutboundEnvelope, *strings: str) -> None:
        await self.chunker.send(envelope, *strings)

    async def reply(self, envelope: OutboundEnvelope, *strings: str) -> None:
        await self.chunker.reply(envelope, *strings)

    async def deliver(self, envelope: OutboundEnvelope, *strings: str) -> None:
        await self.chunker.deliver(envelope, *strings)

    async def push(
        self,
        text: str,
        *,
        rule: NameRule | None = None,
        type: str = "all",
        match_as_regex: bool = True,
    ) -> list[Destination]:
        """Broadcast `text` to roster destinations matching `rule`."""

        return await self.broadcaster.push(
            text, rule=rule, type=type, match_as_regex=match_as_regex
        )
