"""Outbound delivery: markdown detection, chunking and sequential sends.

Telegram rejects messages longer than 4096 characters, so outbound text is
cut into fixed-width chunks. Chunks ignore line and word boundaries; a chunk
may end mid-word. Chunks of one delivery are sent strictly one after another,
each `sendMessage` finishing (ok or failed) before the next starts.
"""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Callable, Mapping
from typing import Any, Final

from .api import TelegramBotApi, TelegramBotApiError
from .errors import InvalidPayloadError
from .models import OutboundEnvelope

MAX_MESSAGE_LENGTH: Final[int] = 4096
MARKDOWN_PARSE_MODE: Final[str] = "Markdown"
_MARKDOWN_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"\*.+\*"),
    re.compile(r"_.+_"),
    re.compile(r"`.+`"),
    re.compile(r"\[.+\]\(.+\)"),
)

ChunkCallback = Callable[[TelegramBotApiError | None, dict[str, Any] | None], Any]


def split_into_chunks(text: str, size: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split `text` into consecutive slices of at most `size` characters.

    Raises:
        InvalidPayloadError: If `text` is empty.
    """

    if size <= 0:
        raise ValueError(f"size must be > 0; got {size}")
    if not text:
        raise InvalidPayloadError("Refusing to send an empty message text")
    return [text[i : i + size] for i in range(0, len(text), size)]


def text_looks_like_markdown(text: str) -> bool:
    return any(p.search(text) for p in _MARKDOWN_PATTERNS)


def apply_extra_options(
    payload: dict[str, Any], extra: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Set `parse_mode` for markdown-looking text, then merge `extra`.

    `extra` keys always win, including over the `parse_mode` set here.
    `payload` is updated in place and returned.
    """

    if text_looks_like_markdown(str(payload.get("text") or "")):
        payload["parse_mode"] = MARKDOWN_PARSE_MODE

    if extra is not None:
        for key, value in extra.items():
            payload[key] = value

    return payload


class OutboundChunker:
    """Deliver outbound envelopes through `sendMessage`."""

    def __init__(self, api: TelegramBotApi, logger: logging.Logger) -> None:
        self.api = api
        self.logger = logger

    async def api_send(self, payload: dict[str, Any], callback: ChunkCallback) -> None:
        """Send `payload`, one `sendMessage` per chunk of its text.

        `callback(error, result)` is called once per chunk with that chunk's
        outcome. API failures are reported through the callback only; they do
        not stop later chunks.

        Raises:
            InvalidPayloadError: If the payload text is empty (nothing is sent).
        """

        chunks = split_into_chunks(str(payload.get("text") or ""))
        self.logger.debug("Message length: %s", len(payload["text"]))
        self.logger.debug("Message parts: %s", len(chunks))

        for chunk in chunks:
            params = dict(payload)
            params["text"] = chunk
            error: TelegramBotApiError | None = None
            result: dict[str, Any] | None = None
            try:
                result = await self.api.send_message(**params)
            except TelegramBotApiError as e:
                error = e
            outcome = callback(error, result)
            if inspect.isawaitable(outcome):
                await outcome

    async def send(self, envelope: OutboundEnvelope, *strings: str) -> None:
        """Send `strings` (joined by newlines) to `envelope.room`."""

        payload = apply_extra_options(
            {"chat_id": envelope.room, "text": "\n".join(strings)},
            envelope.telegram,
        )

        def on_chunk(error: TelegramBotApiError | None, _result: Any) -> None:
            if error is not None:
                self.logger.error(
                    "Sending message to room %s failed: %s", envelope.room, error
                )
            else:
                self.logger.info("Sending message to room: %s", envelope.room)

        await self.api_send(payload, on_chunk)

    async def reply(self, envelope: OutboundEnvelope, *strings: str) -> None:
        """Like `send()`, but as a reply to `envelope.message_id`."""

        payload = apply_extra_options(
            {
                "chat_id": envelope.room,
                "text": "\n".join(strings),
                "reply_to_message_id": envelope.message_id,
            },
            envelope.telegram,
        )

        def on_chunk(error: TelegramBotApiError | None, _result: Any) -> None:
            if error is not None:
                self.logger.error(
                    "Reply to room/message %s/%s failed: %s",
                    envelope.room,
                    envelope.message_id,
                    error,
                )
            else:
                self.logger.info(
                    "Reply message to room/message: %s/%s",
                    envelope.room,
                    envelope.message_id,
                )

        await self.api_send(payload, on_chunk)

    async def deliver(self, envelope: OutboundEnvelope, *strings: str) -> None:
        """Route to `reply()` or `send()` according to `envelope.reply`."""

        if envelope.reply:
            await self.reply(envelope, *strings)
        else:
            await self.send(envelope, *strings)
