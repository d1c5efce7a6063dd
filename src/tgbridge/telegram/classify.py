"""Decode raw Telegram updates into typed inbound messages.

The working payload of an update is the first present of `message`,
`edited_message` and `callback_query`. Its shape is decoded in a fixed
priority order, first match wins:

1. `text` -> `TextUpdate`
2. `data` -> `CallbackQueryUpdate`
3. `new_chat_member` -> `MemberJoinedUpdate`
4. `left_chat_member` -> `MemberLeftUpdate`
5. `new_chat_title` -> `TopicChangedUpdate`
6. anything else -> `UnclassifiedUpdate`

Text and callback data are rewritten by `clean_message_text()` so private-chat
messages always start with an explicit `@<bot_name>` mention, which is what
the host's mention-based command routing keys on.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any, Final

from .api import TelegramBotApi, TelegramBotApiError
from .errors import UnsupportedUpdateError
from .identity import IdentityResolver
from .models import (
    CallbackQueryUpdate,
    Chat,
    InboundUpdate,
    MemberJoinedUpdate,
    MemberLeftUpdate,
    TopicChangedUpdate,
    TextUpdate,
    UnclassifiedUpdate,
    UpdateKind,
)
from .roster import GroupRoster

_PAYLOAD_KEYS: Final[tuple[str, ...]] = ("message", "edited_message", "callback_query")
_DECODE_ORDER: Final[tuple[tuple[str, UpdateKind], ...]] = (
    ("text", "text"),
    ("data", "callback_query"),
    ("new_chat_member", "member_joined"),
    ("left_chat_member", "member_left"),
    ("new_chat_title", "topic_changed"),
)

Spawn = Callable[..., None]


def extract_payload(update: dict[str, Any]) -> dict[str, Any] | None:
    """Return the working payload of a raw update (or `None`)."""

    for key in _PAYLOAD_KEYS:
        payload = update.get(key)
        if isinstance(payload, dict):
            return payload
    return None


def payload_message_id(payload: dict[str, Any]) -> int | str | None:
    """Return the dedup key of a working payload.

    Messages are keyed by `message_id`. Callback queries carry no message id
    of their own, so they are keyed by their query id (`callback<id>`) to
    keep repeated button presses on one message distinct.
    """

    message_id = payload.get("message_id")
    if isinstance(message_id, int):
        return message_id
    query_id = payload.get("id")
    if query_id is not None and "data" in payload:
        return f"callback{query_id}"
    return None


def decode_kind(payload: dict[str, Any]) -> UpdateKind:
    """Return the update variant a working payload decodes to."""

    for field, kind in _DECODE_ORDER:
        if payload.get(field):
            return kind
    return "unclassified"


def clean_message_text(text: str, chat_id: int, bot_name: str) -> str:
    """Prefix private-chat text (and text mentioning the bot) with `@<bot_name>`.

    - `chat_id > 0` (private chat) or text containing `@<bot_name>`: the first
      `@<bot_name>` is removed, leading repeats of the bot name (any casing,
      with or without `@`) are dropped, and the result is
      `@<bot_name> <rest>`, or the bare `@<bot_name>` (no trailing space) when
      nothing remains.
    - Otherwise the text is returned unchanged.
    """

    mention = f"@{bot_name}"
    if chat_id <= 0 and mention not in text:
        return text

    rest = text.replace(mention, "", 1).strip()
    leading = re.compile(rf"^(?:@?{re.escape(bot_name)}(?=\s|$)\s*)+", re.IGNORECASE)
    rest = leading.sub("", rest)
    return f"{mention} {rest}" if rest else mention


def _chat_of(payload: dict[str, Any], kind: UpdateKind) -> dict[str, Any]:
    if kind == "callback_query":
        message = payload.get("message")
        chat = message.get("chat") if isinstance(message, dict) else None
    else:
        chat = payload.get("chat")
    if not isinstance(chat, dict) or not isinstance(chat.get("id"), int):
        raise UnsupportedUpdateError(f"{kind} update has no chat id")
    return chat


class UpdateClassifier:
    """Turn raw updates into `InboundUpdate` variants with resolved users.

    `spawn` starts fire-and-forget work (callback acknowledgments and roster
    saves); pass a
    task group's `start_soon`.
    """

    def __init__(
        self,
        *,
        api: TelegramBotApi,
        resolver: IdentityResolver,
        roster: GroupRoster,
        bot_name: str,
        logger: logging.Logger,
        spawn: Spawn,
    ) -> None:
        self.api = api
        self.resolver = resolver
        self.roster = roster
        self.bot_name = bot_name
        self.logger = logger
        self.spawn = spawn

    def classify(self, update: dict[str, Any]) -> InboundUpdate:
        """Decode `update` into its typed variant.

        Raises:
            UnsupportedUpdateError: If the update has no working payload, or
                the payload lacks the chat or acting user.
            IdentityStoreError: If the acting user cannot be resolved.
        """

        payload = extract_payload(update)
        if payload is None:
            raise UnsupportedUpdateError(
                "update has none of: " + ", ".join(_PAYLOAD_KEYS)
            )

        kind = decode_kind(payload)
        chat = _chat_of(payload, kind)
        self._note_group(chat)
        chat_model = Chat.model_validate(chat)
        message_id = payload.get("message_id")

        if kind == "text":
            text = clean_message_text(payload["text"], chat["id"], self.bot_name)
            user = self._resolve(payload.get("from"), chat)
            self.logger.debug(
                "Received message: %s said '%s'", getattr(user, "username", None), text
            )
            return TextUpdate(
                message_id=message_id, chat=chat_model, user=user, text=text
            )

        if kind == "callback_query":
            text = clean_message_text(str(payload["data"]), chat["id"], self.bot_name)
            user = self._resolve(payload.get("from"), chat)
            self.logger.debug(
                "Received callback query: %s said '%s'",
                getattr(user, "username", None),
                text,
            )
            query_id = str(payload.get("id"))
            self.spawn(self._answer_callback_query, query_id)
            return CallbackQueryUpdate(
                message_id=payload["message"].get("message_id"),
                chat=chat_model,
                user=user,
                text=text,
                query_id=query_id,
            )

        if kind == "member_joined":
            user = self._resolve(payload.get("new_chat_member"), chat)
            self.logger.info("User %s joined chat %s", user.id, chat["id"])
            return MemberJoinedUpdate(message_id=message_id, chat=chat_model, user=user)

        if kind == "member_left":
            user = self._resolve(payload.get("left_chat_member"), chat)
            self.logger.info("User %s left chat %s", user.id, chat["id"])
            return MemberLeftUpdate(message_id=message_id, chat=chat_model, user=user)

        if kind == "topic_changed":
            user = self._resolve(payload.get("from"), chat)
            title = str(payload["new_chat_title"])
            self.logger.info(
                "User %s changed chat %s title: %s", user.id, chat["id"], title
            )
            return TopicChangedUpdate(
                message_id=message_id, chat=chat_model, user=user, title=title
            )

        user = self._resolve(payload.get("from"), chat)
        return UnclassifiedUpdate(
            message_id=message_id, chat=chat_model, user=user, payload=payload
        )

    def _resolve(self, remote: Any, chat: dict[str, Any]):
        if not isinstance(remote, dict):
            raise UnsupportedUpdateError(f"chat {chat['id']} update has no user")
        return self.resolver.resolve(remote, chat)

    def _note_group(self, chat: dict[str, Any]) -> None:
        if chat.get("type") != "group":
            return
        if self.roster.note(chat["id"], name=str(chat.get("title") or "")):
            self.spawn(self._save_roster, chat["id"])

    async def _save_roster(self, chat_id: int) -> None:
        try:
            await self.roster.save()
        except OSError as e:
            self.logger.warning(
                "Group roster update failed for chat %s: %s: %s",
                chat_id,
                type(e).__name__,
                e,
            )

    async def _answer_callback_query(self, query_id: str) -> None:
        try:
            await self.api.answer_callback_query(callback_query_id=query_id)
        except TelegramBotApiError as e:
            self.logger.error("answerCallbackQuery failed for %s: %s", query_id, e)
