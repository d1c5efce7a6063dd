"""Pydantic entities for Telegram updates, users and outbound envelopes.

Inbound updates are decoded into an explicit tagged union (`InboundUpdate`,
discriminated by `kind`). The decode order is fixed; see
`tgbridge.telegram.classify.decode_kind`.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from tgbridge.robot import User


class Chat(BaseModel):
    """Telegram chat reference (`message.chat`)."""

    model_config = ConfigDict(extra="allow")

    id: int
    type: str | None = None
    title: str | None = None


class RemoteUser(User):
    """Telegram user as delivered by the platform.

    `room` and `telegram_chat` are attached by the adapter when the user is
    resolved against a chat.
    """

    id: int
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    telegram_chat: dict[str, Any] | None = None


class _UpdateBase(BaseModel):
    message_id: int | None
    chat: Chat
    # The resolved user may be the cached host record rather than the incoming
    # Telegram profile.
    user: User


class TextUpdate(_UpdateBase):
    kind: Literal["text"] = "text"
    text: str


class CallbackQueryUpdate(_UpdateBase):
    kind: Literal["callback_query"] = "callback_query"
    text: str
    query_id: str


class MemberJoinedUpdate(_UpdateBase):
    kind: Literal["member_joined"] = "member_joined"


class MemberLeftUpdate(_UpdateBase):
    kind: Literal["member_left"] = "member_left"


class TopicChangedUpdate(_UpdateBase):
    kind: Literal["topic_changed"] = "topic_changed"
    title: str


class UnclassifiedUpdate(_UpdateBase):
    kind: Literal["unclassified"] = "unclassified"
    payload: dict[str, Any]


InboundUpdate = Annotated[
    TextUpdate
    | CallbackQueryUpdate
    | MemberJoinedUpdate
    | MemberLeftUpdate
    | TopicChangedUpdate
    | UnclassifiedUpdate,
    Field(discriminator="kind"),
]

UpdateKind = Literal[
    "text",
    "callback_query",
    "member_joined",
    "member_left",
    "topic_changed",
    "unclassified",
]


class OutboundEnvelope(BaseModel):
    """Outbound delivery request.

    `telegram` holds extra Bot API fields merged into every `sendMessage`
    payload (they win over computed fields such as `parse_mode`).
    """

    room: int | str
    message_id: int | None = None
    telegram: dict[str, Any] | None = None
    reply: bool = False


class Destination(BaseModel):
    """Broadcast destination drawn from the group roster."""

    id: int
    name: str
