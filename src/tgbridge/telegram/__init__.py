"""Telegram adapter.

This package bridges a robot host (`tgbridge.robot.Robot`) to the Telegram
Bot API:

- Inbound updates arrive by polling `getUpdates` (default) or through a
  webhook route. Each update is de-duplicated by message id, decoded into a
  typed `InboundUpdate` and handed to `robot.receive()` with its acting user
  resolved against the brain's user cache.
- Outbound text is split into 4096-character chunks and sent one chunk at a
  time. Markdown-looking text is sent with `parse_mode="Markdown"` unless the
  envelope's extra fields say otherwise.
- `push()` broadcasts to group chats recorded in a JSON roster file.

Design notes / boundaries:
- The poll cursor is kept in memory only. Restarts resume at the platform's
  next unconfirmed update.
- The seen set lives in the brain and is unbounded unless `seen_limit` is set.
- No retries: the poll cadence is the only retry and has no backoff.
"""

from __future__ import annotations

from .adapter import INVOKE_EVENT, TelegramAdapter
from .api import TelegramBotApi, TelegramBotApiError
from .broadcast import BroadcastFilter, destination_matches
from .classify import (
    UpdateClassifier,
    clean_message_text,
    decode_kind,
    extract_payload,
    payload_message_id,
)
from .cli import main, run
from .dedupe import UpdateDeduplicator, seen_key
from .errors import (
    IdentityStoreError,
    InvalidPayloadError,
    MissingTokenError,
    UnsupportedUpdateError,
)
from .identity import IdentityResolver, identity_fingerprint
from .models import (
    CallbackQueryUpdate,
    Chat,
    Destination,
    InboundUpdate,
    MemberJoinedUpdate,
    MemberLeftUpdate,
    OutboundEnvelope,
    RemoteUser,
    TextUpdate,
    TopicChangedUpdate,
    UnclassifiedUpdate,
)
from .outbound import (
    MAX_MESSAGE_LENGTH,
    OutboundChunker,
    apply_extra_options,
    split_into_chunks,
)
from .roster import GroupRoster, load_roster, save_roster
from .runner import PollingLoop, PollState, extract_update_id

__all__ = [
    "INVOKE_EVENT",
    "MAX_MESSAGE_LENGTH",
    "BroadcastFilter",
    "CallbackQueryUpdate",
    "Chat",
    "Destination",
    "GroupRoster",
    "IdentityResolver",
    "IdentityStoreError",
    "InboundUpdate",
    "InvalidPayloadError",
    "MemberJoinedUpdate",
    "MemberLeftUpdate",
    "MissingTokenError",
    "OutboundChunker",
    "OutboundEnvelope",
    "PollState",
    "PollingLoop",
    "RemoteUser",
    "TelegramAdapter",
    "TelegramBotApi",
    "TelegramBotApiError",
    "TextUpdate",
    "TopicChangedUpdate",
    "UnclassifiedUpdate",
    "UnsupportedUpdateError",
    "UpdateClassifier",
    "UpdateDeduplicator",
    "apply_extra_options",
    "clean_message_text",
    "decode_kind",
    "destination_matches",
    "extract_payload",
    "extract_update_id",
    "identity_fingerprint",
    "load_roster",
    "main",
    "payload_message_id",
    "run",
    "save_roster",
    "seen_key",
    "split_into_chunks",
]
