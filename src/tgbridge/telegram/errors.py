"""Adapter error types.

`TelegramBotApiError` (transport/API failures) lives in `.api`.
"""

from __future__ import annotations


class MissingTokenError(RuntimeError):
    """Raised at start-up when no bot token is configured."""


class InvalidPayloadError(ValueError):
    """Raised when an outbound payload cannot be delivered (e.g. empty text)."""


class IdentityStoreError(RuntimeError):
    """Raised when the brain's user cache cannot be read or written."""


class UnsupportedUpdateError(ValueError):
    """Raised when an update lacks the chat or user needed to classify it."""
