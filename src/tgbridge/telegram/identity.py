"""Reconcile Telegram user profiles with the brain's user cache.

A cached user is superseded wholesale when its
`first_name + last_name + username` fingerprint differs from the incoming
profile. The comparison is byte-exact (no case folding, no whitespace
normalization); missing fields count as empty strings.
"""

from __future__ import annotations

import logging
from typing import Any

from tgbridge.robot import Brain, User

from .errors import IdentityStoreError
from .models import RemoteUser


def identity_fingerprint(user: Any) -> str:
    """Return `first_name + last_name + username` for a user record."""

    parts = (
        getattr(user, "first_name", None),
        getattr(user, "last_name", None),
        getattr(user, "username", None),
    )
    return "".join(part if isinstance(part, str) else "" for part in parts)


class IdentityResolver:
    """Resolve the acting user of an update against the brain's user cache."""

    def __init__(self, brain: Brain, logger: logging.Logger) -> None:
        self.brain = brain
        self.logger = logger

    def resolve(
        self,
        remote: RemoteUser | dict[str, Any],
        chat: dict[str, Any],
    ) -> User:
        """Return the user to attach to an inbound message.

        The brain creates the cached record on first sight. When the cached
        fingerprint differs from `remote`, `remote` replaces the cached entry
        and is returned; otherwise the cached record is returned unchanged.

        Raises:
            IdentityStoreError: If the brain fails to look up or store the user.
        """

        incoming = (
            remote.model_copy()
            if isinstance(remote, RemoteUser)
            else RemoteUser.model_validate(remote)
        )
        incoming.name = incoming.username
        incoming.room = chat.get("id")
        incoming.telegram_chat = chat

        options = incoming.model_dump(exclude={"id"})
        try:
            cached = self.brain.user_for_id(incoming.id, options)
        except Exception as e:
            raise IdentityStoreError(
                f"User lookup failed for id={incoming.id}: {type(e).__name__}: {e}"
            ) from e

        if identity_fingerprint(cached) == identity_fingerprint(incoming):
            return cached

        try:
            self.brain.users[incoming.id] = incoming
        except Exception as e:
            raise IdentityStoreError(
                f"User store failed for id={incoming.id}: {type(e).__name__}: {e}"
            ) from e
        self.logger.info(
            "User %s regenerated. Persisting new user object.", incoming.id
        )
        return incoming
