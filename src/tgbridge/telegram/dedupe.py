"""Guard against handling the same Telegram message twice.

Handled message ids are recorded in the brain under `handled<message_id>`.
By default entries are never evicted, so the seen set grows for the lifetime
of the brain. Passing `seen_limit` opts into evicting the oldest keys recorded
by this deduplicator once the limit is exceeded; keys recorded by an earlier
process are not tracked for eviction.
"""

from __future__ import annotations

import logging
from collections import deque

from tgbridge.robot import Brain

_SEEN_KEY_PREFIX = "handled"


def seen_key(message_id: int | str | None) -> str:
    return f"{_SEEN_KEY_PREFIX}{message_id}"


class UpdateDeduplicator:
    """Check-then-mark seen set backed by the brain.

    Not safe to share across concurrently running ingestion paths; the adapter
    calls it from a single task, one update at a time.
    """

    def __init__(
        self,
        brain: Brain,
        logger: logging.Logger,
        *,
        seen_limit: int | None = None,
    ) -> None:
        if seen_limit is not None and seen_limit <= 0:
            raise ValueError(f"seen_limit must be > 0 when set; got {seen_limit}")
        self.brain = brain
        self.logger = logger
        self.seen_limit = seen_limit
        self._order: deque[str] = deque()

    def should_process(self, message_id: int | str | None) -> bool:
        """Return True the first time `message_id` is seen, False afterwards."""

        key = seen_key(message_id)
        if self.brain.get(key) is True:
            self.logger.warning("Message %s already handled.", message_id)
            return False

        self.brain.set(key, True)
        if self.seen_limit is not None:
            self._order.append(key)
            while len(self._order) > self.seen_limit:
                self.brain.remove(self._order.popleft())
        return True
