"""JSON-file roster of known group chats (broadcast destinations).

The roster file holds a JSON array of `{"id": <chat_id>, "name": <title>}`
objects in first-seen order. It is rewritten atomically (temporary file +
rename) after every change. `update()` and `delete()` write synchronously;
code running on the event loop uses `note()` and awaits `save()`, which writes
from a worker thread.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

import anyio
import anyio.to_thread as to_thread
from pydantic import ValidationError

from .models import Destination

logger = logging.getLogger(__name__)


def load_roster(path: Path) -> list[Destination]:
    """Load roster entries from `path`.

    Raises:
        ValueError: If the file is not valid JSON or not a list of entries.
    """

    if not path.exists():
        return []

    with path.open("r", encoding="utf-8") as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON at {path}: {e}") from e

    if not isinstance(payload, list):
        raise ValueError(f"Invalid roster at {path}: expected JSON array")

    out: list[Destination] = []
    for idx, item in enumerate(payload):
        # Older rosters may contain `null` holes left behind by deletions.
        if item is None:
            continue
        try:
            out.append(Destination.model_validate(item))
        except ValidationError as e:
            raise ValueError(f"Invalid roster entry at {path}[{idx}]: {e}") from e
    return out


def save_roster(path: Path, destinations: list[Destination]) -> None:
    """Persist roster entries atomically.

    Side effects:
    - Creates parent directories for `path`.
    - Atomically replaces `path` via temporary file + rename.
    """

    payload = [d.model_dump() for d in destinations]

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as tf:
        tmp_path = Path(tf.name)
        tf.write(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
        tf.write("\n")

    tmp_path.replace(path)


class GroupRoster:
    """In-memory roster mirrored to a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        try:
            self._entries = load_roster(path)
        except (OSError, ValueError) as e:
            logger.warning(
                "Group roster load failed, starting empty: %s: %s",
                type(e).__name__,
                e,
            )
            self._entries = []
        self._save_lock: anyio.Lock | None = None

    def list(self) -> list[Destination]:
        return list(self._entries)

    def note(self, chat_id: int, *, name: str) -> bool:
        """Insert or replace the entry for `chat_id` in memory only.

        Returns whether the roster changed (and so needs a `save()`).
        """

        entry = Destination(id=chat_id, name=name)
        for idx, existing in enumerate(self._entries):
            if existing.id == chat_id:
                if existing == entry:
                    return False
                self._entries[idx] = entry
                return True
        self._entries.append(entry)
        return True

    def update(self, chat_id: int, *, name: str) -> None:
        """Insert or replace the entry for `chat_id` and write the file."""

        if self.note(chat_id, name=name):
            save_roster(self.path, self._entries)

    async def save(self) -> None:
        """Write the current entries from a worker thread.

        Saves are serialized and each writes the entries current when it starts.
        """

        if self._save_lock is None:
            self._save_lock = anyio.Lock()
        async with self._save_lock:
            await to_thread.run_sync(save_roster, self.path, self.list())

    def delete(self, chat_id: int) -> bool:
        """Remove the entry for `chat_id`; return whether one was removed."""

        kept = [d for d in self._entries if d.id != chat_id]
        if len(kept) == len(self._entries):
            return False
        self._entries = kept
        save_roster(self.path, self._entries)
        return True
