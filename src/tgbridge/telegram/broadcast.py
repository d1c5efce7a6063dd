"""Fan a message out to roster destinations selected by a name rule."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

from .errors import InvalidPayloadError
from .models import Destination, OutboundEnvelope
from .outbound import OutboundChunker
from .roster import GroupRoster

Spawn = Callable[..., None]
NameRule = Callable[[str], Any] | str | re.Pattern[str]

_SUPPORTED_TYPES = frozenset({"all"})


def destination_matches(
    destination: Destination,
    rule: NameRule | None,
    *,
    match_as_regex: bool = True,
) -> bool:
    """Return whether `destination.name` satisfies `rule`.

    - `None` matches everything.
    - A callable is applied to the name; truthy results match.
    - A compiled pattern is searched in the name.
    - A string is searched as a regular expression when `match_as_regex`,
      otherwise compared for exact equality.
    """

    name = destination.name
    if rule is None:
        return True
    if isinstance(rule, re.Pattern):
        return rule.search(name) is not None
    if callable(rule):
        return bool(rule(name))
    if match_as_regex:
        return re.search(rule, name) is not None
    return name == rule


class BroadcastFilter:
    """Select roster destinations and send each of them a message."""

    def __init__(
        self,
        *,
        roster: GroupRoster,
        chunker: OutboundChunker,
        logger: logging.Logger,
        spawn: Spawn,
    ) -> None:
        self.roster = roster
        self.chunker = chunker
        self.logger = logger
        self.spawn = spawn

    def select(
        self,
        rule: NameRule | None = None,
        *,
        type: str = "all",
        match_as_regex: bool = True,
    ) -> list[Destination]:
        if type not in _SUPPORTED_TYPES:
            raise ValueError(
                f"Unsupported destination type {type!r}; expected one of "
                + ", ".join(sorted(_SUPPORTED_TYPES))
            )
        return [
            d
            for d in self.roster.list()
            if destination_matches(d, rule, match_as_regex=match_as_regex)
        ]

    async def push(
        self,
        text: str,
        *,
        rule: NameRule | None = None,
        type: str = "all",
        match_as_regex: bool = True,
    ) -> list[Destination]:
        """Start one send per matching destination, in roster order.

        Returns the destinations whose sends were started. Sends run in the
        background; their failures are logged by the chunker and never fail
        the broadcast.

        Raises:
            InvalidPayloadError: If `text` is empty (nothing is started).
            ValueError: If `type` is not supported.
        """

        if not text:
            raise InvalidPayloadError("Refusing to broadcast an empty message text")

        targets = self.select(rule, type=type, match_as_regex=match_as_regex)
        for destination in targets:
            self.spawn(self.chunker.send, OutboundEnvelope(room=destination.id), text)
        self.logger.info(
            "Broadcast started: destinations=%s",
            [d.id for d in targets],
        )
        return targets
