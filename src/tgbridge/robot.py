"""Minimal in-process chat-bot host used by the Telegram adapter.

The adapter only needs a narrow slice of a host framework:

- `logger`: a stdlib `logging.Logger`.
- `brain`: a key-value store (`get`/`set`/`remove`) plus a user cache
  (`users`, `user_for_id`).
- `router`: registration of HTTP handlers (`post(path, handler)`); serving
  requests is the host's business, `Router.dispatch` exists for callers that
  already hold a parsed request body.
- an event bus (`on`/`emit`) shared by scripts and adapters.
- `receive(message)`: hands a classified inbound message to the host's
  listeners.

Everything here is in-memory; nothing is persisted across restarts.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

Handler = Callable[..., Any]


class User(BaseModel):
    """A user record cached by the brain.

    Unknown keyword fields passed at creation are kept as extras so platform
    adapters can stash their own profile data on the record.
    """

    model_config = ConfigDict(extra="allow")

    id: int | str
    name: str | None = None
    room: int | str | None = None


class Brain:
    """Key-value store and user cache."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.users: dict[int | str, User] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def user_for_id(
        self, user_id: int | str, options: dict[str, Any] | None = None
    ) -> User:
        """Return the cached user for `user_id`, creating it from `options`."""

        user = self.users.get(user_id)
        if user is None:
            fields = dict(options or {})
            fields["id"] = user_id
            user = User(**fields)
            self.users[user_id] = user
        return user


class Router:
    """HTTP handler table keyed by `(method, path)`."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Handler] = {}

    def post(self, path: str, handler: Handler) -> None:
        self.routes[("POST", path)] = handler

    async def dispatch(self, method: str, path: str, body: Any) -> Any:
        handler = self.routes.get((method.upper(), path))
        if handler is None:
            raise LookupError(f"No route for {method.upper()} {path}")
        result = handler(body)
        if inspect.isawaitable(result):
            result = await result
        return result


class Robot:
    """Host object shared by the adapter and scripts."""

    def __init__(
        self,
        name: str = "tgbridge",
        *,
        alias: str | None = None,
        logger: logging.Logger | None = None,
        brain: Brain | None = None,
        router: Router | None = None,
    ) -> None:
        self.name = name
        self.alias = alias
        self.logger = logger or logging.getLogger("tgbridge.robot")
        self.brain = brain or Brain()
        self.router = router or Router()
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._listeners: list[Handler] = []

    def on(self, event: str, handler: Handler) -> None:
        self._handlers[event].append(handler)

    async def emit(self, event: str, *args: Any) -> None:
        """Call every handler registered for `event`, in registration order."""

        for handler in list(self._handlers.get(event, ())):
            result = handler(*args)
            if inspect.isawaitable(result):
                await result

    def listen(self, listener: Handler) -> None:
        self._listeners.append(listener)

    async def receive(self, message: Any) -> None:
        """Hand `message` to every listener; a failing listener is logged and skipped."""

        for listener in list(self._listeners):
            try:
                result = listener(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self.logger.exception("Listener %r failed on message", listener)
