from __future__ import annotations

import logging
from typing import Any

import pytest

from tgbridge.robot import Robot
from tgbridge.telegram.api import TelegramBotApiError


class FakeTelegramApi:
    """In-memory stand-in for `TelegramBotApi` recording every call."""

    def __init__(
        self,
        *,
        batches: list[list[dict[str, Any]] | Exception] | None = None,
        fail_methods: set[str] | None = None,
        me: dict[str, Any] | None = None,
    ) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.batches = list(batches or [])
        self.fail_methods = set(fail_methods or ())
        self.me = me if me is not None else {"id": 1, "username": "TestBot"}

    def calls_for(self, method: str) -> list[dict[str, Any]]:
        return [params for name, params in self.calls if name == method]

    async def invoke(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> Any:
        _ = timeout_seconds
        self.calls.append((method, dict(params or {})))
        if method in self.fail_methods:
            raise TelegramBotApiError(f"Telegram {method} failed: boom")
        if method == "getMe":
            return self.me
        if method == "sendMessage":
            return {"message_id": len(self.calls), "text": (params or {}).get("text")}
        return True

    async def get_me(self) -> dict[str, Any]:
        return await self.invoke("getMe")

    async def get_updates(
        self, *, offset: int | None, limit: int = 10, timeout_seconds: int = 0
    ) -> list[dict[str, Any]]:
        self.calls.append(
            ("getUpdates", {"offset": offset, "limit": limit, "timeout": timeout_seconds})
        )
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    async def send_message(self, **params: Any) -> dict[str, Any]:
        return await self.invoke("sendMessage", params)

    async def set_webhook(self, *, url: str) -> Any:
        return await self.invoke("setWebHook", {"url": url})

    async def answer_callback_query(self, *, callback_query_id: str) -> Any:
        return await self.invoke(
            "answerCallbackQuery", {"callback_query_id": callback_query_id}
        )


@pytest.fixture
def fake_api() -> FakeTelegramApi:
    return FakeTelegramApi()


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger("tgbridge.tests")


@pytest.fixture
def robot() -> Robot:
    return Robot("TestBot", alias="TestAliasBot")


@pytest.fixture
def make_api() -> type[FakeTelegramApi]:
    return FakeTelegramApi
