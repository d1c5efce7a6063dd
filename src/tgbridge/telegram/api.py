"""Telegram Bot API client used by the adapter."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from functools import partial
from typing import Any, Final

import anyio.to_thread as to_thread

_TELEGRAM_API_BASE: Final[str] = "https://api.telegram.org"


class TelegramBotApiError(RuntimeError):
    """Raised when Telegram Bot API returns a non-ok response or invalid JSON."""


@dataclass(slots=True)
class TelegramBotApi:
    """Minimal Telegram Bot API client.

    Every method goes through `invoke()`, which POSTs a JSON body and returns
    the `result` field of an `ok` response.
    """

    token: str
    timeout_seconds: float = 10

    def _method_url(self, method: str) -> str:
        # Never log/print this URL; it embeds the bot token.
        return f"{_TELEGRAM_API_BASE}/bot{self.token}/{method}"

    def _invoke_sync(
        self,
        method: str,
        params: dict[str, Any],
        *,
        timeout_seconds: float | None = None,
    ) -> Any:
        data = json.dumps(params, ensure_ascii=False).encode("utf-8")
        request = urllib.request.Request(
            self._method_url(method),
            data=data,
            method="POST",
        )
        request.add_header("Content-Type", "application/json")

        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds
        try:
            with urllib.request.urlopen(request, timeout=timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            raw = _read_error_body(e)
            if raw is None:
                raise TelegramBotApiError(
                    f"Telegram {method} failed: HTTP {e.code}"
                ) from e
        except OSError as e:
            raise TelegramBotApiError(f"Telegram {method} failed: network error") from e

        return _parse_response(method, raw)

    async def invoke(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout_seconds: float | None = None,
    ) -> Any:
        """Call an arbitrary Bot API method (async wrapper).

        Note: stdlib `urllib` is blocking; the request runs in a worker thread
        so the polling loop and outbound deliveries stay async-friendly.
        """

        return await to_thread.run_sync(
            partial(
                self._invoke_sync,
                method,
                dict(params or {}),
                timeout_seconds=timeout_seconds,
            )
        )

    async def get_me(self) -> dict[str, Any]:
        """Fetch bot metadata via `getMe`."""

        result = await self.invoke("getMe")
        if not isinstance(result, dict):
            raise TelegramBotApiError("Telegram getMe failed: missing result dict")
        return result

    async def get_updates(
        self,
        *,
        offset: int | None,
        limit: int = 10,
        timeout_seconds: int = 0,
    ) -> list[dict[str, Any]]:
        """Fetch pending updates via `getUpdates`.

        Non-object items in the result list are dropped.
        """

        params: dict[str, Any] = {"limit": limit, "timeout": timeout_seconds}
        if offset is not None:
            params["offset"] = offset

        # Client timeout should exceed server long-poll timeout.
        result = await self.invoke(
            "getUpdates",
            params,
            timeout_seconds=max(5, timeout_seconds + 15),
        )
        if not isinstance(result, list):
            raise TelegramBotApiError("Telegram getUpdates failed: missing result list")
        return [item for item in result if isinstance(item, dict)]

    async def send_message(self, **params: Any) -> dict[str, Any]:
        """Send a message via `sendMessage`.

        `params` are passed through as-is (`chat_id`, `text`, `parse_mode`,
        `reply_to_message_id`, ...).
        """

        text = params.get("text")
        if isinstance(text, str):
            # Keep a minimal guard to avoid Telegram rejecting NUL-containing strings.
            params["text"] = text.replace("\x00", "\ufffd")
        result = await self.invoke("sendMessage", params)
        if not isinstance(result, dict):
            raise TelegramBotApiError(
                "Telegram sendMessage failed: missing result dict"
            )
        return result

    async def set_webhook(self, *, url: str) -> Any:
        return await self.invoke("setWebHook", {"url": url})

    async def answer_callback_query(self, *, callback_query_id: str) -> Any:
        return await self.invoke(
            "answerCallbackQuery", {"callback_query_id": callback_query_id}
        )


def _read_error_body(error: urllib.error.HTTPError) -> bytes | None:
    """Return the body of an HTTP error response, if any.

    Telegram answers API-level failures (bad chat id, bad markup, ...) with a
    4xx status and a JSON body carrying `description`.
    """

    try:
        raw = error.read()
    except OSError:
        return None
    return raw or None


def _parse_response(method: str, raw: bytes) -> Any:
    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TelegramBotApiError(f"Telegram {method} failed: invalid JSON") from e

    if not isinstance(payload, dict) or payload.get("ok") is not True:
        desc = payload.get("description") if isinstance(payload, dict) else None
        raise TelegramBotApiError(
            f"Telegram {method} failed"
            + (f": {desc}" if isinstance(desc, str) and desc else "")
        )

    return payload.get("result")
