"""Adapter runtime configuration.

Settings come from constructor kwargs and `TELEGRAM_*` environment variables
(`TELEGRAM_TOKEN`, `TELEGRAM_WEBHOOK`, `TELEGRAM_INTERVAL`, ...).
"""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Settings for the Telegram adapter.

    Invariant:
        `token` may be empty here; the adapter refuses to start without it.
        `webhook` never ends with `/`. An empty `webhook` selects polling mode.
        `interval` is the delay between poll cycles in milliseconds.
    """

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    token: str = ""
    webhook: str = ""
    interval: int = 500
    poll_timeout_seconds: int = 0
    roster_path: Path = Path("groups.data")
    seen_limit: int | None = None

    @field_validator("webhook")
    @classmethod
    def _strip_webhook(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("interval")
    @classmethod
    def _validate_interval(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"interval must be > 0; got {value}")
        return value

    @field_validator("poll_timeout_seconds")
    @classmethod
    def _validate_poll_timeout(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"poll_timeout_seconds must be >= 0; got {value}")
        return value

    @field_validator("seen_limit")
    @classmethod
    def _validate_seen_limit(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError(f"seen_limit must be > 0 when set; got {value}")
        return value

    @field_validator("roster_path")
    @classmethod
    def _normalize_roster_path(cls, value: Path) -> Path:
        """Normalize the roster path to an absolute path."""

        return value.expanduser().resolve()

    @property
    def webhook_mode(self) -> bool:
        return bool(self.webhook)
