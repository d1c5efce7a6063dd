"""CLI entrypoint for the Telegram adapter."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any

import anyio
import logfire
from rich import print

from tgbridge.config import Config
from tgbridge.robot import Robot

from .adapter import TelegramAdapter


def _parse_cli_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tgbridge-telegram",
        description="Telegram adapter (getUpdates polling or webhook -> robot).",
    )
    parser.add_argument(
        "--name",
        default="tgbridge",
        help="Robot name; should match the Telegram bot username for @mentions.",
    )
    parser.add_argument(
        "--alias",
        default=None,
        help="Optional robot alias.",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Telegram bot token (never printed). Defaults to $TELEGRAM_TOKEN.",
    )
    parser.add_argument(
        "--webhook",
        default=None,
        help="Webhook base URL. When set, webhook mode is used instead of polling.",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Delay between getUpdates calls in milliseconds (default: 500).",
    )
    parser.add_argument(
        "--roster-path",
        default=None,
        help="JSON file storing known group chats (default: ./groups.data).",
    )
    return parser.parse_args(argv)


async def run(
    *,
    name: str = "tgbridge",
    alias: str | None = None,
    token: str | None = None,
    webhook: str | None = None,
    interval: int | None = None,
    roster_path: str | None = None,
) -> None:
    """Function entrypoint.

    Arguments left as `None` fall back to `TELEGRAM_*` environment variables.
    """

    logfire.configure(send_to_logfire="if-token-present")
    logging.basicConfig(level=logging.INFO, handlers=[logfire.LogfireLoggingHandler()])

    overrides: dict[str, Any] = {}
    if token is not None:
        overrides["token"] = token
    if webhook is not None:
        overrides["webhook"] = webhook
    if interval is not None:
        overrides["interval"] = interval
    if roster_path is not None and roster_path.strip():
        overrides["roster_path"] = Path(roster_path.strip())
    config = Config(**overrides)

    robot = Robot(name, alias=alias)
    adapter = TelegramAdapter(robot, config)

    print(
        "\n".join(
            [
                "Telegram adapter starting.",
                f"- robot: {robot.name}",
                f"- mode: {'webhook' if config.webhook_mode else 'polling'}",
                f"- webhook: {config.webhook or None}",
                f"- interval_ms: {config.interval}",
                f"- roster_path: {config.roster_path}",
                f"- known_groups: {len(adapter.roster.list())}",
                f"- seen_limit: {config.seen_limit}",
            ]
        )
    )

    await adapter.run()


async def main() -> None:
    """CLI entrypoint."""
    args = _parse_cli_args()
    await run(
        name=args.name,
        alias=args.alias,
        token=args.token,
        webhook=args.webhook,
        interval=args.interval,
        roster_path=args.roster_path,
    )


def cli() -> None:
    """Console-script entrypoint."""

    anyio.run(main)
