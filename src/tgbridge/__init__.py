"""Telegram Bot API adapter for chat-bot host frameworks."""
