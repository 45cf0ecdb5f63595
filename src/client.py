"""Bot API client factory for telewiper.

Credentials are read from the environment via settings, so secrets stay
out of the repo.
"""

from __future__ import annotations

import logging

import settings
from adapters.telegram_bot_api import TelegramBotApi
from core.errors import ConfigError


def resolve_chat_id() -> int:
    """Return the target chat id, failing fast when it is missing or malformed."""

    raw = settings.TELEGRAM_CHAT_ID
    if not raw:
        raise ConfigError("Missing TELEGRAM_CHAT_ID in environment")
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"TELEGRAM_CHAT_ID must be a numeric chat id, got {raw!r}") from exc


def build_client() -> TelegramBotApi:
    """Create a Bot API client from TELEGRAM_BOT_TOKEN."""

    bot_token = settings.TELEGRAM_BOT_TOKEN
    # Fail fast on missing credentials; the engine must not start without them.
    if not bot_token:
        raise ConfigError("Missing TELEGRAM_BOT_TOKEN in environment")

    logging.getLogger(__name__).info("Initializing Telegram Bot API client")

    return TelegramBotApi(bot_token, timeout=settings.HTTP_TIMEOUT_SECONDS)
