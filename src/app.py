"""Application entry point for the telewiper bot."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint

import settings
from adapters.telegram_bot_api import TelegramBotApi
from client import build_client, resolve_chat_id
from core.config import EngineConfig
from core.engine import WiperEngine
from core.errors import ConfigError, TransientNetworkError

NAME = "TELEWIPER"
FONT = "tarty-1"

# Always masked in logs; the Bot API puts the token in every request URL.
ALWAYS_REDACTED = ("TELEGRAM_BOT_TOKEN", "ADMIN_PASS")


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    names = set(ALWAYS_REDACTED)
    redact_cfg = config.get("redact", {}) if config else {}
    if redact_cfg.get("enabled", False):
        names.update(redact_cfg.get("patterns", []))
    values = []
    for name in names:
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/telewiper.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_engine_config(chat_id: int) -> EngineConfig:
    try:
        interval_hours = int(settings.WIPE_INTERVAL_HOURS)
    except (TypeError, ValueError) as exc:
        raise ConfigError(
            f"WIPE_INTERVAL_HOURS must be a whole number, got {settings.WIPE_INTERVAL_HOURS!r}"
        ) from exc

    return EngineConfig(
        chat_id=chat_id,
        admin_secret=settings.ADMIN_PASS,
        bot_username=settings.BOT_USERNAME,
        default_interval_hours=interval_hours,
        default_time_of_day=str(settings.WIPE_TIME),
        timezone=settings.WIPE_TIMEZONE,
        poll_interval=settings.POLL_INTERVAL_SECONDS,
        poll_batch_size=settings.POLL_BATCH_SIZE,
        index_capacity=settings.INDEX_CAPACITY,
        resume_delay=settings.RESUME_DELAY_SECONDS,
        command_delete_delay=settings.COMMAND_DELETE_SECONDS,
        secret_ttl=settings.SECRET_TTL_SECONDS,
        reply_ttl=settings.REPLY_TTL_SECONDS,
        notify_ttl=settings.NOTIFY_TTL_SECONDS,
        announce_startup=settings.ANNOUNCE_STARTUP,
    )


async def _resolve_bot_username(client: TelegramBotApi, config: EngineConfig) -> EngineConfig:
    if config.bot_username:
        return config
    try:
        me = await client.get_me()
    except TransientNetworkError as exc:
        logging.getLogger(__name__).warning("getMe failed, accepting any /cmd@bot suffix: %s", exc)
        return config
    username = me.get("username")
    if not username:
        return config
    logging.getLogger(__name__).info("Running as @%s", username)
    return dataclasses.replace(config, bot_username=username)


async def _run_engine(client: TelegramBotApi, config: EngineConfig) -> None:
    config = await _resolve_bot_username(client, config)
    engine = WiperEngine(client, config)
    await engine.run_forever()


def _run() -> int:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting telewiper")

    try:
        client = build_client()
        config = _build_engine_config(resolve_chat_id())
        asyncio.run(_run_engine(client, config))
    except ConfigError as exc:
        logger.error("Refusing to start: %s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


def _discover() -> int:
    _print_banner()
    _configure_logging()

    try:
        client = build_client()
    except ConfigError as exc:
        print(f"Cannot discover chats: {exc}")
        return 2

    try:
        chats = asyncio.run(client.list_recent_chats())
    except TransientNetworkError as exc:
        print(f"Failed to read updates: {exc}")
        return 1

    if not chats:
        print("No pending updates. Send a message in the target chat and try again.")
        return 0

    for index, chat in enumerate(chats, start=1):
        print(f"{index}. {chat.chat_type} | {chat.title} | {chat.chat_id}")
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="telewiper")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the wiper bot")
    subparsers.add_parser(
        "discover",
        help="List chats found in pending bot updates, to find TELEGRAM_CHAT_ID.",
    )

    args = parser.parse_args(argv)
    if args.command == "discover":
        code = _discover()
    else:
        code = _run()
    if code:
        raise SystemExit(code)


if __name__ == "__main__":
    main()
