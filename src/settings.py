"""Static configuration for telewiper.

Secrets and the target chat come from the environment (a local .env file is
loaded with python-dotenv). Optional tunables, the default schedule and
logging live in config.json; environment values win over the file.
"""

import json
import os

from dotenv import load_dotenv

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

# config.json is optional; TELEWIPER_CONFIG points at a different file.
CONFIG_PATH = os.getenv("TELEWIPER_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json if present, using a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        return {}

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _env_or(name: str, fallback):
    value = os.getenv(name)
    if value is None or not value.strip():
        return fallback
    return value.strip()


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Required at startup; validated when the client is built.
TELEGRAM_BOT_TOKEN = _env_or("TELEGRAM_BOT_TOKEN", None)
TELEGRAM_CHAT_ID = _env_or("TELEGRAM_CHAT_ID", None)

# Secret handed out by /password. Optional.
ADMIN_PASS = _env_or("ADMIN_PASS", None)

# Bot username for "/cmd@bot" matching. Looked up via getMe when unset.
_bot = _CONFIG.get("bot", {})
BOT_USERNAME = _env_or("TELEGRAM_BOT_USERNAME", _bot.get("username"))

# Default auto-wipe schedule installed at startup.
# Raw values are validated when the engine is built.
_schedule = _CONFIG.get("schedule", {})
WIPE_INTERVAL_HOURS = _env_or("WIPE_INTERVAL_HOURS", _schedule.get("interval_hours", 48))
WIPE_TIME = _env_or("WIPE_TIME", _schedule.get("time_of_day", "03:00"))
WIPE_TIMEZONE = _env_or("WIPE_TIMEZONE", _schedule.get("timezone"))

# Engine timings (seconds) and sizes.
_engine = _CONFIG.get("engine", {})
POLL_INTERVAL_SECONDS = float(_engine.get("poll_interval_seconds", 3))
POLL_BATCH_SIZE = int(_engine.get("poll_batch_size", 100))
INDEX_CAPACITY = int(_engine.get("index_capacity", 500))
RESUME_DELAY_SECONDS = float(_engine.get("resume_delay_seconds", 1))
COMMAND_DELETE_SECONDS = float(_engine.get("command_delete_seconds", 2))
SECRET_TTL_SECONDS = float(_engine.get("secret_ttl_seconds", 60))
REPLY_TTL_SECONDS = float(_engine.get("reply_ttl_seconds", 30))
NOTIFY_TTL_SECONDS = float(_engine.get("notify_ttl_seconds", 48 * 60 * 60))
HTTP_TIMEOUT_SECONDS = float(_engine.get("http_timeout_seconds", 15))
ANNOUNCE_STARTUP = bool(_engine.get("announce_startup", True))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
