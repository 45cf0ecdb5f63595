"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so the app layer can build the engine safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for the wipe engine. All delays are in seconds."""

    chat_id: int
    admin_secret: Optional[str] = None
    bot_username: Optional[str] = None
    default_interval_hours: int = 48
    default_time_of_day: str = "03:00"
    timezone: Optional[str] = None
    poll_interval: float = 3.0
    poll_batch_size: int = 100
    index_capacity: int = 500
    resume_delay: float = 1.0
    command_delete_delay: float = 2.0
    secret_ttl: float = 60.0
    reply_ttl: float = 30.0
    notify_ttl: float = 48 * 60 * 60
    announce_startup: bool = True
