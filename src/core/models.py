"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to Bot API payload shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class EventKind(str, Enum):
    """Closed set of update shapes the engine cares about."""

    MESSAGE = "message"
    CHANNEL_POST = "channel_post"
    PIN_NOTICE = "pin_notice"


@dataclass(frozen=True)
class ChatEvent:
    """One chat update, resolved once at ingestion."""

    kind: EventKind
    update_id: int
    chat_id: int
    message_id: int
    sender_id: Optional[int] = None
    text: Optional[str] = None
    # Only set for PIN_NOTICE: the id of the message that just got pinned.
    pinned_message_id: Optional[int] = None


@dataclass(frozen=True)
class UpdateBatch:
    """Result of one getUpdates call.

    ``last_update_id`` covers every update in the batch, including the ones
    that did not map to a ChatEvent, so the cursor can move past them.
    """

    events: list[ChatEvent] = field(default_factory=list)
    last_update_id: Optional[int] = None
    # Raw number of updates returned, mapped or not.
    update_count: int = 0


@dataclass
class EngineState:
    """Cooperative mutual-exclusion flags for polling and wiping."""

    polling_in_flight: bool = False
    wipe_in_flight: bool = False

    @property
    def busy(self) -> bool:
        return self.polling_in_flight or self.wipe_in_flight


@dataclass(frozen=True)
class ChatSummary:
    """Chat seen in pending updates, used by the discover command."""

    chat_id: int
    chat_type: str
    title: str
