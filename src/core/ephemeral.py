"""Self-destructing messages.

Expiry timers are not coordinated with wipes. A message may be removed by
its own timer, by a wipe, or by both; deleting something that is already
gone counts as success.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.errors import TransientNetworkError
from core.message_index import MessageIndex
from core.ports import ChatPlatformPort
from core.timers import DelayedTask

LOGGER = logging.getLogger(__name__)


class EphemeralMessenger:
    """Send messages that delete themselves after a delay."""

    def __init__(
        self,
        platform: ChatPlatformPort,
        index: MessageIndex,
        notify_chat_id: int,
        notify_ttl: float,
    ) -> None:
        self._platform = platform
        self._index = index
        self._notify_chat_id = notify_chat_id
        self._notify_ttl = notify_ttl
        self._timers: set[DelayedTask] = set()

    @property
    def pending(self) -> int:
        """Number of expiry timers still waiting."""

        return sum(1 for timer in self._timers if not timer.done)

    async def send_ephemeral(
        self,
        chat_id: int,
        text: str,
        ttl: float,
        parse_mode: Optional[str] = "HTML",
    ) -> Optional[int]:
        """Send ``text`` and delete it after ``ttl`` seconds.

        Returns the message id, or None when sending failed.
        """

        try:
            message_id = await self._platform.send_message(chat_id, text, parse_mode)
        except TransientNetworkError as exc:
            LOGGER.warning("Failed to send ephemeral message to %s: %s", chat_id, exc)
            return None

        self._index.track(chat_id, message_id)
        self.schedule_delete(chat_id, message_id, ttl)
        LOGGER.debug("Sent ephemeral message %s to %s (ttl=%ss)", message_id, chat_id, ttl)
        return message_id

    def schedule_delete(self, chat_id: int, message_id: int, delay: float) -> DelayedTask:
        """Arrange for an existing message to be deleted after ``delay`` seconds."""

        async def _expire() -> None:
            if await self.delete_quietly(chat_id, message_id):
                LOGGER.info("💥 Expired message %s in %s", message_id, chat_id)

        timer = DelayedTask(delay, _expire, name=f"expire-{chat_id}-{message_id}")
        self._timers = {t for t in self._timers if not t.done}
        self._timers.add(timer)
        return timer

    async def delete_quietly(self, chat_id: int, message_id: int) -> bool:
        """Delete a message, treating "already gone" as success.

        Returns False only when the platform call failed.
        """

        try:
            deleted = await self._platform.delete_message(chat_id, message_id)
        except TransientNetworkError as exc:
            LOGGER.warning("Failed to delete message %s in %s: %s", message_id, chat_id, exc)
            return False

        self._index.untrack(chat_id, message_id)
        if not deleted:
            LOGGER.debug("Message %s in %s was already gone", message_id, chat_id)
        return True

    async def notify(self, text: str) -> Optional[int]:
        """Post a business notification that self-deletes after the retention window."""

        return await self.send_ephemeral(self._notify_chat_id, text, self._notify_ttl)

    def cancel_all(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
