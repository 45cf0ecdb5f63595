"""Bounded per-chat index of message ids eligible for deletion."""

from __future__ import annotations

import logging
from typing import Optional

LOGGER = logging.getLogger(__name__)


class MessageIndex:
    """Insertion-ordered message ids per chat, capped at ``capacity``.

    A dict is used as an ordered set so membership checks stay O(1). When a
    bucket overflows, the oldest ids go first, but the chat's pinned id is
    never trimmed.
    """

    def __init__(self, capacity: int = 500) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._buckets: dict[int, dict[int, None]] = {}
        self._pinned: dict[int, int] = {}

    @property
    def capacity(self) -> int:
        return self._capacity

    def track(self, chat_id: int, message_id: int) -> bool:
        """Start tracking ``message_id``. Returns False if it was already tracked."""

        bucket = self._buckets.setdefault(chat_id, {})
        if message_id in bucket:
            return False
        bucket[message_id] = None
        self._trim(chat_id, bucket)
        return True

    def untrack(self, chat_id: int, message_id: int) -> bool:
        """Stop tracking ``message_id``. Absent ids are not an error."""

        bucket = self._buckets.get(chat_id)
        if not bucket or message_id not in bucket:
            return False
        del bucket[message_id]
        return True

    def snapshot_unique(self, chat_id: int) -> list[int]:
        """Return a copy of the tracked ids, oldest first."""

        return list(self._buckets.get(chat_id, {}))

    def reset_to(self, chat_id: int, pinned_id: Optional[int]) -> None:
        """Replace the bucket with nothing, or with just the pinned id."""

        self.set_pinned(chat_id, pinned_id)
        self._buckets[chat_id] = {} if pinned_id is None else {pinned_id: None}

    def set_pinned(self, chat_id: int, pinned_id: Optional[int]) -> None:
        if pinned_id is None:
            self._pinned.pop(chat_id, None)
        else:
            self._pinned[chat_id] = pinned_id

    def pinned(self, chat_id: int) -> Optional[int]:
        return self._pinned.get(chat_id)

    def contains(self, chat_id: int, message_id: int) -> bool:
        return message_id in self._buckets.get(chat_id, {})

    def count(self, chat_id: int) -> int:
        return len(self._buckets.get(chat_id, {}))

    def _trim(self, chat_id: int, bucket: dict[int, None]) -> None:
        overflow = len(bucket) - self._capacity
        if overflow <= 0:
            return
        pinned = self._pinned.get(chat_id)
        evicted = []
        for message_id in bucket:
            if len(evicted) == overflow:
                break
            if message_id == pinned:
                continue
            evicted.append(message_id)
        for message_id in evicted:
            del bucket[message_id]
        LOGGER.debug("Trimmed %s ids from chat %s", len(evicted), chat_id)
