"""Position marker into the platform's update stream."""

from __future__ import annotations

import logging

LOGGER = logging.getLogger(__name__)


class Cursor:
    """Next unconsumed update offset. Only moves forward after startup."""

    def __init__(self, start: int = 0) -> None:
        self._current = start

    @property
    def current(self) -> int:
        return self._current

    def advance(self, new_offset: int) -> bool:
        """Move to ``new_offset`` if it is ahead; replayed batches are ignored."""

        if new_offset <= self._current:
            return False
        self._current = new_offset
        return True

    def reset(self, to: int) -> None:
        """Jump to ``to``. Used at startup and after a wipe drains the stream."""

        if to < self._current:
            LOGGER.warning("Cursor moved back from %s to %s", self._current, to)
        self._current = to

    def __repr__(self) -> str:
        return f"Cursor({self._current})"
