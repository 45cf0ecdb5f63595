"""Ports (interfaces) used by the engine.

The engine only talks to the chat platform through this contract, so the
Bot API adapter can be swapped for a fake in tests.
"""

from __future__ import annotations

from typing import Optional, Protocol

from core.models import UpdateBatch


class ChatPlatformPort(Protocol):
    """Chat platform operations required by the engine.

    Implementations raise TransientNetworkError for anything retryable.
    """

    async def get_updates(self, offset: Optional[int], limit: int) -> UpdateBatch:
        """Return updates starting at ``offset``.

        ``None`` means from the earliest unconfirmed update, a negative offset
        counts back from the newest one.
        """
        ...

    async def send_message(self, chat_id: int, text: str, parse_mode: Optional[str] = "HTML") -> int:
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> bool:
        """Delete a message. Return False when it was already gone."""
        ...

    async def get_pinned_message_id(self, chat_id: int) -> Optional[int]:
        ...
