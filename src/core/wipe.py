"""Bulk delete of every tracked, non-pinned message in the target chat.

Protocol:
1) Reject if a wipe is already running or queued
2) Mark the wipe in flight and cancel the pending poll tick
3) Look up the pinned message fresh from the platform
4) Delete every tracked id except the pinned one, best effort
5) Drain updates that arrived meanwhile and delete those messages too
6) Reset the index to just the pinned id
7) Send a confirmation and track it for the next wipe
8) Clear the flag and resume polling after a short grace delay

A wipe requested while a poll tick is running is queued behind that tick.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from core.cursor import Cursor
from core.ephemeral import EphemeralMessenger
from core.errors import ConcurrencyConflict, TransientNetworkError
from core.formatting import format_wipe_confirmation
from core.message_index import MessageIndex
from core.models import EngineState, EventKind
from core.poller import PollLoop
from core.ports import ChatPlatformPort

LOGGER = logging.getLogger(__name__)


@dataclass
class WipeResult:
    """Outcome of one completed wipe."""

    reason: str
    pinned_id: Optional[int] = None
    deleted: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    drained: int = 0
    confirmation_id: Optional[int] = None
    finished_at: Optional[datetime] = None


class WipeOrchestrator:
    """Runs wipes, one at a time."""

    def __init__(
        self,
        platform: ChatPlatformPort,
        index: MessageIndex,
        cursor: Cursor,
        state: EngineState,
        poller: PollLoop,
        messenger: EphemeralMessenger,
        chat_id: int,
        batch_size: int = 100,
        resume_delay: float = 1.0,
    ) -> None:
        self._platform = platform
        self._index = index
        self._cursor = cursor
        self._state = state
        self._poller = poller
        self._messenger = messenger
        self._chat_id = chat_id
        self._batch_size = batch_size
        self._resume_delay = resume_delay
        self._queued_reason: Optional[str] = None
        self.last_result: Optional[WipeResult] = None

    @property
    def queued(self) -> bool:
        return self._queued_reason is not None

    async def trigger(self, reason: str = "manual") -> None:
        """Start (or queue) a wipe.

        Raises ConcurrencyConflict when a wipe is already running or queued.
        """

        if self._state.wipe_in_flight or self._queued_reason is not None:
            raise ConcurrencyConflict(f"Wipe ({reason}) ignored: another wipe is already running")

        if self._state.polling_in_flight:
            self._queued_reason = reason
            self._poller.run_after_tick(self._run_queued, on_discard=self.clear_queued)
            LOGGER.info("Wipe (%s) queued until the current poll tick finishes", reason)
            return

        await self._run(reason)

    def clear_queued(self) -> None:
        if self._queued_reason is not None:
            LOGGER.info("Queued wipe (%s) dropped", self._queued_reason)
        self._queued_reason = None

    async def _run_queued(self) -> None:
        reason, self._queued_reason = self._queued_reason, None
        await self._run(reason or "queued")

    async def _run(self, reason: str) -> Optional[WipeResult]:
        self._state.wipe_in_flight = True
        self._poller.cancel_pending()
        LOGGER.info("🧹 Starting wipe (%s)", reason)
        try:
            result = await self._wipe(reason)
        finally:
            self._state.wipe_in_flight = False
            self._poller.schedule(self._resume_delay)

        if result is not None:
            self.last_result = result
            LOGGER.info(
                "Wipe complete: deleted=%s, failed=%s, drained=%s, pinned=%s, cursor=%s",
                len(result.deleted),
                len(result.failed),
                result.drained,
                result.pinned_id,
                self._cursor.current,
            )
        return result

    async def _wipe(self, reason: str) -> Optional[WipeResult]:
        try:
            pinned_id = await self._platform.get_pinned_message_id(self._chat_id)
        except TransientNetworkError as exc:
            # Without a fresh pin we cannot guarantee the pinned message survives.
            LOGGER.warning("Wipe aborted, could not resolve the pinned message: %s", exc)
            return None

        result = WipeResult(reason=reason, pinned_id=pinned_id)
        self._index.set_pinned(self._chat_id, pinned_id)

        for message_id in self._index.snapshot_unique(self._chat_id):
            if message_id == pinned_id:
                continue
            await self._delete(message_id, result)

        await self._drain(result)
        self._index.reset_to(self._chat_id, result.pinned_id)

        confirmation = format_wipe_confirmation(
            deleted=len(result.deleted),
            failed=len(result.failed),
            pinned_kept=result.pinned_id is not None,
        )
        try:
            result.confirmation_id = await self._platform.send_message(self._chat_id, confirmation)
        except TransientNetworkError as exc:
            LOGGER.warning("Failed to send wipe confirmation: %s", exc)
        else:
            # Left for the next wipe to clean up.
            self._index.track(self._chat_id, result.confirmation_id)

        result.finished_at = datetime.now(timezone.utc)
        return result

    async def _delete(self, message_id: int, result: WipeResult) -> None:
        if await self._messenger.delete_quietly(self._chat_id, message_id):
            result.deleted.append(message_id)
        else:
            result.failed.append(message_id)

    async def _drain(self, result: WipeResult) -> None:
        """Delete messages from updates that arrived after the last poll tick.

        Commands found here are not executed. The cursor ends up past the
        last drained update so polling does not see them again.
        """

        offset = self._cursor.current
        while True:
            try:
                batch = await self._platform.get_updates(offset, self._batch_size)
            except TransientNetworkError as exc:
                LOGGER.warning("Drain stopped early: %s", exc)
                break
            if batch.last_update_id is None:
                break
            offset = batch.last_update_id + 1

            for event in batch.events:
                if event.chat_id != self._chat_id:
                    continue
                result.drained += 1
                if event.kind is EventKind.PIN_NOTICE and event.pinned_message_id is not None:
                    result.pinned_id = event.pinned_message_id
                    self._index.set_pinned(self._chat_id, result.pinned_id)
                if event.message_id == result.pinned_id:
                    continue
                await self._delete(event.message_id, result)

            if batch.update_count < self._batch_size:
                break

        if offset > self._cursor.current:
            self._cursor.reset(offset)
