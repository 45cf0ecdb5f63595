"""Update ingestion loop.

One tick: fetch updates after the cursor, advance the cursor past the whole
batch, then track and dispatch each event for the target chat. The cursor
moves before dispatching, so a crash mid-batch never replays it. A stale
event that does get replayed is harmless because tracking and deleting are
idempotent.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from core.cursor import Cursor
from core.errors import TransientNetworkError
from core.message_index import MessageIndex
from core.models import ChatEvent, EngineState, EventKind
from core.ports import ChatPlatformPort
from core.timers import DelayedTask

LOGGER = logging.getLogger(__name__)

EventHandler = Callable[[ChatEvent], Awaitable[Any]]


class PollLoop:
    """Self-rescheduling poller that never runs alongside a wipe."""

    def __init__(
        self,
        platform: ChatPlatformPort,
        cursor: Cursor,
        index: MessageIndex,
        state: EngineState,
        chat_id: int,
        batch_size: int = 100,
        interval: float = 3.0,
        on_command: Optional[EventHandler] = None,
    ) -> None:
        self._platform = platform
        self._cursor = cursor
        self._index = index
        self._state = state
        self._chat_id = chat_id
        self._batch_size = batch_size
        self._interval = interval
        self._on_command = on_command
        self._timer: Optional[DelayedTask] = None
        self._deferred: Optional[Callable[[], Awaitable[Any]]] = None
        self._on_discard: Optional[Callable[[], None]] = None
        self._stopped = False

    @property
    def pending(self) -> Optional[DelayedTask]:
        return self._timer

    def schedule(self, delay: Optional[float] = None) -> Optional[DelayedTask]:
        """Arm the next tick, replacing any pending one."""

        self.cancel_pending()
        if self._stopped:
            return None
        self._timer = DelayedTask(self._interval if delay is None else delay, self.tick, name="poll")
        return self._timer

    def cancel_pending(self) -> bool:
        timer, self._timer = self._timer, None
        if timer is None:
            return False
        return timer.cancel()

    def run_after_tick(
        self,
        callback: Callable[[], Awaitable[Any]],
        on_discard: Optional[Callable[[], None]] = None,
    ) -> None:
        """Run ``callback`` once the current tick is done, instead of rescheduling.

        The callback becomes responsible for restarting the loop. If the loop
        is stopped first, ``on_discard`` is called instead.
        """

        self._deferred = callback
        self._on_discard = on_discard

    def stop(self) -> None:
        self._stopped = True
        on_discard = self._on_discard
        self._deferred = None
        self._on_discard = None
        if on_discard is not None:
            on_discard()
        self.cancel_pending()

    async def tick(self) -> int:
        """Run one fetch/dispatch cycle. Returns the number of events handled."""

        # Drops this tick's own (already fired) timer, or any other pending one.
        self.cancel_pending()
        if self._state.wipe_in_flight:
            # The wipe restarts polling when it finishes.
            LOGGER.debug("Skipping poll tick while a wipe is running")
            return 0
        if self._state.polling_in_flight:
            return 0

        self._state.polling_in_flight = True
        handled = 0
        try:
            batch = await self._platform.get_updates(self._cursor.current, self._batch_size)
            if batch.last_update_id is not None:
                self._cursor.advance(batch.last_update_id + 1)
            for event in batch.events:
                try:
                    if await self._dispatch(event):
                        handled += 1
                except Exception:
                    LOGGER.exception("Failed to handle update %s", event.update_id)
        except TransientNetworkError as exc:
            LOGGER.warning("Polling failed: %s", exc)
        except Exception:
            LOGGER.exception("Unexpected error while polling")
        finally:
            self._state.polling_in_flight = False

        deferred, self._deferred = self._deferred, None
        self._on_discard = None
        if deferred is not None:
            try:
                await deferred()
            except Exception:
                LOGGER.exception("Deferred operation after poll tick failed")
            if self._timer is None and not self._state.wipe_in_flight:
                self.schedule()
        elif not self._state.wipe_in_flight:
            self.schedule()
        return handled

    async def _dispatch(self, event: ChatEvent) -> bool:
        if event.chat_id != self._chat_id:
            return False

        if event.kind is EventKind.PIN_NOTICE and event.pinned_message_id is not None:
            # Keep the freshly pinned id until the next wipe looks the pin up again.
            self._index.set_pinned(event.chat_id, event.pinned_message_id)
            self._index.track(event.chat_id, event.pinned_message_id)
        self._index.track(event.chat_id, event.message_id)

        if event.text and self._on_command is not None:
            await self._on_command(event)
        return True
