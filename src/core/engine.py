"""Process-wide wipe engine.

The engine owns every piece of mutable state (cursor, index, in-flight
flags) and wires the poller, wipe orchestrator, scheduler, messenger and
command dispatcher together. Everything runs on one event loop; the only
suspension points are platform calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from core.config import EngineConfig
from core.commands import CommandDispatcher
from core.cursor import Cursor
from core.ephemeral import EphemeralMessenger
from core.errors import ConcurrencyConflict, ConfigError, TransientNetworkError, ValidationError
from core.formatting import StatusReport, format_online
from core.message_index import MessageIndex
from core.models import ChatEvent, EngineState
from core.poller import PollLoop
from core.ports import ChatPlatformPort
from core.scheduler import WipeSchedule, WipeScheduler
from core.wipe import WipeOrchestrator

LOGGER = logging.getLogger(__name__)


class WiperEngine:
    """Owns the engine state and its components."""

    def __init__(self, platform: ChatPlatformPort, config: EngineConfig) -> None:
        try:
            WipeSchedule(config.default_interval_hours, config.default_time_of_day)
        except ValidationError as exc:
            raise ConfigError(f"Invalid default wipe schedule: {exc}") from exc

        self.config = config
        self._platform = platform
        self.state = EngineState()
        self.cursor = Cursor()
        self.index = MessageIndex(config.index_capacity)
        self.messenger = EphemeralMessenger(platform, self.index, config.chat_id, config.notify_ttl)
        self.poller = PollLoop(
            platform,
            self.cursor,
            self.index,
            self.state,
            chat_id=config.chat_id,
            batch_size=config.poll_batch_size,
            interval=config.poll_interval,
            on_command=self._on_command,
        )
        self.wipe = WipeOrchestrator(
            platform,
            self.index,
            self.cursor,
            self.state,
            self.poller,
            self.messenger,
            chat_id=config.chat_id,
            batch_size=config.poll_batch_size,
            resume_delay=config.resume_delay,
        )
        self.scheduler = WipeScheduler(self._on_schedule, timezone=config.timezone)
        self.commands = CommandDispatcher(
            messenger=self.messenger,
            wipe=self.wipe,
            scheduler=self.scheduler,
            status_provider=self.status_report,
            admin_secret=config.admin_secret,
            bot_username=config.bot_username,
            command_delete_delay=config.command_delete_delay,
            secret_ttl=config.secret_ttl,
            reply_ttl=config.reply_ttl,
        )
        self._started_at: Optional[float] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    async def start(self) -> None:
        """Announce, position the cursor, install the default schedule, start polling."""

        self._started_at = time.monotonic()
        self._stop_event = asyncio.Event()
        LOGGER.info("🚀 Starting wiper engine for chat %s", self.config.chat_id)

        if self.config.announce_startup:
            try:
                message_id = await self._platform.send_message(self.config.chat_id, format_online())
            except TransientNetworkError as exc:
                LOGGER.warning("Failed to send the online message: %s", exc)
            else:
                self.index.track(self.config.chat_id, message_id)

        await self._init_cursor()
        self.scheduler.reconfigure(self.config.default_interval_hours, self.config.default_time_of_day)
        self.poller.schedule(0)

    async def _init_cursor(self) -> None:
        # Skip history: start one past the newest update the platform still holds.
        try:
            batch = await self._platform.get_updates(-1, 1)
        except TransientNetworkError as exc:
            LOGGER.warning("Could not read the latest update, starting from 0: %s", exc)
            self.cursor.reset(0)
            return
        start = batch.last_update_id + 1 if batch.last_update_id is not None else 0
        self.cursor.reset(start)
        LOGGER.info("Initial cursor set to %s", start)

    def stop(self) -> None:
        """Cancel every pending timer. Safe to call more than once."""

        self.poller.stop()
        self.scheduler.stop()
        self.messenger.cancel_all()
        if self._stop_event is not None and not self._stop_event.is_set():
            self._stop_event.set()
            LOGGER.info("Wiper engine stopped")

    async def run_forever(self) -> None:
        await self.start()
        try:
            await self._stop_event.wait()
        finally:
            self.stop()

    async def trigger_wipe(self, reason: str = "manual") -> bool:
        """Run or queue a wipe. Returns False when another wipe blocks it."""

        try:
            await self.wipe.trigger(reason)
        except ConcurrencyConflict as exc:
            LOGGER.warning("%s", exc)
            return False
        return True

    async def notify(self, text: str) -> Optional[int]:
        """Post a notification that removes itself after the retention window."""

        return await self.messenger.notify(text)

    def status_report(self) -> StatusReport:
        uptime = time.monotonic() - self._started_at if self._started_at is not None else 0.0
        last = self.wipe.last_result
        return StatusReport(
            uptime_seconds=uptime,
            tracked=self.index.count(self.config.chat_id),
            schedule=self.scheduler.schedule,
            rule=self.scheduler.rule,
            timezone=self.scheduler.timezone_name,
            next_run=self.scheduler.next_run,
            last_wipe_at=last.finished_at if last else None,
            wipe_in_flight=self.state.wipe_in_flight,
        )

    async def _on_command(self, event: ChatEvent) -> None:
        await self.commands.dispatch(event)

    async def _on_schedule(self) -> None:
        await self.trigger_wipe("schedule")
