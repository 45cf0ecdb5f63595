"""Chat command parsing and dispatch.

Commands are table-driven: each entry names the handler, the help text and
how long the triggering message stays in the chat before it is deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

from core.ephemeral import EphemeralMessenger
from core.errors import ConcurrencyConflict, ValidationError
from core.formatting import (
    HelpEntry,
    StatusReport,
    format_help,
    format_schedule_failed,
    format_schedule_updated,
    format_secret,
    format_secret_unavailable,
    format_status,
    format_usage_error,
)
from core.models import ChatEvent
from core.scheduler import WipeSchedule, WipeScheduler
from core.wipe import WipeOrchestrator

LOGGER = logging.getLogger(__name__)

SETAUTOWIPE_USAGE = "/setautowipe <hours:1-168> <HH:MM>"

Handler = Callable[[ChatEvent, tuple[str, ...]], Awaitable[None]]


@dataclass(frozen=True)
class ParsedCommand:
    name: str
    args: tuple[str, ...]


@dataclass(frozen=True)
class CommandSpec:
    """One row of the command table."""

    name: str
    handler: Handler
    usage: str
    description: str
    takes_args: bool = False
    # Seconds before the triggering message is deleted; None keeps it.
    delete_after: Optional[float] = None


def parse_command(text: str, bot_username: Optional[str] = None) -> Optional[ParsedCommand]:
    """Split ``/name[@bot] args...`` into a ParsedCommand.

    A ``@suffix`` is accepted when it names this bot, or always when the bot
    username is unknown. Returns None for anything that is not a command.
    """

    parts = text.strip().split()
    if not parts or not parts[0].startswith("/"):
        return None

    name, sep, mention = parts[0][1:].partition("@")
    if not name:
        return None
    if sep and bot_username and mention.lower() != bot_username.lstrip("@").lower():
        return None
    return ParsedCommand(name=name, args=tuple(parts[1:]))


class CommandDispatcher:
    """Maps recognized command text to engine actions."""

    def __init__(
        self,
        *,
        messenger: EphemeralMessenger,
        wipe: WipeOrchestrator,
        scheduler: WipeScheduler,
        status_provider: Callable[[], StatusReport],
        admin_secret: Optional[str] = None,
        bot_username: Optional[str] = None,
        command_delete_delay: float = 2.0,
        secret_ttl: float = 60.0,
        reply_ttl: float = 30.0,
    ) -> None:
        self._messenger = messenger
        self._wipe = wipe
        self._scheduler = scheduler
        self._status_provider = status_provider
        self._admin_secret = admin_secret
        self._bot_username = bot_username
        self._secret_ttl = secret_ttl
        self._reply_ttl = reply_ttl
        self._commands = {spec.name: spec for spec in self._build_table(command_delete_delay)}

    def _build_table(self, delete_after: float) -> Iterable[CommandSpec]:
        return [
            CommandSpec(
                "wipe",
                self._handle_wipe,
                "/wipe",
                "Delete all messages except the pinned one",
                delete_after=delete_after,
            ),
            CommandSpec(
                "password",
                self._handle_password,
                "/password",
                "Receive the admin password privately",
                delete_after=delete_after,
            ),
            CommandSpec(
                "status",
                self._handle_status,
                "/status",
                "Show uptime, tracked messages and schedule",
                delete_after=delete_after,
            ),
            CommandSpec("help", self._handle_help, "/help", "Show this list", delete_after=delete_after),
            CommandSpec(
                "setautowipe",
                self._handle_setautowipe,
                SETAUTOWIPE_USAGE,
                "Change the auto-wipe interval and time",
                takes_args=True,
                delete_after=delete_after,
            ),
        ]

    @property
    def commands(self) -> list[CommandSpec]:
        return list(self._commands.values())

    async def dispatch(self, event: ChatEvent) -> Optional[str]:
        """Run the command in ``event``, if any. Returns the command name."""

        if not event.text:
            return None
        parsed = parse_command(event.text, self._bot_username)
        if parsed is None:
            return None
        spec = self._commands.get(parsed.name)
        if spec is None:
            return None
        if parsed.args and not spec.takes_args:
            return None

        LOGGER.info("/%s received from %s in %s", spec.name, event.sender_id, event.chat_id)
        if spec.delete_after is not None:
            self._messenger.schedule_delete(event.chat_id, event.message_id, spec.delete_after)
        await spec.handler(event, parsed.args)
        return spec.name

    async def _reply(self, event: ChatEvent, text: str) -> None:
        await self._messenger.send_ephemeral(event.chat_id, text, self._reply_ttl)

    async def _handle_wipe(self, event: ChatEvent, args: tuple[str, ...]) -> None:
        try:
            await self._wipe.trigger("command")
        except ConcurrencyConflict as exc:
            LOGGER.warning("%s", exc)

    async def _handle_password(self, event: ChatEvent, args: tuple[str, ...]) -> None:
        if not self._admin_secret:
            await self._reply(event, format_secret_unavailable())
            return
        if event.sender_id is None:
            LOGGER.warning("/password without a sender in %s; cannot reply privately", event.chat_id)
            return
        message_id = await self._messenger.send_ephemeral(
            event.sender_id,
            format_secret(self._admin_secret, self._secret_ttl),
            self._secret_ttl,
        )
        if message_id is None:
            # Usually the user has never opened a private chat with the bot.
            LOGGER.warning("Could not deliver the password to %s", event.sender_id)

    async def _handle_status(self, event: ChatEvent, args: tuple[str, ...]) -> None:
        await self._reply(event, format_status(self._status_provider()))

    async def _handle_help(self, event: ChatEvent, args: tuple[str, ...]) -> None:
        entries = [HelpEntry(spec.usage, spec.description) for spec in self._commands.values()]
        await self._reply(event, format_help(entries))

    async def _handle_setautowipe(self, event: ChatEvent, args: tuple[str, ...]) -> None:
        try:
            if len(args) != 2:
                raise ValidationError("Expected an interval in hours and a time of day")
            requested = WipeSchedule.parse(args[0], args[1])
        except ValidationError as exc:
            LOGGER.info("Rejected /setautowipe %s: %s", " ".join(args), exc)
            await self._reply(event, format_usage_error(str(exc), SETAUTOWIPE_USAGE))
            return

        try:
            schedule = self._scheduler.reconfigure(requested.interval_hours, requested.time_of_day)
        except Exception:
            LOGGER.exception("Failed to apply schedule %s", requested.describe())
            await self._reply(event, format_schedule_failed())
            return
        await self._reply(event, format_schedule_updated(schedule, self._scheduler.next_run))
