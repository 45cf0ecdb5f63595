"""Chat message formatting.

Keeping every bot-authored text here prevents drift between commands and
keeps replies consistent. All output is Bot API HTML.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from core.scheduler import WipeSchedule

DIVIDER = "──────────────"


@dataclass(frozen=True)
class StatusReport:
    """Values shown by the status command."""

    uptime_seconds: float
    tracked: int
    schedule: Optional[WipeSchedule]
    rule: Optional[str]
    timezone: str
    next_run: Optional[datetime]
    last_wipe_at: Optional[datetime]
    wipe_in_flight: bool = False


@dataclass(frozen=True)
class HelpEntry:
    usage: str
    description: str


def format_duration(seconds: float) -> str:
    """Render seconds as a compact ``1d 2h 3m 4s`` string."""

    remaining = max(0, int(seconds))
    days, remaining = divmod(remaining, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes, secs = divmod(remaining, 60)
    parts = []
    if days:
        parts.append(f"{days}d")
    if days or hours:
        parts.append(f"{hours}h")
    if days or hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def _format_time(value: Optional[datetime]) -> str:
    if value is None:
        return "never"
    return value.strftime("%Y-%m-%d %H:%M %Z").strip()


def format_online() -> str:
    return "✅ <b>Telegram Wiper Bot is online!</b>"


def format_wipe_confirmation(deleted: int, failed: int, pinned_kept: bool) -> str:
    lines = ["✅ <b>All messages wiped</b> (except pinned)."]
    details = [f"Deleted: {deleted}"]
    if failed:
        details.append(f"Failed: {failed}")
    if pinned_kept:
        details.append("Pinned message kept")
    lines.append(html.escape(" · ".join(details)))
    return "\n".join(lines)


def format_secret(secret: str, ttl_seconds: float) -> str:
    return (
        f"The Admin Dashboard Password is: <code>{html.escape(secret)}</code>\n\n"
        f"<i>This message will self-destruct in {format_duration(ttl_seconds)} 💣</i>"
    )


def format_secret_unavailable() -> str:
    return "⚠️ No admin password is configured."


def format_status(report: StatusReport) -> str:
    if report.schedule is not None:
        cadence = html.escape(f"{report.schedule.describe()} ({report.timezone})")
        approx = "" if report.schedule.exact else " <i>(approximate)</i>"
    else:
        cadence = "disabled"
        approx = ""

    lines = [
        "📊 <b>Wiper status</b>",
        DIVIDER,
        f"<b>Uptime:</b> {format_duration(report.uptime_seconds)}",
        f"<b>Tracked messages:</b> {report.tracked}",
        f"<b>Auto-wipe:</b> {cadence}{approx}",
    ]
    if report.rule:
        lines.append(f"<b>Rule:</b> <code>{html.escape(report.rule)}</code>")
    lines.append(f"<b>Next wipe:</b> {html.escape(_format_time(report.next_run))}")
    lines.append(f"<b>Last wipe:</b> {html.escape(_format_time(report.last_wipe_at))}")
    if report.wipe_in_flight:
        lines.append("<i>A wipe is running right now.</i>")
    return "\n".join(lines)


def format_help(entries: Iterable[HelpEntry]) -> str:
    lines = ["🤖 <b>Available commands</b>", DIVIDER]
    for entry in entries:
        lines.append(f"<code>{html.escape(entry.usage)}</code> - {html.escape(entry.description)}")
    return "\n".join(lines)


def format_usage_error(reason: str, usage: str) -> str:
    return (
        f"❌ {html.escape(reason)}\n"
        f"Usage: <code>{html.escape(usage)}</code>\n"
        "Example: <code>/setautowipe 24 03:00</code>"
    )


def format_schedule_updated(schedule: WipeSchedule, next_run: Optional[datetime]) -> str:
    note = "" if schedule.exact else "\n<i>Non-daily intervals are approximate.</i>"
    return (
        f"⏰ Auto-wipe set to <b>{html.escape(schedule.describe())}</b>.\n"
        f"Next wipe: {html.escape(_format_time(next_run))}{note}"
    )


def format_schedule_failed() -> str:
    return "❌ Could not update the auto-wipe schedule. The previous schedule is still active."
