"""Recurring wipe schedule.

A schedule is an (interval hours, HH:MM) pair. It is turned into a cron
rule once, and a single DelayedTask is armed for the next occurrence.
Reconfiguring always stops the current job and starts a fresh one.

Rule derivation:
- 24h -> every day at HH:MM (exact)
- 48h -> every other day of the month at HH:MM
- 72h -> every third day of the month at HH:MM
- 1-23h -> every n hours starting from HH within each day; exact only when
  n divides 24, otherwise the cadence restarts at midnight
- other values above 24h -> every round(h / 24) days of the month; the
  cadence restarts at month boundaries
Everything except 24h is an approximation of "every n hours".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from core.errors import ConfigError, ValidationError
from core.timers import DelayedTask

LOGGER = logging.getLogger(__name__)

MIN_INTERVAL_HOURS = 1
MAX_INTERVAL_HOURS = 168
TIME_OF_DAY_PATTERN = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])$")


@dataclass(frozen=True)
class WipeSchedule:
    """Validated wipe cadence."""

    interval_hours: int
    time_of_day: str

    def __post_init__(self) -> None:
        if isinstance(self.interval_hours, bool) or not isinstance(self.interval_hours, int):
            raise ValidationError("Hours must be a whole number")
        if not MIN_INTERVAL_HOURS <= self.interval_hours <= MAX_INTERVAL_HOURS:
            raise ValidationError(
                f"Hours must be between {MIN_INTERVAL_HOURS} and {MAX_INTERVAL_HOURS}"
            )
        if not TIME_OF_DAY_PATTERN.fullmatch(self.time_of_day):
            raise ValidationError("Time must be in 24-hour HH:MM format")

    @classmethod
    def parse(cls, hours: str, time_of_day: str) -> "WipeSchedule":
        """Build a schedule from raw command/config text."""

        hours = hours.strip()
        if not (hours.isascii() and hours.isdecimal()):
            raise ValidationError("Hours must be a whole number")
        return cls(int(hours), time_of_day.strip())

    @property
    def hour(self) -> int:
        return int(self.time_of_day[:2])

    @property
    def minute(self) -> int:
        return int(self.time_of_day[3:])

    @property
    def exact(self) -> bool:
        """True when the cron rule fires exactly every ``interval_hours``."""

        return self.interval_hours == 24 or 24 % self.interval_hours == 0

    def cron_rule(self) -> str:
        return derive_cron_rule(self)

    def describe(self) -> str:
        return f"every {self.interval_hours}h at {self.time_of_day}"


def derive_cron_rule(schedule: WipeSchedule) -> str:
    """Return the cron expression that approximates ``schedule``."""

    hours = schedule.interval_hours
    hour = schedule.hour
    minute = schedule.minute

    if hours == 24:
        return f"{minute} {hour} * * *"
    if hours == 48:
        return f"{minute} {hour} */2 * *"
    if hours == 72:
        return f"{minute} {hour} */3 * *"
    if hours < 24:
        return f"{minute} {hour % hours}-23/{hours} * * *"
    days = max(1, round(hours / 24))
    if days == 1:
        return f"{minute} {hour} * * *"
    return f"{minute} {hour} */{days} * *"


class WipeScheduler:
    """Holds the single active recurring wipe job."""

    def __init__(
        self,
        on_fire: Callable[[], Awaitable[Any]],
        timezone: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._on_fire = on_fire
        try:
            self._tz = ZoneInfo(timezone) if timezone else None
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown timezone: {timezone}") from exc
        self._clock = clock or self._now
        self._schedule: Optional[WipeSchedule] = None
        self._rule: Optional[str] = None
        self._job: Optional[DelayedTask] = None
        self._next_run: Optional[datetime] = None

    def _now(self) -> datetime:
        if self._tz is not None:
            return datetime.now(self._tz)
        return datetime.now().astimezone()

    @property
    def schedule(self) -> Optional[WipeSchedule]:
        return self._schedule

    @property
    def rule(self) -> Optional[str]:
        return self._rule

    @property
    def job(self) -> Optional[DelayedTask]:
        return self._job

    @property
    def next_run(self) -> Optional[datetime]:
        return self._next_run

    @property
    def timezone_name(self) -> str:
        if self._tz is not None:
            return str(self._tz)
        return self._clock().tzname() or "local"

    def reconfigure(self, interval_hours: int, time_of_day: str) -> WipeSchedule:
        """Replace the active job. Invalid input leaves the current job untouched."""

        schedule = WipeSchedule(interval_hours, time_of_day)
        rule = schedule.cron_rule()
        if not croniter.is_valid(rule):
            raise ValidationError(f"Cannot build a schedule for {schedule.describe()}")
        self.stop()
        self._schedule = schedule
        self._rule = rule
        self._arm()
        LOGGER.info(
            "Auto-wipe scheduled %s (cron %r%s), next run %s",
            schedule.describe(),
            self._rule,
            "" if schedule.exact else ", approximate",
            self._next_run.isoformat() if self._next_run else "-",
        )
        return schedule

    def stop(self) -> None:
        if self._job is not None:
            self._job.cancel()
            self._job = None
        self._next_run = None

    def _arm(self) -> None:
        base = self._clock()
        # Timers can wake marginally early; never compute the same slot twice.
        if self._next_run is not None and base < self._next_run + timedelta(seconds=1):
            base = self._next_run
        next_run = croniter(self._rule, base).get_next(datetime)
        delay = (next_run - self._clock()).total_seconds()
        self._next_run = next_run
        self._job = DelayedTask(delay, self._fire, name="scheduled-wipe")

    async def _fire(self) -> None:
        LOGGER.info("Running scheduled wipe (%s)", self._schedule.describe() if self._schedule else "-")
        # Re-arm first so a failing wipe never stops the cadence.
        self._arm()
        await self._on_fire()
