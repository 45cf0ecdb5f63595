from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import ConfigError, ValidationError
from core.scheduler import WipeSchedule, WipeScheduler, derive_cron_rule


NOON = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _fixed_clock(value: datetime):
    return lambda: value


async def _noop() -> None:
    return None


def test_daily_rule_is_exact() -> None:
    schedule = WipeSchedule(24, "14:30")
    assert derive_cron_rule(schedule) == "30 14 * * *"
    assert schedule.exact


def test_every_other_and_third_day_rules() -> None:
    assert derive_cron_rule(WipeSchedule(48, "03:00")) == "0 3 */2 * *"
    assert derive_cron_rule(WipeSchedule(72, "09:15")) == "15 9 */3 * *"
    assert not WipeSchedule(48, "03:00").exact


def test_sub_daily_rules_are_anchored_on_the_hour() -> None:
    assert derive_cron_rule(WipeSchedule(6, "03:00")) == "0 3-23/6 * * *"
    assert derive_cron_rule(WipeSchedule(6, "14:10")) == "10 2-23/6 * * *"
    assert derive_cron_rule(WipeSchedule(1, "00:05")) == "5 0-23/1 * * *"
    assert WipeSchedule(6, "03:00").exact
    assert not WipeSchedule(7, "03:00").exact


def test_long_intervals_round_to_days() -> None:
    assert derive_cron_rule(WipeSchedule(96, "03:00")) == "0 3 */4 * *"
    assert derive_cron_rule(WipeSchedule(168, "03:00")) == "0 3 */7 * *"
    assert derive_cron_rule(WipeSchedule(30, "03:00")) == "0 3 * * *"


@pytest.mark.parametrize(
    "hours,time_of_day",
    [
        (0, "03:00"),
        (169, "03:00"),
        (200, "03:00"),
        (24, "24:00"),
        (24, "3:00"),
        (24, "03:60"),
        (24, "noon"),
        (24, "0٣:00"),
        (24, "03:00\n"),
    ],
)
def test_invalid_schedules_are_rejected(hours: int, time_of_day: str) -> None:
    with pytest.raises(ValidationError):
        WipeSchedule(hours, time_of_day)


def test_parse_rejects_non_numeric_hours() -> None:
    with pytest.raises(ValidationError):
        WipeSchedule.parse("twelve", "03:00")
    with pytest.raises(ValidationError):
        WipeSchedule.parse("-5", "03:00")
    for hours in ("²", "１２", "٣"):
        with pytest.raises(ValidationError):
            WipeSchedule.parse(hours, "03:00")
    assert WipeSchedule.parse(" 12 ", "08:45") == WipeSchedule(12, "08:45")


def test_unknown_timezone_is_a_config_error() -> None:
    with pytest.raises(ConfigError):
        WipeScheduler(_noop, timezone="Mars/Olympus_Mons")


def test_reconfigure_computes_next_run() -> None:
    now = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)

    async def scenario() -> None:
        scheduler = WipeScheduler(_noop, clock=_fixed_clock(now))
        scheduler.reconfigure(24, "14:30")
        assert scheduler.rule == "30 14 * * *"
        assert scheduler.next_run == datetime(2024, 1, 1, 14, 30, tzinfo=timezone.utc)
        scheduler.stop()
        assert scheduler.job is None

    asyncio.run(scenario())


def test_reconfigure_replaces_previous_job() -> None:
    async def scenario() -> None:
        scheduler = WipeScheduler(_noop, clock=_fixed_clock(NOON))
        scheduler.reconfigure(48, "03:00")
        old_job = scheduler.job
        assert old_job is not None

        scheduler.reconfigure(24, "09:15")
        assert old_job.cancelled
        assert scheduler.job is not old_job
        assert scheduler.schedule == WipeSchedule(24, "09:15")
        assert scheduler.rule == "15 9 * * *"
        await old_job.wait()
        assert old_job.done
        scheduler.stop()

    asyncio.run(scenario())


def test_invalid_reconfigure_keeps_current_job() -> None:
    async def scenario() -> None:
        scheduler = WipeScheduler(_noop, clock=_fixed_clock(NOON))
        scheduler.reconfigure(48, "03:00")
        job = scheduler.job
        with pytest.raises(ValidationError):
            scheduler.reconfigure(200, "03:00")
        assert scheduler.job is job
        assert not job.cancelled
        assert scheduler.schedule == WipeSchedule(48, "03:00")
        scheduler.stop()

    asyncio.run(scenario())


def test_job_fires_and_rearms_for_the_next_slot() -> None:
    now = datetime(2024, 1, 1, 14, 29, 59, 950000, tzinfo=timezone.utc)
    fired = []

    async def on_fire() -> None:
        fired.append(True)

    async def scenario() -> None:
        scheduler = WipeScheduler(on_fire, clock=_fixed_clock(now))
        scheduler.reconfigure(24, "14:30")
        first_job = scheduler.job
        await asyncio.sleep(0.2)
        assert fired == [True]
        assert scheduler.job is not first_job
        assert scheduler.next_run == datetime(2024, 1, 2, 14, 30, tzinfo=timezone.utc)
        assert scheduler.next_run - now > timedelta(hours=23)
        scheduler.stop()

    asyncio.run(scenario())
