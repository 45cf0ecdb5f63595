from __future__ import annotations

import asyncio

import pytest

from core.engine import WiperEngine
from core.errors import ConfigError
from core.scheduler import WipeSchedule
from fakes import CHAT_ID, FakePlatform, make_config


def test_start_skips_history_and_installs_default_schedule() -> None:
    platform = FakePlatform()
    platform.add_message(1, text="/wipe")
    last = platform.add_message(2)

    async def scenario() -> None:
        engine = WiperEngine(platform, make_config(announce_startup=True))
        await engine.start()
        assert engine.cursor.current == last.update_id + 1
        assert engine.scheduler.schedule == WipeSchedule(48, "03:00")
        assert engine.poller.pending is not None

        online = platform.sent[0]
        assert "online" in online.text
        assert engine.index.snapshot_unique(CHAT_ID) == [online.message_id]

        await asyncio.sleep(0.01)
        # History was skipped, so the old /wipe never ran.
        assert engine.wipe.last_result is None
        engine.stop()
        assert engine.scheduler.job is None
        assert engine.poller.pending is None

    asyncio.run(scenario())


def test_start_with_empty_stream_and_failing_lookup() -> None:
    platform = FakePlatform()

    async def scenario() -> None:
        engine = WiperEngine(platform, make_config())
        await engine.start()
        assert engine.cursor.current == 0
        engine.stop()

        platform.fail_get_updates = True
        other = WiperEngine(platform, make_config())
        await other.start()
        assert other.cursor.current == 0
        other.stop()

    asyncio.run(scenario())


def test_invalid_default_schedule_is_a_config_error() -> None:
    with pytest.raises(ConfigError):
        WiperEngine(FakePlatform(), make_config(default_interval_hours=500))
    with pytest.raises(ConfigError):
        WiperEngine(FakePlatform(), make_config(default_time_of_day="3am"))


def test_wipe_command_end_to_end() -> None:
    platform = FakePlatform(pinned_id=2)

    async def scenario() -> None:
        engine = WiperEngine(platform, make_config(announce_startup=True, resume_delay=0.01))
        platform.state = engine.state
        await engine.start()
        online_id = platform.sent[0].message_id

        for message_id in (1, 2, 3):
            platform.add_message(message_id)
        platform.add_message(4, text="/wipe")

        await asyncio.sleep(0.05)
        result = engine.wipe.last_result
        assert result is not None
        assert result.reason == "command"
        assert sorted(platform.deleted_ids) == sorted([online_id, 1, 3, 4])
        assert 2 not in platform.deleted_ids
        assert platform.overlaps == 0
        assert not engine.state.wipe_in_flight
        engine.stop()

    asyncio.run(scenario())


def test_run_forever_returns_after_stop() -> None:
    platform = FakePlatform()

    async def scenario() -> None:
        engine = WiperEngine(platform, make_config())
        task = asyncio.create_task(engine.run_forever())
        await asyncio.sleep(0.01)
        assert engine.running
        engine.stop()
        await asyncio.wait_for(task, timeout=1)
        assert not engine.running

    asyncio.run(scenario())


def test_status_report_reflects_engine_state() -> None:
    platform = FakePlatform()

    async def scenario() -> None:
        engine = WiperEngine(platform, make_config(default_interval_hours=24, default_time_of_day="09:15"))
        await engine.start()
        engine.index.track(CHAT_ID, 11)
        report = engine.status_report()
        assert report.tracked == 1
        assert report.schedule == WipeSchedule(24, "09:15")
        assert report.rule == "15 9 * * *"
        assert report.next_run is not None
        assert report.last_wipe_at is None
        assert report.uptime_seconds >= 0

        await engine.trigger_wipe("test")
        assert engine.status_report().last_wipe_at is not None
        engine.stop()

    asyncio.run(scenario())
