from __future__ import annotations

import asyncio

from core.engine import WiperEngine
from core.ephemeral import EphemeralMessenger
from core.message_index import MessageIndex
from fakes import CHAT_ID, FakePlatform, make_config


def test_expiry_after_wipe_is_a_noop() -> None:
    platform = FakePlatform()

    async def scenario() -> None:
        engine = WiperEngine(platform, make_config())
        message_id = await engine.messenger.send_ephemeral(CHAT_ID, "temporary", ttl=0.1)
        assert engine.index.contains(CHAT_ID, message_id)

        await asyncio.sleep(0.05)
        await engine.trigger_wipe("test")
        assert message_id in engine.wipe.last_result.deleted

        await asyncio.sleep(0.1)
        # Deleted by the wipe first, then again by its own timer.
        assert platform.delete_calls.count((CHAT_ID, message_id)) == 2
        assert not engine.index.contains(CHAT_ID, message_id)
        assert engine.messenger.pending == 0
        engine.stop()

    asyncio.run(scenario())


def test_message_is_deleted_after_ttl() -> None:
    platform = FakePlatform()
    index = MessageIndex()

    async def scenario() -> None:
        messenger = EphemeralMessenger(platform, index, CHAT_ID, notify_ttl=60)
        message_id = await messenger.send_ephemeral(CHAT_ID, "bye", ttl=0.01)
        assert messenger.pending == 1
        await asyncio.sleep(0.05)
        assert platform.delete_calls == [(CHAT_ID, message_id)]
        assert index.count(CHAT_ID) == 0
        assert messenger.pending == 0

    asyncio.run(scenario())


def test_send_failure_returns_none() -> None:
    platform = FakePlatform()
    platform.fail_send = True
    index = MessageIndex()

    async def scenario() -> None:
        messenger = EphemeralMessenger(platform, index, CHAT_ID, notify_ttl=60)
        assert await messenger.send_ephemeral(CHAT_ID, "hi", ttl=1) is None
        assert messenger.pending == 0
        assert index.count(CHAT_ID) == 0

    asyncio.run(scenario())


def test_delete_quietly_handles_unknown_and_failing_ids() -> None:
    platform = FakePlatform()
    platform.fail_delete = {9}
    index = MessageIndex()
    index.track(CHAT_ID, 9)

    async def scenario() -> None:
        messenger = EphemeralMessenger(platform, index, CHAT_ID, notify_ttl=60)
        assert await messenger.delete_quietly(CHAT_ID, 12345) is True
        assert await messenger.delete_quietly(CHAT_ID, 9) is False
        # A failed delete keeps the id for the next wipe.
        assert index.contains(CHAT_ID, 9)

    asyncio.run(scenario())


def test_notify_uses_retention_window() -> None:
    platform = FakePlatform()

    async def scenario() -> None:
        engine = WiperEngine(platform, make_config(notify_ttl=0.01))
        message_id = await engine.notify("<b>New signup</b>")
        assert platform.sent[-1].chat_id == CHAT_ID
        assert platform.sent[-1].parse_mode == "HTML"
        await asyncio.sleep(0.05)
        assert (CHAT_ID, message_id) in platform.delete_calls
        engine.stop()

    asyncio.run(scenario())


def test_cancel_all_stops_pending_expiries() -> None:
    platform = FakePlatform()
    index = MessageIndex()

    async def scenario() -> None:
        messenger = EphemeralMessenger(platform, index, CHAT_ID, notify_ttl=60)
        await messenger.send_ephemeral(CHAT_ID, "a", ttl=0.01)
        messenger.cancel_all()
        await asyncio.sleep(0.03)
        assert platform.delete_calls == []

    asyncio.run(scenario())
