"""Bot API update-to-core event mapping adapter.

This keeps raw update payload details out of the engine: every update is
resolved once into a ChatEvent, or dropped when it carries no message.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from core.models import ChatEvent, ChatSummary, EventKind, UpdateBatch


def _message_payload(update: dict[str, Any]) -> tuple[Optional[dict[str, Any]], EventKind]:
    message = update.get("message")
    if isinstance(message, dict):
        return message, EventKind.MESSAGE
    post = update.get("channel_post")
    if isinstance(post, dict):
        return post, EventKind.CHANNEL_POST
    return None, EventKind.MESSAGE


def event_from_update(update: dict[str, Any]) -> Optional[ChatEvent]:
    """Build a ChatEvent from one Bot API update, or None if it has no message."""

    update_id = update.get("update_id")
    message, kind = _message_payload(update)
    if message is None or not isinstance(update_id, int):
        return None

    chat = message.get("chat") or {}
    chat_id = chat.get("id")
    message_id = message.get("message_id")
    if not isinstance(chat_id, int) or not isinstance(message_id, int):
        return None

    sender = message.get("from") or {}
    sender_id = sender.get("id") if isinstance(sender.get("id"), int) else None
    text = message.get("text")

    pinned_message_id = None
    pinned = message.get("pinned_message")
    if isinstance(pinned, dict):
        # Service message announcing a new pin; the pinned message is nested.
        kind = EventKind.PIN_NOTICE
        pinned_message_id = pinned.get("message_id")

    return ChatEvent(
        kind=kind,
        update_id=update_id,
        chat_id=chat_id,
        message_id=message_id,
        sender_id=sender_id,
        text=text if isinstance(text, str) else None,
        pinned_message_id=pinned_message_id,
    )


def batch_from_updates(updates: Iterable[dict[str, Any]]) -> UpdateBatch:
    """Map a getUpdates result, keeping the highest update_id even for dropped updates."""

    events: list[ChatEvent] = []
    last_update_id: Optional[int] = None
    count = 0
    for update in updates:
        count += 1
        update_id = update.get("update_id")
        if isinstance(update_id, int) and (last_update_id is None or update_id > last_update_id):
            last_update_id = update_id
        event = event_from_update(update)
        if event is not None:
            events.append(event)
    return UpdateBatch(events=events, last_update_id=last_update_id, update_count=count)


def _chat_title(chat: dict[str, Any]) -> str:
    title = chat.get("title")
    if title:
        return str(title)
    first = chat.get("first_name")
    last = chat.get("last_name")
    if first or last:
        return " ".join(part for part in [first, last] if part)
    username = chat.get("username")
    if username:
        return f"@{username}"
    return str(chat.get("id", "unknown"))


def chat_summaries(updates: Iterable[dict[str, Any]]) -> list[ChatSummary]:
    """Return each distinct chat seen in ``updates``, in first-seen order."""

    seen: dict[int, ChatSummary] = {}
    for update in updates:
        message, _ = _message_payload(update)
        if message is None:
            continue
        chat = message.get("chat") or {}
        chat_id = chat.get("id")
        if not isinstance(chat_id, int) or chat_id in seen:
            continue
        seen[chat_id] = ChatSummary(
            chat_id=chat_id,
            chat_type=str(chat.get("type", "chat")),
            title=_chat_title(chat),
        )
    return list(seen.values())
