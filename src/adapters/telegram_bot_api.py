"""Telegram Bot API platform adapter.

Every call is a JSON POST to ``/bot<token>/<method>``. The HTTP request
itself is blocking, so it runs in a worker thread; from the engine's point
of view each call is a single awaitable with a bounded timeout.
"""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Optional

from adapters.telegram_mapper import batch_from_updates, chat_summaries
from core.errors import TelegramApiError, TransientNetworkError
from core.models import ChatSummary, UpdateBatch

LOGGER = logging.getLogger(__name__)

API_BASE_URL = "https://api.telegram.org"
ALLOWED_UPDATES = ["message", "channel_post"]
# deleteMessage descriptions that mean the message no longer exists.
GONE_DESCRIPTIONS = ("message to delete not found", "message_id_invalid")


class TelegramBotApi:
    """ChatPlatformPort implementation backed by the Telegram Bot API."""

    def __init__(self, bot_token: str, timeout: float = 15.0, base_url: str = API_BASE_URL) -> None:
        self._bot_token = bot_token
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{self._base_url}/bot{self._bot_token}/{method}"

    def _call_sync(self, method: str, payload: dict[str, Any]) -> Any:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = response.read()
        except urllib.error.HTTPError as e:
            # The Bot API explains 4xx/5xx failures in a JSON body.
            try:
                body = e.read()
            except (OSError, http.client.HTTPException):
                body = b""
            if not body:
                raise TelegramApiError(method, e.code, str(e.reason)) from e
        except (urllib.error.URLError, http.client.HTTPException, TimeoutError, OSError) as e:
            # HTTPException: truncated or malformed responses (IncompleteRead, BadStatusLine).
            reason = getattr(e, "reason", e)
            raise TransientNetworkError(f"{method} request failed: {reason}") from e

        try:
            parsed = json.loads(body.decode("utf-8", errors="replace"))
        except ValueError as e:
            raise TransientNetworkError(f"{method} returned invalid JSON") from e

        if not isinstance(parsed, dict) or not parsed.get("ok"):
            parsed = parsed if isinstance(parsed, dict) else {}
            description = str(parsed.get("description", "unknown error"))
            raise TelegramApiError(method, parsed.get("error_code"), description)
        return parsed.get("result")

    async def _call(self, method: str, payload: dict[str, Any]) -> Any:
        return await asyncio.to_thread(self._call_sync, method, payload)

    async def get_updates(self, offset: Optional[int], limit: int = 100) -> UpdateBatch:
        payload: dict[str, Any] = {"limit": limit, "timeout": 0, "allowed_updates": ALLOWED_UPDATES}
        if offset is not None:
            payload["offset"] = offset
        result = await self._call("getUpdates", payload)
        return batch_from_updates(result or [])

    async def send_message(self, chat_id: int, text: str, parse_mode: Optional[str] = "HTML") -> int:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        result = await self._call("sendMessage", payload)
        message_id = int(result["message_id"])
        LOGGER.debug("Sent message %s to %s", message_id, chat_id)
        return message_id

    async def delete_message(self, chat_id: int, message_id: int) -> bool:
        try:
            await self._call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})
        except TelegramApiError as exc:
            description = exc.description.lower()
            if exc.error_code == 400 and any(marker in description for marker in GONE_DESCRIPTIONS):
                return False
            raise
        return True

    async def get_pinned_message_id(self, chat_id: int) -> Optional[int]:
        result = await self._call("getChat", {"chat_id": chat_id}) or {}
        pinned = result.get("pinned_message")
        if not isinstance(pinned, dict):
            return None
        return pinned.get("message_id")

    async def get_me(self) -> dict[str, Any]:
        return await self._call("getMe", {}) or {}

    async def list_recent_chats(self, limit: int = 100) -> list[ChatSummary]:
        """Chats present in pending updates. Nothing is confirmed or consumed."""

        result = await self._call("getUpdates", {"limit": limit, "timeout": 0})
        return chat_summaries(result or [])
