"""Error taxonomy shared by the engine and its adapters."""

from __future__ import annotations

from typing import Optional


class WiperError(Exception):
    """Base class for all telewiper errors."""


class ConfigError(WiperError):
    """Required configuration is missing or malformed. Fatal at startup."""


class TransientNetworkError(WiperError):
    """A platform call failed for a reason worth retrying on the next tick."""


class TelegramApiError(TransientNetworkError):
    """The Bot API answered with ok=false."""

    def __init__(self, method: str, error_code: Optional[int], description: str) -> None:
        super().__init__(f"{method} failed ({error_code}): {description}")
        self.method = method
        self.error_code = error_code
        self.description = description


class ValidationError(WiperError, ValueError):
    """User-supplied command arguments were rejected.

    The message is shown back to the chat, so keep it short and readable.
    """


class ConcurrencyConflict(WiperError):
    """A wipe was requested while another one was already running."""
