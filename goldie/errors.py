"""Goldie — Exception Types.

Every error raised on purpose inside the package derives from
GoldieError so handler boundaries can catch them in one place.
"""

from __future__ import annotations


class GoldieError(Exception):
    """Base class for all Goldie errors."""


class LocalizationError(GoldieError):
    """Raised when a message cannot be rendered in any known language."""

    def __init__(self, language: str, message_id: str, reason: str) -> None:
        self.language = language
        self.message_id = message_id
        super().__init__(
            f"Cannot localize '{message_id}' for '{language}': {reason}"
        )


class CalendarRenderError(GoldieError):
    """Raised when the primary text of a calendar screen cannot be rendered."""


class DeliveryError(GoldieError):
    """Raised when Telegram rejects or fails to deliver a message."""

    def __init__(self, chat_id: int, reason: str) -> None:
        self.chat_id = chat_id
        super().__init__(f"Delivery to chat {chat_id} failed: {reason}")


class PriceParseError(GoldieError):
    """Raised when the NBKR price page contains an unparseable row."""
