"""Goldie — Telegram Delivery Sink.

Async Telegram client using python-telegram-bot v22+. Sends, edits and
acknowledges messages for any chat, converting Screen keyboards into
InlineKeyboardMarkup.

Every call is attempted once. Failures surface as DeliveryError so the
caller decides whether to log and move on.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, TelegramError

from goldie.errors import DeliveryError
from goldie.notifier.formatters import Button
from goldie.utils.logger import get_logger

logger = get_logger(__name__)

Keyboard = Sequence[Sequence[Button]]


class MessageSink(Protocol):
    """Anything that can deliver Goldie messages."""

    async def send_text(
        self, chat_id: int, text: str, keyboard: Optional[Keyboard] = None,
    ) -> int: ...

    async def edit_text(
        self, chat_id: int, message_id: int, text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> None: ...

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None: ...


def to_markup(keyboard: Optional[Keyboard]) -> Optional[InlineKeyboardMarkup]:
    """Convert button rows to InlineKeyboardMarkup (None for no keyboard)."""
    if not keyboard:
        return None
    return InlineKeyboardMarkup([
        [InlineKeyboardButton(b.text, callback_data=b.callback_data) for b in row]
        for row in keyboard
    ])


class TelegramNotifier:
    """Delivery sink backed by a python-telegram-bot Bot.

    Attributes:
        bot: The Bot used for all API calls.
    """

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def initialize(self) -> bool:
        """Test the bot connection via getMe.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            me = await self.bot.get_me()
            logger.info("Telegram bot connected: @%s", me.username)
            return True
        except TelegramError as e:
            logger.error("Telegram bot connection failed: %s", e)
            return False

    async def send_text(
        self,
        chat_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> int:
        """Send an HTML message to a chat.

        Args:
            chat_id: Recipient chat.
            text: Message body (HTML parse mode).
            keyboard: Optional inline keyboard rows.

        Returns:
            The Telegram message id.

        Raises:
            DeliveryError: If Telegram rejects the message or is unreachable.
        """
        try:
            msg = await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.HTML,
                reply_markup=to_markup(keyboard),
            )
        except Forbidden as e:
            # Blocked by the user or kicked from the group
            raise DeliveryError(chat_id, f"forbidden: {e.message}") from e
        except TelegramError as e:
            raise DeliveryError(chat_id, str(e)) from e

        logger.debug("Sent message %s to %s", msg.message_id, chat_id)
        return msg.message_id

    async def edit_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> None:
        """Replace the text and keyboard of a message in place.

        An edit that changes nothing is not an error.

        Raises:
            DeliveryError: If Telegram rejects the edit.
        """
        try:
            await self.bot.edit_message_text(
                chat_id=chat_id,
                message_id=message_id,
                text=text,
                parse_mode=ParseMode.HTML,
                reply_markup=to_markup(keyboard),
            )
        except BadRequest as e:
            if "not modified" in e.message.lower():
                logger.debug("Message %s in %s unchanged", message_id, chat_id)
                return
            raise DeliveryError(chat_id, str(e)) from e
        except TelegramError as e:
            raise DeliveryError(chat_id, str(e)) from e

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        """Acknowledge a button press, optionally with a toast text.

        Raises:
            DeliveryError: If Telegram rejects the answer. The chat id is
                unknown here and reported as 0.
        """
        try:
            await self.bot.answer_callback_query(callback_query_id=callback_id, text=text)
        except TelegramError as e:
            raise DeliveryError(0, f"answer callback {callback_id}: {e}") from e
