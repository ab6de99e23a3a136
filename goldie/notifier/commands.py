"""Goldie — Telegram Command Handlers.

Interactive commands via Telegram bot:
  /start — language picker
  /help — command overview
  /price — newest gold price table
  /alert — choose an alert type
  /alert1 — enable the daily price alert
  /alert2 — pick a purchase date for gain alerts
  /settings — review and delete purchase dates
  /info — what is stored about the chat
  /stop — disable every alert
  /delete — forget the chat entirely

Button presses are routed by callback data prefix: 'lang:', 'alert:',
'cal:' (date picker) and 'settings:' (purchase-date list).

Uses python-telegram-bot v22+ Application with polling. The
_cmd_* / _on_callback methods only unpack the Update; the work happens
in the plain async methods below them, which take a chat id.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import aiosqlite
from telegram import Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler as TgCmdHandler,
    ContextTypes,
)

from goldie.config import TelegramConfig
from goldie.database import queries
from goldie.database.db import Database
from goldie.errors import GoldieError
from goldie.notifier.calendar import PREFIX as CALENDAR_PREFIX
from goldie.notifier.calendar import Calendar, DateBounds
from goldie.notifier.formatters import Button, ButtonPress, prices_to_text
from goldie.notifier.localizer import Localizer
from goldie.notifier.pagination import PREFIX as SETTINGS_PREFIX
from goldie.notifier.pagination import SubscriptionPager, parse_settings_data
from goldie.notifier.telegram_bot import MessageSink
from goldie.utils.logger import get_logger

logger = get_logger(__name__)

LANGUAGE_PREFIX = "lang:"
ALERT_PREFIX = "alert:"
ALERT_DAILY = ALERT_PREFIX + "daily"
ALERT_DATE = ALERT_PREFIX + "date"

LANGUAGE_BUTTONS = {
    "ru": "🇷🇺 Русский",
    "en": "🇬🇧 English",
}

_COMMANDS = ("start", "help", "price", "alert", "alert1", "alert2",
             "settings", "info", "stop", "delete")


class CommandHandler:
    """Telegram bot command and button handlers.

    Attributes:
        db: Active database instance.
        sink: Delivery sink used for every reply.
        config: Telegram section of the app configuration.
        calendar: Date picker bound to this handler's selection callback.
        pager: Purchase-date list pager.
    """

    def __init__(
        self,
        db: Database,
        sink: MessageSink,
        localizer: Localizer,
        config: TelegramConfig,
        timezone: str = "Asia/Bishkek",
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.db = db
        self.sink = sink
        self.config = config
        self._localizer = localizer
        self._tz = ZoneInfo(timezone)
        self._today = today or (lambda: datetime.now(self._tz).date())
        self.calendar = Calendar(localizer, self._on_date_selected, config.disabled_weekdays)
        self.pager = SubscriptionPager(db, localizer)

    def register(self, tg_app: Application) -> None:
        """Register all handlers with the Telegram Application."""
        for name in _COMMANDS:
            tg_app.add_handler(TgCmdHandler(name, self._make_command(name)))
        tg_app.add_handler(CallbackQueryHandler(self._on_callback))
        logger.info("Registered %d Telegram commands", len(_COMMANDS))

    # ── python-telegram-bot adapters ─────────────────────

    def _make_command(self, name: str):
        method = getattr(self, name)

        async def _cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            chat = update.effective_chat
            if chat is None:
                return
            user = update.effective_user
            language_code = user.language_code if user else None
            logger.info("/%s from %s (%s)", name, chat.id, language_code)
            try:
                await method(chat.id, language_code)
            except (GoldieError, aiosqlite.Error) as e:
                logger.error("/%s failed for %s: %s", name, chat.id, e)
                await self._report_failure(chat.id, language_code)

        _cmd.__name__ = f"_cmd_{name}"
        return _cmd

    async def _on_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if query is None:
            return
        if query.message is None:
            await query.answer()
            return

        press = ButtonPress(
            callback_id=query.id,
            chat_id=query.message.chat.id,
            message_id=query.message.message_id,
            data=query.data or "",
        )
        language_code = query.from_user.language_code if query.from_user else None
        logger.debug("Button %r from %s", press.data, press.chat_id)
        try:
            await self.handle_button(press, language_code)
        except (GoldieError, aiosqlite.Error) as e:
            logger.error("Button %r failed for %s: %s", press.data, press.chat_id, e)
            await self._release_button(press)

    async def _release_button(self, press: ButtonPress) -> None:
        # Stops the client spinner; the press may already have been answered
        try:
            await self.sink.answer_callback(press.callback_id)
        except GoldieError as e:
            logger.debug("Could not acknowledge button %s: %s", press.callback_id, e)

    async def _report_failure(self, chat_id: int, language_code: Optional[str]) -> None:
        try:
            language = self._telegram_language(language_code)
            await self.sink.send_text(chat_id, self._localizer.render(language, "error"))
        except GoldieError as e:
            logger.warning("Could not report failure to %s: %s", chat_id, e)

    # ── Helpers ──────────────────────────────────────────

    def _telegram_language(self, language_code: Optional[str]) -> str:
        if language_code:
            code = language_code.lower().split("-")[0]
            if code in self.config.supported_languages:
                return code
        return self.config.default_language

    async def resolve_language(self, chat_id: int, language_code: Optional[str]) -> str:
        """Stored language, else the Telegram one if supported, else the default."""
        stored = await queries.get_language(self.db, chat_id)
        if stored:
            return stored
        return self._telegram_language(language_code)

    def _alert_time(self) -> str:
        return f"{self.config.alert_hour:02d}:{self.config.alert_minute:02d}"

    async def _calendar_bounds(self) -> Optional[DateBounds]:
        first = await queries.get_first_price_date(self.db)
        if first is None:
            return None
        return DateBounds(start=first, end=self._today())

    # ── Commands ─────────────────────────────────────────

    async def start(self, chat_id: int, language_code: Optional[str]) -> None:
        """Greet in the Telegram language and offer the language picker."""
        language = self._telegram_language(language_code)
        keyboard = [[
            Button(label, f"{LANGUAGE_PREFIX}{code}")
            for code, label in LANGUAGE_BUTTONS.items()
            if code in self.config.supported_languages
        ]]
        await self.sink.send_text(chat_id, self._localizer.render(language, "start"), keyboard)

    async def help(self, chat_id: int, language_code: Optional[str]) -> None:
        language = await self.resolve_language(chat_id, language_code)
        await self.sink.send_text(chat_id, self._localizer.render(language, "help"))

    async def price(self, chat_id: int, language_code: Optional[str]) -> None:
        """Send the newest price table."""
        language = await self.resolve_language(chat_id, language_code)
        prices = await queries.get_latest_prices(self.db)
        if not prices:
            await self.sink.send_text(chat_id, self._localizer.render(language, "noPrices"))
            return
        await self.sink.send_text(chat_id, prices_to_text(self._localizer, language, prices))

    async def alert(self, chat_id: int, language_code: Optional[str]) -> None:
        language = await self.resolve_language(chat_id, language_code)
        t = self._localizer.render
        keyboard = [
            [Button(t(language, "alert.daily"), ALERT_DAILY)],
            [Button(t(language, "alert.date"), ALERT_DATE)],
        ]
        await self.sink.send_text(chat_id, t(language, "alertChoose"), keyboard)

    async def alert1(self, chat_id: int, language_code: Optional[str]) -> None:
        """Enable the daily price alert."""
        language = await self.resolve_language(chat_id, language_code)
        await queries.set_daily_alert(self.db, chat_id, True)
        await self.sink.send_text(
            chat_id, self._localizer.render(language, "alert1Done", Time=self._alert_time()),
        )

    async def alert2(self, chat_id: int, language_code: Optional[str]) -> None:
        """Send the purchase-date picker."""
        language = await self.resolve_language(chat_id, language_code)
        bounds = await self._calendar_bounds()
        if bounds is None:
            await self.sink.send_text(chat_id, self._localizer.render(language, "noPrices"))
            return
        await self.calendar.send_calendar(self.sink, chat_id, language, bounds)

    async def settings(self, chat_id: int, language_code: Optional[str]) -> None:
        """Send the first page of purchase dates."""
        language = await self.resolve_language(chat_id, language_code)
        page = await self.pager.fetch_page(chat_id, 1)
        screen = self.pager.render(language, page)
        await self.sink.send_text(chat_id, screen.text, screen.keyboard)

    async def info(self, chat_id: int, language_code: Optional[str]) -> None:
        """Show what is stored about the chat. Creates nothing."""
        language = await self.resolve_language(chat_id, language_code)
        subscriber = await queries.get_subscriber(self.db, chat_id)
        t = self._localizer.render

        lines = [
            t(language, "infoHeader"),
            t(language, "infoTelegramId", ID=chat_id),
            t(language, "infoLanguage", Language=language),
        ]
        if subscriber is not None:
            for number, selection in enumerate(subscriber.selections, start=1):
                lines.append(t(
                    language, "infoPurchaseDate",
                    Number=number, Date=selection.purchase_date.isoformat(),
                ))

        text = "\n".join(lines) + "\n\n" + t(language, "infoFooter")
        await self.sink.send_text(chat_id, text)

    async def stop(self, chat_id: int, language_code: Optional[str]) -> None:
        """Disable the daily alert and drop every purchase date."""
        language = await self.resolve_language(chat_id, language_code)
        await queries.disable_alerts(self.db, chat_id)
        await self.sink.send_text(chat_id, self._localizer.render(language, "stopDone"))

    async def delete(self, chat_id: int, language_code: Optional[str]) -> None:
        """Forget the chat, then confirm in the language it used."""
        language = await self.resolve_language(chat_id, language_code)
        await queries.delete_subscriber(self.db, chat_id)
        await self.sink.send_text(chat_id, self._localizer.render(language, "deleteDone"))

    # ── Buttons ──────────────────────────────────────────

    async def handle_button(self, press: ButtonPress, language_code: Optional[str]) -> None:
        """Route a button press by its callback data prefix."""
        data = press.data

        if data.startswith(LANGUAGE_PREFIX):
            await self._on_language(press, data[len(LANGUAGE_PREFIX):])
            return

        language = await self.resolve_language(press.chat_id, language_code)

        if data.startswith(CALENDAR_PREFIX):
            bounds = await self._calendar_bounds()
            if bounds is None:
                await self.sink.answer_callback(press.callback_id)
                return
            await self.calendar.handle_callback(self.sink, press, language, bounds)
        elif data.startswith(SETTINGS_PREFIX):
            await self._on_settings(press, language)
        elif data == ALERT_DAILY:
            await queries.set_daily_alert(self.db, press.chat_id, True)
            await self.sink.edit_text(
                press.chat_id, press.message_id,
                self._localizer.render(language, "alert1Done", Time=self._alert_time()),
            )
            await self.sink.answer_callback(press.callback_id)
        elif data == ALERT_DATE:
            bounds = await self._calendar_bounds()
            if bounds is None:
                text = self._localizer.render(language, "noPrices")
                await self.sink.edit_text(press.chat_id, press.message_id, text)
            else:
                screen = self.calendar.build_year_screen(language, bounds)
                await self.sink.edit_text(
                    press.chat_id, press.message_id, screen.text, screen.keyboard,
                )
            await self.sink.answer_callback(press.callback_id)
        else:
            logger.debug("Unknown button data %r from %s", data, press.chat_id)
            await self.sink.answer_callback(press.callback_id)

    async def _on_language(self, press: ButtonPress, code: str) -> None:
        if code not in self.config.supported_languages:
            await self.sink.answer_callback(press.callback_id)
            return
        await queries.set_language(self.db, press.chat_id, code)
        await self.sink.edit_text(
            press.chat_id, press.message_id, self._localizer.render(code, "help"),
        )
        await self.sink.answer_callback(press.callback_id)

    async def _on_settings(self, press: ButtonPress, language: str) -> None:
        parsed = parse_settings_data(press.data)
        if parsed is None:
            logger.debug("Ignoring malformed settings data %r from %s", press.data, press.chat_id)
            await self.sink.answer_callback(press.callback_id)
            return

        action, page_number, selection_id = parsed
        toast: Optional[str] = None
        if action == "del":
            page = await self.pager.delete_and_repage(press.chat_id, selection_id, page_number)
            toast = self._localizer.render(language, "settingsDeleted")
        else:
            page = await self.pager.fetch_page(press.chat_id, page_number)

        screen = self.pager.render(language, page)
        await self.sink.edit_text(press.chat_id, press.message_id, screen.text, screen.keyboard)
        await self.sink.answer_callback(press.callback_id, toast)

    async def _on_date_selected(
        self,
        sink: MessageSink,
        press: ButtonPress,
        language: Optional[str],
        selected: date,
    ) -> None:
        await queries.add_date_selection(self.db, press.chat_id, selected)
        await sink.edit_text(
            press.chat_id, press.message_id,
            self._localizer.render(language, "alert2Done", Time=self._alert_time()),
        )
        logger.info("Chat %s selected purchase date %s", press.chat_id, selected)
