"""Goldie — Inline Calendar Date Picker.

A stateless year → month → day picker driven by callback data. Every
button carries its own step in the data (prefix 'cal:'), so a screen is
a pure function of the token and the selectable date bounds:

  cal:year:<Y>              → month screen for Y
  cal:month:<YYYY>-<MM>     → day screen for that month
  cal:day:<YYYY>-<MM>-<DD>  → date selected
  cal:back:year             → year screen
  cal:noop                  → inert button

Malformed data is ignored without a reply.
"""

from __future__ import annotations

import calendar as _stdcal
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Awaitable, Callable, Iterable, Optional

from goldie.errors import CalendarRenderError, LocalizationError
from goldie.notifier.formatters import Button, ButtonPress, Screen, build_keyboard
from goldie.notifier.localizer import Localizer
from goldie.utils.logger import get_logger

if TYPE_CHECKING:
    from goldie.notifier.telegram_bot import MessageSink

logger = get_logger(__name__)

PREFIX = "cal:"
NOOP = PREFIX + "noop"

YEARS_PER_ROW = 4
MONTHS_PER_ROW = 3
DAYS_PER_ROW = 7

OUT_OF_RANGE = "⛔"
DISABLED_DAY = "🚫"
BLANK = " "

MONTH_KEYS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
WEEKDAY_KEYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

SelectionCallback = Callable[["MessageSink", ButtonPress, Optional[str], date], Awaitable[None]]


@dataclass(frozen=True)
class DateBounds:
    """Inclusive range of selectable dates."""

    start: date
    end: date

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


# ── Token builders ───────────────────────────────────────


def year_token(year: int) -> str:
    return f"{PREFIX}year:{year}"


def month_token(year: int, month: int) -> str:
    return f"{PREFIX}month:{year:04d}-{month:02d}"


def day_token(day: date) -> str:
    return f"{PREFIX}day:{day.year:04d}-{day.month:02d}-{day.day:02d}"


BACK_TO_YEARS = PREFIX + "back:year"


def _chunk(buttons: list[Button], size: int) -> Iterable[list[Button]]:
    for i in range(0, len(buttons), size):
        yield buttons[i:i + size]


class Calendar:
    """Renders calendar screens and reacts to calendar button presses.

    Holds no navigation state; bounds and language come with each call.

    Attributes:
        disabled_weekdays: ISO weekdays (1=Mon … 7=Sun) that cannot be picked.
    """

    def __init__(
        self,
        localizer: Localizer,
        on_select: SelectionCallback,
        disabled_weekdays: Iterable[int] = (6, 7),
    ) -> None:
        self._localizer = localizer
        self._on_select = on_select
        self.disabled_weekdays = frozenset(disabled_weekdays)

    # ── Localization ─────────────────────────────────────

    def _primary(self, language: Optional[str], message_id: str, **args: str) -> str:
        try:
            return self._localizer.render(language, message_id, **args)
        except LocalizationError as e:
            raise CalendarRenderError(str(e)) from e

    def _label(self, language: Optional[str], message_id: str, fallback: str) -> str:
        try:
            return self._localizer.render(language, message_id)
        except LocalizationError:
            logger.debug("No label '%s' for %s, using '%s'", message_id, language, fallback)
            return fallback

    # ── Screens ──────────────────────────────────────────

    def build_year_screen(self, language: Optional[str], bounds: DateBounds) -> Screen:
        """Years of the bounds, at most four per row."""
        text = self._primary(language, "chooseYear")
        buttons = [
            Button(str(y), year_token(y))
            for y in range(bounds.start.year, bounds.end.year + 1)
        ]
        return Screen(text, build_keyboard(list(_chunk(buttons, YEARS_PER_ROW))))

    def build_month_screen(self, language: Optional[str], bounds: DateBounds, year: int) -> Screen:
        """Twelve months, three per row; months outside the bounds are inert."""
        text = self._primary(language, "chooseMonth", Year=str(year))
        first = (bounds.start.year, bounds.start.month)
        last = (bounds.end.year, bounds.end.month)

        buttons = []
        for month, key in enumerate(MONTH_KEYS, start=1):
            if first <= (year, month) <= last:
                label = self._label(language, f"month.{key}", key)
                buttons.append(Button(label, month_token(year, month)))
            else:
                buttons.append(Button(OUT_OF_RANGE, NOOP))

        rows = list(_chunk(buttons, MONTHS_PER_ROW))
        rows.append([Button(self._label(language, "chooseMonth.prev", "«"), BACK_TO_YEARS)])
        return Screen(text, build_keyboard(rows))

    def build_day_screen(
        self, language: Optional[str], bounds: DateBounds, year: int, month: int,
    ) -> Screen:
        """Monday-first month grid with inert disabled and out-of-range days."""
        text = self._primary(
            language, "chooseDay",
            Year=str(year), Month=_stdcal.month_name[month],
        )

        header = [
            Button(self._label(language, f"day.{key}", key), NOOP)
            for key in WEEKDAY_KEYS
        ]

        first = date(year, month, 1)
        cells = [Button(BLANK, NOOP) for _ in range(first.isoweekday() - 1)]
        for d in range(1, _stdcal.monthrange(year, month)[1] + 1):
            day = date(year, month, d)
            if day not in bounds:
                cells.append(Button(OUT_OF_RANGE, NOOP))
            elif day.isoweekday() in self.disabled_weekdays:
                cells.append(Button(DISABLED_DAY, NOOP))
            else:
                cells.append(Button(f"{d:2d}", day_token(day)))

        while len(cells) % DAYS_PER_ROW:
            cells.append(Button(BLANK, NOOP))

        rows = [header, *_chunk(cells, DAYS_PER_ROW)]
        rows.append([Button(self._label(language, "chooseDay.prev", "«"), year_token(year))])
        return Screen(text, build_keyboard(rows))

    # ── Platform I/O ─────────────────────────────────────

    async def send_calendar(
        self,
        sink: "MessageSink",
        chat_id: int,
        language: Optional[str],
        bounds: DateBounds,
    ) -> int:
        """Send the year screen as a new message.

        Returns:
            The id of the sent message.

        Raises:
            CalendarRenderError: If the screen text cannot be localized.
            DeliveryError: If sending fails.
        """
        screen = self.build_year_screen(language, bounds)
        return await sink.send_text(chat_id, screen.text, screen.keyboard)

    async def handle_callback(
        self,
        sink: "MessageSink",
        press: ButtonPress,
        language: Optional[str],
        bounds: DateBounds,
    ) -> None:
        """Advance the picker for a pressed 'cal:' button.

        Navigation edits the message in place. A picked day is handed
        to the selection callback, then the press is acknowledged.

        Raises:
            CalendarRenderError: If a screen text cannot be localized.
            DeliveryError: If editing or acknowledging fails.
        """
        data = press.data
        if not data.startswith(PREFIX):
            return

        token = data[len(PREFIX):]
        if token == "noop":
            await sink.answer_callback(press.callback_id)
            return

        parts = token.split(":")
        if len(parts) < 2:
            return
        action, arg = parts[0], parts[1]

        screen: Optional[Screen] = None
        selected: Optional[date] = None
        try:
            if action == "back" and arg == "year":
                screen = self.build_year_screen(language, bounds)
            elif action == "year":
                screen = self.build_month_screen(language, bounds, int(arg))
            elif action == "month":
                year, month = (int(x) for x in arg.split("-"))
                if not 1 <= month <= 12:
                    return
                screen = self.build_day_screen(language, bounds, year, month)
            elif action == "day":
                selected = datetime.strptime(arg, "%Y-%m-%d").date()
        except (ValueError, OverflowError):
            logger.debug("Ignoring malformed calendar data: %s", data)
            return

        if selected is not None:
            await self._select(sink, press, language, bounds, selected)
        elif screen is not None:
            await sink.edit_text(press.chat_id, press.message_id, screen.text, screen.keyboard)

    async def _select(
        self,
        sink: "MessageSink",
        press: ButtonPress,
        language: Optional[str],
        bounds: DateBounds,
        selected: date,
    ) -> None:
        try:
            if selected in bounds and selected.isoweekday() not in self.disabled_weekdays:
                await self._on_select(sink, press, language, selected)
            else:
                logger.debug("Ignoring unselectable date %s from %s", selected, press.chat_id)
        finally:
            await sink.answer_callback(press.callback_id)
