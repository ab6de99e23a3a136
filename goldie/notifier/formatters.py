"""Goldie — Telegram Message Formatters.

Builds the HTML price tables sent to subscribers, plus the Screen and
Button containers that carry a message text and its inline keyboard
as plain data. The Telegram sink turns keyboards into
InlineKeyboardMarkup; nothing here imports telegram.

Price tables are fixed-width <pre> blocks:
  - title in bold
  - header row: %-8s %-12s %-12s (gain table adds one more column)
  - one row per weight of the newest publication date
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

from goldie.database.models import GoldPrice
from goldie.notifier.localizer import Localizer
from goldie.utils.logger import get_logger

logger = get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d"


def _e(text: str) -> str:
    """Escape HTML special characters.

    Only &, <, > need escaping for Telegram HTML parse mode.
    """
    if not text:
        return ""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


# ═══════════════════════════════════════════════════════════
# Screens
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Button:
    """One inline keyboard button: label and callback data."""

    text: str
    callback_data: str


@dataclass(frozen=True)
class Screen:
    """A message text with an optional inline keyboard.

    Attributes:
        text: Message body (HTML parse mode).
        keyboard: Rows of buttons; empty means no keyboard.
    """

    text: str
    keyboard: tuple[tuple[Button, ...], ...] = field(default_factory=tuple)

    @property
    def has_keyboard(self) -> bool:
        return bool(self.keyboard)


def build_keyboard(rows: Sequence[Sequence[Button]]) -> tuple[tuple[Button, ...], ...]:
    """Freeze nested button lists, dropping empty rows."""
    return tuple(tuple(row) for row in rows if row)


@dataclass(frozen=True)
class ButtonPress:
    """A pressed inline button, detached from the Telegram update.

    Attributes:
        callback_id: Id used to acknowledge the press.
        chat_id: Chat the keyboard lives in.
        message_id: Message carrying the keyboard (edited in place).
        data: The button's callback data.
    """

    callback_id: str
    chat_id: int
    message_id: int
    data: str


# ═══════════════════════════════════════════════════════════
# Price Tables
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GainRow:
    """One line of the gain table."""

    weight: float
    purchase_price: float
    bought_at: float
    gain: float


def compute_gain(current_sell: float, buying_sell: float) -> float:
    """Percentage of the historical sell price the bar is worth today."""
    return current_sell * 100 / buying_sell


def _current_rows(prices: Sequence[GoldPrice]) -> list[GoldPrice]:
    """Rows of the newest date in prices, ascending by weight."""
    if not prices:
        raise ValueError("Cannot format an empty price list")
    newest = max(p.date for p in prices)
    return sorted((p for p in prices if p.date == newest), key=lambda p: p.weight)


def compute_gains(
    prices: Sequence[GoldPrice],
    buying_prices: Sequence[GoldPrice],
) -> list[GainRow]:
    """Match current and historical rows by weight.

    Weights absent from buying_prices, or bought at a zero price, are
    left out.
    """
    by_weight = {bp.weight: bp for bp in buying_prices}
    rows: list[GainRow] = []
    for p in _current_rows(prices):
        bp = by_weight.get(p.weight)
        if bp is None or bp.sell_price == 0:
            continue
        rows.append(GainRow(
            weight=p.weight,
            purchase_price=p.purchase_price,
            bought_at=bp.sell_price,
            gain=compute_gain(p.sell_price, bp.sell_price),
        ))
    return rows


def prices_to_text(
    localizer: Localizer,
    language: Optional[str],
    prices: Sequence[GoldPrice],
) -> str:
    """Format the current price table.

    Args:
        localizer: Message localizer.
        language: Target language (None means default).
        prices: Price rows; only the newest date is shown.

    Returns:
        HTML text ready to send.

    Raises:
        LocalizationError: If the title or a column header is missing.
        ValueError: If prices is empty.
    """
    rows = _current_rows(prices)
    title = localizer.render(
        language, "goldPricesTitle", Date=rows[0].date.strftime(DATE_FORMAT),
    )
    weight = localizer.render(language, "columnWeight")
    buy = localizer.render(language, "columnBuy")
    sell = localizer.render(language, "columnSell")

    lines = [
        f"<b>{_e(title)}</b>",
        "<pre>",
        "%-8s %-12s %-12s" % (weight, buy, sell),
    ]
    for p in rows:
        lines.append("%-8.4g %-12.2f %-12.2f" % (p.weight, p.purchase_price, p.sell_price))
    return "\n".join(lines) + "\n</pre>"


def prices_with_gain_to_text(
    localizer: Localizer,
    language: Optional[str],
    prices: Sequence[GoldPrice],
    buying_prices: Sequence[GoldPrice],
    purchase_date: Optional[date] = None,
) -> Optional[str]:
    """Format the personal gain table for one purchase date.

    Args:
        localizer: Message localizer.
        language: Target language (None means default).
        prices: Current price rows.
        buying_prices: Rows published on the purchase date.
        purchase_date: Shown in the title when given.

    Returns:
        HTML text, or None when no weight could be matched.

    Raises:
        LocalizationError: If the title or a column header is missing.
    """
    gains = compute_gains(prices, buying_prices)
    if not gains:
        return None

    current_date = max(p.date for p in prices).strftime(DATE_FORMAT)
    if purchase_date is not None:
        title = localizer.render(
            language, "goldGainTitle",
            Date=current_date, PurchaseDate=purchase_date.strftime(DATE_FORMAT),
        )
    else:
        title = localizer.render(language, "goldPricesTitle", Date=current_date)

    lines = [
        f"<b>{_e(title)}</b>",
        "<pre>",
        "%-8s %-12s %-12s %-12s" % (
            localizer.render(language, "columnWeight"),
            localizer.render(language, "columnBuy"),
            localizer.render(language, "columnBoughtAt"),
            localizer.render(language, "columnGain"),
        ),
    ]
    for g in gains:
        lines.append(
            "%-8.4g %-12.2f %-12.2f %-12.2f" % (g.weight, g.purchase_price, g.bought_at, g.gain)
        )
    return "\n".join(lines) + "\n</pre>"
