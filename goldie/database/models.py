"""Goldie — Data Models.

Dataclasses for the persisted entities: gold price rows, subscribers
and their purchase-date selections.

Each dataclass includes:
  - to_db_dict(): converts to a dict suitable for SQLite insertion
  - from_db_row(row): classmethod to reconstruct from a DB row dict
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional


@dataclass
class GoldPrice:
    """One NBKR price row.

    Attributes:
        date: Publication date.
        weight: Bar weight in grams (e.g. 1.0, 31.1035).
        purchase_price: Price the bank buys the bar back at (KGS).
        sell_price: Price the bank sells the bar at (KGS).
    """

    date: date
    weight: float
    purchase_price: float
    sell_price: float

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to a dictionary for SQLite insertion.

        Returns:
            Dict with column names as keys, the date as ISO text.
        """
        return {
            "date": self.date.isoformat(),
            "weight": self.weight,
            "purchase_price": self.purchase_price,
            "sell_price": self.sell_price,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "GoldPrice":
        """Construct a GoldPrice from a database row dictionary.

        Args:
            row: Dictionary with column names as keys.

        Returns:
            A GoldPrice instance.
        """
        return cls(
            date=date.fromisoformat(row["date"]),
            weight=float(row["weight"]),
            purchase_price=float(row["purchase_price"]),
            sell_price=float(row["sell_price"]),
        )


@dataclass
class DateSelection:
    """A purchase date a subscriber wants gain notifications for.

    Attributes:
        id: Row id, used by the settings list delete buttons.
        purchase_date: The selected day.
        created_at: Audit timestamp (text as stored by SQLite).
        buying_prices: Price rows published on purchase_date. Only
            populated by the notification query.
    """

    id: int
    purchase_date: date
    created_at: str = ""
    buying_prices: list[GoldPrice] = field(default_factory=list)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "DateSelection":
        return cls(
            id=row["id"],
            purchase_date=date.fromisoformat(row["purchase_date"]),
            created_at=row.get("created_at") or "",
        )


@dataclass
class Subscriber:
    """A Telegram chat known to the bot.

    Attributes:
        chat_id: Telegram chat id.
        language: Stored language code, None until the user picks one.
        daily_alert: Whether the daily price table is enabled.
        selections: Purchase-date selections, ascending by date.
    """

    chat_id: int
    language: Optional[str] = None
    daily_alert: bool = False
    selections: list[DateSelection] = field(default_factory=list)

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Subscriber":
        return cls(
            chat_id=row["chat_id"],
            language=row.get("language") or None,
            daily_alert=bool(row.get("daily_alert", 0)),
        )

    def language_or(self, default: str) -> str:
        """Return the stored language, or default when none is stored."""
        return self.language or default
