"""Goldie — Database Query Operations.

All async database read/write operations. Every function:
  - Uses parameterized queries (? placeholders, never f-strings for values)
  - Handles connection via the Database instance
  - Commits after writes
  - Returns dataclasses or plain values (never aiosqlite Row objects)
  - Logs operations at DEBUG level

Subscribers are addressed by their Telegram chat id everywhere; the
internal row id never leaves this module.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Optional

import aiosqlite

from goldie.database.db import Database
from goldie.database.models import DateSelection, GoldPrice, Subscriber
from goldie.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 10


def _row_to_dict(row: Any) -> dict[str, Any]:
    """Convert an aiosqlite Row to a plain dictionary."""
    return dict(row)


async def _ensure_subscriber(conn: aiosqlite.Connection, chat_id: int) -> int:
    """Create the subscriber row if missing and return its internal id.

    Does not commit; callers commit together with their own writes.

    Args:
        conn: Active connection.
        chat_id: Telegram chat id.

    Returns:
        The subscribers.id primary key.
    """
    await conn.execute(
        "INSERT OR IGNORE INTO subscribers (chat_id) VALUES (?)",
        (chat_id,),
    )
    cursor = await conn.execute(
        "SELECT id FROM subscribers WHERE chat_id = ?",
        (chat_id,),
    )
    row = await cursor.fetchone()
    return row["id"]


# ═══════════════════════════════════════════════════════════
# Subscriber Operations
# ═══════════════════════════════════════════════════════════


async def get_subscriber(db: Database, chat_id: int) -> Optional[Subscriber]:
    """Retrieve a subscriber with its selections (ascending by date).

    Args:
        db: Active database instance.
        chat_id: Telegram chat id.

    Returns:
        The Subscriber, or None if the chat never needed persistence.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT * FROM subscribers WHERE chat_id = ?",
        (chat_id,),
    )
    row = await cursor.fetchone()
    if row is None:
        logger.debug("get_subscriber(%s) → not found", chat_id)
        return None

    subscriber = Subscriber.from_db_row(_row_to_dict(row))
    subscriber.selections = await list_date_selections(db, chat_id)
    logger.debug(
        "get_subscriber(%s) → found (%d selections)",
        chat_id, len(subscriber.selections),
    )
    return subscriber


async def set_daily_alert(db: Database, chat_id: int, enabled: bool) -> None:
    """Create-or-update the daily alert flag for a chat.

    Args:
        db: Active database instance.
        chat_id: Telegram chat id.
        enabled: New flag value.
    """
    conn = await db.get_connection()
    await conn.execute(
        """
        INSERT INTO subscribers (chat_id, daily_alert) VALUES (?, ?)
        ON CONFLICT(chat_id) DO UPDATE SET
            daily_alert = excluded.daily_alert,
            updated_at = datetime('now')
        """,
        (chat_id, int(enabled)),
    )
    await conn.commit()
    logger.debug("Daily alert for %s → %s", chat_id, enabled)


async def set_language(db: Database, chat_id: int, language: str) -> None:
    """Create-or-update the stored language for a chat.

    Args:
        db: Active database instance.
        chat_id: Telegram chat id.
        language: Language code (e.g. 'en', 'ru').
    """
    conn = await db.get_connection()
    await conn.execute(
        """
        INSERT INTO subscribers (chat_id, language) VALUES (?, ?)
        ON CONFLICT(chat_id) DO UPDATE SET
            language = excluded.language,
            updated_at = datetime('now')
        """,
        (chat_id, language),
    )
    await conn.commit()
    logger.debug("Language for %s → %s", chat_id, language)


async def get_language(db: Database, chat_id: int) -> Optional[str]:
    """Return the stored language for a chat, or None."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT language FROM subscribers WHERE chat_id = ?",
        (chat_id,),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return row["language"] or None


async def disable_alerts(db: Database, chat_id: int) -> None:
    """Turn off the daily alert and drop every date selection.

    The subscriber row itself (and its language) is kept.

    Args:
        db: Active database instance.
        chat_id: Telegram chat id.
    """
    conn = await db.get_connection()
    subscriber_id = await _ensure_subscriber(conn, chat_id)
    await conn.execute(
        "UPDATE subscribers SET daily_alert = 0, updated_at = datetime('now') WHERE id = ?",
        (subscriber_id,),
    )
    await conn.execute(
        "DELETE FROM date_selections WHERE subscriber_id = ?",
        (subscriber_id,),
    )
    await conn.commit()
    logger.debug("Disabled all alerts for %s", chat_id)


async def delete_subscriber(db: Database, chat_id: int) -> bool:
    """Forget a chat entirely; selections go with it (ON DELETE CASCADE).

    Args:
        db: Active database instance.
        chat_id: Telegram chat id.

    Returns:
        True if a subscriber row was removed.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        "DELETE FROM subscribers WHERE chat_id = ?",
        (chat_id,),
    )
    await conn.commit()
    deleted = cursor.rowcount > 0
    logger.debug("delete_subscriber(%s) = %s", chat_id, deleted)
    return deleted


async def get_subscribers_with_buying_prices(db: Database) -> list[Subscriber]:
    """Load every subscriber that should be notified this cycle.

    A subscriber is eligible if the daily alert is on or it holds at
    least one date selection. Each selection comes back with the price
    rows published on its purchase date attached as buying_prices
    (empty when nothing was published that day).

    Args:
        db: Active database instance.

    Returns:
        Eligible subscribers ordered by row id; selections ascending.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        """
        SELECT * FROM subscribers
        WHERE daily_alert = 1
           OR EXISTS (
               SELECT 1 FROM date_selections d WHERE d.subscriber_id = subscribers.id
           )
        ORDER BY id
        """
    )
    rows = await cursor.fetchall()
    if not rows:
        return []

    by_id: dict[int, Subscriber] = {}
    for row in rows:
        data = _row_to_dict(row)
        by_id[data["id"]] = Subscriber.from_db_row(data)

    cursor = await conn.execute(
        """
        SELECT
            d.id, d.subscriber_id, d.purchase_date, d.created_at,
            p.weight, p.purchase_price, p.sell_price
        FROM date_selections d
        LEFT JOIN gold_prices p ON p.date = d.purchase_date
        ORDER BY d.subscriber_id, d.purchase_date, p.weight
        """
    )
    selections: dict[int, DateSelection] = {}
    for row in await cursor.fetchall():
        data = _row_to_dict(row)
        subscriber = by_id.get(data["subscriber_id"])
        if subscriber is None:
            continue

        selection = selections.get(data["id"])
        if selection is None:
            selection = DateSelection.from_db_row(data)
            selections[data["id"]] = selection
            subscriber.selections.append(selection)

        if data["weight"] is not None:
            selection.buying_prices.append(GoldPrice(
                date=selection.purchase_date,
                weight=float(data["weight"]),
                purchase_price=float(data["purchase_price"]),
                sell_price=float(data["sell_price"]),
            ))

    subscribers = list(by_id.values())
    logger.debug(
        "Loaded %d eligible subscribers (%d selections)",
        len(subscribers), len(selections),
    )
    return subscribers


# ═══════════════════════════════════════════════════════════
# Date Selection Operations
# ═══════════════════════════════════════════════════════════


async def add_date_selection(db: Database, chat_id: int, purchase_date: date) -> bool:
    """Store a purchase date for a chat, creating the subscriber lazily.

    Selecting the same date twice is a no-op.

    Args:
        db: Active database instance.
        chat_id: Telegram chat id.
        purchase_date: The selected day.

    Returns:
        True if a new selection was stored, False if it already existed.
    """
    conn = await db.get_connection()
    subscriber_id = await _ensure_subscriber(conn, chat_id)
    cursor = await conn.execute(
        """
        INSERT OR IGNORE INTO date_selections (subscriber_id, purchase_date)
        VALUES (?, ?)
        """,
        (subscriber_id, purchase_date.isoformat()),
    )
    await conn.commit()
    inserted = cursor.rowcount > 0
    logger.debug(
        "add_date_selection(%s, %s) → %s",
        chat_id, purchase_date, "inserted" if inserted else "duplicate",
    )
    return inserted


async def delete_date_selection(db: Database, chat_id: int, selection_id: int) -> bool:
    """Delete one of the chat's own selections.

    Deleting an id that is absent (or belongs to another chat) is not
    an error.

    Returns:
        True if a row was removed.
    """
    conn = await db.get_connection()
    cursor = await conn.execute(
        """
        DELETE FROM date_selections
        WHERE id = ?
          AND subscriber_id = (SELECT id FROM subscribers WHERE chat_id = ?)
        """,
        (selection_id, chat_id),
    )
    await conn.commit()
    deleted = cursor.rowcount > 0
    logger.debug("delete_date_selection(%s, %s) = %s", chat_id, selection_id, deleted)
    return deleted


async def list_date_selections(db: Database, chat_id: int) -> list[DateSelection]:
    """All selections of a chat, ascending by purchase date."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        """
        SELECT d.* FROM date_selections d
        JOIN subscribers s ON s.id = d.subscriber_id
        WHERE s.chat_id = ?
        ORDER BY d.purchase_date ASC
        """,
        (chat_id,),
    )
    rows = await cursor.fetchall()
    return [DateSelection.from_db_row(_row_to_dict(r)) for r in rows]


async def count_date_selections(db: Database, chat_id: int) -> int:
    """Number of selections a chat holds."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        """
        SELECT COUNT(*) AS total FROM date_selections d
        JOIN subscribers s ON s.id = d.subscriber_id
        WHERE s.chat_id = ?
        """,
        (chat_id,),
    )
    return (await cursor.fetchone())["total"]


async def list_date_selections_page(
    db: Database,
    chat_id: int,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> tuple[list[DateSelection], int]:
    """One page of a chat's selections, newest purchase date first.

    Args:
        db: Active database instance.
        chat_id: Telegram chat id.
        limit: Page size; non-positive values fall back to 10.
        offset: Rows to skip; negative values are treated as 0.

    Returns:
        Tuple of (selections on the page, total selection count).
    """
    if limit <= 0:
        limit = DEFAULT_PAGE_SIZE
    if offset < 0:
        offset = 0

    total = await count_date_selections(db, chat_id)
    if offset >= total:
        return [], total

    conn = await db.get_connection()
    cursor = await conn.execute(
        """
        SELECT d.* FROM date_selections d
        JOIN subscribers s ON s.id = d.subscriber_id
        WHERE s.chat_id = ?
        ORDER BY d.purchase_date DESC
        LIMIT ? OFFSET ?
        """,
        (chat_id, limit, offset),
    )
    rows = await cursor.fetchall()
    logger.debug(
        "list_date_selections_page(%s, limit=%d, offset=%d) → %d/%d",
        chat_id, limit, offset, len(rows), total,
    )
    return [DateSelection.from_db_row(_row_to_dict(r)) for r in rows], total


# ═══════════════════════════════════════════════════════════
# Gold Price Operations
# ═══════════════════════════════════════════════════════════


async def upsert_prices(db: Database, prices: Iterable[GoldPrice]) -> int:
    """Insert price rows, overwriting amounts for known (date, weight) pairs.

    Args:
        db: Active database instance.
        prices: Rows to store.

    Returns:
        Number of rows written.
    """
    params = [
        (d["date"], d["weight"], d["purchase_price"], d["sell_price"])
        for d in (p.to_db_dict() for p in prices)
    ]
    if not params:
        return 0

    conn = await db.get_connection()
    await conn.executemany(
        """
        INSERT INTO gold_prices (date, weight, purchase_price, sell_price)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(date, weight) DO UPDATE SET
            purchase_price = excluded.purchase_price,
            sell_price = excluded.sell_price,
            updated_at = datetime('now')
        """,
        params,
    )
    await conn.commit()
    logger.debug("Upserted %d price rows", len(params))
    return len(params)


async def get_latest_prices(db: Database) -> list[GoldPrice]:
    """Rows of the most recent publication date, ascending by weight."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        """
        SELECT * FROM gold_prices
        WHERE date = (SELECT MAX(date) FROM gold_prices)
        ORDER BY weight ASC
        """
    )
    rows = await cursor.fetchall()
    return [GoldPrice.from_db_row(_row_to_dict(r)) for r in rows]


async def get_first_price_date(db: Database) -> Optional[date]:
    """Earliest publication date stored, or None on an empty table."""
    conn = await db.get_connection()
    cursor = await conn.execute("SELECT MIN(date) AS first FROM gold_prices")
    row = await cursor.fetchone()
    if row is None or row["first"] is None:
        return None
    return date.fromisoformat(row["first"])


async def price_exists_on(db: Database, day: date) -> bool:
    """Whether any price row exists for the given date."""
    conn = await db.get_connection()
    cursor = await conn.execute(
        "SELECT 1 FROM gold_prices WHERE date = ? LIMIT 1",
        (day.isoformat(),),
    )
    return await cursor.fetchone() is not None
