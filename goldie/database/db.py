"""Goldie — SQLite Connection Manager.

Async SQLite connection management using aiosqlite. Handles database
initialization, schema creation and connection lifecycle.
"""

from __future__ import annotations

import aiosqlite
from pathlib import Path

from goldie.utils.logger import get_logger

logger = get_logger(__name__)

# ── Schema Definitions ────────────────────────────────────
SCHEMA_SQL = """
-- ═══ Subscribers Table ═══
-- One row per Telegram chat that ever needed persistence.
CREATE TABLE IF NOT EXISTS subscribers (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id     INTEGER UNIQUE NOT NULL,
    language    TEXT,
    daily_alert INTEGER NOT NULL DEFAULT 0,
    created_at  DATETIME DEFAULT (datetime('now')),
    updated_at  DATETIME DEFAULT (datetime('now'))
);

-- ═══ Date Selections Table ═══
-- Purchase dates a subscriber wants gain notifications for.
CREATE TABLE IF NOT EXISTS date_selections (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    subscriber_id INTEGER NOT NULL,
    purchase_date TEXT    NOT NULL,
    created_at    DATETIME DEFAULT (datetime('now')),
    UNIQUE (subscriber_id, purchase_date),
    FOREIGN KEY (subscriber_id) REFERENCES subscribers(id) ON DELETE CASCADE
);

-- ═══ Gold Prices Table ═══
-- NBKR gold bar prices, one row per (date, weight).
CREATE TABLE IF NOT EXISTS gold_prices (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    date           TEXT NOT NULL,
    weight         REAL NOT NULL,
    purchase_price REAL NOT NULL,
    sell_price     REAL NOT NULL,
    created_at     DATETIME DEFAULT (datetime('now')),
    updated_at     DATETIME DEFAULT (datetime('now')),
    UNIQUE (date, weight)
);

-- ═══ Performance Indexes ═══
CREATE INDEX IF NOT EXISTS idx_subscribers_daily_alert ON subscribers(daily_alert);
CREATE INDEX IF NOT EXISTS idx_selections_subscriber   ON date_selections(subscriber_id);
CREATE INDEX IF NOT EXISTS idx_selections_date         ON date_selections(purchase_date);
CREATE INDEX IF NOT EXISTS idx_gold_prices_date        ON gold_prices(date);
"""


class Database:
    """Async SQLite database connection manager.

    Manages the database lifecycle including initialization, schema creation,
    and a persistent connection with WAL mode and foreign keys enabled.

    Attributes:
        db_path: Resolved absolute path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the database manager.

        Args:
            db_path: Relative or absolute path to the SQLite database file.
                     Parent directories will be created if they don't exist.
        """
        self.db_path = Path(db_path).resolve()
        self._connection: aiosqlite.Connection | None = None
        logger.debug("Database manager initialized with path: %s", self.db_path)

    async def initialize(self) -> None:
        """Open the connection, set pragmas and create the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Connecting to database: %s", self.db_path)
        self._connection = await aiosqlite.connect(str(self.db_path))

        await self._connection.execute("PRAGMA journal_mode=WAL")
        # Needed for ON DELETE CASCADE on date_selections
        await self._connection.execute("PRAGMA foreign_keys=ON")
        self._connection.row_factory = aiosqlite.Row

        await self._connection.executescript(SCHEMA_SQL)
        await self._connection.commit()

        logger.info("Database initialized — all tables ready")

    async def get_connection(self) -> aiosqlite.Connection:
        """Get the active database connection, initializing if necessary.

        Returns:
            The active aiosqlite connection.
        """
        if self._connection is None:
            await self.initialize()
        return self._connection

    async def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
