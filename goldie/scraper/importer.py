"""Goldie — Price Import Pipeline.

Fetches NBKR price windows, parses them and upserts the rows into the
gold_prices table. Two entry points:
  - update_prices(): the scheduled refresh of the last year
  - first_import(): one-time backfill of the full history, year by year
"""

from __future__ import annotations

import time
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from goldie.database import queries
from goldie.database.db import Database
from goldie.errors import PriceParseError
from goldie.scraper.client import NbkrClient
from goldie.scraper.parser import parse_gold_prices
from goldie.utils.logger import get_logger

logger = get_logger(__name__)

# Earliest publication on the NBKR page; its presence marks a finished backfill.
FIRST_PRICE_DATE = date(2015, 7, 5)


def shift_years(day: date, years: int) -> date:
    """Move a date by whole years, mapping Feb 29 to Feb 28 when needed."""
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        return day.replace(year=day.year + years, day=28)


class PriceImporter:
    """Imports NBKR gold prices into the database.

    Attributes:
        client: HTTP client for the NBKR page.
        db: Active database instance.
    """

    def __init__(
        self,
        client: NbkrClient,
        db: Database,
        timezone: str = "Asia/Bishkek",
        first_import_year: int = 2015,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        """Initialize the importer.

        Args:
            client: NbkrClient used to fetch price windows.
            db: Active Database instance with initialized schema.
            timezone: IANA zone that defines "today".
            first_import_year: Year the backfill starts at (January 1st).
            today: Optional clock override returning the current date.
        """
        self.client = client
        self.db = db
        self._tz = ZoneInfo(timezone)
        self._first_import_year = first_import_year
        self._today = today or (lambda: datetime.now(self._tz).date())

    async def _import_window(self, begin: date, end: date) -> Optional[int]:
        """Fetch, parse and store one window.

        Returns:
            Number of rows stored, or None if the window could not be
            fetched or parsed.
        """
        html = await self.client.get_prices_page(begin, end)
        if html is None:
            logger.error("Failed to fetch gold prices for %s … %s", begin, end)
            return None

        try:
            prices = parse_gold_prices(html)
        except PriceParseError as e:
            logger.error("Failed to parse gold prices for %s … %s: %s", begin, end, e)
            return None

        if not prices:
            return 0

        return await queries.upsert_prices(self.db, prices)

    async def update_prices(self) -> int:
        """Refresh the last year of prices.

        Returns:
            Number of rows stored (0 on failure).
        """
        start_time = time.monotonic()
        end = self._today()
        begin = shift_years(end, -1)

        stored = await self._import_window(begin, end)
        if stored is None:
            return 0

        logger.info(
            "Price update finished: %d rows for %s … %s (%.1fs)",
            stored, begin, end, time.monotonic() - start_time,
        )
        return stored

    async def first_import(self) -> int:
        """Backfill the full price history once.

        Does nothing when the first NBKR publication is already stored.
        Otherwise walks one-year windows from January 1st of the first
        import year until a window comes back empty.

        Returns:
            Total number of rows stored.
        """
        if await queries.price_exists_on(self.db, FIRST_PRICE_DATE):
            logger.info("Price history already imported, skipping backfill")
            return 0

        logger.info("═══ Price Backfill Starting ═══")
        start_time = time.monotonic()
        today = self._today()
        begin = date(self._first_import_year, 1, 1)
        total = 0

        while begin <= today:
            end = shift_years(begin, 1)
            stored = await self._import_window(begin, end)
            if stored is None:
                logger.warning("Backfill aborted at %s after %d rows", begin, total)
                return total
            if stored == 0:
                break

            total += stored
            logger.info("Imported %d rows for %s … %s", stored, begin, end)
            begin = end

        logger.info(
            "═══ Price Backfill Complete: %d rows (%.1fs) ═══",
            total, time.monotonic() - start_time,
        )
        return total
