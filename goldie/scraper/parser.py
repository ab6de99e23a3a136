"""Goldie — NBKR Price Table Parser.

Turns the NBKR gold bar page into GoldPrice rows using selectolax.
Each table body row is expected to read: date (DD.MM.YYYY), weight in
grams, buy-back price, sell price. Numbers use spaces as thousands
separators and ',' as the decimal mark.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from selectolax.parser import HTMLParser, Node

from goldie.database.models import GoldPrice
from goldie.errors import PriceParseError
from goldie.utils.logger import get_logger

logger = get_logger(__name__)

DATE_FORMAT = "%d.%m.%Y"


def _text(node: Optional[Node]) -> str:
    """Safely extract stripped text from a selectolax node."""
    if node is None:
        return ""
    return node.text(strip=True)


def clean_number(raw: str) -> str:
    """Normalize an NBKR number: drop (non-breaking) spaces, ',' → '.'."""
    return raw.replace("\xa0", "").replace(" ", "").strip().replace(",", ".")


def _to_float(raw: str) -> float:
    """Parse a cleaned number; anything unparseable counts as 0."""
    try:
        return float(clean_number(raw))
    except ValueError:
        return 0.0


def parse_gold_prices(html: str) -> list[GoldPrice]:
    """Extract all price rows from the page.

    Rows with fewer than four cells, or with a zero / unparseable
    weight or price, are skipped. The whole table is scanned before an
    unparseable date is reported.

    Args:
        html: Raw page HTML.

    Returns:
        Price rows sorted by (date, weight).

    Raises:
        PriceParseError: If any otherwise valid row carries a bad date.
    """
    tree = HTMLParser(html)
    prices: list[GoldPrice] = []
    first_error: Optional[str] = None

    for row in tree.css("table tbody tr"):
        cells = row.css("td")
        if len(cells) < 4:
            continue

        raw_date = _text(cells[0])
        weight = _to_float(_text(cells[1]))
        buy = _to_float(_text(cells[2]))
        sell = _to_float(_text(cells[3]))

        if weight == 0 or buy == 0 or sell == 0:
            continue

        try:
            day = datetime.strptime(raw_date, DATE_FORMAT).date()
        except ValueError:
            if first_error is None:
                first_error = f"parse date: {raw_date!r}"
            continue

        prices.append(GoldPrice(
            date=day,
            weight=weight,
            purchase_price=buy,
            sell_price=sell,
        ))

    if first_error is not None:
        raise PriceParseError(first_error)

    prices.sort(key=lambda p: (p.date, p.weight))
    logger.debug("Parsed %d price rows", len(prices))
    return prices
