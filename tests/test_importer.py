from datetime import date
from typing import Optional

import pytest

from goldie.database import queries
from goldie.database.models import GoldPrice
from goldie.scraper.importer import FIRST_PRICE_DATE, PriceImporter, shift_years


def _page(*rows: tuple[str, str, str, str]) -> str:
    body = "".join(
        "<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    return f"<table><tbody>{body}</tbody></table>"


EMPTY_PAGE = "<table><tbody></tbody></table>"


class _FakeNbkrClient:
    """Serves canned pages per (begin, end) window."""

    def __init__(self, pages: dict[tuple[date, date], Optional[str]], default: Optional[str] = EMPTY_PAGE) -> None:
        self.pages = pages
        self.default = default
        self.calls: list[tuple[date, date]] = []

    async def get_prices_page(self, begin: date, end: date) -> Optional[str]:
        self.calls.append((begin, end))
        return self.pages.get((begin, end), self.default)


def _importer(client, db, today: date, first_year: int = 2022) -> PriceImporter:
    return PriceImporter(client, db, first_import_year=first_year, today=lambda: today)


def test_shift_years_maps_leap_day():
    assert shift_years(date(2024, 2, 29), -1) == date(2023, 2, 28)
    assert shift_years(date(2024, 6, 1), 1) == date(2025, 6, 1)


@pytest.mark.asyncio
async def test_update_prices_fetches_last_year(db):
    today = date(2024, 11, 8)
    client = _FakeNbkrClient({
        (date(2023, 11, 8), today): _page(
            ("07.11.2024", "1", "12 577,00", "12 640,00"),
            ("07.11.2024", "10", "124 573,50", "125 198,00"),
        ),
    })

    stored = await _importer(client, db, today).update_prices()

    assert stored == 2
    assert client.calls == [(date(2023, 11, 8), today)]
    latest = await queries.get_latest_prices(db)
    assert [(p.weight, p.sell_price) for p in latest] == [(1.0, 12640.0), (10.0, 125198.0)]


@pytest.mark.asyncio
async def test_update_prices_overwrites_existing_rows(db):
    today = date(2024, 11, 8)
    window = (date(2023, 11, 8), today)
    client = _FakeNbkrClient({window: _page(("07.11.2024", "1", "12 500,00", "12 600,00"))})
    importer = _importer(client, db, today)
    await importer.update_prices()

    client.pages[window] = _page(("07.11.2024", "1", "12 577,00", "12 640,00"))
    await importer.update_prices()

    latest = await queries.get_latest_prices(db)
    assert len(latest) == 1
    assert latest[0].sell_price == 12640.0


@pytest.mark.asyncio
async def test_update_prices_failure_stores_nothing(db):
    client = _FakeNbkrClient({}, default=None)

    assert await _importer(client, db, date(2024, 11, 8)).update_prices() == 0
    assert await queries.get_latest_prices(db) == []


@pytest.mark.asyncio
async def test_unparseable_page_stores_nothing(db):
    today = date(2024, 11, 8)
    client = _FakeNbkrClient({
        (date(2023, 11, 8), today): _page(
            ("07.11.2024", "1", "12 577,00", "12 640,00"),
            ("2024-11-06", "1", "12 526,00", "12 588,50"),
        ),
    })

    assert await _importer(client, db, today).update_prices() == 0
    assert await queries.get_latest_prices(db) == []


@pytest.mark.asyncio
async def test_first_import_walks_yearly_windows_until_today(db):
    client = _FakeNbkrClient({
        (date(2022, 1, 1), date(2023, 1, 1)): _page(("05.07.2022", "1", "4 000,00", "4 100,00")),
        (date(2023, 1, 1), date(2024, 1, 1)): _page(("05.07.2023", "1", "5 000,00", "5 100,00")),
        (date(2024, 1, 1), date(2025, 1, 1)): _page(("05.07.2024", "1", "6 000,00", "6 100,00")),
    })

    total = await _importer(client, db, date(2024, 11, 8)).first_import()

    assert total == 3
    assert [c[0] for c in client.calls] == [date(2022, 1, 1), date(2023, 1, 1), date(2024, 1, 1)]
    assert await queries.get_first_price_date(db) == date(2022, 7, 5)


@pytest.mark.asyncio
async def test_first_import_stops_at_empty_window(db):
    client = _FakeNbkrClient({
        (date(2022, 1, 1), date(2023, 1, 1)): _page(("05.07.2022", "1", "4 000,00", "4 100,00")),
    })

    total = await _importer(client, db, date(2024, 11, 8)).first_import()

    assert total == 1
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_first_import_aborts_on_fetch_failure(db):
    client = _FakeNbkrClient({
        (date(2022, 1, 1), date(2023, 1, 1)): _page(("05.07.2022", "1", "4 000,00", "4 100,00")),
    }, default=None)

    total = await _importer(client, db, date(2024, 11, 8)).first_import()

    assert total == 1
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_first_import_skipped_when_history_present(db):
    await queries.upsert_prices(db, [
        GoldPrice(date=FIRST_PRICE_DATE, weight=1.0, purchase_price=2900.0, sell_price=3000.0),
    ])
    client = _FakeNbkrClient({})

    assert await _importer(client, db, date(2024, 11, 8), first_year=2015).first_import() == 0
    assert client.calls == []
