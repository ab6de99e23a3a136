from datetime import date

import pytest

from goldie.errors import PriceParseError
from goldie.scraper.parser import clean_number, parse_gold_prices


def _page(*rows: tuple[str, ...]) -> str:
    body = "".join(
        "<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>"
        for row in rows
    )
    return f"<html><body><table><tbody>{body}</tbody></table></body></html>"


def test_parses_and_sorts_rows():
    html = _page(
        ("Дата", "Вес", "Покупка", "Продажа"),
        ("07.11.2025", "1", "12 577,00", "12 640,00"),
        ("06.11.2025", "31,1035", "349 573,00", "354 816,50"),
        ("06.11.2025", "1", "12 526,00", "12 588,50"),
    )

    prices = parse_gold_prices(html)

    assert [(p.date, p.weight) for p in prices] == [
        (date(2025, 11, 6), 1.0),
        (date(2025, 11, 6), 31.1035),
        (date(2025, 11, 7), 1.0),
    ]
    assert prices[0].purchase_price == 12526.0
    assert prices[0].sell_price == 12588.5
    assert prices[1].purchase_price == 349573.0


def test_skips_short_and_zero_rows():
    html = _page(
        ("06.11.2025", "1", "12 526,00"),
        ("06.11.2025", "2", "0", "23 870,00"),
        ("06.11.2025", "5", "-", "57 829,50"),
        ("06.11.2025", "10", "113 495,50", "113 722,50"),
    )

    prices = parse_gold_prices(html)

    assert [p.weight for p in prices] == [10.0]


def test_bad_date_raises_after_scanning():
    html = _page(
        ("2025/11/06", "1", "12 526,00", "12 588,50"),
        ("06.11.2025", "2", "23 775,00", "23 870,00"),
    )

    with pytest.raises(PriceParseError, match="2025/11/06"):
        parse_gold_prices(html)


def test_page_without_table():
    assert parse_gold_prices("<html><body><p>Нет данных</p></body></html>") == []


def test_clean_number_handles_non_breaking_spaces():
    assert clean_number(" 1\xa0124\xa0573,5 ") == "1124573.5"
