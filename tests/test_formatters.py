from datetime import date

import pytest

from goldie.notifier.formatters import (
    compute_gain,
    compute_gains,
    prices_to_text,
    prices_with_gain_to_text,
)

from conftest import price


def test_price_table_english(localizer):
    text = prices_to_text(localizer, "en", [price("2024-10-01", 1, 12345, 12588)])

    assert text == (
        "<b>Gold prices on (2024-10-01)</b>\n<pre>\n"
        "Gram     Purchase     Sell        \n"
        "1        12345.00     12588.00    \n"
        "</pre>"
    )


def test_price_table_russian(localizer):
    text = prices_to_text(localizer, "ru", [price("2024-10-01", 1, 12345, 12588)])

    assert text == (
        "<b>Цена на золото на (2024-10-01)</b>\n<pre>\n"
        "Грамм    Обратный выкуп Продажа     \n"
        "1        12345.00     12588.00    \n"
        "</pre>"
    )


def test_price_table_only_shows_newest_date_sorted_by_weight(localizer):
    text = prices_to_text(localizer, "en", [
        price("2024-10-02", 31.1035, 349573, 354816.5),
        price("2024-10-01", 1, 1, 1),
        price("2024-10-02", 1, 12526, 12588.5),
    ])

    lines = text.split("\n")
    assert lines[0] == "<b>Gold prices on (2024-10-02)</b>"
    assert lines[3].startswith("1        12526.00")
    assert lines[4].startswith("31.1     349573.00")
    assert len(lines) == 6


def test_price_table_requires_rows(localizer):
    with pytest.raises(ValueError):
        prices_to_text(localizer, "en", [])


def test_gain_percentage():
    assert round(compute_gain(12640, 12588.50), 2) == 100.41


def test_compute_gains_matches_by_weight_and_skips_unknown():
    current = [price("2024-11-07", 1, 12577, 12640), price("2024-11-07", 2, 23877.5, 23973)]
    bought = [price("2024-10-01", 1, 12526, 12588.5), price("2024-10-01", 5, 1, 0)]

    gains = compute_gains(current, bought)

    assert len(gains) == 1
    assert gains[0].weight == 1
    assert gains[0].bought_at == 12588.5
    assert round(gains[0].gain, 2) == 100.41


def test_gain_table(localizer):
    text = prices_with_gain_to_text(
        localizer, "en",
        [price("2024-11-07", 1, 12577, 12640)],
        [price("2024-10-01", 1, 12526, 12588.5)],
        date(2024, 10, 1),
    )

    assert text == (
        "<b>Gold prices on (2024-11-07) for a purchase on 2024-10-01</b>\n<pre>\n"
        "Gram     Purchase     Bought at    Gain, %     \n"
        "1        12577.00     12588.50     100.41      \n"
        "</pre>"
    )


def test_gain_table_without_matching_weights_is_none(localizer):
    text = prices_with_gain_to_text(
        localizer, "en",
        [price("2024-11-07", 1, 12577, 12640)],
        [price("2024-10-01", 10, 1, 1)],
    )
    assert text is None
