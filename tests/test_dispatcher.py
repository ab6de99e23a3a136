import asyncio
from datetime import date

import aiosqlite
import pytest

from goldie.database import queries
from goldie.errors import DeliveryError, LocalizationError
from goldie.notifier import dispatcher as dispatcher_module
from goldie.notifier.dispatcher import NotificationDispatcher
from goldie.notifier.localizer import Localizer

from conftest import FakeSink, add_subscriber, price


class _CountingLocalizer(Localizer):
    def __init__(self, catalogs, default_language="en") -> None:
        super().__init__(catalogs, default_language)
        self.calls: dict[str, int] = {}

    def render(self, language, message_id, **template_args):
        self.calls[message_id] = self.calls.get(message_id, 0) + 1
        return super().render(language, message_id, **template_args)


class _SlowSink(FakeSink):
    def __init__(self) -> None:
        super().__init__()
        self.in_flight = 0
        self.peak = 0

    async def send_text(self, chat_id, text, keyboard=None):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().send_text(chat_id, text, keyboard)
        finally:
            self.in_flight -= 1


class _StoppingSink(FakeSink):
    def __init__(self, stop_event: asyncio.Event) -> None:
        super().__init__()
        self._stop_event = stop_event

    async def send_text(self, chat_id, text, keyboard=None):
        self._stop_event.set()
        return await super().send_text(chat_id, text, keyboard)


class _ExplodingSink(FakeSink):
    async def send_text(self, chat_id, text, keyboard=None):
        if chat_id == 2:
            raise RuntimeError("boom")
        return await super().send_text(chat_id, text, keyboard)


async def _store_prices(db) -> None:
    await queries.upsert_prices(db, [
        price("2024-10-01", 1, 12526, 12588.5),
        price("2024-11-07", 1, 12577, 12640),
    ])


@pytest.mark.asyncio
async def test_daily_and_gain_tables_are_both_delivered(db, sink, localizer):
    await _store_prices(db)
    await add_subscriber(db, 7, daily_alert=True, selections=("2024-10-01",))

    stats = await NotificationDispatcher(db, sink, localizer).run_cycle()

    texts = sink.texts_for(7)
    assert len(texts) == 2
    assert texts[0].startswith("<b>Gold prices on (2024-11-07)</b>")
    assert texts[1].startswith("<b>Gold prices on (2024-11-07) for a purchase on 2024-10-01</b>")
    assert "100.41" in texts[1]
    assert (stats.daily_sent, stats.gain_sent, stats.failures) == (1, 1, 0)


@pytest.mark.asyncio
async def test_selection_without_prices_sends_nothing(db, sink, localizer):
    await _store_prices(db)
    await add_subscriber(db, 8, selections=("2024-10-05",))

    stats = await NotificationDispatcher(db, sink, localizer).run_cycle()

    assert stats.subscribers == 1
    assert sink.sent == []


@pytest.mark.asyncio
async def test_daily_table_rendered_once_per_language(db, sink, localizer):
    await _store_prices(db)
    for chat_id in range(1, 51):
        await add_subscriber(db, chat_id, language="en", daily_alert=True)
    for chat_id in range(51, 101):
        await add_subscriber(db, chat_id, language="ru", daily_alert=True)

    counting = _CountingLocalizer(localizer._catalogs, "en")
    stats = await NotificationDispatcher(db, sink, counting).run_cycle()

    assert stats.daily_sent == 100
    assert counting.calls["goldPricesTitle"] <= 2
    assert sink.texts_for(3)[0].startswith("<b>Gold prices on")
    assert sink.texts_for(60)[0].startswith("<b>Цена на золото на")


@pytest.mark.asyncio
async def test_failed_recipient_does_not_stop_others(db, localizer):
    await _store_prices(db)
    for chat_id in (1, 2, 3):
        await add_subscriber(db, chat_id, daily_alert=True, selections=("2024-10-01",))
    sink = FakeSink(fail_for=(2,))

    stats = await NotificationDispatcher(db, sink, localizer).run_cycle()

    assert len(sink.texts_for(1)) == 2
    assert len(sink.texts_for(3)) == 2
    assert sink.texts_for(2) == []
    assert stats.failures == 2


@pytest.mark.asyncio
async def test_unexpected_error_is_contained(db, localizer):
    await _store_prices(db)
    for chat_id in (1, 2, 3):
        await add_subscriber(db, chat_id, daily_alert=True)
    sink = _ExplodingSink()

    stats = await NotificationDispatcher(db, sink, localizer).run_cycle()

    assert [m.chat_id for m in sink.sent] == [1, 3]
    assert stats.failures == 1


@pytest.mark.asyncio
async def test_in_flight_deliveries_stay_under_ceiling(db, localizer):
    await _store_prices(db)
    for chat_id in range(1, 21):
        await add_subscriber(db, chat_id, daily_alert=True)
    sink = _SlowSink()

    stats = await NotificationDispatcher(db, sink, localizer, max_parallel=5).run_cycle()

    assert stats.daily_sent == 20
    assert 1 < sink.peak <= 5


@pytest.mark.asyncio
async def test_stop_before_cycle_launches_nothing(db, sink, localizer):
    await _store_prices(db)
    await add_subscriber(db, 1, daily_alert=True)
    stop = asyncio.Event()
    stop.set()

    stats = await NotificationDispatcher(db, sink, localizer).run_cycle(stop)

    assert stats.launched == 0
    assert stats.cancelled
    assert sink.sent == []


@pytest.mark.asyncio
async def test_stop_during_cycle_lets_running_units_finish(db, localizer):
    await _store_prices(db)
    for chat_id in (1, 2, 3):
        await add_subscriber(db, chat_id, daily_alert=True)
    stop = asyncio.Event()
    sink = _StoppingSink(stop)

    stats = await NotificationDispatcher(db, sink, localizer, max_parallel=1).run_cycle(stop)

    assert stats.launched == 1
    assert stats.cancelled
    assert [m.chat_id for m in sink.sent] == [1]


@pytest.mark.asyncio
async def test_not_ready_skips_cycle(db, sink, localizer):
    await _store_prices(db)
    await add_subscriber(db, 1, daily_alert=True)

    stats = await NotificationDispatcher(db, sink, localizer, is_ready=lambda: False).run_cycle()

    assert stats.skipped
    assert sink.sent == []


@pytest.mark.asyncio
async def test_no_prices_skips_cycle(db, sink, localizer):
    await add_subscriber(db, 1, daily_alert=True)

    stats = await NotificationDispatcher(db, sink, localizer).run_cycle()

    assert stats.skipped
    assert sink.sent == []


def test_delivery_error_names_the_chat():
    err = DeliveryError(5, "blocked")
    assert err.chat_id == 5


class _NoRussianLocalizer(Localizer):
    def render(self, language, message_id, **template_args):
        if language == "ru" and message_id == "goldPricesTitle":
            raise LocalizationError("ru", message_id, "catalog damaged")
        return super().render(language, message_id, **template_args)


@pytest.mark.asyncio
@pytest.mark.parametrize("failing_query", [
    "get_latest_prices",
    "get_subscribers_with_buying_prices",
])
async def test_store_failure_aborts_cycle(db, sink, localizer, monkeypatch, failing_query):
    await _store_prices(db)
    await add_subscriber(db, 1, daily_alert=True, selections=("2024-10-01",))

    async def _broken(*args, **kwargs):
        raise aiosqlite.Error("disk I/O error")

    monkeypatch.setattr(queries, failing_query, _broken)

    stats = await NotificationDispatcher(db, sink, localizer).run_cycle()

    assert stats.skipped
    assert stats.launched == 0
    assert sink.sent == []


@pytest.mark.asyncio
async def test_unrenderable_language_falls_back_to_default_table(db, sink, localizer):
    await _store_prices(db)
    await add_subscriber(db, 1, language="ru", daily_alert=True)
    await add_subscriber(db, 2, language="en", daily_alert=True)

    broken = _NoRussianLocalizer(localizer._catalogs, "en")
    stats = await NotificationDispatcher(db, sink, broken).run_cycle()

    assert stats.daily_sent == 2
    assert sink.texts_for(1) == sink.texts_for(2)
    assert sink.texts_for(1)[0].startswith("<b>Gold prices on (2024-11-07)</b>")


@pytest.mark.asyncio
async def test_crashing_gain_table_does_not_block_other_dates(db, sink, localizer, monkeypatch):
    await _store_prices(db)
    await queries.upsert_prices(db, [price("2024-10-02", 1, 12530, 12590)])
    await add_subscriber(db, 1, selections=("2024-10-01", "2024-10-02"))

    original = dispatcher_module.prices_with_gain_to_text

    def _crash_on_first_date(localizer, language, prices, buying_prices, purchase_date=None):
        if purchase_date == date(2024, 10, 1):
            raise ValueError("bad buying price")
        return original(localizer, language, prices, buying_prices, purchase_date)

    monkeypatch.setattr(dispatcher_module, "prices_with_gain_to_text", _crash_on_first_date)

    stats = await NotificationDispatcher(db, sink, localizer).run_cycle()

    texts = sink.texts_for(1)
    assert len(texts) == 1
    assert "for a purchase on 2024-10-02" in texts[0]
    assert (stats.gain_sent, stats.failures) == (1, 1)
