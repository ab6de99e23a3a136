import asyncio

import pytest

from goldie.main import GoldieBot


class _SlowDispatcher:
    def __init__(self, events: list[str]) -> None:
        self.events = events
        self.stopped_early = None

    async def run_cycle(self, stop_event):
        await asyncio.sleep(0.05)
        self.stopped_early = stop_event.is_set()
        self.events.append("cycle finished")


class _Database:
    def __init__(self, events: list[str]) -> None:
        self.events = events

    async def close(self) -> None:
        self.events.append("db closed")


@pytest.mark.asyncio
async def test_shutdown_waits_for_running_cycle():
    events: list[str] = []
    bot = GoldieBot()
    bot._dispatcher = _SlowDispatcher(events)
    bot.db = _Database(events)

    cycle = asyncio.create_task(bot._run_alert_cycle())
    await asyncio.sleep(0)
    await bot.shutdown()

    assert events == ["cycle finished", "db closed"]
    assert cycle.done()
    assert bot._dispatcher.stopped_early is True


@pytest.mark.asyncio
async def test_shutdown_without_cycle_closes_db():
    events: list[str] = []
    bot = GoldieBot()
    bot.db = _Database(events)

    await bot.shutdown()

    assert events == ["db closed"]
    assert bot._cycle is None
