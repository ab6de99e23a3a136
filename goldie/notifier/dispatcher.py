"""Goldie — Notification Dispatcher.

Runs one notification cycle: load the newest price table and every
eligible subscriber, render the daily table once per language, then
fan out deliveries concurrently with a hard ceiling on in-flight sends.

A subscriber gets:
  - the daily table, if the daily alert is on
  - one gain table per purchase date that has stored prices
Each subscriber's deliveries are independent of everybody else's; a
failure is logged with the chat id and the cycle moves on.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence

import aiosqlite

from goldie.database import queries
from goldie.database.db import Database
from goldie.database.models import GoldPrice, Subscriber
from goldie.errors import GoldieError, LocalizationError
from goldie.notifier.formatters import prices_to_text, prices_with_gain_to_text
from goldie.notifier.localizer import Localizer
from goldie.notifier.telegram_bot import MessageSink
from goldie.utils.logger import get_logger

logger = get_logger(__name__)

# Hard ceiling on concurrent deliveries per cycle.
MAX_PARALLEL_SENDS = 100


@dataclass
class CycleStats:
    """Summary of one cycle, for logging."""

    subscribers: int = 0
    launched: int = 0
    daily_sent: int = 0
    gain_sent: int = 0
    failures: int = 0
    skipped: bool = False
    cancelled: bool = False
    duration_seconds: float = 0.0


class NotificationDispatcher:
    """Delivers the daily and gain tables to all eligible subscribers.

    Attributes:
        db: Active database instance.
        sink: Where messages go.
        max_parallel: Ceiling on in-flight delivery units.
    """

    def __init__(
        self,
        db: Database,
        sink: MessageSink,
        localizer: Localizer,
        is_ready: Optional[Callable[[], bool]] = None,
        max_parallel: int = MAX_PARALLEL_SENDS,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            db: Active Database instance.
            sink: Delivery sink (TelegramNotifier in production).
            localizer: Message localizer.
            is_ready: Read-only readiness check; a cycle is skipped while
                it returns False. Defaults to always ready.
            max_parallel: Ceiling on concurrent delivery units.
        """
        self.db = db
        self.sink = sink
        self._localizer = localizer
        self._is_ready = is_ready or (lambda: True)
        self.max_parallel = max_parallel

    async def run_cycle(self, stop_event: Optional[asyncio.Event] = None) -> CycleStats:
        """Run one notification cycle.

        Args:
            stop_event: When set, no further delivery units are launched;
                units already running finish.

        Returns:
            CycleStats for logging.
        """
        stats = CycleStats()
        start_time = time.monotonic()

        if not self._is_ready():
            logger.info("Notification cycle skipped: not ready yet")
            stats.skipped = True
            return stats

        try:
            prices = await queries.get_latest_prices(self.db)
            if not prices:
                logger.warning("Notification cycle skipped: no prices stored")
                stats.skipped = True
                return stats
            subscribers = await queries.get_subscribers_with_buying_prices(self.db)
        except aiosqlite.Error as e:
            logger.error("Notification cycle aborted, store failure: %s", e)
            stats.skipped = True
            return stats

        stats.subscribers = len(subscribers)
        if not subscribers:
            logger.info("Notification cycle: no subscribers")
            return stats

        logger.info(
            "═══ Notification Cycle: %d subscribers, prices of %s ═══",
            len(subscribers), prices[0].date,
        )

        daily_texts = self._render_daily_texts(subscribers, prices)

        semaphore = asyncio.Semaphore(self.max_parallel)
        tasks: list[asyncio.Task] = []
        for subscriber in subscribers:
            if stop_event is not None and stop_event.is_set():
                stats.cancelled = True
                break
            await semaphore.acquire()
            if stop_event is not None and stop_event.is_set():
                semaphore.release()
                stats.cancelled = True
                break
            tasks.append(asyncio.create_task(
                self._run_unit(semaphore, subscriber, prices, daily_texts, stats)
            ))
        stats.launched = len(tasks)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        stats.duration_seconds = time.monotonic() - start_time
        logger.info(
            "═══ Notification Cycle Complete: %d daily, %d gain, %d failed, "
            "%d/%d launched%s (%.1fs) ═══",
            stats.daily_sent, stats.gain_sent, stats.failures,
            stats.launched, stats.subscribers,
            " (cancelled)" if stats.cancelled else "",
            stats.duration_seconds,
        )
        return stats

    def _render_daily_texts(
        self,
        subscribers: Sequence[Subscriber],
        prices: Sequence[GoldPrice],
    ) -> Mapping[str, str]:
        """Render the daily table once per language in use, then freeze."""
        default = self._localizer.default_language
        languages = {s.language_or(default) for s in subscribers if s.daily_alert}

        texts: dict[str, str] = {}
        for language in sorted(languages):
            try:
                texts[language] = prices_to_text(self._localizer, language, prices)
            except LocalizationError as e:
                logger.error("Cannot render daily table for '%s': %s", language, e)

        logger.debug("Rendered daily table for: %s", ", ".join(texts) or "none")
        return MappingProxyType(texts)

    async def _run_unit(
        self,
        semaphore: asyncio.Semaphore,
        subscriber: Subscriber,
        prices: Sequence[GoldPrice],
        daily_texts: Mapping[str, str],
        stats: CycleStats,
    ) -> None:
        try:
            await self._deliver(subscriber, prices, daily_texts, stats)
        except Exception as e:
            stats.failures += 1
            logger.error("Unexpected error notifying %s: %s", subscriber.chat_id, e)
        finally:
            semaphore.release()

    async def _deliver(
        self,
        subscriber: Subscriber,
        prices: Sequence[GoldPrice],
        daily_texts: Mapping[str, str],
        stats: CycleStats,
    ) -> None:
        chat_id = subscriber.chat_id
        default = self._localizer.default_language
        language = subscriber.language_or(default)

        if subscriber.daily_alert:
            text = daily_texts.get(language) or daily_texts.get(default)
            if text is None:
                logger.warning("No daily table to send to %s (%s)", chat_id, language)
            else:
                try:
                    await self.sink.send_text(chat_id, text)
                    stats.daily_sent += 1
                except GoldieError as e:
                    stats.failures += 1
                    logger.error("Daily alert to %s failed: %s", chat_id, e)

        for selection in subscriber.selections:
            if not selection.buying_prices:
                continue
            try:
                text = prices_with_gain_to_text(
                    self._localizer, language, prices,
                    selection.buying_prices, selection.purchase_date,
                )
                if text is None:
                    continue
                await self.sink.send_text(chat_id, text)
                stats.gain_sent += 1
            except GoldieError as e:
                stats.failures += 1
                logger.error(
                    "Gain alert (%s) to %s failed: %s",
                    selection.purchase_date, chat_id, e,
                )
            except Exception as e:
                stats.failures += 1
                logger.error(
                    "Unexpected error in gain alert (%s) to %s: %s",
                    selection.purchase_date, chat_id, e,
                )
