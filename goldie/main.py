"""Goldie — Main Orchestrator.

Ties all components together: config, database, price scraper,
Telegram handlers and the notification dispatcher.

Runs on a schedule with APScheduler (in the configured timezone):
  - Price update (cron, weekdays after NBKR publishes)
  - Daily notification cycle (alert_hour:alert_minute)
The full price history is backfilled once in the background on start;
notification cycles are skipped until that finishes.

Usage:
    python -m goldie.main
    python scripts/run.py
"""

from __future__ import annotations

import asyncio
import signal
import traceback
from pathlib import Path
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from telegram import Update
from telegram.ext import Application

from goldie.config import AppConfig, load_config
from goldie.database.db import Database
from goldie.notifier.commands import CommandHandler
from goldie.notifier.dispatcher import NotificationDispatcher
from goldie.notifier.localizer import Localizer
from goldie.notifier.telegram_bot import TelegramNotifier
from goldie.scraper.client import NbkrClient
from goldie.scraper.importer import PriceImporter
from goldie.utils.logger import get_logger, set_level

logger = get_logger(__name__)


class GoldieBot:
    """Main application orchestrator.

    Attributes:
        config: Full application configuration.
        db: Active database instance.
    """

    def __init__(self) -> None:
        """Initialize with default state. Call start() to run."""
        self.config: Optional[AppConfig] = None
        self.db: Optional[Database] = None
        self._application: Optional[Application] = None
        self._client: Optional[NbkrClient] = None
        self._importer: Optional[PriceImporter] = None
        self._dispatcher: Optional[NotificationDispatcher] = None
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._backfill: Optional[asyncio.Task] = None
        self._cycle: Optional[asyncio.Task] = None

        self._running = False
        self._ready = False
        self._stop_event = asyncio.Event()

    def is_ready(self) -> bool:
        """Whether the price backfill has finished."""
        return self._ready

    def request_stop(self) -> None:
        """Ask the main loop to exit; safe to call from a signal handler."""
        self._running = False

    async def start(self) -> None:
        """Full application startup sequence.

        1. Load config
        2. Initialize database
        3. Build components and register Telegram handlers
        4. Setup APScheduler with two jobs
        5. Backfill prices in the background
        6. Poll Telegram until stopped
        """
        self._running = True

        try:
            # ── 1. Config ────────────────────────────────
            logger.info("═══ Loading configuration ═══")
            self.config = load_config()
            set_level(self.config.log_level)

            # ── 2. Database ──────────────────────────────
            logger.info("═══ Initializing database ═══")
            self.db = Database(self.config.database_path)
            await self.db.initialize()

            # ── 3. Components ────────────────────────────
            logger.info("═══ Initializing components ═══")
            localizer = Localizer.from_directory(
                self.config.locales_dir, self.config.telegram.default_language,
            )
            self._application = (
                Application.builder().token(self.config.telegram.bot_token).build()
            )
            sink = TelegramNotifier(self._application.bot)

            handlers = CommandHandler(
                self.db, sink, localizer, self.config.telegram, self.config.timezone,
            )
            handlers.register(self._application)

            self._dispatcher = NotificationDispatcher(
                self.db, sink, localizer, is_ready=self.is_ready,
            )
            self._client = NbkrClient(self.config.scraper)
            self._importer = PriceImporter(
                self._client,
                self.db,
                timezone=self.config.timezone,
                first_import_year=self.config.scraper.first_import_year,
            )

            # ── 4. Scheduler ─────────────────────────────
            logger.info("═══ Setting up scheduler ═══")
            tz = self.config.timezone
            self._scheduler = AsyncIOScheduler(timezone=tz)

            update_cron = self.config.scraper.update_cron
            self._scheduler.add_job(
                self._run_price_update,
                CronTrigger.from_crontab(update_cron, timezone=tz),
                id="price_update",
                max_instances=1,
                misfire_grace_time=300,
                name=f"Price update ({update_cron})",
            )

            hour = self.config.telegram.alert_hour
            minute = self.config.telegram.alert_minute
            self._scheduler.add_job(
                self._run_alert_cycle,
                CronTrigger(hour=hour, minute=minute, timezone=tz),
                id="alert_cycle",
                max_instances=1,
                misfire_grace_time=300,
                name=f"Notification cycle ({hour:02d}:{minute:02d})",
            )

            self._scheduler.start()
            logger.info("Scheduler started with 2 jobs (%s)", tz)

            # ── 5. Backfill ──────────────────────────────
            self._backfill = asyncio.create_task(self._run_first_import())

            # ── 6. Telegram polling ──────────────────────
            logger.info("═══ Starting Telegram polling ═══")
            await self._application.initialize()
            connected = await sink.initialize()
            if not connected:
                logger.error("Telegram bot connection failed! Continuing anyway...")
            await self._application.start()
            await self._application.updater.start_polling(
                allowed_updates=[Update.MESSAGE, Update.CALLBACK_QUERY],
            )

            logger.info("═══ Entering main loop ═══")
            while self._running:
                await asyncio.sleep(1)

        except KeyboardInterrupt:
            logger.info("KeyboardInterrupt received")
        except Exception as e:
            logger.error("Fatal error: %s", e)
            logger.error(traceback.format_exc())
        finally:
            await self.shutdown()

    async def _run_first_import(self) -> None:
        """Backfill the price history, then open the notification gate."""
        try:
            await self._importer.first_import()
        except Exception as e:
            logger.error("Price backfill error: %s", e)
        finally:
            self._ready = True
            logger.info("Ready: notification cycles enabled")

    async def _run_price_update(self) -> None:
        try:
            await self._importer.update_prices()
        except Exception as e:
            logger.error("Price update error: %s", e)

    async def _run_alert_cycle(self) -> None:
        self._cycle = asyncio.current_task()
        try:
            await self._dispatcher.run_cycle(self._stop_event)
        except Exception as e:
            logger.error("Notification cycle error: %s", e)
            logger.error(traceback.format_exc())
        finally:
            self._cycle = None

    async def shutdown(self) -> None:
        """Graceful shutdown: stop launching sends, stop jobs, close connections."""
        logger.info("═══ Shutting down ═══")
        self._running = False
        self._stop_event.set()

        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

        # The scheduler does not await running jobs; sends in flight still need the bot and DB
        cycle = self._cycle
        if cycle is not None and not cycle.done() and cycle is not asyncio.current_task():
            logger.info("Waiting for the notification cycle to finish...")
            await asyncio.gather(cycle, return_exceptions=True)

        if self._backfill and not self._backfill.done():
            self._backfill.cancel()
            try:
                await self._backfill
            except asyncio.CancelledError:
                pass

        if self._application is not None:
            try:
                if self._application.updater and self._application.updater.running:
                    await self._application.updater.stop()
                if self._application.running:
                    await self._application.stop()
                await self._application.shutdown()
            except Exception as e:
                logger.warning("Telegram shutdown error: %s", e)

        if self._client is not None:
            await self._client.close()

        if self.db:
            await self.db.close()

        logger.info("Shutdown complete")


def main() -> None:
    """Application entry point."""
    Path("data").mkdir(exist_ok=True)
    Path("logs").mkdir(exist_ok=True)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    app = GoldieBot()

    def _signal_handler(sig, frame):
        logger.info("Signal %s received, shutting down...", sig)
        app.request_stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()


if __name__ == "__main__":
    main()
