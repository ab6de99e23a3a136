"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Optional

import pytest
import pytest_asyncio

from goldie.config import TelegramConfig
from goldie.database import queries
from goldie.database.db import Database
from goldie.database.models import GoldPrice
from goldie.errors import DeliveryError
from goldie.notifier.localizer import Localizer

PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOCALES_DIR = PROJECT_ROOT / "locales"


@dataclass
class SentMessage:
    chat_id: int
    text: str
    keyboard: Any = None


@dataclass
class EditedMessage:
    chat_id: int
    message_id: int
    text: str
    keyboard: Any = None


class FakeSink:
    """Records every delivery instead of talking to Telegram."""

    def __init__(self, fail_for: tuple[int, ...] = ()) -> None:
        self.sent: list[SentMessage] = []
        self.edits: list[EditedMessage] = []
        self.answers: list[tuple[str, Optional[str]]] = []
        self.fail_for = set(fail_for)
        self._next_id = 100

    async def send_text(self, chat_id: int, text: str, keyboard: Any = None) -> int:
        if chat_id in self.fail_for:
            raise DeliveryError(chat_id, "bot was blocked by the user")
        self.sent.append(SentMessage(chat_id, text, keyboard))
        self._next_id += 1
        return self._next_id

    async def edit_text(
        self, chat_id: int, message_id: int, text: str, keyboard: Any = None,
    ) -> None:
        if chat_id in self.fail_for:
            raise DeliveryError(chat_id, "message to edit not found")
        self.edits.append(EditedMessage(chat_id, message_id, text, keyboard))

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> None:
        self.answers.append((callback_id, text))

    def texts_for(self, chat_id: int) -> list[str]:
        return [m.text for m in self.sent if m.chat_id == chat_id]


def price(day: str, weight: float, buy: float, sell: float) -> GoldPrice:
    return GoldPrice(
        date=date.fromisoformat(day),
        weight=weight,
        purchase_price=buy,
        sell_price=sell,
    )


def button_texts(keyboard: Any) -> list[list[str]]:
    return [[b.text for b in row] for row in keyboard]


def button_data(keyboard: Any) -> list[list[str]]:
    return [[b.callback_data for b in row] for row in keyboard]


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(str(tmp_path / "goldie.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def localizer() -> Localizer:
    return Localizer.from_directory(LOCALES_DIR, "en")


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def telegram_config() -> TelegramConfig:
    return TelegramConfig(
        bot_token="123:test",
        default_language="en",
        supported_languages=("ru", "en"),
        alert_hour=10,
        alert_minute=0,
        disabled_weekdays=frozenset({6, 7}),
    )


async def add_subscriber(
    database: Database,
    chat_id: int,
    language: Optional[str] = None,
    daily_alert: bool = False,
    selections: tuple[str, ...] = (),
) -> None:
    if language is not None:
        await queries.set_language(database, chat_id, language)
    if daily_alert:
        await queries.set_daily_alert(database, chat_id, True)
    for day in selections:
        await queries.add_date_selection(database, chat_id, date.fromisoformat(day))
