from types import SimpleNamespace

import pytest
from telegram.error import BadRequest, Forbidden, NetworkError

from goldie.errors import DeliveryError
from goldie.notifier.formatters import Button
from goldie.notifier.telegram_bot import TelegramNotifier, to_markup


class _FakeBot:
    def __init__(self, error: Exception = None) -> None:
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    async def _call(self, name: str, **kwargs):
        self.calls.append((name, kwargs))
        if self.error is not None:
            raise self.error

    async def get_me(self):
        await self._call("get_me")
        return SimpleNamespace(username="goldie_bot")

    async def send_message(self, **kwargs):
        await self._call("send_message", **kwargs)
        return SimpleNamespace(message_id=501)

    async def edit_message_text(self, **kwargs):
        await self._call("edit_message_text", **kwargs)

    async def answer_callback_query(self, **kwargs):
        await self._call("answer_callback_query", **kwargs)


@pytest.mark.asyncio
async def test_initialize_reports_connection():
    assert await TelegramNotifier(_FakeBot()).initialize() is True


@pytest.mark.asyncio
async def test_initialize_survives_unreachable_api():
    bot = _FakeBot(NetworkError("connection refused"))

    assert await TelegramNotifier(bot).initialize() is False
    assert bot.calls == [("get_me", {})]


@pytest.mark.asyncio
async def test_send_text_returns_message_id_and_builds_markup():
    bot = _FakeBot()
    keyboard = [[Button("Next »", "settings:page:2")]]

    message_id = await TelegramNotifier(bot).send_text(42, "<b>hi</b>", keyboard)

    assert message_id == 501
    name, kwargs = bot.calls[0]
    assert name == "send_message"
    assert kwargs["chat_id"] == 42
    button = kwargs["reply_markup"].inline_keyboard[0][0]
    assert (button.text, button.callback_data) == ("Next »", "settings:page:2")


@pytest.mark.asyncio
async def test_blocked_chat_raises_delivery_error():
    bot = _FakeBot(Forbidden("bot was blocked by the user"))

    with pytest.raises(DeliveryError) as info:
        await TelegramNotifier(bot).send_text(42, "hi")

    assert info.value.chat_id == 42
    assert "forbidden" in str(info.value)


@pytest.mark.asyncio
async def test_unchanged_edit_is_not_an_error():
    bot = _FakeBot(BadRequest("Message is not modified: specified new message content"))

    await TelegramNotifier(bot).edit_text(42, 7, "same")


@pytest.mark.asyncio
async def test_rejected_answer_raises_delivery_error():
    bot = _FakeBot(BadRequest("Query is too old"))

    with pytest.raises(DeliveryError):
        await TelegramNotifier(bot).answer_callback("cb-1")


def test_empty_keyboard_has_no_markup():
    assert to_markup(None) is None
    assert to_markup([]) is None
