"""Goldie — Notifier Package.

Telegram side of the bot. Components:
  - localizer: YAML message catalogs per language
  - formatters: price/gain tables and Screen/Button keyboard data
  - calendar: stateless year → month → day date picker
  - pagination: purchase-date list with delete buttons
  - telegram_bot: delivery sink over python-telegram-bot
  - dispatcher: bounded fan-out of the daily notification cycle
  - commands: /command and button handlers
"""

from goldie.notifier.localizer import Localizer
from goldie.notifier.formatters import (
    Button,
    ButtonPress,
    Screen,
    prices_to_text,
    prices_with_gain_to_text,
)
from goldie.notifier.calendar import Calendar, DateBounds
from goldie.notifier.pagination import SubscriptionPager
from goldie.notifier.telegram_bot import TelegramNotifier
from goldie.notifier.dispatcher import CycleStats, NotificationDispatcher
from goldie.notifier.commands import CommandHandler

__all__ = [
    "Localizer",
    "Button",
    "ButtonPress",
    "Screen",
    "prices_to_text",
    "prices_with_gain_to_text",
    "Calendar",
    "DateBounds",
    "SubscriptionPager",
    "TelegramNotifier",
    "CycleStats",
    "NotificationDispatcher",
    "CommandHandler",
]
