"""Goldie — NBKR gold price notifications for Telegram."""

__version__ = "1.0.0"
