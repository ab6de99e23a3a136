"""Goldie — Configuration Loader.

Loads and validates application configuration from YAML files.
Resolves environment variables referenced via ${VAR_NAME} syntax.
Uses Python dataclasses for type-safe configuration access.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from goldie.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"
LOCALES_DIR = PROJECT_ROOT / "locales"

# ── Environment Variable Pattern ─────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)}")

_CRON_FIELDS = 5


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TelegramConfig:
    """Configuration for the Telegram bot and its alerts.

    Attributes:
        bot_token: Bot API token.
        default_language: Language used when a chat has none stored.
        supported_languages: Languages offered by the /start picker.
        alert_hour: Hour of the daily notification cycle (local time).
        alert_minute: Minute of the daily notification cycle.
        disabled_weekdays: ISO weekdays (1=Mon … 7=Sun) that cannot be
            picked in the calendar.
    """

    bot_token: str
    default_language: str
    supported_languages: tuple[str, ...]
    alert_hour: int
    alert_minute: int
    disabled_weekdays: frozenset[int]


@dataclass(frozen=True)
class ScraperConfig:
    """Configuration for the NBKR price scraper."""

    prices_url: str
    timeout_seconds: int
    max_retries: int
    request_delay_seconds: float
    user_agent: str
    first_import_year: int
    update_cron: str


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    telegram: TelegramConfig
    scraper: ScraperConfig
    timezone: str
    database_path: str
    locales_dir: str
    log_level: str


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all ${VAR_NAME} placeholders replaced
        by their environment variable values.

    Raises:
        ValueError: If a referenced environment variable is not set.
    """
    if isinstance(value, str):
        for var_name in ENV_VAR_PATTERN.findall(value):
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '${{{var_name}}}' is required but not set. "
                    f"Add it to your .env file or export it in your shell."
                )
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    """Build a TelegramConfig from the 'telegram' section.

    Args:
        data: The 'telegram' section of settings.yaml.

    Returns:
        A validated TelegramConfig instance.

    Raises:
        ValueError: On missing keys, an out-of-range alert time, or a
            weekday outside 1..7.
    """
    _validate_keys(data, ["bot_token", "alert_hour", "alert_minute"], "telegram")

    hour = int(data["alert_hour"])
    minute = int(data["alert_minute"])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid alert time in 'telegram': {hour}:{minute:02d}")

    weekdays = frozenset(int(d) for d in data.get("disabled_weekdays", [6, 7]))
    bad = [d for d in weekdays if not 1 <= d <= 7]
    if bad:
        raise ValueError(
            f"'telegram.disabled_weekdays' must use ISO weekdays 1-7, got {sorted(bad)}"
        )

    default_language = data.get("default_language", "en")
    languages = tuple(data.get("supported_languages", ["en", "ru"]))
    if default_language not in languages:
        raise ValueError(
            f"Default language '{default_language}' is not in supported_languages {list(languages)}"
        )

    return TelegramConfig(
        bot_token=data["bot_token"],
        default_language=default_language,
        supported_languages=languages,
        alert_hour=hour,
        alert_minute=minute,
        disabled_weekdays=weekdays,
    )


def _build_scraper_config(data: dict[str, Any]) -> ScraperConfig:
    """Build a ScraperConfig from the 'scraper' section.

    Args:
        data: The 'scraper' section of settings.yaml.

    Returns:
        A validated ScraperConfig instance.
    """
    _validate_keys(data, ["prices_url", "timeout_seconds", "max_retries"], "scraper")

    update_cron = data.get("update_cron", "15 9 * * 1-5")
    if len(update_cron.split()) != _CRON_FIELDS:
        raise ValueError(f"'scraper.update_cron' must have 5 fields, got '{update_cron}'")

    return ScraperConfig(
        prices_url=data["prices_url"],
        timeout_seconds=data["timeout_seconds"],
        max_retries=data["max_retries"],
        request_delay_seconds=float(data.get("request_delay_seconds", 1)),
        user_agent=data.get("user_agent", "Mozilla/5.0 (compatible; GoldieBot/1.0)"),
        first_import_year=int(data.get("first_import_year", 2015)),
        update_cron=update_cron,
    )


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Args:
        data: The configuration dictionary to validate.
        required: List of required key names.
        section: Human-readable section name for error messages.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to .env file. Defaults to project root .env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    settings = _resolve_env_vars(_load_yaml(settings_path or SETTINGS_PATH))

    _validate_keys(settings, ["telegram", "scraper", "database", "logging"], "settings")

    config = AppConfig(
        telegram=_build_telegram_config(settings["telegram"]),
        scraper=_build_scraper_config(settings["scraper"]),
        timezone=settings.get("timezone", "Asia/Bishkek"),
        database_path=settings["database"]["path"],
        locales_dir=str(PROJECT_ROOT / settings.get("locales_dir", LOCALES_DIR)),
        log_level=settings["logging"]["level"],
    )

    logger.info("Configuration loaded successfully")
    logger.debug("Database path: %s", config.database_path)
    logger.debug(
        "Daily alert at %02d:%02d (%s)",
        config.telegram.alert_hour, config.telegram.alert_minute, config.timezone,
    )

    return config
