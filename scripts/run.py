#!/usr/bin/env python3
"""Goldie — Application Runner.

Checks the environment, settings and locale catalogs before launching
the bot, so a broken deploy fails with a readable list of problems
instead of a traceback.

Usage:
    python scripts/run.py
"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

BANNER = r"""
╔══════════════════════════════════════════════╗
║                                              ║
║    ██████   ██████  ██      ██████  ██ ███   ║
║   ██       ██    ██ ██      ██   ██ ██ ██    ║
║   ██   ███ ██    ██ ██      ██   ██ ██ ███   ║
║   ██    ██ ██    ██ ██      ██   ██ ██ ██    ║
║    ██████   ██████  ███████ ██████  ██ ███   ║
║                                              ║
║        Goldie v1.0 · NBKR gold price alerts  ║
║                                              ║
╚══════════════════════════════════════════════╝
"""

# <bot id>:<secret>, as issued by @BotFather
TOKEN_PATTERN = re.compile(r"^\d+:[\w-]{20,}$")


def _check_token() -> bool:
    env_path = PROJECT_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        print("✅ .env loaded")
    else:
        print("⚠️  No .env file, relying on the process environment")

    token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
    if not TOKEN_PATTERN.match(token):
        print("❌ TELEGRAM_BOT_TOKEN missing or not a bot token")
        print("   Copy .env.example to .env and paste the token from @BotFather.")
        return False
    bot_id = token.split(":", 1)[0]
    print(f"✅ TELEGRAM_BOT_TOKEN for bot {bot_id}")
    return True


def _check_settings():
    from goldie.config import SETTINGS_PATH, load_config

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ {SETTINGS_PATH.relative_to(PROJECT_ROOT)}: {e}")
        return None
    print(
        f"✅ Settings valid: alert at {config.telegram.alert_hour:02d}:"
        f"{config.telegram.alert_minute:02d} {config.timezone}"
    )
    return config


def _check_locales(config) -> bool:
    from goldie.notifier.localizer import Localizer

    try:
        localizer = Localizer.from_directory(
            config.locales_dir, config.telegram.default_language,
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Locales: {e}")
        return False

    ok = True
    for language in config.telegram.supported_languages:
        if language not in localizer.languages:
            print(f"❌ No catalog for supported language '{language}'")
            ok = False
        else:
            print(f"✅ Catalog '{language}' loaded")
    return ok


def preflight_checks() -> bool:
    """Run every check and report all problems at once.

    Returns:
        True if the bot can start.
    """
    os.chdir(str(PROJECT_ROOT))
    for d in ("data", "logs"):
        (PROJECT_ROOT / d).mkdir(exist_ok=True)

    ok = _check_token()
    config = _check_settings() if ok else None
    if config is None:
        return False
    return _check_locales(config) and ok


def main() -> None:
    """Entry point: run checks then start the bot."""
    print(BANNER)

    print("═══ Pre-flight Checks ═══\n")
    if not preflight_checks():
        print("\n❌ Pre-flight checks failed! Fix the issues above and try again.")
        sys.exit(1)

    print("\n✅ All checks passed!\n")
    print("═══ Starting Goldie ═══\n")

    from goldie.main import main as app_main
    app_main()


if __name__ == "__main__":
    main()
