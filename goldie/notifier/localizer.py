"""Goldie — Message Localizer.

Loads one YAML file per language from the locales directory
(locales/en.yaml, locales/ru.yaml, ...). Each file is a flat mapping of
message id → template; templates use {Name} placeholders.

Lookup order for render(language, message_id):
  1. the requested language
  2. the default language
A message missing from both, or a template referencing an argument
that was not supplied, raises LocalizationError.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml

from goldie.errors import LocalizationError
from goldie.utils.logger import get_logger

logger = get_logger(__name__)


class Localizer:
    """Renders localized message templates.

    Attributes:
        default_language: Language used when none is given, and as the
            fallback for missing messages.
    """

    def __init__(
        self,
        catalogs: dict[str, dict[str, str]],
        default_language: str = "en",
    ) -> None:
        if default_language not in catalogs:
            raise ValueError(f"No catalog for default language '{default_language}'")
        self._catalogs = catalogs
        self.default_language = default_language

    @classmethod
    def from_directory(cls, path: str | Path, default_language: str = "en") -> "Localizer":
        """Load every *.yaml catalog in a directory.

        Args:
            path: Directory holding <language>.yaml files.
            default_language: Fallback language code.

        Returns:
            A ready Localizer.

        Raises:
            FileNotFoundError: If the directory does not exist.
            ValueError: If a catalog is not a flat mapping.
        """
        directory = Path(path)
        if not directory.is_dir():
            raise FileNotFoundError(f"Locales directory not found: {directory}")

        catalogs: dict[str, dict[str, str]] = {}
        for file in sorted(directory.glob("*.yaml")):
            with open(file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Locale file must be a mapping: {file}")
            catalogs[file.stem] = {str(k): str(v) for k, v in data.items()}
            logger.debug("Loaded %d messages for '%s'", len(data), file.stem)

        logger.info("Loaded locales: %s", ", ".join(catalogs) or "none")
        return cls(catalogs, default_language)

    @property
    def languages(self) -> tuple[str, ...]:
        return tuple(self._catalogs)

    def _template(self, language: str, message_id: str) -> Optional[str]:
        template = self._catalogs.get(language, {}).get(message_id)
        if template is None and language != self.default_language:
            template = self._catalogs[self.default_language].get(message_id)
        return template

    def render(self, language: Optional[str], message_id: str, **template_args: Any) -> str:
        """Render a message in the given language.

        Args:
            language: Language code; None or '' means the default.
            message_id: Catalog key (e.g. 'chooseYear', 'month.Jan').
            **template_args: Values for the template placeholders.

        Returns:
            The rendered text.

        Raises:
            LocalizationError: If the message is unknown or an argument
                is missing.
        """
        lang = language or self.default_language
        template = self._template(lang, message_id)
        if template is None:
            raise LocalizationError(lang, message_id, "message not found")

        try:
            return template.format_map(template_args)
        except (KeyError, IndexError, ValueError) as e:
            raise LocalizationError(lang, message_id, f"bad template arguments: {e}") from e
