"""Goldie — Date Selection Pagination.

Pages through a subscriber's purchase-date selections (newest first)
for the /settings screen, with a delete button per selection.

Callback data (prefix 'settings:'):
  settings:page:<n>            → show page n
  settings:del:<id>:<page>     → delete selection <id>, re-show <page>
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from goldie.database import queries
from goldie.database.db import Database
from goldie.database.models import DateSelection
from goldie.notifier.formatters import Button, Screen, build_keyboard
from goldie.notifier.localizer import Localizer
from goldie.utils.logger import get_logger

logger = get_logger(__name__)

PREFIX = "settings:"
PAGE_SIZE = 10
DATE_FORMAT = "%Y-%m-%d"
SQLITE_MAX_INT = 2**63 - 1


def page_token(page: int) -> str:
    return f"{PREFIX}page:{page}"


def delete_token(selection_id: int, page: int) -> str:
    return f"{PREFIX}del:{selection_id}:{page}"


@dataclass
class SelectionPage:
    """One page of selections.

    Attributes:
        items: Selections on this page, newest first.
        page: 1-based page number actually shown.
        total_pages: Page count (0 when there are no selections).
        total: Selection count.
    """

    items: list[DateSelection] = field(default_factory=list)
    page: int = 1
    total_pages: int = 0
    total: int = 0

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class SubscriptionPager:
    """Page math and rendering for a subscriber's selections."""

    def __init__(self, db: Database, localizer: Localizer, page_size: int = PAGE_SIZE) -> None:
        self.db = db
        self._localizer = localizer
        self.page_size = page_size if page_size > 0 else PAGE_SIZE

    async def fetch_page(self, chat_id: int, page: int) -> SelectionPage:
        """Load a page, clamping out-of-range page numbers.

        Pages below 1 become 1; pages past the end become the last page.

        Args:
            chat_id: Telegram chat id.
            page: Requested 1-based page.

        Returns:
            The SelectionPage actually shown.
        """
        total = await queries.count_date_selections(self.db, chat_id)
        if total == 0:
            return SelectionPage()

        total_pages = math.ceil(total / self.page_size)
        page = min(max(page, 1), total_pages)
        items, total = await queries.list_date_selections_page(
            self.db, chat_id, self.page_size, (page - 1) * self.page_size,
        )
        if not items and total:
            # Rows vanished between the count and the fetch
            page = math.ceil(total / self.page_size)
            items, total = await queries.list_date_selections_page(
                self.db, chat_id, self.page_size, (page - 1) * self.page_size,
            )
        if total == 0:
            return SelectionPage()

        total_pages = math.ceil(total / self.page_size)
        return SelectionPage(items=items, page=page, total_pages=total_pages, total=total)

    async def delete_and_repage(self, chat_id: int, selection_id: int, page: int) -> SelectionPage:
        """Delete one of the chat's selections, then reload the page.

        Deleting an already-deleted selection is not an error.
        """
        deleted = await queries.delete_date_selection(self.db, chat_id, selection_id)
        if not deleted:
            logger.debug("Selection %s of %s was already gone", selection_id, chat_id)
        return await self.fetch_page(chat_id, page)

    def render(self, language: Optional[str], page: SelectionPage) -> Screen:
        """Build the /settings screen for a page.

        Raises:
            LocalizationError: If a settings message is missing.
        """
        t = self._localizer.render
        if page.is_empty:
            return Screen(t(language, "settingsEmpty"))

        lines = [t(language, "settingsTitle", Page=page.page, Pages=page.total_pages)]
        rows: list[list[Button]] = []
        for item in page.items:
            day = item.purchase_date.strftime(DATE_FORMAT)
            lines.append(t(language, "settingsItem", Date=day))
            rows.append([Button(
                t(language, "settingsDelete", Date=day),
                delete_token(item.id, page.page),
            )])

        nav: list[Button] = []
        if page.has_prev:
            nav.append(Button(t(language, "settingsPrev"), page_token(page.page - 1)))
        if page.has_next:
            nav.append(Button(t(language, "settingsNext"), page_token(page.page + 1)))
        rows.append(nav)

        return Screen("\n".join(lines), build_keyboard(rows))


def parse_settings_data(data: str) -> Optional[tuple[str, int, int]]:
    """Decode settings callback data.

    Returns:
        ('page', page, 0) or ('del', page, selection_id), or None when
        the data is malformed or a number does not fit an SQLite integer.
    """
    if not data.startswith(PREFIX):
        return None
    parts = data[len(PREFIX):].split(":")
    try:
        if parts[0] == "page" and len(parts) == 2:
            parsed = ("page", int(parts[1]), 0)
        elif parts[0] == "del" and len(parts) == 3:
            parsed = ("del", int(parts[2]), int(parts[1]))
        else:
            return None
    except ValueError:
        return None
    if any(abs(n) > SQLITE_MAX_INT for n in parsed[1:]):
        return None
    return parsed
