"""
Column resolution for listing exports.

Export headers are typed by people and vary between marketplaces and
report versions ("Item number", "ItemID", "Title", "Start date", ...), so
columns are located by substring matching rather than a fixed schema.
"""

import re
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

from .errors import Err, ErrorKind, Ok, Result

TITLE_KEYWORDS = ("title", "name")
ITEM_ID_KEYWORDS = ("item", "id", "number")
START_DATE_KEYWORDS = ("date", "start")
LISTING_SITE_KEYWORDS = ("site",)

# Fallback positions when no header matches
DEFAULT_ITEM_ID_INDEX = 0
DEFAULT_TITLE_INDEX = 1
DEFAULT_START_DATE_INDEX = 2


@dataclass(frozen=True)
class ColumnMap:
    """Zero-based column positions of the fields the pipeline reads."""
    title: int
    item_id: int
    start_date: Optional[int] = None
    listing_site: Optional[int] = None

    def shifted(self, offset: int) -> "ColumnMap":
        """Positions after ``offset`` columns are prepended to every row."""
        return replace(
            self,
            title=self.title + offset,
            item_id=self.item_id + offset,
            start_date=None if self.start_date is None else self.start_date + offset,
            listing_site=None if self.listing_site is None else self.listing_site + offset,
        )

    @staticmethod
    def cell(row: Sequence[str], index: Optional[int]) -> str:
        if index is None or index >= len(row):
            return ""
        value = row[index]
        return "" if value is None else str(value)


def _clean_header(header: Sequence[object]) -> List[str]:
    return [re.sub(r"\s+", "", str(h if h is not None else "")).lower() for h in header]


def _find(headers: List[str], keywords: Sequence[str], exclude: Sequence[int] = ()) -> Optional[int]:
    for i, h in enumerate(headers):
        if i in exclude:
            continue
        if any(k in h for k in keywords):
            return i
    return None


def resolve_columns(header: Sequence[object]) -> Result:
    """
    Locate title, item id, start date and listing site columns.

    Returns ``Ok(ColumnMap)`` or ``Err(MISSING_COLUMNS)`` when the title or
    item id column cannot be placed even positionally.
    """
    headers = _clean_header(header or [])

    title = _find(headers, TITLE_KEYWORDS)
    if title is None and len(headers) > DEFAULT_TITLE_INDEX:
        title = DEFAULT_TITLE_INDEX

    taken = [title] if title is not None else []
    item_id = _find(headers, ITEM_ID_KEYWORDS, exclude=taken)
    if item_id is None and len(headers) > DEFAULT_ITEM_ID_INDEX and DEFAULT_ITEM_ID_INDEX not in taken:
        item_id = DEFAULT_ITEM_ID_INDEX

    if title is None or item_id is None:
        return Err(ErrorKind.MISSING_COLUMNS, "Required columns (title, item ID) not found.")

    taken.append(item_id)
    start_date = _find(headers, START_DATE_KEYWORDS, exclude=taken)
    if start_date is None and len(headers) > DEFAULT_START_DATE_INDEX and DEFAULT_START_DATE_INDEX not in taken:
        start_date = DEFAULT_START_DATE_INDEX

    if start_date is not None:
        taken.append(start_date)
    listing_site = _find(headers, LISTING_SITE_KEYWORDS, exclude=taken)

    return Ok(ColumnMap(
        title=title,
        item_id=item_id,
        start_date=start_date,
        listing_site=listing_site,
    ))
