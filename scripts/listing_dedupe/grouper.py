"""
Duplicate Grouper for listing exports

Groups listings by basic-normalized title, keeps the most recently started
listing of each duplicate group and marks the rest to be ended.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .columns import ColumnMap, resolve_columns
from .csv_parser import Row
from .normalizer import basic_normalize

log = logging.getLogger(__name__)

ANNOTATION_HEADERS = ["Group ID", "Position", "Decision"]
DECISION_INDEX = 2


class Decision(Enum):
    KEEP = "Keep"
    END = "End"


RELATIVE_DATE_WORDS = frozenset(["now", "today", "tomorrow", "yesterday"])


def parse_start_date(value: Optional[str]) -> Optional[pd.Timestamp]:
    """Parse a start-date cell; ``None`` when missing, relative or unparseable."""
    if value is None or not str(value).strip():
        return None
    text = str(value).strip()
    if text.lower() in RELATIVE_DATE_WORDS:
        return None
    try:
        ts = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


@dataclass
class Item:
    """A listing taking part in duplicate analysis."""
    item_id: str
    raw_title: str
    normalized_title: str
    start_date: Optional[str]
    row: Row
    decision: Optional[Decision] = None

    @classmethod
    def from_row(cls, row: Row, columns: ColumnMap, normalized_title: str) -> "Item":
        start = ColumnMap.cell(row, columns.start_date) if columns.start_date is not None else None
        return cls(
            item_id=ColumnMap.cell(row, columns.item_id).strip(),
            raw_title=ColumnMap.cell(row, columns.title),
            normalized_title=normalized_title,
            start_date=start or None,
            row=row,
        )


@dataclass
class Group:
    """Listings sharing one normalized title."""
    normalized_title: str
    members: List[Item] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def is_duplicate(self) -> bool:
        return len(self.members) > 1

    @property
    def keeper(self) -> Optional[Item]:
        return self.members[0] if self.members else None


def order_by_start_date(members: List[Item]) -> List[Item]:
    """
    Most recent start date first.

    Members without a parseable date are equal-rank: they stay in the slots
    they already occupy and only dated members are reordered among
    themselves, so an undated listing is never pushed to either end.
    """
    dated_slots = []
    dated = []
    for slot, item in enumerate(members):
        ts = parse_start_date(item.start_date)
        if ts is not None:
            dated_slots.append(slot)
            dated.append((ts, item))

    # sorted() is stable, so equal dates keep their input order
    dated = sorted(dated, key=lambda pair: pair[0], reverse=True)
    ordered = list(members)
    for slot, (_, item) in zip(dated_slots, dated):
        ordered[slot] = item
    return ordered


def assign_decisions(group: Group) -> Group:
    group.members = order_by_start_date(group.members)
    for index, item in enumerate(group.members):
        item.decision = Decision.KEEP if index == 0 else Decision.END
    return group


class DuplicateGrouper:
    """
    Accumulates rows into title groups.

    Rows can be fed in several calls (``add_rows``) so detection can be
    spread over chunks; the accumulated index maps each normalized title to
    the data-row positions that produced it and can be saved and restored
    with ``export_index``/``from_index``.
    """

    def __init__(self, columns: ColumnMap, site_filter: Optional[str] = None):
        self.columns = columns
        self.site_filter = site_filter.strip().lower() if site_filter else None
        self._index: Dict[str, List[int]] = {}
        self.skipped_rows = 0

    def _site_matches(self, row: Row) -> bool:
        if self.site_filter is None or self.columns.listing_site is None:
            return True
        return ColumnMap.cell(row, self.columns.listing_site).strip().lower() == self.site_filter

    def add_rows(self, rows: Sequence[Row], offset: int = 0) -> int:
        """
        Index data rows (header excluded).

        ``offset`` is the position of ``rows[0]`` within the full data set.
        Rows with an empty normalized title or item id are skipped silently.
        Returns the number of rows indexed.
        """
        indexed = 0
        for i, row in enumerate(rows):
            title = basic_normalize(ColumnMap.cell(row, self.columns.title))
            item_id = ColumnMap.cell(row, self.columns.item_id).strip()
            if not title or not item_id or not self._site_matches(row):
                self.skipped_rows += 1
                continue
            self._index.setdefault(title, []).append(offset + i)
            indexed += 1
        return indexed

    @property
    def duplicate_group_count(self) -> int:
        return sum(1 for positions in self._index.values() if len(positions) > 1)

    @property
    def duplicate_item_count(self) -> int:
        return sum(len(positions) for positions in self._index.values() if len(positions) > 1)

    def export_index(self) -> Dict[str, List[int]]:
        return {title: list(positions) for title, positions in self._index.items()}

    @classmethod
    def from_index(
        cls,
        columns: ColumnMap,
        index: Dict[str, List[int]],
        site_filter: Optional[str] = None,
    ) -> "DuplicateGrouper":
        grouper = cls(columns, site_filter=site_filter)
        grouper._index = {title: list(positions) for title, positions in index.items()}
        return grouper

    def duplicate_groups(self, data_rows: Sequence[Row]) -> List[Group]:
        """
        Build decided duplicate groups, largest first.

        ``data_rows`` is the full data set (header excluded) the index
        positions refer to. Equal-size groups keep first-seen order.
        """
        groups = []
        for title, positions in self._index.items():
            if len(positions) < 2:
                continue
            members = [Item.from_row(data_rows[p], self.columns, title) for p in positions]
            groups.append(assign_decisions(Group(normalized_title=title, members=members)))

        groups.sort(key=lambda g: -g.size)
        return groups

    def group(self, data_rows: Sequence[Row]) -> List[Group]:
        """One-pass grouping of ``data_rows``."""
        self._index = {}
        self.skipped_rows = 0
        self.add_rows(data_rows)
        return self.duplicate_groups(data_rows)


def total_duplicate_items(groups: Sequence[Group]) -> int:
    return sum(g.size for g in groups)


@dataclass
class DetectionResult:
    """Outcome of duplicate detection."""
    success: bool
    message: str
    duplicate_groups: int = 0
    duplicate_items: int = 0
    groups: List[Group] = field(default_factory=list)
    columns: Optional[ColumnMap] = None


def detection_message(group_count: int, item_count: int) -> str:
    if not group_count:
        return "Duplicates detected: 0. No duplicate listings were found."
    return f"Detected {group_count} duplicate groups covering {item_count} listings."


def detect_duplicates(rows: Sequence[Row], site_filter: Optional[str] = None) -> DetectionResult:
    """
    Detect duplicate listings in a parsed table (header row first).

    A missing title/item-id column is a failure; finding no duplicates is
    a success with ``duplicate_groups == 0``.
    """
    if not rows:
        return DetectionResult(success=False, message="No imported data found. Import a CSV first.")

    if len(rows) == 1:
        return DetectionResult(success=True, message=detection_message(0, 0))

    resolved = resolve_columns(rows[0])
    if not resolved.ok:
        return DetectionResult(success=False, message=resolved.message)
    columns = resolved.value

    log.info(
        f"Detecting duplicates with columns title={columns.title}, "
        f"item_id={columns.item_id}, start_date={columns.start_date}"
    )
    data_rows = rows[1:]
    grouper = DuplicateGrouper(columns, site_filter=site_filter)
    groups = grouper.group(data_rows)
    if grouper.skipped_rows:
        log.info(f"Skipped {grouper.skipped_rows} rows without a usable title or item id")

    return DetectionResult(
        success=True,
        message=detection_message(len(groups), total_duplicate_items(groups)),
        duplicate_groups=len(groups),
        duplicate_items=total_duplicate_items(groups),
        groups=groups,
        columns=columns,
    )


@dataclass
class AnnotatedTable:
    """Duplicate listings flattened for review and export."""
    header: List[str]
    rows: List[Row]
    columns: ColumnMap  # Positions within the annotated rows


def annotate(groups: Sequence[Group], header: Sequence[str], columns: ColumnMap) -> AnnotatedTable:
    """
    Flatten groups into rows of ``Group ID, Position, Decision`` followed by
    the original listing columns.
    """
    rows: List[Row] = []
    for group_number, group in enumerate(groups, 1):
        for position, item in enumerate(group.members, 1):
            decision = item.decision or (Decision.KEEP if position == 1 else Decision.END)
            rows.append([
                f"Group {group_number}",
                f"{position} of {group.size}",
                decision.value,
            ] + list(item.row))

    return AnnotatedTable(
        header=ANNOTATION_HEADERS + [str(h) for h in header],
        rows=rows,
        columns=columns.shifted(len(ANNOTATION_HEADERS)),
    )

