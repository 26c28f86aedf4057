"""
End-items export

Selects the listings marked ``End`` in the annotated duplicate table and
renders them in the marketplace's bulk "end listings" schema.
"""

import csv
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence

from .batching import iter_batches, optimal_chunk_size
from .columns import ColumnMap
from .csv_parser import Row
from .grouper import DECISION_INDEX, AnnotatedTable, Decision

EXPORT_HEADERS = ["Action", "ItemID", "EndCode"]
END_ACTION = "End"
DEFAULT_END_CODE = "OtherListingError"


@dataclass
class OutputRow:
    action: str
    item_id: str
    end_code: str

    def as_list(self) -> List[str]:
        return [self.action, self.item_id, self.end_code]


class ExportFilter:
    """Projects ``End`` rows of an annotated table to ``Action, ItemID, EndCode``."""

    def __init__(self, end_code: str = DEFAULT_END_CODE):
        self.end_code = end_code

    def filter(self, decorated_rows: Sequence[Row], columns: ColumnMap) -> List[OutputRow]:
        output = []
        for row in decorated_rows:
            if len(row) <= DECISION_INDEX or row[DECISION_INDEX] != Decision.END.value:
                continue
            item_id = ColumnMap.cell(row, columns.item_id).strip()
            if not item_id:
                continue
            output.append(OutputRow(END_ACTION, item_id, self.end_code))
        return output


@dataclass
class ExportResult:
    success: bool
    message: str
    item_count: int = 0
    rows: List[OutputRow] = field(default_factory=list)
    file_name: str = ""

    def table(self) -> List[List[str]]:
        """Header plus data rows."""
        return [list(EXPORT_HEADERS)] + [r.as_list() for r in self.rows]


def export_file_name(today: Optional[date] = None) -> str:
    return f"ebay_end_items_{(today or date.today()).isoformat()}.csv"


def generate_export(
    table: Optional[AnnotatedTable],
    end_code: str = DEFAULT_END_CODE,
    today: Optional[date] = None,
) -> ExportResult:
    """
    Build the End-items export from an annotated duplicate table.

    No listing marked ``End`` is a success with ``item_count == 0``.
    """
    file_name = export_file_name(today)
    if table is None:
        return ExportResult(
            success=False,
            message="Duplicate list not found. Run duplicate detection first.",
            file_name=file_name,
        )

    rows = ExportFilter(end_code).filter(table.rows, table.columns)
    if not rows:
        return ExportResult(
            success=True,
            message='Items to end: 0. No listings were marked "End".',
            item_count=0,
            file_name=file_name,
        )

    return ExportResult(
        success=True,
        message=f"Exported {len(rows)} listings to end.",
        item_count=len(rows),
        rows=rows,
        file_name=file_name,
    )


def write_export(result: ExportResult, output_dir: Path) -> Path:
    """Write the export as CSV (UTF-8 with BOM), in BatchSizer-sized writes."""
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / (result.file_name or export_file_name())
    rows = [r.as_list() for r in result.rows]

    with open(output_path, 'w', encoding='utf-8-sig', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(EXPORT_HEADERS)
        for _, batch in iter_batches(rows, optimal_chunk_size(len(rows))):
            writer.writerows(batch)

    return output_path
