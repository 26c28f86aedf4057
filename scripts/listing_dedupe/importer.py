"""CSV import: size guard, parsing, column resolution and a quality summary."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .columns import ColumnMap, resolve_columns
from .config import DedupeConfig
from .csv_parser import CsvParser, ParseReport, Row
from .errors import ErrorKind
from .quality import DataQualityReport, build_quality_report

log = logging.getLogger(__name__)


@dataclass
class ImportResult:
    success: bool
    message: str
    rows: List[Row] = field(default_factory=list)  # Header first
    columns: Optional[ColumnMap] = None
    parse_report: Optional[ParseReport] = None
    quality: Optional[DataQualityReport] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def data_row_count(self) -> int:
        return max(0, len(self.rows) - 1)


def _failure(kind: ErrorKind, message: str, **kwargs) -> ImportResult:
    log.error(message)
    return ImportResult(success=False, message=message, error_kind=kind, **kwargs)


def import_csv(text: Optional[str], config: Optional[DedupeConfig] = None) -> ImportResult:
    """
    Parse an exported listing CSV.

    Fails on empty input, input over ``max_file_size_mb``, fewer than one
    data row, or a header without title and item-id columns. Ragged rows
    and malformed lines are repaired, not rejected.
    """
    config = config or DedupeConfig()
    if not text or not text.strip():
        return _failure(ErrorKind.EMPTY_INPUT, "The CSV file is empty.")

    size = len(text.encode("utf-8"))
    if size > config.max_file_size_bytes:
        return _failure(
            ErrorKind.FILE_TOO_LARGE,
            f"File too large ({size / 1024 / 1024:.1f} MB). "
            f"Maximum is {config.max_file_size_mb:g} MB.",
        )

    rows, report = CsvParser().parse_with_report(text)
    if len(rows) < 2:
        return _failure(
            ErrorKind.INSUFFICIENT_DATA,
            "The CSV must contain a header row and at least one data row.",
            rows=rows,
            parse_report=report,
        )

    resolved = resolve_columns(rows[0])
    if not resolved.ok:
        return _failure(resolved.kind, resolved.message, rows=rows, parse_report=report)

    quality = build_quality_report(rows, report)
    log.info(f"Imported {len(rows) - 1} rows with {len(rows[0])} columns")
    return ImportResult(
        success=True,
        message=f"Imported {len(rows) - 1} rows.",
        rows=rows,
        columns=resolved.value,
        parse_report=report,
        quality=quality,
    )
