"""
CSV Parser for marketplace listing exports

Tokenizes raw export text into rows of string cells. Handles quoted fields
and escaped quotes, tolerates malformed lines, and squares every data row
to the width of the header row.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from .errors import Err, ErrorKind, Ok, Result

log = logging.getLogger(__name__)

Row = List[str]

BOM = "\ufeff"


@dataclass
class ParseReport:
    """Row repairs made while parsing, for the data-quality report."""
    total_lines: int = 0
    skipped_lines: int = 0
    fallback_lines: List[int] = field(default_factory=list)  # 1-based line numbers
    padded_rows: int = 0
    truncated_rows: int = 0

    @property
    def repaired_rows(self) -> int:
        return self.padded_rows + self.truncated_rows


def split_naive(line: str) -> Row:
    """Plain comma split with trimmed cells."""
    return [cell.strip() for cell in line.split(",")]


def parse_line(line: str) -> Result:
    """
    Tokenize a single CSV line.

    Returns ``Ok(cells)`` or ``Err(MALFORMED_LINE)``. A line whose quotes
    never close is reported as malformed so the caller can fall back to a
    naive split for that line only.
    """
    if not isinstance(line, str):
        return Err(ErrorKind.MALFORMED_LINE, f"expected text, got {type(line).__name__}")
    if '"' not in line:
        return Ok(split_naive(line))

    cells: Row = []
    current: List[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                # Escaped quote
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    if in_quotes:
        return Err(ErrorKind.MALFORMED_LINE, "unterminated quoted field")

    cells.append("".join(current).strip())
    return Ok(cells)


def square_rows(rows: List[Row], report: ParseReport = None) -> List[Row]:
    """Pad or truncate every data row to the header's width, in place."""
    if not rows:
        return rows
    width = len(rows[0])
    for i in range(1, len(rows)):
        length = len(rows[i])
        if length < width:
            rows[i] = rows[i] + [""] * (width - length)
            if report is not None:
                report.padded_rows += 1
        elif length > width:
            rows[i] = rows[i][:width]
            if report is not None:
                report.truncated_rows += 1
    return rows


class CsvParser:
    """
    Parses listing export text into rows.

    The first non-empty line is the header. Parsing never raises: an
    unusable input yields an empty row set, which callers must treat as
    "nothing usable" rather than as a valid empty file.
    """

    def parse(self, text: str) -> List[Row]:
        rows, _ = self.parse_with_report(text)
        return rows

    def parse_with_report(self, text: str) -> Tuple[List[Row], ParseReport]:
        report = ParseReport()
        if not isinstance(text, str):
            log.error(f"CSV input must be text, got {type(text).__name__}")
            return [], report

        if text.startswith(BOM):
            text = text[1:]
            log.debug("Stripped byte-order mark")

        text = text.replace("\r\n", "\n").replace("\r", "\n")
        lines = text.split("\n")
        report.total_lines = len(lines)

        rows: List[Row] = []
        for number, line in enumerate(lines, 1):
            if not line.strip():
                report.skipped_lines += 1
                continue

            result = parse_line(line)
            if result.ok:
                rows.append(result.value)
            else:
                log.warning(f"Line {number}: {result.message}; falling back to plain split")
                report.fallback_lines.append(number)
                rows.append(split_naive(line))

        square_rows(rows, report)
        if report.repaired_rows:
            log.info(
                f"Adjusted column count on {report.repaired_rows} rows "
                f"({report.padded_rows} padded, {report.truncated_rows} truncated)"
            )
        return rows, report


def render_csv(rows: Sequence[Sequence[object]], bom: bool = True) -> str:
    """
    Render rows as CSV text.

    Cells containing a comma, quote or line break are quoted, with inner
    quotes doubled. ``None`` renders as an empty cell. No newline follows
    the last row.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(["" if cell is None else cell for cell in row] for row in rows)
    content = buffer.getvalue()
    if content.endswith("\n"):
        content = content[:-1]
    return BOM + content if bom else content
