"""Data-quality summary of an imported export."""

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from .csv_parser import ParseReport, Row


@dataclass
class DataQualityReport:
    row_count: int
    column_count: int
    padded_rows: int = 0
    truncated_rows: int = 0
    fallback_lines: int = 0
    skipped_lines: int = 0
    empty_ratios: Dict[str, float] = field(default_factory=dict)  # header -> share of empty cells

    def mostly_empty_columns(self, threshold: float = 0.5) -> List[str]:
        return [col for col, ratio in self.empty_ratios.items() if ratio >= threshold]

    def to_dict(self) -> Dict:
        return asdict(self)


def build_quality_report(rows: List[Row], parse_report: Optional[ParseReport] = None) -> DataQualityReport:
    """
    Summarize repairs made during parsing and the share of empty cells per
    column. Duplicate header names are suffixed so each column is reported.
    """
    parse_report = parse_report or ParseReport()
    if not rows:
        return DataQualityReport(row_count=0, column_count=0, skipped_lines=parse_report.skipped_lines)

    header = _unique_headers(rows[0])
    df = pd.DataFrame(rows[1:], columns=header, dtype=str).fillna("")
    if len(df):
        ratios = df.apply(lambda col: col.str.strip() == "").mean()
    else:
        ratios = pd.Series(0.0, index=header)

    return DataQualityReport(
        row_count=len(df),
        column_count=len(header),
        padded_rows=parse_report.padded_rows,
        truncated_rows=parse_report.truncated_rows,
        fallback_lines=len(parse_report.fallback_lines),
        skipped_lines=parse_report.skipped_lines,
        empty_ratios={col: round(float(ratios[col]), 4) for col in header},
    )


def _unique_headers(header: Row) -> List[str]:
    seen: Dict[str, int] = {}
    result = []
    for i, name in enumerate(header):
        base = str(name).strip() or f"column_{i + 1}"
        name = base
        while name in seen:
            seen[base] += 1
            name = f"{base}_{seen[base]}"
        seen[name] = 0
        result.append(name)
    return result
