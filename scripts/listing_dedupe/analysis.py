"""
Duplicate title analysis

Breaks duplicate listings down by how many times each title repeats and on
which month-day the copies were listed, as one pivot table per repeat count.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from .columns import ColumnMap
from .grouper import AnnotatedTable, parse_start_date
from .normalizer import basic_normalize

log = logging.getLogger(__name__)

OTHER_DAY = "Other"
_MONTH_DAY = re.compile(r"^\d{2}-\d{2}$")


def month_day(value: Optional[str]) -> str:
    """``MM-DD`` of a start date, or ``Other`` when it cannot be read."""
    if not value or not str(value).strip():
        return OTHER_DAY
    text = str(value).strip()
    if _MONTH_DAY.match(text):
        return text
    ts = parse_start_date(text)
    if ts is None:
        return OTHER_DAY
    return f"{ts.month:02d}-{ts.day:02d}"


@dataclass
class AnalysisResult:
    success: bool
    message: str
    unique_titles: int = 0  # Titles listed more than once
    duplicate_patterns: int = 0  # Distinct repeat counts
    pivots: Dict[int, pd.DataFrame] = field(default_factory=dict)  # repeat count -> title x month-day


def analyze_titles(table: Optional[AnnotatedTable]) -> AnalysisResult:
    """
    Build per-repeat-count pivot tables from the annotated duplicate table.

    Rows are display titles (first spelling seen), columns are month-days in
    calendar order with ``Other`` last, values are listing counts.
    """
    if table is None:
        return AnalysisResult(success=False, message="Duplicate list not found. Run duplicate detection first.")

    records = []
    for row in table.rows:
        display = ColumnMap.cell(row, table.columns.title).strip()
        if not display:
            continue
        records.append({
            "normalized": basic_normalize(display),
            "display": display,
            "month_day": month_day(ColumnMap.cell(row, table.columns.start_date)),
        })

    if not records:
        return AnalysisResult(
            success=True,
            message="Duplicates detected: 0. No duplicate titles to analyze.",
        )

    df = pd.DataFrame.from_records(records)
    display_titles = df.drop_duplicates("normalized").set_index("normalized")["display"]
    totals = df.groupby("normalized", sort=False).size()
    repeated = totals[totals > 1]

    days = sorted(d for d in df["month_day"].unique() if d != OTHER_DAY)
    if (df["month_day"] == OTHER_DAY).any():
        days.append(OTHER_DAY)

    counts = pd.crosstab(df["normalized"], df["month_day"]).reindex(columns=days, fill_value=0)

    pivots: Dict[int, pd.DataFrame] = {}
    for repeat in sorted(repeated.unique(), reverse=True):
        titles: List[str] = [t for t in repeated.index if repeated[t] == repeat]
        pivot = counts.loc[titles].copy()
        pivot.index = [display_titles[t] for t in titles]
        pivot.index.name = "Title"
        pivots[int(repeat)] = pivot

    log.info(f"Analyzed {len(repeated)} duplicate titles across {len(pivots)} repeat counts")
    return AnalysisResult(
        success=True,
        message=f"Analysis complete. Found {len(repeated)} duplicated titles in {len(pivots)} repeat patterns.",
        unique_titles=int(len(repeated)),
        duplicate_patterns=len(pivots),
        pivots=pivots,
    )


def generate_report(
    analysis: AnalysisResult,
    duplicate_groups: int,
    duplicate_items: int,
    export_count: int,
    imported_rows: int = 0,
    top: int = 20,
) -> str:
    """Generate human-readable markdown report of a detection run."""
    lines = [
        "# Duplicate Listing Analysis",
        "",
        "## Overview",
        "",
        f"- **Imported Listings**: {imported_rows:,}",
        f"- **Duplicate Groups**: {duplicate_groups:,}",
        f"- **Listings in Duplicate Groups**: {duplicate_items:,}",
        f"- **Listings to End**: {export_count:,}",
        "",
    ]

    if duplicate_groups == 0:
        lines.extend([
            "No duplicate listings were found.",
            "",
        ])
        return "\n".join(lines)

    lines.extend([
        "## Repeat Patterns",
        "",
        f"Found **{analysis.unique_titles}** duplicated titles in "
        f"**{analysis.duplicate_patterns}** repeat patterns.",
        "",
    ])

    for repeat, pivot in analysis.pivots.items():
        lines.append(f"### Listed {repeat} times ({len(pivot)} titles)")
        lines.append("")
        shown = pivot.head(top)
        lines.append("| Title | " + " | ".join(shown.columns) + " |")
        lines.append("|---" * (len(shown.columns) + 1) + "|")
        for title, counts in shown.iterrows():
            cells = [str(int(v)) if v else "" for v in counts.tolist()]
            lines.append(f"| {title} | " + " | ".join(cells) + " |")
        if len(pivot) > top:
            lines.append(f"| ... {len(pivot) - top} more | " + " | ".join("" for _ in shown.columns) + " |")
        lines.append("")

    return "\n".join(lines)
