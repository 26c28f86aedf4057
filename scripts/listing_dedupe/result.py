"""Final outcome of a pipeline run, single pass or chunked."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .analysis import AnalysisResult
from .csv_parser import render_csv
from .exporter import ExportResult
from .grouper import AnnotatedTable
from .quality import DataQualityReport
from .state import StepSummary


def final_message(
    stats: Dict[str, int],
    failed_phase: Optional[str] = None,
    error: Optional[str] = None,
) -> str:
    if failed_phase:
        return f"Processing failed during {failed_phase}: {error}"
    if not stats.get("duplicate_groups"):
        return (
            f"Processing complete. {stats.get('imported_rows', 0)} listings checked, "
            "no duplicate listings were found."
        )
    return (
        f"Processing complete. Found {stats['duplicate_groups']} duplicate groups "
        f"({stats.get('duplicate_items', 0)} listings); "
        f"{stats.get('export_count', 0)} listings marked to end."
    )


@dataclass
class PipelineResult:
    success: bool
    steps: List[StepSummary] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)
    final_message: str = ""
    error: Optional[str] = None
    failed_phase: Optional[str] = None
    export: Optional[ExportResult] = None
    annotated: Optional[AnnotatedTable] = None
    analysis: Optional[AnalysisResult] = None
    quality: Optional[DataQualityReport] = None
    processing_time: float = 0.0  # Seconds

    @property
    def file_name(self) -> str:
        return self.export.file_name if self.export else ""

    @property
    def export_rows(self) -> List[List[str]]:
        return [r.as_list() for r in self.export.rows] if self.export else []

    def export_csv(self) -> str:
        """End-items table as CSV text with a byte-order mark."""
        if self.export is None:
            return ""
        return render_csv(self.export.table())

    def duplicates_csv(self) -> str:
        if self.annotated is None:
            return ""
        return render_csv([self.annotated.header] + self.annotated.rows)


def failed_result(
    steps: List[StepSummary],
    stats: Dict[str, int],
    failed_phase: str,
    error: str,
    processing_time: float = 0.0,
    **kwargs,
) -> PipelineResult:
    return PipelineResult(
        success=False,
        steps=steps,
        stats=stats,
        final_message=final_message(stats, failed_phase, error),
        error=error,
        failed_phase=failed_phase,
        processing_time=processing_time,
        **kwargs,
    )
