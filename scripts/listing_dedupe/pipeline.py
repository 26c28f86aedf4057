"""
End-to-end duplicate listing pipeline.

``auto_process`` runs import, detection, analysis and export in one pass.
``process`` does the same but hands large exports to the chunked
controller and drives it until the run finishes.
"""

import logging
import time
from typing import Dict, List, Optional

from .analysis import analyze_titles
from .config import DedupeConfig
from .controller import ChunkedExecutionController, RunStatus
from .exporter import generate_export
from .grouper import annotate, detect_duplicates
from .importer import import_csv
from .result import PipelineResult, failed_result, final_message
from .state import Phase, StepSummary
from .stores import TieredStore, build_store

log = logging.getLogger(__name__)


def auto_process(csv_text: Optional[str], config: Optional[DedupeConfig] = None) -> PipelineResult:
    """
    Import -> Detect -> Analyze -> Export in one pass.

    Stops at the first failing step, except analysis: a failed analysis is
    recorded and the export still runs.
    """
    config = config or DedupeConfig()
    started = time.monotonic()
    steps: List[StepSummary] = []
    stats: Dict[str, int] = {}
    phase = Phase.IMPORT

    def failed(error: str, **kwargs) -> PipelineResult:
        return failed_result(steps, stats, phase.value, error, time.monotonic() - started, **kwargs)

    try:
        imported = import_csv(csv_text, config)
        steps.append(StepSummary(phase.value, imported.success, imported.message))
        if not imported.success:
            return failed(imported.message)
        stats["imported_rows"] = imported.data_row_count

        phase = Phase.DETECT
        detection = detect_duplicates(imported.rows, site_filter=config.site_filter)
        steps.append(StepSummary(phase.value, detection.success, detection.message))
        if not detection.success:
            return failed(detection.message, quality=imported.quality)
        stats["duplicate_groups"] = detection.duplicate_groups
        stats["duplicate_items"] = detection.duplicate_items
        table = annotate(detection.groups, imported.rows[0], detection.columns or imported.columns)

        phase = Phase.ANALYZE
        analysis = analyze_titles(table)
        steps.append(StepSummary(phase.value, analysis.success, analysis.message))
        if not analysis.success:
            log.warning(f"Analysis failed, continuing to export: {analysis.message}")
        stats["unique_titles"] = analysis.unique_titles
        stats["duplicate_patterns"] = analysis.duplicate_patterns

        phase = Phase.EXPORT
        export = generate_export(table, config.end_code)
        steps.append(StepSummary(phase.value, export.success, export.message))
        if not export.success:
            return failed(export.message, annotated=table, analysis=analysis, quality=imported.quality)
        stats["export_count"] = export.item_count
    except Exception as e:
        log.exception(f"Pipeline failed during {phase.value}")
        error = f"{type(e).__name__}: {e}"
        steps.append(StepSummary(phase.value, False, error))
        return failed(error)

    result = PipelineResult(
        success=True,
        steps=steps,
        stats=stats,
        final_message=final_message(stats),
        export=export,
        annotated=table,
        analysis=analysis,
        quality=imported.quality,
        processing_time=time.monotonic() - started,
    )
    log.info(result.final_message)
    return result


def count_data_rows(csv_text: Optional[str]) -> int:
    """Non-blank lines after the header."""
    if not csv_text:
        return 0
    lines = sum(1 for line in csv_text.splitlines() if line.strip())
    return max(0, lines - 1)


def run_chunked(controller: ChunkedExecutionController, csv_text: str) -> PipelineResult:
    """Start a chunked run and resume it until it completes or fails."""
    status = controller.start(csv_text)
    process_id = status.process_id
    while not status.finished:
        status = controller.continue_process(process_id)
        if status.status is RunStatus.PAUSED:
            log.info(f"Run {process_id} paused at {status.progress_percent}%; resuming")

    if status.result is None:
        return failed_result([], {}, status.phase or "Unknown", status.error or status.message)
    return status.result


def process(
    csv_text: Optional[str],
    config: Optional[DedupeConfig] = None,
    store: Optional[TieredStore] = None,
    chunked: Optional[bool] = None,
) -> PipelineResult:
    """
    Run the pipeline, chunked when the export has at least
    ``chunked_row_threshold`` data rows (or when ``chunked`` forces it).
    """
    config = config or DedupeConfig()
    if chunked is None:
        chunked = count_data_rows(csv_text) >= config.chunked_row_threshold

    if not chunked:
        return auto_process(csv_text, config)

    store = store or build_store(config.state_dir, config.redis_url, config.cache_ttl_seconds)
    log.info("Using chunked execution")
    return run_chunked(ChunkedExecutionController(config, store), csv_text or "")
