"""
Chunked Execution Controller

Runs Import -> Detect -> Analyze -> Export as a resumable state machine for
exports too large to process inside one bounded invocation.

Work is done in units: the import, analyze and export phases are one unit
each, detection is one unit per chunk of ``detect_chunk_size`` rows. State
is persisted after every unit and the elapsed time is checked after every
unit; once ``time_budget - safety_margin`` has passed the controller
returns ``Paused`` and the caller resumes with the same process id.

Keys per process:
    state:{id}        ProcessState
    input:{id}        raw CSV text, until imported
    meta:{id}         header, column map, row batching, quality summary
    rows:{id}:{n}     data rows, in BatchSizer-sized batches
    index:{id}        partial grouping index
    analysis:{id}     analysis counts and pivot tables
"""

import logging
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from .analysis import AnalysisResult, analyze_titles
from .batching import iter_batches, optimal_chunk_size
from .columns import ColumnMap
from .config import DedupeConfig
from .csv_parser import Row
from .errors import DedupeError, StateNotFoundError, StateStoreError
from .exporter import ExportResult, generate_export
from .grouper import AnnotatedTable, DuplicateGrouper, annotate, detection_message
from .importer import import_csv
from .quality import DataQualityReport
from .result import PipelineResult, failed_result, final_message
from .state import (
    AnalyzeState,
    CompletedState,
    DetectState,
    ExportState,
    FailedState,
    ImportState,
    Phase,
    ProcessState,
    StepSummary,
    describe,
)
from .stores import TieredStore

log = logging.getLogger(__name__)


class RunStatus(Enum):
    RUNNING = "Running"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    FAILED = "Failed"


@dataclass
class ProcessStatus:
    process_id: str
    status: RunStatus
    progress_percent: int = 0
    phase: str = ""
    message: str = ""
    error: Optional[str] = None
    result: Optional[PipelineResult] = None

    @property
    def finished(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)


def _key(kind: str, process_id: str, *parts) -> str:
    return ":".join([kind, process_id] + [str(p) for p in parts])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChunkedExecutionController:
    """
    Resumable duplicate-detection runs backed by a ``TieredStore``.

    ``clock`` measures the per-invocation budget; ``id_factory`` makes
    process ids. Both are injectable for tests.
    """

    def __init__(
        self,
        config: DedupeConfig,
        store: TieredStore,
        clock: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], Any] = uuid.uuid4,
    ):
        self.config = config
        self.store = store
        self.clock = clock
        self.id_factory = id_factory

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, csv_text: str) -> ProcessStatus:
        process_id = str(self.id_factory())
        state = ProcessState(process_id=process_id, phase_state=ImportState(), started_at=_now())
        self.store.put(_key("input", process_id), csv_text or "")
        self._save_state(state)
        log.info(f"Started chunked run {process_id}")
        return self._status_of(state, message="Process started.")

    def continue_process(self, process_id: str) -> ProcessStatus:
        """Run units until the run finishes or the time budget is spent."""
        started = self.clock()
        state = self._load_state(process_id)
        if state is None:
            return self._not_found(process_id)
        if isinstance(state.phase_state, FailedState):
            return self._status_of(state)

        while True:
            phase = state.phase
            try:
                payload = self._run_unit(state)
                if state.phase is Phase.COMPLETED:
                    return self._finish(state, payload)
                self._save_state(state)
            except Exception as e:
                log.exception(f"Run {process_id} failed during {phase.value}")
                error = f"{type(e).__name__}: {e}"
                state.steps.append(StepSummary(phase.value, False, error))
                state.phase_state = FailedState(failed_phase=phase, error=error)
                self._save_failure(state)
                return self._status_of(state)

            if state.phase is Phase.FAILED:
                return self._status_of(state)

            elapsed = self.clock() - started
            if elapsed >= self.config.pause_after_seconds:
                log.info(f"Pausing run {process_id} at {describe(state)} after {elapsed:.1f}s")
                return self._status_of(state, status=RunStatus.PAUSED, message="Paused. Continue to resume.")

    def status(self, process_id: str) -> ProcessStatus:
        state = self._load_state(process_id)
        if state is None:
            return self._not_found(process_id)
        return self._status_of(state)

    def discard(self, process_id: str) -> None:
        """Delete every key a run owns."""
        meta = self.store.get_json(_key("meta", process_id)) or {}
        for n in range(meta.get("batch_count", 0)):
            self.store.delete(_key("rows", process_id, n))
        for kind in ("input", "meta", "index", "analysis", "state"):
            self.store.delete(_key(kind, process_id))

    # ------------------------------------------------------------------
    # Units
    # ------------------------------------------------------------------

    def _run_unit(self, state: ProcessState):
        if isinstance(state.phase_state, ImportState):
            return self._import(state)
        if isinstance(state.phase_state, DetectState):
            return self._detect_chunk(state)
        if isinstance(state.phase_state, AnalyzeState):
            return self._analyze(state)
        if isinstance(state.phase_state, ExportState):
            return self._export(state)
        raise DedupeError(f"No work defined for phase {state.phase.value}")

    def _import(self, state: ProcessState) -> None:
        pid = state.process_id
        text = self.store.get(_key("input", pid))
        if text is None:
            raise DedupeError(f"Input of process {pid} is missing")

        imported = import_csv(text, self.config)
        state.steps.append(StepSummary(Phase.IMPORT.value, imported.success, imported.message))
        if not imported.success:
            state.fail(imported.message)
            return

        data_rows = imported.rows[1:]
        batch_size = optimal_chunk_size(len(data_rows))
        batch_count = 0
        for n, (_, batch) in enumerate(iter_batches(data_rows, batch_size)):
            self.store.put_json(_key("rows", pid, n), list(batch))
            batch_count += 1

        self.store.put_json(_key("meta", pid), {
            "header": imported.rows[0],
            "columns": asdict(imported.columns),
            "row_count": len(data_rows),
            "batch_size": batch_size,
            "batch_count": batch_count,
            "quality": imported.quality.to_dict() if imported.quality else None,
        })
        self.store.delete(_key("input", pid))

        state.stats["imported_rows"] = len(data_rows)
        log.info(f"Run {pid}: imported {len(data_rows)} rows in {batch_count} batches of {batch_size}")
        state.advance(DetectState(chunk_size=self.config.detect_chunk_size, total_rows=len(data_rows)))

    def _detect_chunk(self, state: ProcessState) -> None:
        pid = state.process_id
        detect: DetectState = state.phase_state
        meta = self._meta(pid)
        columns = ColumnMap(**meta["columns"])

        index = self.store.get_json(_key("index", pid)) or {}
        grouper = DuplicateGrouper.from_index(columns, index, site_filter=self.config.site_filter)

        stop = min(detect.processed_rows + detect.chunk_size, detect.total_rows)
        chunk = self._load_rows(pid, meta, detect.processed_rows, stop)
        grouper.add_rows(chunk, offset=detect.processed_rows)
        self.store.put_json(_key("index", pid), grouper.export_index())

        detect.processed_rows = stop
        detect.duplicate_group_count = grouper.duplicate_group_count
        state.stats["skipped_rows"] = state.stats.get("skipped_rows", 0) + grouper.skipped_rows
        log.debug(f"Run {pid}: detected through row {stop} of {detect.total_rows}")

        if detect.done:
            state.stats["duplicate_groups"] = grouper.duplicate_group_count
            state.stats["duplicate_items"] = grouper.duplicate_item_count
            message = detection_message(grouper.duplicate_group_count, grouper.duplicate_item_count)
            state.steps.append(StepSummary(Phase.DETECT.value, True, message))
            state.advance(AnalyzeState())

    def _analyze(self, state: ProcessState) -> None:
        pid = state.process_id
        analysis = analyze_titles(self._annotated_table(pid))
        state.steps.append(StepSummary(Phase.ANALYZE.value, analysis.success, analysis.message))
        if not analysis.success:
            log.warning(f"Run {pid}: analysis failed, continuing to export: {analysis.message}")

        state.stats["unique_titles"] = analysis.unique_titles
        state.stats["duplicate_patterns"] = analysis.duplicate_patterns
        self.store.put_json(_key("analysis", pid), _analysis_to_dict(analysis))
        state.advance(ExportState())

    def _export(self, state: ProcessState) -> Tuple[AnnotatedTable, ExportResult]:
        table = self._annotated_table(state.process_id)
        export = generate_export(table, self.config.end_code)
        state.steps.append(StepSummary(Phase.EXPORT.value, export.success, export.message))
        if not export.success:
            state.fail(export.message)
            return table, export

        state.stats["export_count"] = export.item_count
        state.advance(CompletedState())
        return table, export

    def _finish(self, state: ProcessState, payload: Tuple[AnnotatedTable, ExportResult]) -> ProcessStatus:
        pid = state.process_id
        table, export = payload
        meta = self._meta(pid)
        analysis_data = self.store.get_json(_key("analysis", pid))
        quality = meta.get("quality")

        result = PipelineResult(
            success=True,
            steps=list(state.steps),
            stats=dict(state.stats),
            final_message=final_message(state.stats),
            export=export,
            annotated=table,
            analysis=_analysis_from_dict(analysis_data) if analysis_data else None,
            quality=DataQualityReport(**quality) if quality else None,
            processing_time=_elapsed_since(state.started_at),
        )
        self.discard(pid)
        log.info(f"Run {pid} completed: {result.final_message}")
        return ProcessStatus(
            process_id=pid,
            status=RunStatus.COMPLETED,
            progress_percent=100,
            phase=Phase.COMPLETED.value,
            message=result.final_message,
            result=result,
        )

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _save_state(self, state: ProcessState) -> None:
        self.store.put_json(_key("state", state.process_id), state.to_dict())

    def _save_failure(self, state: ProcessState) -> None:
        try:
            self._save_state(state)
        except StateStoreError as e:
            log.error(f"Run {state.process_id}: could not persist failure: {e}")

    def _load_state(self, process_id: str) -> Optional[ProcessState]:
        data = self.store.get_json(_key("state", process_id))
        return ProcessState.from_dict(data) if data else None

    def _meta(self, process_id: str) -> Dict[str, Any]:
        meta = self.store.get_json(_key("meta", process_id))
        if meta is None:
            raise DedupeError(f"Imported data of process {process_id} is missing")
        return meta

    def _load_rows(self, process_id: str, meta: Dict[str, Any], start: int, stop: int) -> List[Row]:
        if stop <= start:
            return []
        batch_size = meta["batch_size"]
        first, last = start // batch_size, (stop - 1) // batch_size
        rows: List[Row] = []
        for n in range(first, last + 1):
            batch = self.store.get_json(_key("rows", process_id, n))
            if batch is None:
                raise DedupeError(f"Row batch {n} of process {process_id} is missing")
            rows.extend(batch)
        offset = first * batch_size
        return rows[start - offset:stop - offset]

    def _annotated_table(self, process_id: str) -> AnnotatedTable:
        meta = self._meta(process_id)
        columns = ColumnMap(**meta["columns"])
        index = self.store.get_json(_key("index", process_id)) or {}
        grouper = DuplicateGrouper.from_index(columns, index, site_filter=self.config.site_filter)
        data_rows = self._load_rows(process_id, meta, 0, meta["row_count"])
        return annotate(grouper.duplicate_groups(data_rows), meta["header"], columns)

    # ------------------------------------------------------------------
    # Status reporting
    # ------------------------------------------------------------------

    def _status_of(
        self,
        state: ProcessState,
        status: Optional[RunStatus] = None,
        message: str = "",
    ) -> ProcessStatus:
        if isinstance(state.phase_state, FailedState):
            failed = state.phase_state
            result = failed_result(
                list(state.steps),
                dict(state.stats),
                failed.failed_phase.value,
                failed.error,
                processing_time=_elapsed_since(state.started_at),
            )
            return ProcessStatus(
                process_id=state.process_id,
                status=RunStatus.FAILED,
                progress_percent=state.progress_percent(),
                phase=failed.failed_phase.value,
                message=result.final_message,
                error=failed.error,
                result=result,
            )
        return ProcessStatus(
            process_id=state.process_id,
            status=status or RunStatus.RUNNING,
            progress_percent=state.progress_percent(),
            phase=state.phase.value,
            message=message or describe(state),
        )

    def _not_found(self, process_id: str) -> ProcessStatus:
        error = str(StateNotFoundError(process_id))
        log.error(error)
        return ProcessStatus(process_id=process_id, status=RunStatus.FAILED, message=error, error=error)


def _analysis_to_dict(analysis: AnalysisResult) -> Dict[str, Any]:
    return {
        "success": analysis.success,
        "message": analysis.message,
        "unique_titles": analysis.unique_titles,
        "duplicate_patterns": analysis.duplicate_patterns,
        "pivots": {
            str(repeat): {
                "index": [str(t) for t in pivot.index],
                "columns": [str(c) for c in pivot.columns],
                "data": pivot.values.tolist(),
            }
            for repeat, pivot in analysis.pivots.items()
        },
    }


def _analysis_from_dict(data: Dict[str, Any]) -> AnalysisResult:
    pivots = {}
    for repeat, split in data.get("pivots", {}).items():
        pivot = pd.DataFrame(split["data"], index=split["index"], columns=split["columns"])
        pivot.index.name = "Title"
        pivots[int(repeat)] = pivot
    return AnalysisResult(
        success=data["success"],
        message=data["message"],
        unique_titles=data.get("unique_titles", 0),
        duplicate_patterns=data.get("duplicate_patterns", 0),
        pivots=pivots,
    )


def _elapsed_since(started_at: str) -> float:
    if not started_at:
        return 0.0
    try:
        started = datetime.fromisoformat(started_at)
    except ValueError:
        return 0.0
    return max(0.0, (datetime.now(timezone.utc) - started).total_seconds())
