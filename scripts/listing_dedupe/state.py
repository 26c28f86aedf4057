"""
Persisted state of a chunked run.

Each phase has its own state record carrying only what that phase needs;
``ProcessState`` wraps the current one with run-level bookkeeping and
serializes to plain JSON for the key-value stores.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Phase(Enum):
    IMPORT = "Import"
    DETECT = "Detect"
    ANALYZE = "Analyze"
    EXPORT = "Export"
    COMPLETED = "Completed"
    FAILED = "Failed"


WORK_PHASES = [Phase.IMPORT, Phase.DETECT, Phase.ANALYZE, Phase.EXPORT]


@dataclass
class ImportState:
    phase = Phase.IMPORT


@dataclass
class DetectState:
    chunk_size: int
    processed_rows: int = 0
    total_rows: int = 0
    duplicate_group_count: int = 0

    phase = Phase.DETECT

    @property
    def done(self) -> bool:
        return self.processed_rows >= self.total_rows

    @property
    def fraction(self) -> float:
        if not self.total_rows:
            return 1.0
        return min(1.0, self.processed_rows / self.total_rows)


@dataclass
class AnalyzeState:
    phase = Phase.ANALYZE


@dataclass
class ExportState:
    phase = Phase.EXPORT


@dataclass
class CompletedState:
    phase = Phase.COMPLETED


@dataclass
class FailedState:
    failed_phase: Phase
    error: str

    phase = Phase.FAILED


PhaseState = Union[ImportState, DetectState, AnalyzeState, ExportState, CompletedState, FailedState]

_STATE_TYPES = {
    Phase.IMPORT: ImportState,
    Phase.DETECT: DetectState,
    Phase.ANALYZE: AnalyzeState,
    Phase.EXPORT: ExportState,
    Phase.COMPLETED: CompletedState,
    Phase.FAILED: FailedState,
}


@dataclass
class StepSummary:
    """Outcome of one pipeline phase."""
    phase: str
    success: bool
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProcessState:
    process_id: str
    phase_state: PhaseState
    current_phase_index: int = 0
    total_phases: int = len(WORK_PHASES)
    started_at: str = ""  # ISO timestamp
    steps: List[StepSummary] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def phase(self) -> Phase:
        return self.phase_state.phase

    def advance(self, next_state: PhaseState) -> None:
        self.phase_state = next_state
        if next_state.phase in WORK_PHASES:
            self.current_phase_index = WORK_PHASES.index(next_state.phase)
        elif next_state.phase is Phase.COMPLETED:
            self.current_phase_index = self.total_phases

    def fail(self, error: str) -> None:
        failed_phase = self.phase
        if failed_phase is Phase.FAILED:
            failed_phase = self.phase_state.failed_phase
        self.phase_state = FailedState(failed_phase=failed_phase, error=error)

    def progress_percent(self) -> int:
        """Completed phases plus the finished share of the detect phase."""
        if self.phase is Phase.COMPLETED:
            return 100
        done = float(self.current_phase_index)
        if isinstance(self.phase_state, DetectState):
            done += self.phase_state.fraction
        return min(99, int(done / self.total_phases * 100))

    def to_dict(self) -> Dict[str, Any]:
        phase_data = asdict(self.phase_state)
        if isinstance(self.phase_state, FailedState):
            phase_data["failed_phase"] = self.phase_state.failed_phase.value
        return {
            "process_id": self.process_id,
            "phase": self.phase.value,
            "phase_state": phase_data,
            "current_phase_index": self.current_phase_index,
            "total_phases": self.total_phases,
            "started_at": self.started_at,
            "steps": [s.to_dict() for s in self.steps],
            "stats": dict(self.stats),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessState":
        phase = Phase(data["phase"])
        phase_data = dict(data.get("phase_state") or {})
        if phase is Phase.FAILED:
            phase_data["failed_phase"] = Phase(phase_data["failed_phase"])
        return cls(
            process_id=data["process_id"],
            phase_state=_STATE_TYPES[phase](**phase_data),
            current_phase_index=data.get("current_phase_index", 0),
            total_phases=data.get("total_phases", len(WORK_PHASES)),
            started_at=data.get("started_at", ""),
            steps=[StepSummary(**s) for s in data.get("steps", [])],
            stats=dict(data.get("stats", {})),
        )


def describe(state: Optional[ProcessState]) -> str:
    if state is None:
        return "unknown"
    if isinstance(state.phase_state, DetectState):
        d = state.phase_state
        return f"{state.phase.value} ({d.processed_rows}/{d.total_rows} rows)"
    if isinstance(state.phase_state, FailedState):
        return f"Failed during {state.phase_state.failed_phase.value}"
    return state.phase.value
