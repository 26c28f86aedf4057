"""
Result types and exceptions.

Expected alternate paths (a malformed line, a header without the required
columns, an unknown process id) come back as ``Err`` values. Exceptions are
kept for configuration mistakes and storage faults.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(Enum):
    EMPTY_INPUT = "empty_input"
    FILE_TOO_LARGE = "file_too_large"
    MALFORMED_LINE = "malformed_line"
    INSUFFICIENT_DATA = "insufficient_data"
    MISSING_COLUMNS = "missing_columns"
    STATE_NOT_FOUND = "state_not_found"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str
    ok: bool = False


Result = Union[Ok[Any], Err]


class DedupeError(Exception):
    """Base class for listing_dedupe exceptions."""


class ConfigError(DedupeError):
    """Invalid configuration value."""


class StateNotFoundError(DedupeError):
    """No persisted state exists for a process id."""

    def __init__(self, process_id: str):
        super().__init__(f"State not found for process {process_id}. Restart the pipeline.")
        self.process_id = process_id


class StateStoreError(DedupeError):
    """Every store tier rejected a write."""
