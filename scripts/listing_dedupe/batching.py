"""Chunk sizing for bulk reads and writes."""

from typing import Iterator, List, Sequence, Tuple, TypeVar

T = TypeVar("T")

# (max data size, chunk size), calibrated for exports up to ~40,000 rows
CHUNK_THRESHOLDS: List[Tuple[int, int]] = [
    (1000, 500),
    (5000, 1000),
    (20000, 2000),
    (40000, 3000),
]
MAX_CHUNK_SIZE = 4000


def optimal_chunk_size(data_size: int) -> int:
    """Recommended number of rows to handle per chunk for a data set of ``data_size`` rows."""
    for limit, size in CHUNK_THRESHOLDS:
        if data_size <= limit:
            return size
    return MAX_CHUNK_SIZE


def iter_batches(items: Sequence[T], batch_size: int) -> Iterator[Tuple[int, Sequence[T]]]:
    """Yield ``(start_index, batch)`` slices of ``items``."""
    if batch_size <= 0:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    for start in range(0, len(items), batch_size):
        yield start, items[start:start + batch_size]
