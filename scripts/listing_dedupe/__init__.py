"""
Listing Duplicate Detection Module

Finds marketplace listings that duplicate each other by normalized title,
keeps the most recently started listing of each group and produces a bulk
"end listings" CSV for the rest. Large exports run through a resumable,
time-budgeted controller.

Usage:
    python scripts/run_listing_dedupe.py --input CSVs/active-listings.csv --dry-run
"""

from .config import DedupeConfig
from .csv_parser import CsvParser, render_csv
from .normalizer import basic_normalize, advanced_normalize, normalize
from .similarity import similarity, similar_pairs
from .grouper import DuplicateGrouper, detect_duplicates, annotate
from .batching import optimal_chunk_size
from .exporter import ExportFilter, generate_export
from .analysis import analyze_titles, generate_report
from .controller import ChunkedExecutionController, RunStatus
from .pipeline import auto_process, process
from .stores import MemoryStore, RedisStore, JsonFileStore, TieredStore, build_store

__version__ = "1.0.0"
__all__ = [
    "DedupeConfig",
    "CsvParser",
    "render_csv",
    "basic_normalize",
    "advanced_normalize",
    "normalize",
    "similarity",
    "similar_pairs",
    "DuplicateGrouper",
    "detect_duplicates",
    "annotate",
    "optimal_chunk_size",
    "ExportFilter",
    "generate_export",
    "analyze_titles",
    "generate_report",
    "ChunkedExecutionController",
    "RunStatus",
    "auto_process",
    "process",
    "MemoryStore",
    "RedisStore",
    "JsonFileStore",
    "TieredStore",
    "build_store",
]
