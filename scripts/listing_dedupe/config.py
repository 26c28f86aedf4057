"""
Configuration for listing duplicate detection.

Values come from a ``.env`` file and ``DEDUPE_*`` environment variables,
falling back to the defaults below. The resulting ``DedupeConfig`` is passed
into each component explicitly.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

WORKSPACE = Path(__file__).resolve().parent.parent.parent


@dataclass
class DedupeConfig:
    """Settings shared by the parser, grouper, controller and exporter."""
    similarity_threshold: float = 0.7
    max_file_size_mb: float = 10.0
    detect_chunk_size: int = 800  # Detect is costlier per row than import/export
    chunked_row_threshold: int = 15000
    time_budget_seconds: float = 300.0
    safety_margin_seconds: float = 60.0
    cache_ttl_seconds: int = 21600  # External cache expiry (6h)
    state_dir: Path = WORKSPACE / "outputs" / "dedupe_state"
    output_dir: Path = WORKSPACE / "outputs" / "listing_dedupe"
    redis_url: Optional[str] = None
    site_filter: Optional[str] = None
    end_code: str = "OtherListingError"

    def __post_init__(self):
        self.state_dir = Path(self.state_dir)
        self.output_dir = Path(self.output_dir)
        if self.detect_chunk_size <= 0:
            raise ConfigError(f"detect_chunk_size must be positive, got {self.detect_chunk_size}")
        if not 0 <= self.similarity_threshold <= 1:
            raise ConfigError(f"similarity_threshold must be within [0, 1], got {self.similarity_threshold}")

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)

    @property
    def pause_after_seconds(self) -> float:
        """Elapsed time after which a chunked run yields."""
        return max(0.0, self.time_budget_seconds - self.safety_margin_seconds)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "DedupeConfig":
        """
        Build a config from ``DEDUPE_<FIELD>`` variables.

        ``env_file`` defaults to ``.env`` at the workspace root; a missing
        file is not an error.
        """
        load_dotenv(env_file or WORKSPACE / ".env")

        values = {}
        for f in fields(cls):
            raw = os.getenv(f"DEDUPE_{f.name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            values[f.name] = _coerce(f.name, raw.strip(), f.default)
        return cls(**values)


def _coerce(name: str, raw: str, default):
    if isinstance(default, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError:
        raise ConfigError(f"DEDUPE_{name.upper()} must be numeric, got {raw!r}") from None
    if isinstance(default, Path):
        return Path(raw)
    return raw
