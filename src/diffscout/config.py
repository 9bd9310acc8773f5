"""Configuration for diffscout.

Passed explicitly into the pipeline; nothing reads it as ambient state.
"""

import os
from dataclasses import dataclass, field


def _default_workers() -> int:
    return os.cpu_count() or 4


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_timeout(name: str, default: float | None) -> float | None:
    """Seconds from the environment; "none", "off" or "inf" wait indefinitely."""
    value = os.getenv(name, "").strip()
    if not value:
        return default
    if value.lower() in ("none", "off", "inf"):
        return None
    return float(value)


@dataclass
class DiffScoutConfig:
    """Pipeline configuration."""

    # Classification worker pool
    max_workers: int = field(default_factory=_default_workers)
    analysis_concurrency: int = 8  # Concurrent structural analyzer calls

    # Search
    search_timeout: float | None = 30.0  # Seconds; None waits indefinitely

    # Noise policy
    include_all: bool = False  # Keep lockfiles and generated files
    exclude_globs: tuple[str, ...] = ()

    # Review submission
    review_body: str = "Review from diffscout"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"

    @classmethod
    def from_env(cls) -> "DiffScoutConfig":
        """Create configuration from environment variables."""
        globs = os.getenv("DIFFSCOUT_EXCLUDE_GLOBS", "")
        return cls(
            max_workers=int(os.getenv("DIFFSCOUT_MAX_WORKERS", str(_default_workers()))),
            analysis_concurrency=int(os.getenv("DIFFSCOUT_ANALYSIS_CONCURRENCY", "8")),
            search_timeout=_env_timeout("DIFFSCOUT_SEARCH_TIMEOUT", 30.0),
            include_all=_env_bool("DIFFSCOUT_INCLUDE_ALL", False),
            exclude_globs=tuple(g.strip() for g in globs.split(",") if g.strip()),
            review_body=os.getenv("DIFFSCOUT_REVIEW_BODY", "Review from diffscout"),
            log_level=os.getenv("DIFFSCOUT_LOG_LEVEL", "INFO"),
            log_format=os.getenv("DIFFSCOUT_LOG_FORMAT", "console"),
        )
