"""
Configuration for the build arena.

Dataclasses validated on construction, optionally populated from the
environment.
"""

import os
from dataclasses import dataclass, field

from .exceptions import ConfigurationError
from .models import Lane

DEFAULT_DATABASE_URL = "sqlite:///build_arena.db"
SESSION_COOKIE = "mb_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 365
FIFTY_MB_BYTES = 50 * 1024 * 1024


def _read_int_env(name: str, fallback: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return fallback
    try:
        parsed = int(raw)
    except ValueError:
        return fallback
    return parsed if parsed > 0 else fallback


def _read_float_env(name: str, fallback: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return fallback
    try:
        parsed = float(raw)
    except ValueError:
        return fallback
    return parsed if parsed >= 0 else fallback


@dataclass(frozen=True)
class ArenaSettings:
    """Fixed build settings every arena matchup is drawn from."""

    grid_size: int = 256
    palette: str = "simple"
    mode: str = "precise"

    def __post_init__(self) -> None:
        if self.grid_size <= 0:
            raise ConfigurationError(f"grid_size must be positive, got {self.grid_size}")
        if not self.palette:
            raise ConfigurationError("palette cannot be empty")
        if not self.mode:
            raise ConfigurationError("mode cannot be empty")


@dataclass
class LaneWeights:
    """Primary-draw weights of the four lanes."""

    coverage: float = 0.40
    contender: float = 0.30
    uncertainty: float = 0.20
    exploration: float = 0.10

    def __post_init__(self) -> None:
        weights = self.as_dict()
        if any(w < 0 for w in weights.values()):
            raise ConfigurationError(f"lane weights must be non-negative, got {weights}")
        if sum(weights.values()) <= 0:
            raise ConfigurationError("at least one lane weight must be positive")

    def as_dict(self) -> dict[Lane, float]:
        return {
            Lane.COVERAGE: self.coverage,
            Lane.CONTENDER: self.contender,
            Lane.UNCERTAINTY: self.uncertainty,
            Lane.EXPLORATION: self.exploration,
        }


@dataclass
class ArenaConfig:
    """Configuration for an arena deployment."""

    database_url: str = DEFAULT_DATABASE_URL
    settings: ArenaSettings = field(default_factory=ArenaSettings)
    lane_weights: LaneWeights = field(default_factory=LaneWeights)
    session_cookie: str = SESSION_COOKIE
    session_max_age: int = SESSION_MAX_AGE
    stats_cache_ttl: float = 20.0  # seconds
    inline_max_bytes: int = 8_000_000
    snapshot_max_bytes: int = 20 * 1024 * 1024
    artifact_min_bytes: int = FIFTY_MB_BYTES

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ConfigurationError("database_url cannot be empty")
        if self.session_max_age <= 0:
            raise ConfigurationError(f"session_max_age must be positive, got {self.session_max_age}")
        if self.stats_cache_ttl < 0:
            raise ConfigurationError(f"stats_cache_ttl cannot be negative, got {self.stats_cache_ttl}")
        if not (0 < self.inline_max_bytes <= self.snapshot_max_bytes):
            raise ConfigurationError("inline_max_bytes must be positive and <= snapshot_max_bytes")

    @classmethod
    def from_env(cls) -> "ArenaConfig":
        """Build a config from ARENA_* environment variables."""
        defaults = ArenaSettings()
        settings = ArenaSettings(
            grid_size=_read_int_env("ARENA_GRID_SIZE", defaults.grid_size),
            palette=os.environ.get("ARENA_PALETTE") or defaults.palette,
            mode=os.environ.get("ARENA_MODE") or defaults.mode,
        )
        return cls(
            database_url=os.environ.get("ARENA_DATABASE_URL") or DEFAULT_DATABASE_URL,
            settings=settings,
            stats_cache_ttl=_read_float_env("ARENA_STATS_CACHE_TTL", 20.0),
            inline_max_bytes=_read_int_env("ARENA_INLINE_INITIAL_MAX_BYTES", 8_000_000),
            snapshot_max_bytes=_read_int_env("ARENA_SNAPSHOT_MAX_BYTES", 20 * 1024 * 1024),
            artifact_min_bytes=_read_int_env("ARENA_ARTIFACT_MIN_BYTES", FIFTY_MB_BYTES),
        )
