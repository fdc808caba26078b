"""
Tests for configuration loading and validation.
"""

import pytest

from build_arena.config import ArenaConfig, ArenaSettings, LaneWeights
from build_arena.exceptions import ConfigurationError
from build_arena.models import Lane


class TestArenaConfig:
    """Test defaults, validation and environment overrides."""

    def test_defaults(self) -> None:
        config = ArenaConfig()

        assert config.settings == ArenaSettings(grid_size=256, palette="simple", mode="precise")
        assert config.session_cookie == "mb_session"
        assert config.session_max_age == 31_536_000
        assert config.inline_max_bytes == 8_000_000
        assert config.snapshot_max_bytes == 20 * 1024 * 1024
        assert config.artifact_min_bytes == 50 * 1024 * 1024

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # Arrange
        monkeypatch.setenv("ARENA_DATABASE_URL", "sqlite:///custom.db")
        monkeypatch.setenv("ARENA_GRID_SIZE", "64")
        monkeypatch.setenv("ARENA_STATS_CACHE_TTL", "0")
        monkeypatch.setenv("ARENA_INLINE_INITIAL_MAX_BYTES", "1000")

        # Act
        config = ArenaConfig.from_env()

        # Assert
        assert config.database_url == "sqlite:///custom.db"
        assert config.settings.grid_size == 64
        assert config.stats_cache_ttl == 0.0
        assert config.inline_max_bytes == 1000

    def test_invalid_env_values_fall_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARENA_GRID_SIZE", "huge")
        monkeypatch.setenv("ARENA_INLINE_INITIAL_MAX_BYTES", "-5")
        monkeypatch.setenv("ARENA_STATS_CACHE_TTL", "-1")

        config = ArenaConfig.from_env()

        assert config.settings.grid_size == 256
        assert config.inline_max_bytes == 8_000_000
        assert config.stats_cache_ttl == 20.0

    def test_validation(self) -> None:
        with pytest.raises(ConfigurationError):
            _ = ArenaConfig(database_url="")
        with pytest.raises(ConfigurationError):
            _ = ArenaConfig(inline_max_bytes=30 * 1024 * 1024)
        with pytest.raises(ConfigurationError):
            _ = ArenaSettings(grid_size=0)


class TestLaneWeights:
    """Test lane weight validation."""

    def test_default_weights(self) -> None:
        weights = LaneWeights()
        assert weights.as_dict()[Lane.COVERAGE] == 0.40
        assert sum(weights.as_dict().values()) == pytest.approx(1.0)

    def test_rejects_negative_or_all_zero(self) -> None:
        with pytest.raises(ConfigurationError):
            _ = LaneWeights(coverage=-0.1)
        with pytest.raises(ConfigurationError):
            _ = LaneWeights(0, 0, 0, 0)
