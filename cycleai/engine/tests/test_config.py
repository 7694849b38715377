"""Tests for insight_config.yaml loading and validation."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from cycleai.engine.config_loader import (
    ConfigValidationError,
    EngineConfig,
    _validate_and_build,
    get_engine_config,
    load_engine_config,
    reload_engine_config,
)


class TestConfigLoading:
    """Tests for loading the bundled insight_config.yaml."""

    def test_load_default_config(self, engine_config: EngineConfig) -> None:
        assert engine_config.version == "1.0"
        assert engine_config.cycle.default_cycle_length == 28
        assert engine_config.cycle.default_period_length == 5

    def test_typical_ranges(self, engine_config: EngineConfig) -> None:
        assert (engine_config.cycle.min_cycle_days, engine_config.cycle.max_cycle_days) == (21, 35)
        assert (engine_config.cycle.min_period_days, engine_config.cycle.max_period_days) == (2, 8)

    def test_insight_thresholds(self, engine_config: EngineConfig) -> None:
        rules = engine_config.insights
        assert rules.max_insights == 6
        assert rules.recurring_symptom_min_count == 5
        assert rules.min_hormone_readings == 3
        assert rules.lh_surge_miu_ml == 20.0

    def test_trend_settings(self, engine_config: EngineConfig) -> None:
        assert engine_config.trends.window_days == 30
        assert engine_config.trends.correlation_threshold == pytest.approx(0.3)

    def test_hormone_ranges(self, engine_config: EngineConfig) -> None:
        assert engine_config.hormone_range("lh") == (5.0, 25.0)
        assert engine_config.hormone_range("unknown") is None
        for channel, (low, high) in engine_config.hormone_ranges.items():
            assert low <= high, f"Inverted range for {channel}"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "missing.yaml")


class TestConfigValidation:
    def test_empty_config_uses_defaults(self) -> None:
        config = _validate_and_build({})
        assert config.insights.max_insights == 6
        assert config.hormone_ranges == {}

    def test_inverted_cycle_bounds(self) -> None:
        raw = {"cycle": {"min_cycle_days": 40, "max_cycle_days": 30}}
        with pytest.raises(ConfigValidationError, match="min_cycle_days"):
            _validate_and_build(raw)

    def test_errors_collected(self) -> None:
        raw = {
            "trends": {"correlation_threshold": 1.5},
            "insights": {"max_insights": 0},
        }
        with pytest.raises(ConfigValidationError, match="2 validation error"):
            _validate_and_build(raw)

    def test_non_numeric_value(self) -> None:
        with pytest.raises(ConfigValidationError, match="must be an integer"):
            _validate_and_build({"trends": {"window_days": "month"}})

    def test_bad_hormone_range(self) -> None:
        with pytest.raises(ConfigValidationError, match="hormone_ranges.lh"):
            _validate_and_build({"hormone_ranges": {"lh": [25, 5]}})

    def test_default_period_must_fit_cycle(self) -> None:
        raw = {"cycle": {"default_cycle_length": 5, "default_period_length": 5}}
        with pytest.raises(ConfigValidationError):
            _validate_and_build(raw)


class TestHotReload:
    def test_reload_replaces_singleton(self, tmp_path: Path) -> None:
        path = tmp_path / "insight_config.yaml"
        path.write_text(
            textwrap.dedent(
                """\
                version: "2.0"
                insights:
                  max_insights: 4
                """
            )
        )
        try:
            reloaded = reload_engine_config(path)
            assert reloaded.version == "2.0"
            assert get_engine_config() is reloaded
            assert get_engine_config().insights.max_insights == 4
        finally:
            reload_engine_config()

    def test_invalid_reload_keeps_old_config(self, tmp_path: Path) -> None:
        before = get_engine_config()
        path = tmp_path / "broken.yaml"
        path.write_text("insights:\n  max_insights: -1\n")
        with pytest.raises(ConfigValidationError):
            reload_engine_config(path)
        assert get_engine_config() is before
