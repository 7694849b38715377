"""Load, validate, and hot-reload the insight engine configuration.

The config lives in ``insight_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_engine_config()`` to re-read from
disk after an admin update; no restart required.

Usage::

    from cycleai.engine.config_loader import get_engine_config

    config = get_engine_config()
    cap = config.insights.max_insights                # 6
    low, high = config.hormone_range("estrogen")      # (30.0, 400.0)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger("cycleai.engine.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "insight_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class CycleSettings:
    """Cycle-length bounds and phase/fertility window geometry."""

    default_cycle_length: int = 28
    default_period_length: int = 5
    min_cycle_days: int = 21
    max_cycle_days: int = 35
    min_period_days: int = 2
    max_period_days: int = 8
    ovulation_half_window_days: int = 2
    fertile_days_before_ovulation: int = 5
    fertile_days_after_ovulation: int = 1
    prediction_tolerance_days: int = 2


@dataclass
class TrendSettings:
    """Trailing-window statistics settings."""

    window_days: int = 30
    correlation_lookback_days: int = 30
    correlation_threshold: float = 0.3
    trend_change_threshold: float = 0.10
    recent_points: int = 3
    weekly_buckets: int = 4


@dataclass
class InsightSettings:
    """Rule thresholds for the insight engine."""

    max_insights: int = 6
    recurring_symptom_min_count: int = 5
    high_severity_level: int = 4
    high_severity_min_count: int = 3
    min_hormone_readings: int = 3
    elevated_estrogen_pg_ml: float = 300.0
    lh_surge_miu_ml: float = 20.0
    extended_menstrual_day: int = 7
    extended_period_days: int = 7
    logging_streak_days: int = 7


@dataclass
class RegenerationSettings:
    """Caller-side regeneration settings."""

    debounce_seconds: float = 1.0


@dataclass
class EngineConfig:
    """Complete, validated engine configuration.

    This is the single in-memory representation of insight_config.yaml.
    Cycle math, trend analytics and the insight engine all read from it.

    Attributes:
        version:        Config schema version string.
        cycle:          Cycle bounds and window geometry.
        trends:         Trailing-window statistics settings.
        insights:       Insight rule thresholds.
        regeneration:   Debounce settings for host-side regeneration.
        hormone_ranges: Channel → (low, high) reference range.
    """

    version: str = "1.0"
    cycle: CycleSettings = field(default_factory=CycleSettings)
    trends: TrendSettings = field(default_factory=TrendSettings)
    insights: InsightSettings = field(default_factory=InsightSettings)
    regeneration: RegenerationSettings = field(default_factory=RegenerationSettings)
    hormone_ranges: dict[str, tuple[float, float]] = field(default_factory=dict)
    _raw: dict = field(default_factory=dict, repr=False)

    def hormone_range(self, channel: str) -> tuple[float, float] | None:
        """Return the reference range for a hormone channel.

        Args:
            channel: Channel key (e.g. 'estrogen', 'lh').

        Returns:
            (low, high) tuple or None if the channel is not configured.
        """
        return self.hormone_ranges.get(str(channel))


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when insight_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    import yaml

    if not path.exists():
        raise FileNotFoundError(f"Insight config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> EngineConfig:
    """Validate the raw YAML dict and construct an EngineConfig.

    Missing keys fall back to the dataclass defaults.  All problems are
    collected and reported together.

    Args:
        raw: Parsed YAML dict.

    Returns:
        Validated EngineConfig instance.

    Raises:
        ConfigValidationError: If any value is invalid.
    """
    errors: list[str] = []

    def _int(section: dict, key: str, default: int, name: str, minimum: int = 0) -> int:
        value = section.get(key, default)
        try:
            number = int(value)
        except (TypeError, ValueError):
            errors.append(f"{name}.{key} must be an integer, got {value!r}")
            return default
        if number < minimum:
            errors.append(f"{name}.{key} = {number} must be >= {minimum}")
        return number

    def _float(section: dict, key: str, default: float, name: str) -> float:
        value = section.get(key, default)
        try:
            number = float(value)
        except (TypeError, ValueError):
            errors.append(f"{name}.{key} must be a number, got {value!r}")
            return default
        if number < 0:
            errors.append(f"{name}.{key} = {number} must not be negative")
        return number

    version = str(raw.get("version", "1.0"))

    # ── Cycle ──
    c_raw = raw.get("cycle") or {}
    fw_raw = c_raw.get("fertile_window") or {}
    defaults = CycleSettings()
    cycle = CycleSettings(
        default_cycle_length=_int(c_raw, "default_cycle_length", defaults.default_cycle_length, "cycle", 1),
        default_period_length=_int(c_raw, "default_period_length", defaults.default_period_length, "cycle", 1),
        min_cycle_days=_int(c_raw, "min_cycle_days", defaults.min_cycle_days, "cycle", 1),
        max_cycle_days=_int(c_raw, "max_cycle_days", defaults.max_cycle_days, "cycle", 1),
        min_period_days=_int(c_raw, "min_period_days", defaults.min_period_days, "cycle", 1),
        max_period_days=_int(c_raw, "max_period_days", defaults.max_period_days, "cycle", 1),
        ovulation_half_window_days=_int(
            c_raw, "ovulation_half_window_days", defaults.ovulation_half_window_days, "cycle"
        ),
        fertile_days_before_ovulation=_int(
            fw_raw, "days_before_ovulation", defaults.fertile_days_before_ovulation,
            "cycle.fertile_window",
        ),
        fertile_days_after_ovulation=_int(
            fw_raw, "days_after_ovulation", defaults.fertile_days_after_ovulation,
            "cycle.fertile_window",
        ),
        prediction_tolerance_days=_int(
            c_raw, "prediction_tolerance_days", defaults.prediction_tolerance_days, "cycle"
        ),
    )
    if cycle.min_cycle_days > cycle.max_cycle_days:
        errors.append(
            f"cycle.min_cycle_days ({cycle.min_cycle_days}) exceeds "
            f"cycle.max_cycle_days ({cycle.max_cycle_days})"
        )
    if cycle.min_period_days > cycle.max_period_days:
        errors.append(
            f"cycle.min_period_days ({cycle.min_period_days}) exceeds "
            f"cycle.max_period_days ({cycle.max_period_days})"
        )
    if cycle.default_period_length >= cycle.default_cycle_length:
        errors.append("cycle.default_period_length must be shorter than cycle.default_cycle_length")

    # ── Trends ──
    t_raw = raw.get("trends") or {}
    t_def = TrendSettings()
    trends = TrendSettings(
        window_days=_int(t_raw, "window_days", t_def.window_days, "trends", 1),
        correlation_lookback_days=_int(
            t_raw, "correlation_lookback_days", t_def.correlation_lookback_days, "trends", 2
        ),
        correlation_threshold=_float(t_raw, "correlation_threshold", t_def.correlation_threshold, "trends"),
        trend_change_threshold=_float(
            t_raw, "trend_change_threshold", t_def.trend_change_threshold, "trends"
        ),
        recent_points=_int(t_raw, "recent_points", t_def.recent_points, "trends", 1),
        weekly_buckets=_int(t_raw, "weekly_buckets", t_def.weekly_buckets, "trends", 1),
    )
    if trends.correlation_threshold > 1.0:
        errors.append(
            f"trends.correlation_threshold = {trends.correlation_threshold} is out of range [0.0, 1.0]"
        )

    # ── Insights ──
    i_raw = raw.get("insights") or {}
    i_def = InsightSettings()
    insights = InsightSettings(
        max_insights=_int(i_raw, "max_insights", i_def.max_insights, "insights", 1),
        recurring_symptom_min_count=_int(
            i_raw, "recurring_symptom_min_count", i_def.recurring_symptom_min_count, "insights", 1
        ),
        high_severity_level=_int(i_raw, "high_severity_level", i_def.high_severity_level, "insights", 1),
        high_severity_min_count=_int(
            i_raw, "high_severity_min_count", i_def.high_severity_min_count, "insights", 1
        ),
        min_hormone_readings=_int(i_raw, "min_hormone_readings", i_def.min_hormone_readings, "insights", 1),
        elevated_estrogen_pg_ml=_float(
            i_raw, "elevated_estrogen_pg_ml", i_def.elevated_estrogen_pg_ml, "insights"
        ),
        lh_surge_miu_ml=_float(i_raw, "lh_surge_miu_ml", i_def.lh_surge_miu_ml, "insights"),
        extended_menstrual_day=_int(
            i_raw, "extended_menstrual_day", i_def.extended_menstrual_day, "insights", 1
        ),
        extended_period_days=_int(i_raw, "extended_period_days", i_def.extended_period_days, "insights", 1),
        logging_streak_days=_int(i_raw, "logging_streak_days", i_def.logging_streak_days, "insights", 1),
    )

    # ── Regeneration ──
    r_raw = raw.get("regeneration") or {}
    regeneration = RegenerationSettings(
        debounce_seconds=_float(r_raw, "debounce_seconds", 1.0, "regeneration"),
    )

    # ── Hormone ranges ──
    hormone_ranges: dict[str, tuple[float, float]] = {}
    for channel, bounds in (raw.get("hormone_ranges") or {}).items():
        if not isinstance(bounds, (list, tuple)) or len(bounds) != 2:
            errors.append(f"hormone_ranges.{channel} must be a [low, high] pair")
            continue
        try:
            low, high = float(bounds[0]), float(bounds[1])
        except (TypeError, ValueError):
            errors.append(f"hormone_ranges.{channel} must contain numbers, got {bounds!r}")
            continue
        if low > high:
            errors.append(f"hormone_ranges.{channel} low bound {low} exceeds high bound {high}")
        hormone_ranges[str(channel)] = (low, high)

    if errors:
        raise ConfigValidationError(
            f"insight_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EngineConfig(
        version=version,
        cycle=cycle,
        trends=trends,
        insights=insights,
        regeneration=regeneration,
        hormone_ranges=hormone_ranges,
        _raw=raw,
    )


def load_engine_config(path: Path | str | None = None) -> EngineConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses the bundled insight_config.yaml by default.

    Returns:
        Validated EngineConfig instance.
    """
    target = Path(path) if path else _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded insight engine config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_lock = threading.Lock()


def get_engine_config() -> EngineConfig:
    """Return the insight engine config in use, loading the bundled YAML once.

    Engine functions fall back to this when no ``engine_config`` argument is
    passed.  The app lifespan primes it at startup.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_engine_config()
    return _config


def reload_engine_config(path: Path | str | None = None) -> EngineConfig:
    """Swap in the thresholds from ``path`` for every later engine call.

    The app lifespan calls this with ``Settings.insight_config_path``
    (``CYCLEAI_INSIGHT_CONFIG_PATH``) so a deployment can tune rule
    thresholds without editing the bundled file.  With no path the bundled
    insight_config.yaml is restored, which is how tests undo an override.

    The file is validated before the swap, so a bad file leaves the running
    thresholds in place.

    Raises:
        ConfigValidationError: If the file fails validation.
        FileNotFoundError:     If the file does not exist.
    """
    global _config
    replacement = load_engine_config(path)
    with _config_lock:
        previous, _config = _config, replacement
    logger.info(
        "Insight engine config now v%s (was %s)",
        replacement.version,
        previous.version if previous else "unloaded",
    )
    return replacement
