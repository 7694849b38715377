"""CYCLEai cycle prediction and insight engine.

This package turns raw observations (period starts, symptom logs, hormone
readings, mood entries) into a current-cycle snapshot, trailing-window trend
statistics and a ranked list of insights.  It is a pure in-process library:
no I/O, no shared mutable state beyond the cached configuration.

Core modules:
    records         — Cycle parameters, observation records, validation
    cycle_math      — Cycle day, phase, fertility, date predictions
    trend_analytics — Frequencies, severities, trends, correlations
    insight_engine  — Rule battery producing ranked insights
    regeneration    — Host-side debounced regeneration coordinator
    config_loader   — Load/validate/hot-reload insight_config.yaml
"""

from cycleai.engine.config_loader import EngineConfig, get_engine_config
from cycleai.engine.cycle_math import CycleSnapshot, compute_snapshot
from cycleai.engine.insight_engine import (
    Insight,
    InsightEngine,
    InsightReport,
    InsightType,
    build_report,
    generate_insights,
)
from cycleai.engine.records import (
    CycleConfig,
    CyclePhase,
    FertilityStatus,
    HormoneReading,
    MoodEntry,
    RecordBundle,
    SymptomRecord,
    validate_cycle_config,
)
from cycleai.engine.trend_analytics import TrendSummary, compute_trends

__all__ = [
    "EngineConfig",
    "get_engine_config",
    "CycleConfig",
    "CyclePhase",
    "FertilityStatus",
    "SymptomRecord",
    "HormoneReading",
    "MoodEntry",
    "RecordBundle",
    "validate_cycle_config",
    "CycleSnapshot",
    "compute_snapshot",
    "TrendSummary",
    "compute_trends",
    "Insight",
    "InsightType",
    "InsightEngine",
    "InsightReport",
    "generate_insights",
    "build_report",
]
