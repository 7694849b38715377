"""Shared fixtures and record builders for the insight engine tests."""

from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest

from cycleai.engine.config_loader import EngineConfig, load_engine_config
from cycleai.engine.records import (
    CycleConfig,
    HormoneReading,
    MoodEntry,
    SymptomCategory,
    SymptomRecord,
)

# Reference moment used across the suite
TEST_NOW = datetime(2024, 1, 15, 9, 30)
PERIOD_START = date(2024, 1, 1)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine_config() -> EngineConfig:
    """Load the real engine config for tests."""
    return load_engine_config()


@pytest.fixture
def regular_config() -> CycleConfig:
    """28-day cycle, 5-day period, starting 2024-01-01."""
    return CycleConfig(
        average_cycle_length=28,
        average_period_length=5,
        last_period_start=PERIOD_START,
        created_at=datetime(2024, 1, 1, 8, 0),
    )


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


def make_symptom(
    days_ago: int,
    name: str = "Headache",
    severity: int = 3,
    category: SymptomCategory = SymptomCategory.physical,
    now: datetime = TEST_NOW,
) -> SymptomRecord:
    return SymptomRecord(
        date=now - timedelta(days=days_ago),
        category=category,
        name=name,
        severity=severity,
    )


def make_reading(days_ago: int, now: datetime = TEST_NOW, **levels: float) -> HormoneReading:
    return HormoneReading(date=now - timedelta(days=days_ago), **levels)


def make_mood(
    days_ago: int,
    mood: str = "calm",
    energy: int = 5,
    stress: int = 5,
    now: datetime = TEST_NOW,
) -> MoodEntry:
    return MoodEntry(
        date=now - timedelta(days=days_ago),
        mood=mood,
        energy_level=energy,
        stress_level=stress,
    )
