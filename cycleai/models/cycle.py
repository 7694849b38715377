"""Pydantic request/response models for the cycle, trend and insight endpoints.

Dates and timestamps are exchanged as ISO-8601 strings.  Cycle lengths are
deliberately unbounded here: range checks belong to ``/cycle/validate`` so a
caller receives every violation at once instead of the first field error.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from cycleai.engine.insight_engine import InsightType
from cycleai.engine.records import (
    CyclePhase,
    FertilityStatus,
    HormoneChannel,
    SymptomCategory,
)
from cycleai.engine.trend_analytics import RangeStatus, TrendDirection
from cycleai.models.base import CycleAIBase


# ---------- Inputs ----------

class CycleConfigIn(CycleAIBase):
    average_cycle_length: int = 28
    average_period_length: int = 5
    last_period_start: date | None = None
    created_at: datetime | None = None


class SymptomIn(CycleAIBase):
    date: datetime
    category: SymptomCategory
    name: str = Field(min_length=1)
    severity: int = Field(ge=1, le=5)
    notes: str | None = None
    cycle_day: int = Field(default=1, ge=1)


class HormoneReadingIn(CycleAIBase):
    date: datetime
    estrogen: float = Field(default=0.0, ge=0)
    progesterone: float = Field(default=0.0, ge=0)
    lh: float = Field(default=0.0, ge=0)
    fsh: float = Field(default=0.0, ge=0)
    testosterone: float = Field(default=0.0, ge=0)
    cortisol: float = Field(default=0.0, ge=0)
    cycle_day: int = Field(default=1, ge=1)
    source: str = "manual"
    test_type: str = "home"
    notes: str | None = None


class MoodEntryIn(CycleAIBase):
    date: datetime
    mood: str = Field(min_length=1)
    energy_level: int = Field(default=5, ge=1, le=10)
    stress_level: int = Field(default=5, ge=1, le=10)
    sleep_quality: int = Field(default=5, ge=1, le=10)
    notes: str | None = None
    cycle_day: int = Field(default=1, ge=1)


class RecordBundleIn(CycleAIBase):
    symptoms: list[SymptomIn] = Field(default_factory=list)
    hormones: list[HormoneReadingIn] = Field(default_factory=list)
    moods: list[MoodEntryIn] = Field(default_factory=list)


class SnapshotRequest(CycleAIBase):
    config: CycleConfigIn
    now: datetime | None = None


class TrendsRequest(CycleAIBase):
    records: RecordBundleIn = Field(default_factory=RecordBundleIn)
    window_days: int | None = Field(default=None, ge=1, le=365)
    now: datetime | None = None


class InsightsRequest(CycleAIBase):
    config: CycleConfigIn
    records: RecordBundleIn = Field(default_factory=RecordBundleIn)
    now: datetime | None = None


class HistoryRequest(CycleAIBase):
    period_starts: list[date]
    period_lengths: list[int] = Field(default_factory=list)


# ---------- Outputs ----------

class ValidationRead(CycleAIBase):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class SnapshotRead(CycleAIBase):
    has_data: bool
    cycle_day: int
    cycle_length: int
    period_length: int
    phase: CyclePhase | None = None
    fertility_status: FertilityStatus | None = None
    next_predicted_period: date | None = None
    ovulation_date: date | None = None
    days_until_next_period: int = 0
    cycle_progress: float = 0.0
    days_in_phase: int | None = None
    fertile_window_start: date | None = None
    fertile_window_end: date | None = None
    in_fertile_window: bool = False
    last_period_start: date | None = None


class InsightRead(CycleAIBase):
    title: str
    content: str
    type: InsightType
    confidence: float = Field(ge=0.0, le=1.0)
    actionable: bool
    created_at: datetime
    category: str


class InsightsRead(CycleAIBase):
    snapshot: SnapshotRead
    insights: list[InsightRead]
    generated_at: datetime


class SymptomStatsRead(CycleAIBase):
    name: str
    frequency: int
    average_severity: float
    last_occurrence: datetime
    trend: TrendDirection


class SymptomCorrelationRead(CycleAIBase):
    symptom_a: str
    symptom_b: str
    correlation: float


class SymptomTrendRead(CycleAIBase):
    window_days: int
    total: int
    frequency: dict[str, int]
    stats: dict[str, SymptomStatsRead]
    severe_count: int
    weekly_counts: dict[str, list[int]]
    correlations: list[SymptomCorrelationRead]


class HormoneChannelStatsRead(CycleAIBase):
    channel: HormoneChannel
    samples: int
    average: float
    minimum: float
    maximum: float
    last_value: float
    trend: TrendDirection
    change_percentage: float
    range_status: RangeStatus | None = None


class HormoneTrendRead(CycleAIBase):
    window_days: int
    reading_count: int
    channels: dict[HormoneChannel, HormoneChannelStatsRead]
    observations: list[str]


class MoodTrendRead(CycleAIBase):
    window_days: int
    entry_count: int
    mood_frequency: dict[str, int]
    average_energy: float
    average_stress: float
    energy_trend: TrendDirection
    stress_trend: TrendDirection


class TrendSummaryRead(CycleAIBase):
    window_days: int
    symptoms: SymptomTrendRead
    hormones: HormoneTrendRead
    moods: MoodTrendRead
    wellness_score: int


class CycleHistoryRead(CycleAIBase):
    total_cycles: int
    cycle_lengths: list[int]
    average_cycle_length: float
    average_period_length: float
    variability: float
    prediction_accuracy: float | None = None
