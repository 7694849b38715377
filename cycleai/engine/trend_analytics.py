"""Trailing-window statistics over symptom, hormone and mood records.

Surfaces aggregate patterns like:
- "Headache logged 6 times in the last 30 days, severity increasing"
- "Cramps and bloating appear on the same days (r=0.72)"
- "LH rising, last reading 1.8x the window average"

Every function works on an immutable snapshot of the record lists it is
given, performs no I/O and returns a neutral value (0, "stable") for
degenerate input instead of raising.
"""

from __future__ import annotations

import logging
import math
import statistics
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from itertools import combinations
from typing import Any, Callable, Iterable, Sequence, TypeVar

from cycleai.engine.config_loader import EngineConfig, get_engine_config
from cycleai.engine.records import (
    HormoneChannel,
    HormoneReading,
    MoodEntry,
    RecordBundle,
    RecordKind,
    SymptomRecord,
    as_date,
    by_moment,
)

logger = logging.getLogger("cycleai.engine.trend_analytics")

R = TypeVar("R")


class TrendDirection(str, Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"


class RangeStatus(str, Enum):
    low = "low"
    normal = "normal"
    high = "high"


# ---------------------------------------------------------------------------
# Summary records
# ---------------------------------------------------------------------------


@dataclass
class SymptomStats:
    """Aggregates for one symptom name within the window."""

    name: str
    frequency: int
    average_severity: float
    last_occurrence: datetime
    trend: TrendDirection = TrendDirection.stable


@dataclass
class SymptomCorrelation:
    """Same-day co-occurrence of two symptoms.

    Attributes:
        symptom_a:   First symptom name (alphabetically first).
        symptom_b:   Second symptom name.
        correlation: Pearson r over daily presence indicators.
    """

    symptom_a: str
    symptom_b: str
    correlation: float


@dataclass
class SymptomTrendSummary:
    window_days: int
    total: int = 0
    frequency: dict[str, int] = field(default_factory=dict)
    stats: dict[str, SymptomStats] = field(default_factory=dict)
    severe_count: int = 0
    weekly_counts: dict[str, list[int]] = field(default_factory=dict)
    correlations: list[SymptomCorrelation] = field(default_factory=list)


@dataclass
class HormoneChannelStats:
    """Statistics for one hormone channel over measured (non-zero) values.

    Attributes:
        channel:           Hormone channel.
        samples:           Number of measured values.
        average:           Mean of measured values.
        minimum:           Smallest measured value.
        maximum:           Largest measured value.
        last_value:        Most recent measured value.
        trend:             Direction of recent vs older values.
        change_percentage: (last - first) / first * 100.
        range_status:      Last value against the channel's reference range.
    """

    channel: HormoneChannel
    samples: int
    average: float
    minimum: float
    maximum: float
    last_value: float
    trend: TrendDirection = TrendDirection.stable
    change_percentage: float = 0.0
    range_status: RangeStatus | None = None


@dataclass
class HormoneTrendSummary:
    window_days: int
    reading_count: int = 0
    channels: dict[HormoneChannel, HormoneChannelStats] = field(default_factory=dict)
    observations: list[str] = field(default_factory=list)

    def average(self, channel: HormoneChannel) -> float:
        stats = self.channels.get(channel)
        return stats.average if stats else 0.0

    def maximum(self, channel: HormoneChannel) -> float:
        stats = self.channels.get(channel)
        return stats.maximum if stats else 0.0


@dataclass
class MoodTrendSummary:
    window_days: int
    entry_count: int = 0
    mood_frequency: dict[str, int] = field(default_factory=dict)
    average_energy: float = 0.0
    average_stress: float = 0.0
    energy_trend: TrendDirection = TrendDirection.stable
    stress_trend: TrendDirection = TrendDirection.stable


@dataclass
class TrendSummary:
    """Trend statistics for every record kind, computed over one window."""

    window_days: int
    symptoms: SymptomTrendSummary
    hormones: HormoneTrendSummary
    moods: MoodTrendSummary
    wellness_score: int = 70

    @property
    def by_kind(self) -> dict[RecordKind, Any]:
        return {
            RecordKind.symptom: self.symptoms,
            RecordKind.hormone: self.hormones,
            RecordKind.mood: self.moods,
        }


# ---------------------------------------------------------------------------
# Primitive statistics
# ---------------------------------------------------------------------------


def within_window(
    records: Iterable[R], now: date | datetime, window_days: int
) -> list[R]:
    """Keep records dated within the trailing ``window_days`` calendar days.

    The window includes today and the ``window_days - 1`` days before it.
    Records dated after ``now`` are excluded.

    Args:
        records:     Records with a ``date`` attribute.
        now:         Reference moment.
        window_days: Window length in days.

    Returns:
        Matching records in their original order.
    """
    today = as_date(now)
    earliest = today - timedelta(days=window_days - 1)
    return [r for r in records if earliest <= as_date(r.date) <= today]


def frequency(
    records: Iterable[R], group_key: str | Callable[[R], str] = "name"
) -> dict[str, int]:
    """Count records per distinct label.

    Args:
        records:   Records to count.
        group_key: Attribute name or callable returning the grouping label.

    Returns:
        label → count, in first-seen order.
    """
    key = group_key if callable(group_key) else (lambda r: getattr(r, group_key))
    return dict(Counter(key(r) for r in records))


def average_severity(records: Iterable[SymptomRecord], name: str) -> float:
    """Mean severity of records named ``name``; 0.0 if there are none."""
    values = [r.severity for r in records if r.name == name]
    if not values:
        return 0.0
    return round(statistics.mean(values), 2)


def trend_direction(
    series: Sequence[float], recent_points: int = 3, threshold: float = 0.10
) -> TrendDirection:
    """Classify a chronological series as increasing, decreasing or stable.

    The mean of the last ``recent_points`` values is compared with the mean
    of the values before them (the first value alone when fewer remain).
    A difference beyond ``threshold`` of the older mean is a trend.

    Args:
        series:        Values, oldest first.
        recent_points: Size of the recent sub-window.
        threshold:     Relative change needed to leave "stable".

    Returns:
        TrendDirection; always ``stable`` for fewer than 2 values.
    """
    if len(series) < 2:
        return TrendDirection.stable

    recent = list(series[-recent_points:])
    older = list(series[: max(1, len(series) - recent_points)])

    recent_avg = statistics.mean(recent)
    older_avg = statistics.mean(older)
    margin = abs(older_avg) * threshold

    if recent_avg > older_avg + margin:
        return TrendDirection.increasing
    if recent_avg < older_avg - margin:
        return TrendDirection.decreasing
    return TrendDirection.stable


def change_percentage(series: Sequence[float]) -> float:
    """Percentage change from the first to the last value.

    Returns 0.0 for fewer than 2 values or a non-positive first value.
    """
    if len(series) < 2:
        return 0.0
    first, last = series[0], series[-1]
    if first <= 0:
        return 0.0
    return round((last - first) / first * 100, 2)


def pearson_correlation(a: Sequence[float], b: Sequence[float]) -> float:
    """Pearson correlation coefficient of two equal-length series.

    Booleans are treated as 1/0.  Returns 0.0 when the series differ in
    length, have fewer than 2 points, or either has zero variance.

    Args:
        a: First series.
        b: Second series.

    Returns:
        r in [-1.0, 1.0].
    """
    if len(a) != len(b) or len(a) < 2:
        return 0.0

    x = [float(v) for v in a]
    y = [float(v) for v in b]
    n = float(len(x))

    sum_x = sum(x)
    sum_y = sum(y)
    sum_x_sq = sum(v * v for v in x)
    sum_y_sq = sum(v * v for v in y)
    sum_xy = sum(xi * yi for xi, yi in zip(x, y))

    numerator = n * sum_xy - sum_x * sum_y
    variance_product = (n * sum_x_sq - sum_x * sum_x) * (n * sum_y_sq - sum_y * sum_y)
    if variance_product <= 0:
        return 0.0

    r = numerator / math.sqrt(variance_product)
    return max(-1.0, min(1.0, r))


# ---------------------------------------------------------------------------
# Symptoms
# ---------------------------------------------------------------------------


def daily_presence(
    records: Iterable[SymptomRecord],
    name: str,
    now: date | datetime,
    lookback_days: int = 30,
) -> list[int]:
    """Return 1/0 per calendar day for whether ``name`` was logged.

    Args:
        records:       Symptom records.
        name:          Symptom name.
        now:           Reference moment; today is the last day.
        lookback_days: Number of days to cover.

    Returns:
        Indicators, oldest day first.
    """
    today = as_date(now)
    logged_days = {as_date(r.date) for r in records if r.name == name}
    return [
        1 if today - timedelta(days=offset) in logged_days else 0
        for offset in range(lookback_days - 1, -1, -1)
    ]


def symptom_correlations(
    records: Sequence[SymptomRecord],
    now: date | datetime,
    lookback_days: int = 30,
    threshold: float = 0.3,
) -> list[SymptomCorrelation]:
    """Find symptom pairs that tend to appear on the same days.

    Args:
        records:       Symptom records.
        now:           Reference moment.
        lookback_days: Days of daily presence compared.
        threshold:     Pairs with ``|r|`` at or below this are dropped.

    Returns:
        Meaningful pairs sorted by ``|r|`` descending.
    """
    recent = within_window(records, now, lookback_days)
    names = sorted({r.name for r in recent})
    presence = {name: daily_presence(recent, name, now, lookback_days) for name in names}

    correlations = []
    for name_a, name_b in combinations(names, 2):
        r = pearson_correlation(presence[name_a], presence[name_b])
        if abs(r) > threshold:
            correlations.append(SymptomCorrelation(name_a, name_b, round(r, 4)))

    correlations.sort(key=lambda c: abs(c.correlation), reverse=True)
    return correlations


def weekly_counts(
    records: Iterable[SymptomRecord], now: date | datetime, weeks: int = 4
) -> dict[str, list[int]]:
    """Count each symptom per 7-day bucket; index 0 is the most recent week."""
    today = as_date(now)
    counts: dict[str, list[int]] = {}
    for record in records:
        days_ago = (today - as_date(record.date)).days
        if days_ago < 0 or days_ago >= weeks * 7:
            continue
        counts.setdefault(record.name, [0] * weeks)[days_ago // 7] += 1
    return counts


def summarize_symptoms(
    records: Sequence[SymptomRecord],
    now: date | datetime,
    window_days: int = 30,
    engine_config: EngineConfig | None = None,
) -> SymptomTrendSummary:
    """Aggregate symptom records within the trailing window."""
    ec = engine_config or get_engine_config()
    recent = sorted(within_window(records, now, window_days), key=by_moment)

    summary = SymptomTrendSummary(window_days=window_days, total=len(recent))
    summary.frequency = frequency(recent, "name")
    summary.severe_count = sum(
        1 for r in recent if r.severity >= ec.insights.high_severity_level
    )

    for name, count in summary.frequency.items():
        matching = [r for r in recent if r.name == name]
        summary.stats[name] = SymptomStats(
            name=name,
            frequency=count,
            average_severity=average_severity(matching, name),
            last_occurrence=matching[-1].date,
            trend=trend_direction(
                [r.severity for r in matching],
                ec.trends.recent_points,
                ec.trends.trend_change_threshold,
            ),
        )

    summary.weekly_counts = weekly_counts(recent, now, ec.trends.weekly_buckets)
    summary.correlations = symptom_correlations(
        records, now, ec.trends.correlation_lookback_days, ec.trends.correlation_threshold
    )
    return summary


# ---------------------------------------------------------------------------
# Hormones
# ---------------------------------------------------------------------------


def range_status(
    value: float,
    channel: HormoneChannel | str,
    engine_config: EngineConfig | None = None,
) -> RangeStatus | None:
    """Compare a value to the channel's reference range.

    Returns None if the channel has no configured range.
    """
    ec = engine_config or get_engine_config()
    bounds = ec.hormone_range(HormoneChannel(channel).value)
    if bounds is None:
        return None
    low, high = bounds
    if value < low:
        return RangeStatus.low
    if value > high:
        return RangeStatus.high
    return RangeStatus.normal


def hormone_channel_stats(
    readings: Sequence[HormoneReading],
    channel: HormoneChannel,
    engine_config: EngineConfig | None = None,
) -> HormoneChannelStats | None:
    """Compute statistics for one channel over its measured values.

    Args:
        readings:      Readings, oldest first.
        channel:       Channel to summarise.
        engine_config: Trend and range settings.

    Returns:
        HormoneChannelStats, or None if the channel was never measured.
    """
    ec = engine_config or get_engine_config()
    values = [r.value(channel) for r in readings]
    values = [v for v in values if v > 0]
    if not values:
        return None

    return HormoneChannelStats(
        channel=channel,
        samples=len(values),
        average=round(statistics.mean(values), 2),
        minimum=min(values),
        maximum=max(values),
        last_value=values[-1],
        trend=trend_direction(values, ec.trends.recent_points, ec.trends.trend_change_threshold),
        change_percentage=change_percentage(values),
        range_status=range_status(values[-1], channel, ec),
    )


def hormone_observations(channels: dict[HormoneChannel, HormoneChannelStats]) -> list[str]:
    """Qualitative notes derived from per-channel trends."""
    notes = []
    for channel, stats in channels.items():
        if stats.trend is TrendDirection.increasing:
            if channel is HormoneChannel.lh and stats.last_value > stats.average * 1.5:
                notes.append("LH surge detected - ovulation likely within 24-48 hours")
            elif channel is HormoneChannel.estrogen and stats.change_percentage > 20:
                notes.append("Rising estrogen levels indicate approaching ovulation")
        elif stats.trend is TrendDirection.decreasing:
            if channel is HormoneChannel.progesterone and stats.change_percentage < -30:
                notes.append("Dropping progesterone may indicate approaching menstruation")
        elif channel is HormoneChannel.cortisol and stats.average > 20:
            notes.append("Consistently elevated cortisol - consider stress management")
    return notes


def summarize_hormones(
    readings: Sequence[HormoneReading],
    now: date | datetime,
    window_days: int = 30,
    engine_config: EngineConfig | None = None,
) -> HormoneTrendSummary:
    """Aggregate hormone readings within the trailing window."""
    ec = engine_config or get_engine_config()
    recent = sorted(within_window(readings, now, window_days), key=by_moment)

    summary = HormoneTrendSummary(window_days=window_days, reading_count=len(recent))
    for channel in HormoneChannel:
        stats = hormone_channel_stats(recent, channel, ec)
        if stats is not None:
            summary.channels[channel] = stats
    summary.observations = hormone_observations(summary.channels)
    return summary


# ---------------------------------------------------------------------------
# Moods
# ---------------------------------------------------------------------------


def summarize_moods(
    entries: Sequence[MoodEntry],
    now: date | datetime,
    window_days: int = 30,
    engine_config: EngineConfig | None = None,
) -> MoodTrendSummary:
    """Aggregate mood entries within the trailing window."""
    ec = engine_config or get_engine_config()
    recent = sorted(within_window(entries, now, window_days), key=by_moment)

    summary = MoodTrendSummary(window_days=window_days, entry_count=len(recent))
    if not recent:
        return summary

    energy = [e.energy_level for e in recent]
    stress = [e.stress_level for e in recent]
    summary.mood_frequency = frequency(recent, "mood")
    summary.average_energy = round(statistics.mean(energy), 2)
    summary.average_stress = round(statistics.mean(stress), 2)
    summary.energy_trend = trend_direction(
        energy, ec.trends.recent_points, ec.trends.trend_change_threshold
    )
    summary.stress_trend = trend_direction(
        stress, ec.trends.recent_points, ec.trends.trend_change_threshold
    )
    return summary


def wellness_score(
    symptoms: Sequence[SymptomRecord],
    moods: Sequence[MoodEntry],
    now: date | datetime,
) -> int:
    """A 0–100 wellbeing score for the past week.

    Starts at 70, loses two points per severity point of the seven most
    recent symptoms (30 at most), and moves with average energy and stress
    of the last 7 days around the neutral level of 5.
    """
    score = 70

    latest = sorted(symptoms, key=by_moment, reverse=True)[:7]
    score -= min(sum(s.severity for s in latest) * 2, 30)

    week = within_window(moods, now, 7)
    if week:
        avg_energy = statistics.mean(e.energy_level for e in week)
        avg_stress = statistics.mean(e.stress_level for e in week)
        score += int((avg_energy - 5) * 3)
        score -= int((avg_stress - 5) * 2)

    return max(0, min(100, score))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def compute_trends(
    records: RecordBundle,
    window_days: int | None = None,
    now: date | datetime | None = None,
    engine_config: EngineConfig | None = None,
) -> TrendSummary:
    """Compute trend statistics for every record kind.

    Args:
        records:       Symptom, hormone and mood records.
        window_days:   Trailing window (defaults to the configured 30 days).
        now:           Reference moment (defaults to the current time).
        engine_config: Thresholds. Defaults to the global config.

    Returns:
        TrendSummary keyed by record kind.
    """
    ec = engine_config or get_engine_config()
    window = window_days or ec.trends.window_days
    ref = now or datetime.now()

    summary = TrendSummary(
        window_days=window,
        symptoms=summarize_symptoms(records.symptoms, ref, window, ec),
        hormones=summarize_hormones(records.hormones, ref, window, ec),
        moods=summarize_moods(records.moods, ref, window, ec),
        wellness_score=wellness_score(
            within_window(records.symptoms, ref, window), records.moods, ref
        ),
    )
    logger.debug(
        "Trends over %d days: %d symptoms, %d hormone readings, %d mood entries",
        window, summary.symptoms.total, summary.hormones.reading_count,
        summary.moods.entry_count,
    )
    return summary
