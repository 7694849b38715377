"""Cycle day, phase, fertility and date predictions.

Pure functions translating ``(CycleConfig, now)`` into a CycleSnapshot.
Phases use a single canonical geometry: the ovulatory phase is the window
``cycle_length // 2 ± 2`` days, the menstrual phase covers the period, and
the follicular and luteal phases fill the gaps.  Boundaries are clamped so
the four phases always partition ``[1, cycle_length]``.

Usage::

    snapshot = compute_snapshot(
        CycleConfig(average_cycle_length=28, average_period_length=5,
                    last_period_start=date(2024, 1, 1)),
        now=datetime(2024, 1, 15),
    )
    snapshot.phase              # CyclePhase.ovulatory
    snapshot.fertility_status   # FertilityStatus.peak
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Sequence

from cycleai.engine.config_loader import EngineConfig, get_engine_config
from cycleai.engine.records import (
    CycleConfig,
    CyclePhase,
    FertilityStatus,
    InvalidCycleConfigError,
    as_date,
    structural_errors,
)

logger = logging.getLogger("cycleai.engine.cycle_math")

_DEFAULT_HALF_WINDOW = 2


@dataclass(frozen=True)
class PhaseBoundaries:
    """Last cycle day of each of the first three phases.

    Luteal runs from ``ovulatory_end + 1`` to the end of the cycle.  A phase
    whose end equals the previous phase's end is empty.
    """

    cycle_length: int
    menstrual_end: int
    follicular_end: int
    ovulatory_end: int

    def range_of(self, phase: CyclePhase) -> range:
        """Return the cycle days belonging to ``phase``."""
        starts_ends = {
            CyclePhase.menstrual: (1, self.menstrual_end),
            CyclePhase.follicular: (self.menstrual_end + 1, self.follicular_end),
            CyclePhase.ovulatory: (self.follicular_end + 1, self.ovulatory_end),
            CyclePhase.luteal: (self.ovulatory_end + 1, self.cycle_length),
        }
        start, end = starts_ends[CyclePhase(phase)]
        return range(start, end + 1)


@dataclass(frozen=True)
class CyclePredictions:
    next_period: date
    ovulation_date: date


@dataclass
class CycleSnapshot:
    """Derived view of the current cycle.  Recomputed on demand, never stored.

    When ``has_data`` is False no period start has been logged yet: the
    cycle day is reported as 1 but phase, fertility and dates are None so
    callers cannot mistake the default for an active cycle.

    Attributes:
        has_data:               False until a period start is known.
        cycle_day:              1-indexed day, clamped to [1, cycle_length].
        phase:                  Current phase.
        fertility_status:       Current fertility estimate.
        next_predicted_period:  last_period_start + cycle_length.
        ovulation_date:         last_period_start + cycle_length // 2.
        days_until_next_period: Non-negative day count to next period.
        cycle_length:           Configured average cycle length.
        period_length:          Configured average period length.
        cycle_progress:         cycle_day / cycle_length.
        days_in_phase:          1-indexed day within the current phase.
        fertile_window_start:   Ovulation minus 5 days.
        fertile_window_end:     Ovulation plus 1 day.
        in_fertile_window:      True if today falls in the fertile window.
        last_period_start:      Anchor date used for the computation.
    """

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


@dataclass
class CycleHistoryStats:
    """Statistics over a history of period starts.

    Attributes:
        total_cycles:          Number of completed cycles in the history.
        cycle_lengths:         Length of each completed cycle (oldest first).
        average_cycle_length:  Mean cycle length, default 28 with no history.
        average_period_length: Mean period length, default 5 with no history.
        variability:           Population standard deviation of cycle lengths.
        prediction_accuracy:   Share of cycles whose start was predicted
                               within tolerance, None if nothing was scorable.
    """

    total_cycles: int = 0
    cycle_lengths: list[int] = field(default_factory=list)
    average_cycle_length: float = 28.0
    average_period_length: float = 5.0
    variability: float = 0.0
    prediction_accuracy: float | None = None


# ---------------------------------------------------------------------------
# Core math
# ---------------------------------------------------------------------------


def compute_cycle_day(
    last_period_start: date | None, now: date | datetime, cycle_length: int
) -> int:
    """Return the 1-indexed cycle day, clamped to ``[1, cycle_length]``.

    With no known period start the result is 1; callers must check for the
    missing start themselves (``CycleSnapshot.has_data``).

    Args:
        last_period_start: First day of the most recent period.
        now:               Reference moment.
        cycle_length:      Upper clamp for the result.

    Returns:
        Cycle day.
    """
    if last_period_start is None:
        return 1
    day = (as_date(now) - as_date(last_period_start)).days + 1
    return max(1, min(day, cycle_length))


def phase_boundaries(
    cycle_length: int, period_length: int, half_window: int = _DEFAULT_HALF_WINDOW
) -> PhaseBoundaries:
    """Compute non-overlapping phase boundaries for a cycle.

    Each boundary is at least the previous one and at most ``cycle_length``,
    so short cycles where the period runs into the ovulation window collapse
    the follicular phase to zero days instead of producing overlaps.
    """
    mid = cycle_length // 2
    menstrual_end = max(0, min(period_length, cycle_length))
    follicular_end = min(max(menstrual_end, mid - half_window), cycle_length)
    ovulatory_end = min(max(follicular_end, mid + half_window), cycle_length)
    return PhaseBoundaries(
        cycle_length=cycle_length,
        menstrual_end=menstrual_end,
        follicular_end=follicular_end,
        ovulatory_end=ovulatory_end,
    )


def compute_phase(
    cycle_day: int,
    cycle_length: int,
    period_length: int,
    half_window: int = _DEFAULT_HALF_WINDOW,
) -> CyclePhase:
    """Return the phase for a cycle day.

    Args:
        cycle_day:     1-indexed cycle day.
        cycle_length:  Average cycle length.
        period_length: Average period length.
        half_window:   Days either side of mid-cycle counted as ovulatory.

    Returns:
        The single phase containing ``cycle_day``.
    """
    bounds = phase_boundaries(cycle_length, period_length, half_window)
    if cycle_day <= bounds.menstrual_end:
        return CyclePhase.menstrual
    if cycle_day <= bounds.follicular_end:
        return CyclePhase.follicular
    if cycle_day <= bounds.ovulatory_end:
        return CyclePhase.ovulatory
    return CyclePhase.luteal


def compute_fertility_status(
    cycle_day: int,
    cycle_length: int,
    period_length: int,
    half_window: int = _DEFAULT_HALF_WINDOW,
) -> FertilityStatus:
    """Estimate fertility for a cycle day.

    - menstrual days are ``low``
    - the mid-cycle day and the day after are ``peak``
    - the rest of ``mid ± half_window`` is ``high``
    - days between the end of the period and the fertile window are ``medium``
    - everything else is ``low``
    """
    mid = cycle_length // 2
    window_start = mid - half_window
    window_end = mid + half_window

    if cycle_day <= period_length:
        return FertilityStatus.low
    if mid <= cycle_day <= mid + 1:
        return FertilityStatus.peak
    if window_start <= cycle_day <= window_end:
        return FertilityStatus.high
    if period_length < cycle_day < window_start:
        return FertilityStatus.medium
    return FertilityStatus.low


def compute_predictions(last_period_start: date, cycle_length: int) -> CyclePredictions:
    """Predict the next period start and the ovulation date of this cycle."""
    start = as_date(last_period_start)
    return CyclePredictions(
        next_period=start + timedelta(days=cycle_length),
        ovulation_date=start + timedelta(days=cycle_length // 2),
    )


def days_in_phase(cycle_day: int, bounds: PhaseBoundaries) -> int:
    """Return the 1-indexed day within the phase containing ``cycle_day``."""
    if cycle_day <= bounds.menstrual_end:
        return cycle_day
    if cycle_day <= bounds.follicular_end:
        return cycle_day - bounds.menstrual_end
    if cycle_day <= bounds.ovulatory_end:
        return cycle_day - bounds.follicular_end
    return cycle_day - bounds.ovulatory_end


def fertile_window(
    ovulation_date: date, days_before: int = 5, days_after: int = 1
) -> tuple[date, date]:
    """Return the (start, end) of the fertile window around ovulation."""
    return (
        ovulation_date - timedelta(days=days_before),
        ovulation_date + timedelta(days=days_after),
    )


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def compute_snapshot(
    config: CycleConfig,
    now: datetime | date | None = None,
    engine_config: EngineConfig | None = None,
) -> CycleSnapshot:
    """Compute the current CycleSnapshot.

    Args:
        config:        The user's cycle parameters.
        now:           Reference moment (defaults to the current time).
        engine_config: Window geometry and bounds. Defaults to the global config.

    Returns:
        CycleSnapshot for ``now``.

    Raises:
        InvalidCycleConfigError: If ``config`` has non-positive lengths or a
            period at least as long as the cycle.  Lengths outside the
            typical range are accepted and surface as irregularity insights.
    """
    ec = engine_config or get_engine_config()
    errors = structural_errors(config)
    if errors:
        raise InvalidCycleConfigError(errors)

    today = as_date(now or datetime.now())
    cycle_length = config.average_cycle_length
    period_length = config.average_period_length

    if config.last_period_start is None:
        logger.debug("No period start logged; returning empty snapshot")
        return CycleSnapshot(
            has_data=False,
            cycle_day=1,
            cycle_length=cycle_length,
            period_length=period_length,
        )

    half_window = ec.cycle.ovulation_half_window_days
    cycle_day = compute_cycle_day(config.last_period_start, today, cycle_length)
    bounds = phase_boundaries(cycle_length, period_length, half_window)
    predictions = compute_predictions(config.last_period_start, cycle_length)
    window_start, window_end = fertile_window(
        predictions.ovulation_date,
        ec.cycle.fertile_days_before_ovulation,
        ec.cycle.fertile_days_after_ovulation,
    )

    snapshot = CycleSnapshot(
        has_data=True,
        cycle_day=cycle_day,
        cycle_length=cycle_length,
        period_length=period_length,
        phase=compute_phase(cycle_day, cycle_length, period_length, half_window),
        fertility_status=compute_fertility_status(
            cycle_day, cycle_length, period_length, half_window
        ),
        next_predicted_period=predictions.next_period,
        ovulation_date=predictions.ovulation_date,
        days_until_next_period=max(0, (predictions.next_period - today).days),
        cycle_progress=round(cycle_day / cycle_length, 4),
        days_in_phase=days_in_phase(cycle_day, bounds),
        fertile_window_start=window_start,
        fertile_window_end=window_end,
        in_fertile_window=window_start <= today <= window_end,
        last_period_start=as_date(config.last_period_start),
    )
    logger.debug(
        "Snapshot: day %d/%d phase=%s fertility=%s",
        snapshot.cycle_day, cycle_length,
        snapshot.phase.value, snapshot.fertility_status.value,
    )
    return snapshot


# ---------------------------------------------------------------------------
# History analytics
# ---------------------------------------------------------------------------


def cycle_history_stats(
    period_starts: Sequence[date | datetime],
    period_lengths: Sequence[int] = (),
    tolerance_days: int = 2,
) -> CycleHistoryStats:
    """Summarise a history of period starts.

    Prediction accuracy is scored by replaying the history: every cycle
    after the first is predicted as the previous start plus the rounded mean
    of all earlier cycle lengths, and counts as a hit when the actual start
    falls within ``tolerance_days``.

    Args:
        period_starts:  Period start dates, in any order.
        period_lengths: Logged period durations in days.
        tolerance_days: Allowed prediction error for a hit.

    Returns:
        CycleHistoryStats (defaults when there is no history).
    """
    starts = sorted({as_date(s) for s in period_starts})
    lengths = [(b - a).days for a, b in zip(starts, starts[1:])]

    stats = CycleHistoryStats(total_cycles=len(lengths), cycle_lengths=lengths)
    if lengths:
        stats.average_cycle_length = round(statistics.mean(lengths), 1)
        stats.variability = round(statistics.pstdev(lengths), 2) if len(lengths) > 1 else 0.0
    if period_lengths:
        stats.average_period_length = round(statistics.mean(period_lengths), 1)

    hits = 0
    scored = 0
    for i in range(1, len(lengths)):
        expected = starts[i] + timedelta(days=round(statistics.mean(lengths[:i])))
        actual = starts[i + 1]
        scored += 1
        if abs((actual - expected).days) <= tolerance_days:
            hits += 1
    if scored:
        stats.prediction_accuracy = round(hits / scored, 2)

    return stats
