"""Rule-based insight generation.

Evaluates a fixed battery of independent rules against the current cycle
snapshot, the trailing-window trends and the raw recent records.  Every rule
returns zero or more Insight candidates; candidates are merged, sorted by
confidence (stable for ties) and capped.

Rules:
    phase:          one template per phase, plus an extended-menstruation warning
    fertility:      ovulation approaching, high-fertility tracking advice
    symptoms:       recurring symptom pattern, high-severity cluster
    hormones:       more data needed, elevated estrogen, LH surge
    irregularity:   cycle or period length outside the typical range
    health:         one nutrition/activity tip per phase
    tracking:       consistent-logging achievement, start-tracking prompt

Overlapping topics between rules are expected and not deduplicated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Sequence

from cycleai.engine.config_loader import EngineConfig, get_engine_config
from cycleai.engine.cycle_math import CycleSnapshot, compute_snapshot
from cycleai.engine.records import (
    CycleConfig,
    CyclePhase,
    FertilityStatus,
    HormoneChannel,
    RecordBundle,
    as_date,
)
from cycleai.engine.trend_analytics import TrendSummary, compute_trends, within_window

logger = logging.getLogger("cycleai.engine.insight_engine")


class InsightType(str, Enum):
    prediction = "prediction"
    trend = "trend"
    warning = "warning"
    recommendation = "recommendation"
    achievement = "achievement"


@dataclass(frozen=True)
class Insight:
    """A single generated insight.

    Attributes:
        title:      Short title for display.
        content:    Full insight text.
        type:       prediction, trend, warning, recommendation or achievement.
        confidence: 0.0–1.0.
        actionable: True if the user can act on it.
        created_at: Generation time.
        category:   Rule that produced the insight.
    """

    title: str
    content: str
    type: InsightType
    confidence: float
    actionable: bool
    created_at: datetime
    category: str = "general"


@dataclass
class InsightReport:
    """Everything one regeneration pass produces."""

    snapshot: CycleSnapshot
    trends: TrendSummary
    insights: list[Insight] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

# phase → (title, content, type, confidence)
_PHASE_TEMPLATES: dict[CyclePhase, tuple[str, str, InsightType, float]] = {
    CyclePhase.menstrual: (
        "Menstrual Phase Active",
        "You're currently in your menstrual phase. Focus on rest, hydration, and "
        "gentle movement. Iron-rich foods can help replenish what's lost.",
        InsightType.recommendation,
        0.95,
    ),
    CyclePhase.follicular: (
        "Follicular Phase Energy",
        "You're in your follicular phase when energy typically increases. This is "
        "a great time for new projects and challenging workouts.",
        InsightType.recommendation,
        0.90,
    ),
    CyclePhase.ovulatory: (
        "Peak Fertility Window",
        "You're in your ovulatory phase with peak fertility. Your body temperature "
        "may be slightly elevated and cervical mucus changes.",
        InsightType.prediction,
        0.92,
    ),
    CyclePhase.luteal: (
        "Luteal Phase Preparation",
        "Your body is preparing for your next cycle. You might experience PMS "
        "symptoms. Focus on stress management and balanced nutrition.",
        InsightType.recommendation,
        0.88,
    ),
}

# phase → (title, content, confidence); all are recommendations
_HEALTH_TEMPLATES: dict[CyclePhase, tuple[str, str, float]] = {
    CyclePhase.menstrual: (
        "Nutrition Focus: Iron & Magnesium",
        "During menstruation, focus on iron-rich foods like spinach and lean meats, "
        "plus magnesium for cramp relief from dark chocolate and nuts.",
        0.90,
    ),
    CyclePhase.follicular: (
        "Energy Optimization",
        "Your energy is naturally increasing. This is an ideal time for "
        "high-intensity workouts and tackling challenging projects.",
        0.85,
    ),
    CyclePhase.ovulatory: (
        "Peak Performance Window",
        "You're at peak physical and mental performance. Great time for important "
        "meetings, workouts, and social activities.",
        0.88,
    ),
    CyclePhase.luteal: (
        "Self-Care Priority",
        "Focus on stress management, gentle exercise, and comfort foods. Your body "
        "is working hard preparing for the next cycle.",
        0.87,
    ),
}

_TYPE_BOOST: dict[InsightType, float] = {
    InsightType.warning: 0.20,
    InsightType.prediction: 0.15,
    InsightType.recommendation: 0.10,
    InsightType.trend: 0.05,
    InsightType.achievement: 0.0,
}


class InsightEngine:
    """Generate ranked insights from cycle, trend and record data.

    Stateless per call: the only instance state is the configuration.

    Usage::

        engine = InsightEngine()
        insights = engine.generate(snapshot, trends, records, now=now)
        for insight in insights:
            print(insight.title, insight.confidence)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config or get_engine_config()

    @property
    def _rules(self):
        return self._config.insights

    def generate(
        self,
        snapshot: CycleSnapshot,
        trends: TrendSummary,
        records: RecordBundle | None = None,
        now: datetime | None = None,
    ) -> list[Insight]:
        """Run every rule and return the top insights.

        The symptom, hormone and mood rules read the counts in ``trends`` as
        they are, so they cover whatever window ``compute_trends`` was given.
        ``build_report`` always passes ``trends.window_days`` from the engine
        config (30 days by default); callers assembling their own summary
        with a custom window change what "recurring" and "high severity" mean.

        Args:
            snapshot: Current cycle snapshot.
            trends:   Trailing-window trend summary.
            records:  Raw recent records (an empty bundle if a fetch failed).
            now:      Generation time (defaults to the current time).

        Returns:
            At most ``max_insights`` insights, highest confidence first.
        """
        created_at = now or datetime.now()
        bundle = records or RecordBundle()

        candidates: list[Insight] = []
        if snapshot.has_data:
            candidates.extend(self.phase_insights(snapshot, created_at))
            candidates.extend(self.fertility_insights(snapshot, created_at))
        else:
            candidates.extend(self.start_tracking_insights(created_at))
        candidates.extend(self.symptom_insights(trends, created_at))
        candidates.extend(self.hormone_insights(trends, created_at))
        candidates.extend(self.irregularity_insights(snapshot, created_at))
        if snapshot.has_data:
            candidates.extend(self.health_recommendations(snapshot, created_at))
        candidates.extend(self.tracking_insights(bundle, created_at))

        ranked = sorted(candidates, key=lambda i: i.confidence, reverse=True)
        top = ranked[: self._rules.max_insights]
        logger.info(
            "Generated %d insight candidates, returning %d", len(candidates), len(top)
        )
        return top

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def phase_insights(self, snapshot: CycleSnapshot, created_at: datetime) -> list[Insight]:
        """One message for the current phase plus an extended-menstruation warning."""
        if snapshot.phase is None:
            return []

        title, content, insight_type, confidence = _PHASE_TEMPLATES[snapshot.phase]
        insights = [
            Insight(
                title=title,
                content=content,
                type=insight_type,
                confidence=confidence,
                actionable=True,
                created_at=created_at,
                category="phase",
            )
        ]

        if (
            snapshot.phase is CyclePhase.menstrual
            and snapshot.cycle_day > self._rules.extended_menstrual_day
        ):
            insights.append(
                Insight(
                    title="Extended Menstrual Phase",
                    content=(
                        "Your period has lasted longer than typical. Consider tracking "
                        "flow intensity and consult your healthcare provider if this continues."
                    ),
                    type=InsightType.warning,
                    confidence=0.80,
                    actionable=True,
                    created_at=created_at,
                    category="phase",
                )
            )
        return insights

    def fertility_insights(
        self, snapshot: CycleSnapshot, created_at: datetime
    ) -> list[Insight]:
        """Ovulation-approaching prediction and high-fertility tracking advice."""
        insights = []

        days_to_ovulation = snapshot.cycle_length // 2 - snapshot.cycle_day
        if 0 <= days_to_ovulation <= 2:
            insights.append(
                Insight(
                    title="Ovulation Approaching",
                    content=(
                        "Ovulation is predicted within the next 2 days. This is your "
                        "highest fertility window if you're trying to conceive."
                    ),
                    type=InsightType.prediction,
                    confidence=0.87,
                    actionable=True,
                    created_at=created_at,
                    category="fertility",
                )
            )

        if snapshot.fertility_status in (FertilityStatus.high, FertilityStatus.peak):
            insights.append(
                Insight(
                    title="High Fertility Period",
                    content=(
                        "You're currently in a high fertility window. Track cervical mucus "
                        "and basal body temperature for more accurate predictions."
                    ),
                    type=InsightType.recommendation,
                    confidence=0.85,
                    actionable=True,
                    created_at=created_at,
                    category="fertility",
                )
            )
        return insights

    def symptom_insights(self, trends: TrendSummary, created_at: datetime) -> list[Insight]:
        """Recurring-symptom trend and high-severity warning."""
        insights = []
        symptoms = trends.symptoms

        if symptoms.frequency:
            # max() keeps the first-seen name on ties
            name = max(symptoms.frequency, key=lambda n: symptoms.frequency[n])
            count = symptoms.frequency[name]
            if count >= self._rules.recurring_symptom_min_count:
                insights.append(
                    Insight(
                        title="Recurring Symptom Pattern",
                        content=(
                            f"You've logged '{name}' {count} times in the last "
                            f"{symptoms.window_days} days. Consider tracking triggers and "
                            f"discussing with your healthcare provider."
                        ),
                        type=InsightType.trend,
                        confidence=0.82,
                        actionable=True,
                        created_at=created_at,
                        category="symptoms",
                    )
                )

        if symptoms.severe_count >= self._rules.high_severity_min_count:
            insights.append(
                Insight(
                    title="High Severity Symptoms",
                    content=(
                        "You've reported several high-severity symptoms recently. Consider "
                        "lifestyle adjustments or consulting your healthcare provider."
                    ),
                    type=InsightType.warning,
                    confidence=0.78,
                    actionable=True,
                    created_at=created_at,
                    category="symptoms",
                )
            )
        return insights

    def hormone_insights(self, trends: TrendSummary, created_at: datetime) -> list[Insight]:
        """Hormone-level insights, or a prompt for more readings."""
        hormones = trends.hormones

        if hormones.reading_count < self._rules.min_hormone_readings:
            return [
                Insight(
                    title="More Hormone Data Needed",
                    content=(
                        "Track hormone levels more regularly to receive personalized "
                        "insights about your cycle patterns and predictions."
                    ),
                    type=InsightType.recommendation,
                    confidence=0.70,
                    actionable=True,
                    created_at=created_at,
                    category="hormones",
                )
            ]

        insights = []
        if hormones.average(HormoneChannel.estrogen) > self._rules.elevated_estrogen_pg_ml:
            insights.append(
                Insight(
                    title="Elevated Estrogen Levels",
                    content=(
                        "Your recent estrogen readings are above normal range. This could "
                        "indicate approaching ovulation or other hormonal changes."
                    ),
                    type=InsightType.trend,
                    confidence=0.75,
                    actionable=True,
                    created_at=created_at,
                    category="hormones",
                )
            )

        if hormones.maximum(HormoneChannel.lh) > self._rules.lh_surge_miu_ml:
            insights.append(
                Insight(
                    title="LH Surge Detected",
                    content=(
                        "Your LH levels show a surge pattern, indicating ovulation likely "
                        "occurred within 24-48 hours of the peak reading."
                    ),
                    type=InsightType.prediction,
                    confidence=0.88,
                    actionable=True,
                    created_at=created_at,
                    category="hormones",
                )
            )
        return insights

    def irregularity_insights(
        self, snapshot: CycleSnapshot, created_at: datetime
    ) -> list[Insight]:
        """Warnings for cycle or period lengths outside the typical range."""
        insights = []
        bounds = self._config.cycle

        if not bounds.min_cycle_days <= snapshot.cycle_length <= bounds.max_cycle_days:
            insights.append(
                Insight(
                    title="Irregular Cycle Length",
                    content=(
                        f"Your cycle length of {snapshot.cycle_length} days is outside the "
                        f"typical range. Consider tracking for a few more cycles and "
                        f"consulting your healthcare provider."
                    ),
                    type=InsightType.warning,
                    confidence=0.85,
                    actionable=True,
                    created_at=created_at,
                    category="irregularity",
                )
            )

        if snapshot.period_length > self._rules.extended_period_days:
            insights.append(
                Insight(
                    title="Extended Period Duration",
                    content=(
                        f"Your period duration of {snapshot.period_length} days is longer "
                        f"than typical. Monitor flow intensity and consider medical consultation."
                    ),
                    type=InsightType.warning,
                    confidence=0.80,
                    actionable=True,
                    created_at=created_at,
                    category="irregularity",
                )
            )
        return insights

    def health_recommendations(
        self, snapshot: CycleSnapshot, created_at: datetime
    ) -> list[Insight]:
        """One nutrition/activity tip for the current phase."""
        if snapshot.phase is None:
            return []
        title, content, confidence = _HEALTH_TEMPLATES[snapshot.phase]
        return [
            Insight(
                title=title,
                content=content,
                type=InsightType.recommendation,
                confidence=confidence,
                actionable=True,
                created_at=created_at,
                category="health",
            )
        ]

    def tracking_insights(self, records: RecordBundle, created_at: datetime) -> list[Insight]:
        """Achievement for logging a symptom or mood on each of the last N days."""
        streak = self._rules.logging_streak_days
        logged = {
            as_date(r.date)
            for r in within_window([*records.symptoms, *records.moods], created_at, streak)
        }
        if len(logged) < streak:
            return []
        return [
            Insight(
                title="Consistent Tracking",
                content=(
                    f"You've logged how you feel every day for the past {streak} days. "
                    f"Consistent tracking makes your predictions and patterns more reliable."
                ),
                type=InsightType.achievement,
                confidence=0.72,
                actionable=False,
                created_at=created_at,
                category="tracking",
            )
        ]

    def start_tracking_insights(self, created_at: datetime) -> list[Insight]:
        """Prompt shown until the first period start is logged."""
        return [
            Insight(
                title="Start Tracking Your Cycle",
                content=(
                    "Log the first day of your last period to unlock cycle phase, "
                    "fertility and period predictions."
                ),
                type=InsightType.recommendation,
                confidence=0.90,
                actionable=True,
                created_at=created_at,
                category="tracking",
            )
        ]


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def generate_insights(
    snapshot: CycleSnapshot,
    trends: TrendSummary,
    records: RecordBundle | None = None,
    now: datetime | None = None,
    engine_config: EngineConfig | None = None,
) -> list[Insight]:
    """Convenience wrapper around ``InsightEngine(engine_config).generate``."""
    return InsightEngine(engine_config).generate(snapshot, trends, records, now)


def build_report(
    config: CycleConfig,
    records: RecordBundle,
    now: datetime | None = None,
    engine_config: EngineConfig | None = None,
) -> InsightReport:
    """Compute snapshot, trends and insights in one pass.

    Trends always cover ``trends.window_days`` from the engine config, the
    window the insight thresholds are tuned for.

    Raises:
        InvalidCycleConfigError: If ``config`` makes cycle math impossible.
    """
    ec = engine_config or get_engine_config()
    ref = now or datetime.now()
    snapshot = compute_snapshot(config, ref, ec)
    trends = compute_trends(records, ec.trends.window_days, ref, ec)
    insights = InsightEngine(ec).generate(snapshot, trends, records, ref)
    return InsightReport(snapshot=snapshot, trends=trends, insights=insights, generated_at=ref)


def priority_score(insight: Insight, now: datetime | None = None) -> float:
    """Rank an insight for display: confidence, type and actionability boosts,
    minus 0.02 per day of age, clamped to [0, 1]."""
    score = insight.confidence + _TYPE_BOOST[insight.type]
    if insight.actionable:
        score += 0.1
    age_days = max(0, (as_date(now or datetime.now()) - as_date(insight.created_at)).days)
    score -= age_days * 0.02
    return round(min(1.0, max(0.0, score)), 4)


def filter_by_type(insights: Iterable[Insight], insight_type: InsightType) -> list[Insight]:
    return [i for i in insights if i.type is InsightType(insight_type)]


def actionable_insights(insights: Iterable[Insight]) -> list[Insight]:
    return [i for i in insights if i.actionable]


def high_priority_insights(insights: Sequence[Insight]) -> list[Insight]:
    """Actionable insights with confidence above 0.8."""
    return [i for i in insights if i.confidence > 0.8 and i.actionable]
