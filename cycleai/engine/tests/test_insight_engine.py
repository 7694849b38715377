"""Tests for the rule-based insight engine."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from cycleai.engine.config_loader import EngineConfig
from cycleai.engine.cycle_math import compute_snapshot
from cycleai.engine.insight_engine import (
    Insight,
    InsightEngine,
    InsightType,
    actionable_insights,
    build_report,
    filter_by_type,
    generate_insights,
    high_priority_insights,
    priority_score,
)
from cycleai.engine.records import CycleConfig, InvalidCycleConfigError, RecordBundle
from cycleai.engine.trend_analytics import compute_trends
from cycleai.engine.tests.conftest import (
    PERIOD_START,
    TEST_NOW,
    make_mood,
    make_reading,
    make_symptom,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def run_engine(
    config: CycleConfig,
    records: RecordBundle,
    engine_config: EngineConfig,
    now: datetime = TEST_NOW,
) -> list[Insight]:
    snapshot = compute_snapshot(config, now, engine_config)
    trends = compute_trends(records, now=now, engine_config=engine_config)
    return generate_insights(snapshot, trends, records, now, engine_config)


def titles(insights: list[Insight]) -> list[str]:
    return [i.title for i in insights]


def by_title(insights: list[Insight], title: str) -> Insight:
    return next(i for i in insights if i.title == title)


# ---------------------------------------------------------------------------
# Phase and fertility rules
# ---------------------------------------------------------------------------


class TestPhaseRules:
    def test_mid_cycle_insights(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        insights = run_engine(regular_config, RecordBundle(), engine_config)
        assert titles(insights) == [
            "Peak Fertility Window",
            "Peak Performance Window",
            "High Fertility Period",
            "More Hormone Data Needed",
        ]
        assert by_title(insights, "Peak Fertility Window").type is InsightType.prediction

    def test_ovulation_approaching(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        insights = run_engine(
            regular_config, RecordBundle(), engine_config, now=datetime(2024, 1, 13, 9, 0)
        )
        approaching = by_title(insights, "Ovulation Approaching")
        assert approaching.confidence == pytest.approx(0.87)
        assert approaching.category == "fertility"

    def test_extended_menstruation(self, engine_config: EngineConfig) -> None:
        config = CycleConfig(
            average_cycle_length=35, average_period_length=8, last_period_start=PERIOD_START
        )
        insights = run_engine(config, RecordBundle(), engine_config, now=datetime(2024, 1, 8))
        assert "Extended Menstrual Phase" in titles(insights)
        assert "Extended Period Duration" in titles(insights)

    def test_luteal_self_care(self, regular_config: CycleConfig, engine_config: EngineConfig) -> None:
        insights = run_engine(
            regular_config, RecordBundle(), engine_config, now=datetime(2024, 1, 22)
        )
        assert titles(insights)[:2] == ["Luteal Phase Preparation", "Self-Care Priority"]
        assert "High Fertility Period" not in titles(insights)


# ---------------------------------------------------------------------------
# Symptom rules
# ---------------------------------------------------------------------------


class TestSymptomRules:
    def test_recurring_headache(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        records = RecordBundle(
            symptoms=[make_symptom(d) for d in range(1, 6)]
            + [make_symptom(d, name="Cramps") for d in (6, 9)]
        )
        insights = run_engine(regular_config, records, engine_config)

        recurring = by_title(insights, "Recurring Symptom Pattern")
        assert "Headache" in recurring.content
        assert "5 times" in recurring.content
        assert recurring.confidence == pytest.approx(0.82)
        assert recurring.type is InsightType.trend

    def test_four_occurrences_not_recurring(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        records = RecordBundle(symptoms=[make_symptom(d) for d in range(1, 5)])
        insights = run_engine(regular_config, records, engine_config)
        assert "Recurring Symptom Pattern" not in titles(insights)

    def test_high_severity_cluster(self, engine_config: EngineConfig) -> None:
        config = CycleConfig(last_period_start=date(2024, 1, 9))  # follicular day 7
        records = RecordBundle(
            symptoms=[make_symptom(d, name=f"Symptom {d}", severity=5) for d in range(1, 4)]
        )
        insights = run_engine(config, records, engine_config)
        severe = by_title(insights, "High Severity Symptoms")
        assert severe.type is InsightType.warning
        assert severe.confidence == pytest.approx(0.78)


# ---------------------------------------------------------------------------
# Hormone rules
# ---------------------------------------------------------------------------


class TestHormoneRules:
    def test_two_readings_need_more_data(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        records = RecordBundle(
            hormones=[
                make_reading(2, estrogen=350.0, lh=30.0),
                make_reading(1, estrogen=380.0, lh=35.0),
            ]
        )
        insights = run_engine(regular_config, records, engine_config)

        more_data = by_title(insights, "More Hormone Data Needed")
        assert more_data.type is InsightType.recommendation
        assert more_data.confidence == pytest.approx(0.70)
        assert "LH Surge Detected" not in titles(insights)
        assert "Elevated Estrogen Levels" not in titles(insights)

    def test_surge_and_elevated_estrogen(self, engine_config: EngineConfig) -> None:
        config = CycleConfig(last_period_start=date(2024, 1, 9))
        records = RecordBundle(
            hormones=[make_reading(d, estrogen=350.0, lh=25.0) for d in (3, 2, 1)]
        )
        insights = run_engine(config, records, engine_config)
        assert by_title(insights, "LH Surge Detected").confidence == pytest.approx(0.88)
        assert by_title(insights, "Elevated Estrogen Levels").confidence == pytest.approx(0.75)
        assert "More Hormone Data Needed" not in titles(insights)


# ---------------------------------------------------------------------------
# Irregularity, tracking and no-data rules
# ---------------------------------------------------------------------------


class TestIrregularity:
    def test_long_cycle_warning(self, engine_config: EngineConfig) -> None:
        config = CycleConfig(average_cycle_length=40, last_period_start=PERIOD_START)
        insights = run_engine(config, RecordBundle(), engine_config)
        irregular = by_title(insights, "Irregular Cycle Length")
        assert irregular.type is InsightType.warning
        assert irregular.confidence == pytest.approx(0.85)
        assert "40 days" in irregular.content

    def test_long_cycle_warning_without_history(self, engine_config: EngineConfig) -> None:
        config = CycleConfig(average_cycle_length=40)
        insights = run_engine(config, RecordBundle(), engine_config)
        assert "Irregular Cycle Length" in titles(insights)


class TestTrackingRules:
    def test_no_history_prompts_tracking(self, engine_config: EngineConfig) -> None:
        insights = run_engine(CycleConfig(), RecordBundle(), engine_config)
        assert titles(insights) == ["Start Tracking Your Cycle", "More Hormone Data Needed"]
        assert not any(i.category in ("phase", "fertility", "health") for i in insights)

    def test_consistent_tracking_achievement(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        records = RecordBundle(moods=[make_mood(d) for d in range(7)])
        insights = run_engine(regular_config, records, engine_config)
        achievement = by_title(insights, "Consistent Tracking")
        assert achievement.type is InsightType.achievement
        assert not achievement.actionable

    def test_gap_breaks_streak(self, regular_config: CycleConfig, engine_config: EngineConfig) -> None:
        records = RecordBundle(moods=[make_mood(d) for d in (0, 1, 2, 4, 5, 6)])
        insights = run_engine(regular_config, records, engine_config)
        assert "Consistent Tracking" not in titles(insights)


# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------


class TestRanking:
    def test_capped_and_sorted(self, engine_config: EngineConfig) -> None:
        now = datetime(2024, 1, 13, 9, 30)
        config = CycleConfig(last_period_start=PERIOD_START)
        records = RecordBundle(
            symptoms=[make_symptom(d, severity=5, now=now) for d in range(1, 6)],
            hormones=[make_reading(d, estrogen=350.0, lh=25.0, now=now) for d in (3, 2, 1)],
            moods=[make_mood(d, now=now) for d in range(7)],
        )
        insights = run_engine(config, records, engine_config, now=now)

        assert len(insights) == engine_config.insights.max_insights == 6
        confidences = [i.confidence for i in insights]
        assert confidences == sorted(confidences, reverse=True)
        assert titles(insights) == [
            "Peak Fertility Window",
            "LH Surge Detected",
            "Peak Performance Window",
            "Ovulation Approaching",
            "High Fertility Period",
            "Recurring Symptom Pattern",
        ]

    def test_cap_follows_config(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        engine_config.insights.max_insights = 2
        snapshot = compute_snapshot(regular_config, TEST_NOW, engine_config)
        trends = compute_trends(RecordBundle(), now=TEST_NOW, engine_config=engine_config)
        insights = InsightEngine(engine_config).generate(snapshot, trends, now=TEST_NOW)
        assert len(insights) == 2

    def test_created_at_is_generation_time(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        insights = run_engine(regular_config, RecordBundle(), engine_config)
        assert all(i.created_at == TEST_NOW for i in insights)


class TestPriorityAndFilters:
    def _insight(self, **overrides) -> Insight:
        fields = dict(
            title="t",
            content="c",
            type=InsightType.recommendation,
            confidence=0.70,
            actionable=True,
            created_at=TEST_NOW,
        )
        fields.update(overrides)
        return Insight(**fields)

    def test_priority_score_clamped(self) -> None:
        warning = self._insight(type=InsightType.warning, confidence=0.85)
        assert priority_score(warning, TEST_NOW) == 1.0

    def test_priority_score_decays_with_age(self) -> None:
        old = self._insight(created_at=TEST_NOW - timedelta(days=5))
        assert priority_score(old, TEST_NOW) == pytest.approx(0.80)

    def test_priority_score_achievement(self) -> None:
        achievement = self._insight(
            type=InsightType.achievement, confidence=0.72, actionable=False
        )
        assert priority_score(achievement, TEST_NOW) == pytest.approx(0.72)

    def test_filters(self) -> None:
        insights = [
            self._insight(title="a", type=InsightType.warning, confidence=0.85),
            self._insight(title="b", confidence=0.90, actionable=False),
            self._insight(title="c", confidence=0.75),
        ]
        assert titles(filter_by_type(insights, InsightType.warning)) == ["a"]
        assert titles(filter_by_type(insights, "recommendation")) == ["b", "c"]
        assert titles(actionable_insights(insights)) == ["a", "c"]
        assert titles(high_priority_insights(insights)) == ["a"]


# ---------------------------------------------------------------------------
# build_report
# ---------------------------------------------------------------------------


class TestBuildReport:
    def test_report(self, regular_config: CycleConfig, engine_config: EngineConfig) -> None:
        records = RecordBundle(symptoms=[make_symptom(1)])
        report = build_report(regular_config, records, TEST_NOW, engine_config)
        assert report.snapshot.cycle_day == 15
        assert report.trends.symptoms.total == 1
        assert report.insights
        assert report.generated_at == TEST_NOW

    def test_trends_follow_configured_window(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        engine_config.trends.window_days = 7
        records = RecordBundle(symptoms=[make_symptom(d) for d in (1, 2, 3, 10, 20)])
        report = build_report(regular_config, records, TEST_NOW, engine_config)
        assert report.trends.window_days == 7
        assert report.trends.symptoms.total == 3
        assert "Recurring Symptom Pattern" not in titles(report.insights)

    def test_invalid_config_raises(self, engine_config: EngineConfig) -> None:
        config = CycleConfig(average_cycle_length=5, average_period_length=5)
        with pytest.raises(InvalidCycleConfigError):
            build_report(config, RecordBundle(), TEST_NOW, engine_config)

    def test_mixed_timestamp_offsets(
        self, regular_config: CycleConfig, engine_config: EngineConfig
    ) -> None:
        utc_now = TEST_NOW.replace(tzinfo=timezone.utc)
        records = RecordBundle(
            symptoms=[make_symptom(d, now=utc_now if d % 2 else TEST_NOW) for d in range(1, 6)],
            hormones=[make_reading(2, now=utc_now, lh=8.0), make_reading(1, lh=9.0)],
            moods=[make_mood(d, now=utc_now if d % 2 else TEST_NOW) for d in range(7)],
        )
        report = build_report(regular_config, records, TEST_NOW, engine_config)

        assert report.trends.symptoms.total == 5
        assert report.trends.hormones.reading_count == 2
        assert "5 times" in by_title(report.insights, "Recurring Symptom Pattern").content
