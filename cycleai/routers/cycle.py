"""Stateless endpoints over the cycle prediction and insight engine.

Every request carries the data it needs; nothing is persisted.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException

from cycleai.dependencies import EngineConfigDep
from cycleai.engine.cycle_math import compute_snapshot, cycle_history_stats
from cycleai.engine.insight_engine import build_report
from cycleai.engine.records import (
    CycleConfig,
    HormoneReading,
    InvalidCycleConfigError,
    MoodEntry,
    RecordBundle,
    SymptomRecord,
    validate_cycle_config,
)
from cycleai.engine.trend_analytics import compute_trends
from cycleai.models.cycle import (
    CycleConfigIn,
    CycleHistoryRead,
    HistoryRequest,
    InsightsRead,
    InsightsRequest,
    RecordBundleIn,
    SnapshotRead,
    SnapshotRequest,
    TrendsRequest,
    TrendSummaryRead,
    ValidationRead,
)

router = APIRouter(prefix="/cycle", tags=["cycle"])
logger = logging.getLogger("cycleai.cycle")


def _to_config(body: CycleConfigIn) -> CycleConfig:
    return CycleConfig(**body.model_dump())


def _to_bundle(body: RecordBundleIn) -> RecordBundle:
    return RecordBundle(
        symptoms=tuple(SymptomRecord(**s.model_dump()) for s in body.symptoms),
        hormones=tuple(HormoneReading(**h.model_dump()) for h in body.hormones),
        moods=tuple(MoodEntry(**m.model_dump()) for m in body.moods),
    )


def _unprocessable(exc: InvalidCycleConfigError) -> HTTPException:
    logger.info("Rejected cycle config: %s", exc.errors)
    return HTTPException(status_code=422, detail={"errors": exc.errors})


@router.post("/validate", response_model=ValidationRead)
async def validate_config(body: CycleConfigIn, config: EngineConfigDep) -> Any:
    return asdict(validate_cycle_config(_to_config(body), config))


@router.post("/snapshot", response_model=SnapshotRead)
async def snapshot(body: SnapshotRequest, config: EngineConfigDep) -> Any:
    try:
        result = compute_snapshot(_to_config(body.config), body.now, config)
    except InvalidCycleConfigError as exc:
        raise _unprocessable(exc) from exc
    return asdict(result)


@router.post("/trends", response_model=TrendSummaryRead)
async def trends(body: TrendsRequest, config: EngineConfigDep) -> Any:
    summary = compute_trends(_to_bundle(body.records), body.window_days, body.now, config)
    return asdict(summary)


@router.post("/insights", response_model=InsightsRead)
async def insights(body: InsightsRequest, config: EngineConfigDep) -> Any:
    """Compute the snapshot and trends, then run every insight rule.

    Returns at most the configured number of insights, highest confidence first.
    """
    try:
        report = build_report(
            _to_config(body.config), _to_bundle(body.records), body.now, config
        )
    except InvalidCycleConfigError as exc:
        raise _unprocessable(exc) from exc
    return {
        "snapshot": asdict(report.snapshot),
        "insights": [asdict(i) for i in report.insights],
        "generated_at": report.generated_at,
    }


@router.post("/history", response_model=CycleHistoryRead)
async def history(body: HistoryRequest, config: EngineConfigDep) -> Any:
    stats = cycle_history_stats(
        body.period_starts,
        body.period_lengths,
        tolerance_days=config.cycle.prediction_tolerance_days,
    )
    return asdict(stats)
