"""Host-side insight regeneration coordinator.

The engine itself is pure; this helper is what an application shell uses to
keep insights current:

1. Fetch the cycle config and the symptom, hormone and mood windows concurrently
2. Replace any failed record fetch with an empty list
3. Run the engine once, synchronously, on the joined results
4. Publish the report unless a newer run has started meanwhile

Change notifications are debounced so a burst of new records triggers a
single regeneration.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Sequence

from cycleai.engine.config_loader import EngineConfig, get_engine_config
from cycleai.engine.insight_engine import InsightReport, build_report
from cycleai.engine.records import (
    CycleConfig,
    InvalidCycleConfigError,
    RecordBundle,
    RecordKind,
)

logger = logging.getLogger("cycleai.engine.regeneration")

ConfigFetcher = Callable[[], Awaitable[CycleConfig | None]]
RecordFetcher = Callable[[RecordKind, datetime, datetime], Awaitable[Sequence[Any]]]
ReportCallback = Callable[[InsightReport], Awaitable[None]]


class InsightRegenerator:
    """Debounced, last-writer-wins insight regeneration.

    Usage::

        regenerator = InsightRegenerator(
            fetch_config=store.current_cycle_config,
            fetch_records=store.records_between,
            on_report=ui.publish_insights,
        )
        regenerator.notify_change()        # e.g. after a symptom is saved
        report = await regenerator.regenerate()
    """

    def __init__(
        self,
        fetch_config: ConfigFetcher,
        fetch_records: RecordFetcher,
        on_report: ReportCallback | None = None,
        config: EngineConfig | None = None,
        debounce_seconds: float | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            fetch_config:     Async callable() → current CycleConfig or None.
            fetch_records:    Async callable(kind, start, end) → records of that kind.
            on_report:        Async callback(InsightReport) for each published report.
            config:           Engine configuration. Defaults to the global config.
            debounce_seconds: Quiet period before a notified change regenerates.
        """
        self._fetch_config = fetch_config
        self._fetch_records = fetch_records
        self._on_report = on_report
        self._config = config or get_engine_config()
        self._debounce = (
            debounce_seconds
            if debounce_seconds is not None
            else self._config.regeneration.debounce_seconds
        )
        self._generation = 0
        self._pending: asyncio.Task | None = None
        self.latest: InsightReport | None = None

    async def regenerate(self, now: datetime | None = None) -> InsightReport | None:
        """Fetch fresh data and regenerate insights now.

        Args:
            now: Reference moment (defaults to the current time).

        Returns:
            The new report, or None if there is no usable cycle config or a
            newer regeneration started before this one finished.
        """
        self._generation += 1
        generation = self._generation
        ref = now or datetime.now()
        start = ref - timedelta(days=self._config.trends.window_days)

        config_result, *record_results = await asyncio.gather(
            self._fetch_config(),
            *(self._fetch_records(kind, start, ref) for kind in RecordKind),
            return_exceptions=True,
        )

        if generation != self._generation:
            logger.debug("Discarding superseded regeneration #%d", generation)
            return None

        if isinstance(config_result, BaseException):
            logger.warning("Cycle config fetch failed: %s", config_result)
            return None
        if config_result is None:
            logger.debug("No cycle config stored yet; skipping regeneration")
            return None

        fetched: dict[RecordKind, list] = {}
        for kind, result in zip(RecordKind, record_results):
            if isinstance(result, BaseException):
                logger.warning("Fetching %s records failed: %s", kind.value, result)
                fetched[kind] = []
            else:
                fetched[kind] = list(result)

        try:
            report = build_report(
                config_result,
                RecordBundle(
                    symptoms=fetched[RecordKind.symptom],
                    hormones=fetched[RecordKind.hormone],
                    moods=fetched[RecordKind.mood],
                ),
                now=ref,
                engine_config=self._config,
            )
        except InvalidCycleConfigError as exc:
            logger.warning("Stored cycle config rejected: %s", "; ".join(exc.errors))
            return None

        self.latest = report
        if self._on_report:
            await self._on_report(report)
        logger.info(
            "Regeneration #%d published %d insights", generation, len(report.insights)
        )
        return report

    def notify_change(self) -> asyncio.Task:
        """Schedule a debounced regeneration, restarting any pending wait.

        Must be called from a running event loop.

        Returns:
            The task that will perform the regeneration.
        """
        if self._pending and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._debounced())
        self._pending.add_done_callback(_log_failure)
        return self._pending

    async def wait_idle(self) -> None:
        """Wait until any pending debounced regeneration has finished."""
        while self._pending is not None and not self._pending.done():
            pending = self._pending
            try:
                await pending
            except asyncio.CancelledError:
                # a newer notify_change() replaced this task
                if not pending.cancelled():
                    raise

    async def _debounced(self) -> InsightReport | None:
        await asyncio.sleep(self._debounce)
        return await self.regenerate()


def _log_failure(task: asyncio.Task) -> None:
    """Log an exception escaping a debounced run, which nobody may await."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Debounced regeneration failed: %s", exc, exc_info=exc)
