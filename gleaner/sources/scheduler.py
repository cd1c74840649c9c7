"""
Ingestion Scheduler

Periodically dispatches ingestion jobs for due sources.

Design decisions:
- One loop, fixed tick; each tick's jobs are awaited as a batch
- Bounded parallelism with a semaphore, per-job deadline with wait_for
- A failing source is logged and skipped, never aborting its siblings
- last_updated is set to the job's start time, only on success
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime

from gleaner.config.settings import SchedulerSettings
from gleaner.core.types import Source, utcnow
from gleaner.knowledge.ingestion import IngestionPipeline, IngestionResult
from gleaner.observability.logging import StructuredLogger, get_logger
from gleaner.sources.registry import SourceRegistry


@dataclass
class TickReport:
    """What one scheduler tick did."""

    started_at: datetime
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    results: dict[str, IngestionResult] = field(default_factory=dict)

    @property
    def dispatched(self) -> int:
        return len(self.succeeded) + len(self.failed)


TickCallback = Callable[[TickReport], Awaitable[None]]


class Scheduler:
    """
    Ingestion scheduler.

    Either drive it tick by tick with run_tick(), or start() a
    background loop and stop() it gracefully.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        pipeline: IngestionPipeline,
        settings: SchedulerSettings | None = None,
        on_tick_complete: TickCallback | None = None,
        logger: StructuredLogger | None = None,
    ):
        self._registry = registry
        self._pipeline = pipeline
        self._settings = settings or SchedulerSettings()
        self._on_tick_complete = on_tick_complete
        self._logger = logger or get_logger("gleaner.scheduler")

        self._semaphore = asyncio.Semaphore(self._settings.max_concurrency)
        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._loop_task: asyncio.Task | None = None
        self._tick_count = 0

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    async def run_tick(self, now: datetime | None = None) -> TickReport:
        """
        Run one tick: dispatch every due active source and await them all.

        Never raises for a source failure; see TickReport.failed.
        """
        async with self._tick_lock:
            now = now or utcnow()
            report = TickReport(started_at=now)

            due = await self._registry.due_sources(now)
            due_ids = {s.id for s in due}
            report.skipped = [
                s.id for s in await self._registry.list_sources() if s.id not in due_ids
            ]

            if due:
                self._logger.info("Dispatching ingestion jobs", due=len(due), skipped=len(report.skipped))
                await asyncio.gather(*(self._run_job(source, report) for source in due))

            self._tick_count += 1

        if self._on_tick_complete is not None:
            await self._on_tick_complete(report)

        self._logger.info(
            "Tick complete",
            succeeded=len(report.succeeded),
            failed=len(report.failed),
            skipped=len(report.skipped),
        )
        return report

    async def _run_job(self, source: Source, report: TickReport) -> None:
        async with self._semaphore:
            started_at = utcnow()
            with self._logger.context(source_id=source.id, source_type=source.type.value):
                try:
                    result = await asyncio.wait_for(
                        self._pipeline.ingest_source(source),
                        timeout=self._settings.job_timeout_seconds,
                    )
                    await self._registry.mark_updated(source.id, started_at)
                except asyncio.TimeoutError:
                    report.failed[source.id] = f"timed out after {self._settings.job_timeout_seconds}s"
                    self._logger.error(
                        "Ingestion job timed out",
                        timeout=self._settings.job_timeout_seconds,
                    )
                    return
                except Exception as e:
                    report.failed[source.id] = str(e)
                    self._logger.error("Ingestion job failed", error=e)
                    return

                report.succeeded.append(source.id)
                report.results[source.id] = result

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    async def run_forever(self) -> None:
        """Tick at the configured interval until stop() is called."""
        self._stop_event.clear()
        self._logger.info(
            "Scheduler started",
            tick_interval=self._settings.tick_interval_seconds,
            max_concurrency=self._settings.max_concurrency,
        )

        while not self._stop_event.is_set():
            try:
                await self.run_tick()
            except Exception as e:
                # Registry or callback failure; the next tick retries
                self._logger.error("Scheduler tick failed", error=e)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._settings.tick_interval_seconds,
                )
            except asyncio.TimeoutError:
                continue

        self._logger.info("Scheduler stopped")

    def start(self) -> asyncio.Task:
        """Run the loop as a background task."""
        if self.running:
            return self._loop_task
        self._stop_event.clear()
        self._loop_task = asyncio.create_task(self.run_forever())
        return self._loop_task

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop the loop after the in-flight tick finishes.

        With a timeout, the in-flight tick is cancelled once it expires.
        """
        self._stop_event.set()
        if self._loop_task is None:
            return

        try:
            await asyncio.wait_for(asyncio.shield(self._loop_task), timeout=timeout)
        except asyncio.TimeoutError:
            self._logger.warning("Scheduler did not stop in time, cancelling", timeout=timeout)
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
        finally:
            self._loop_task = None
