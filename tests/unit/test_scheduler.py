"""
Unit Tests - Scheduler
"""

import asyncio
from datetime import timedelta

import pytest

from gleaner.config.settings import SchedulerSettings
from gleaner.core.exceptions import StorageError
from gleaner.core.types import ContentItem, SourceType, utcnow
from gleaner.knowledge.adapters import AdapterRegistry
from gleaner.knowledge.ingestion import IngestionPipeline
from gleaner.knowledge.vector_store import InMemoryVectorStore
from gleaner.observability.logging import LogLevel
from gleaner.sources.registry import SourceRegistry
from gleaner.sources.scheduler import Scheduler, TickReport
from tests.fixtures import KeywordEmbeddings, StaticAdapter


class SlowAdapter:
    """Sleeps while fetching and tracks how many fetches overlap."""

    def __init__(self, delay: float = 0.05):
        self.delay = delay
        self.active = 0
        self.peak = 0
        self.fetched_at = []

    async def fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        self.fetched_at.append(utcnow())
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.active -= 1
        return [ContentItem(title="", text=f"python {locator}", source_id=source_id, origin_locator=locator)]


def make_scheduler(adapters: dict, logger=None, on_tick_complete=None, **settings):
    embeddings = KeywordEmbeddings()
    store = InMemoryVectorStore(dimension=embeddings.dimension)
    registry = SourceRegistry()
    pipeline = IngestionPipeline(
        adapters=AdapterRegistry(adapters),
        embeddings=embeddings,
        vector_store=store,
    )
    scheduler = Scheduler(
        registry=registry,
        pipeline=pipeline,
        settings=SchedulerSettings(**settings),
        on_tick_complete=on_tick_complete,
        logger=logger,
    )
    return scheduler, registry, store


class TestRunTick:
    """Tests for a single scheduler tick."""

    @pytest.mark.asyncio
    async def test_failing_source_does_not_affect_others(
        self, failing_adapter, sample_texts, buffer_logger, log_buffer
    ):
        scheduler, registry, store = make_scheduler(
            {SourceType.FEED: StaticAdapter(sample_texts), SourceType.WEB: failing_adapter},
            logger=buffer_logger,
        )
        good = await registry.add("feed", "https://x/feed.xml", "hourly")
        bad = await registry.add("web", "https://down.example", "hourly")

        report = await scheduler.run_tick()

        assert report.succeeded == [good.id]
        assert list(report.failed) == [bad.id]
        assert await store.count() == 2
        assert (await registry.get(good.id)).last_updated is not None
        assert (await registry.get(bad.id)).last_updated is None
        assert "Ingestion job failed" in log_buffer.messages(LogLevel.ERROR)

    @pytest.mark.asyncio
    async def test_registry_failure_is_recorded_per_source(
        self, monkeypatch, sample_texts, buffer_logger, log_buffer
    ):
        reports: list[TickReport] = []

        async def on_tick(report: TickReport) -> None:
            reports.append(report)

        slow = SlowAdapter(delay=0.05)
        scheduler, registry, _ = make_scheduler(
            {SourceType.FEED: StaticAdapter(sample_texts), SourceType.WEB: slow},
            logger=buffer_logger,
            on_tick_complete=on_tick,
        )
        broken = await registry.add("feed", "https://x/feed.xml", "hourly")
        healthy = await registry.add("web", "https://x/page", "hourly")

        mark_updated = registry.mark_updated

        async def failing_mark_updated(source_id, when):
            if source_id == broken.id:
                raise StorageError("disk full")
            await mark_updated(source_id, when)

        monkeypatch.setattr(registry, "mark_updated", failing_mark_updated)

        report = await scheduler.run_tick()

        assert report.succeeded == [healthy.id]
        assert report.failed == {broken.id: "disk full"}
        assert reports == [report]
        assert slow.active == 0
        assert (await registry.get(healthy.id)).last_updated is not None
        assert (await registry.get(broken.id)).last_updated is None
        assert "Ingestion job failed" in log_buffer.messages(LogLevel.ERROR)

    @pytest.mark.asyncio
    async def test_last_updated_is_job_start_time(self):
        adapter = SlowAdapter(delay=0.01)
        scheduler, registry, _ = make_scheduler({SourceType.FEED: adapter})
        source = await registry.add("feed", "https://x/feed.xml", "hourly")
        before = utcnow()

        await scheduler.run_tick()

        last_updated = (await registry.get(source.id)).last_updated
        assert before <= last_updated <= adapter.fetched_at[0]

    @pytest.mark.asyncio
    async def test_recently_updated_source_is_skipped(self, sample_texts):
        adapter = StaticAdapter(sample_texts)
        scheduler, registry, _ = make_scheduler({SourceType.FEED: adapter})
        source = await registry.add("feed", "https://x/feed.xml", "hourly")

        first = await scheduler.run_tick()
        second = await scheduler.run_tick()

        assert first.succeeded == [source.id]
        assert second.dispatched == 0
        assert second.skipped == [source.id]
        assert len(adapter.calls) == 1

    @pytest.mark.asyncio
    async def test_source_is_due_again_after_interval(self, sample_texts):
        adapter = StaticAdapter(sample_texts)
        scheduler, registry, _ = make_scheduler({SourceType.FEED: adapter})
        await registry.add("feed", "https://x/feed.xml", "hourly")

        await scheduler.run_tick()
        report = await scheduler.run_tick(now=utcnow() + timedelta(hours=2))

        assert report.dispatched == 1
        assert len(adapter.calls) == 2

    @pytest.mark.asyncio
    async def test_inactive_source_is_not_dispatched(self, sample_texts):
        adapter = StaticAdapter(sample_texts)
        scheduler, registry, _ = make_scheduler({SourceType.FEED: adapter})
        source = await registry.add("feed", "https://x/feed.xml", "hourly")
        await registry.deactivate(source.id)

        report = await scheduler.run_tick()

        assert report.dispatched == 0
        assert report.skipped == [source.id]
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_job_timeout_is_a_failure(self):
        scheduler, registry, _ = make_scheduler(
            {SourceType.FEED: SlowAdapter(delay=1.0)},
            job_timeout_seconds=0.05,
        )
        source = await registry.add("feed", "https://x/feed.xml", "hourly")

        report = await scheduler.run_tick()

        assert "timed out" in report.failed[source.id]
        assert (await registry.get(source.id)).last_updated is None

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        adapter = SlowAdapter(delay=0.03)
        scheduler, registry, _ = make_scheduler({SourceType.FEED: adapter}, max_concurrency=2)
        for i in range(5):
            await registry.add("feed", f"https://x/{i}.xml", "hourly")

        report = await scheduler.run_tick()

        assert len(report.succeeded) == 5
        assert adapter.peak == 2

    @pytest.mark.asyncio
    async def test_tick_callback_receives_report(self, sample_texts):
        reports: list[TickReport] = []

        async def on_tick(report: TickReport) -> None:
            reports.append(report)

        scheduler, registry, _ = make_scheduler(
            {SourceType.FEED: StaticAdapter(sample_texts)}, on_tick_complete=on_tick
        )
        await registry.add("feed", "https://x/feed.xml", "hourly")

        report = await scheduler.run_tick()

        assert reports == [report]
        assert scheduler.tick_count == 1


class TestSchedulerLoop:
    """Tests for the background loop."""

    @pytest.mark.asyncio
    async def test_start_ticks_and_stop_returns(self, sample_texts):
        scheduler, registry, store = make_scheduler(
            {SourceType.FEED: StaticAdapter(sample_texts)},
            tick_interval_seconds=0.01,
        )
        await registry.add("feed", "https://x/feed.xml", "hourly")

        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.05)
        await scheduler.stop(timeout=1.0)

        assert not scheduler.running
        assert scheduler.tick_count >= 2
        assert await store.count() == 2

    @pytest.mark.asyncio
    async def test_stop_cancels_in_flight_tick_after_timeout(self):
        adapter = SlowAdapter(delay=5.0)
        scheduler, registry, _ = make_scheduler({SourceType.FEED: adapter}, tick_interval_seconds=60)
        source = await registry.add("feed", "https://x/feed.xml", "hourly")

        scheduler.start()
        await asyncio.sleep(0.02)
        await scheduler.stop(timeout=0.05)

        assert not scheduler.running
        assert (await registry.get(source.id)).last_updated is None

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        scheduler, _, _ = make_scheduler({})
        await scheduler.stop()
        assert not scheduler.running
