"""
Integration Tests - Worker Entry Point
"""

import pytest

import gleaner.__main__ as worker
from gleaner.observability import logging as gleaner_logging
from gleaner.runtime.factory import build_service
from tests.fixtures import offline_service, offline_settings


@pytest.fixture
def restore_default_handlers():
    handlers = list(gleaner_logging._default_handlers)
    level = gleaner_logging._default_level[0]
    yield
    gleaner_logging._default_handlers[:] = handlers
    gleaner_logging._default_level[0] = level


@pytest.mark.integration
@pytest.mark.asyncio
async def test_single_tick_run(monkeypatch, tmp_path, sample_texts, restore_default_handlers):
    settings = offline_settings(tmp_path)
    service, adapter = offline_service(settings, sample_texts)

    monkeypatch.setattr(worker, "get_settings", lambda: settings)
    monkeypatch.setattr(worker, "build_service", lambda s: service)

    await worker.run(once=True, sources=[["feed", "https://x/feed.xml", "hourly"]])

    assert len(adapter.calls) == 1
    assert (tmp_path / "vectors.json").exists()

    # A fresh service over the same files sees what the worker stored
    reloaded = build_service(settings)
    await reloaded.load()
    assert await reloaded.document_count() == 2
    assert len(await reloaded.list_sources()) == 1
