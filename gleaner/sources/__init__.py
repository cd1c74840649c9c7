"""
Sources Module

Source registry, schedules and the ingestion scheduler.
"""

from gleaner.sources.registry import SourceRegistry, resolve_source_type
from gleaner.sources.schedule import Schedule
from gleaner.sources.scheduler import Scheduler, TickReport

__all__ = [
    "Schedule",
    "Scheduler",
    "SourceRegistry",
    "TickReport",
    "resolve_source_type",
]
