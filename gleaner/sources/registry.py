"""
Source Registry

Owns the lifecycle of configured sources.

Design decisions:
- Input is validated before any side effect
- Sources are deactivated, never physically deleted
- Optional JSON persistence, rewritten atomically on every mutation
- A mutation reaches memory only after it has been persisted
"""

import asyncio
import json
import os
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from gleaner.core.exceptions import SourceNotFoundError, StorageError, ValidationError
from gleaner.core.types import SOURCE_TYPE_ALIASES, Source, SourceType, utcnow
from gleaner.observability.logging import StructuredLogger, get_logger
from gleaner.sources.schedule import Schedule


def resolve_source_type(value: str | SourceType) -> SourceType:
    """Map a type name or alias to a SourceType, raising ValidationError."""
    if isinstance(value, SourceType):
        return value

    name = str(value).strip().lower()
    if name in SOURCE_TYPE_ALIASES:
        return SOURCE_TYPE_ALIASES[name]
    try:
        return SourceType(name)
    except ValueError:
        accepted = sorted([t.value for t in SourceType] + list(SOURCE_TYPE_ALIASES))
        raise ValidationError(
            f"Unknown source type {value!r}",
            context={"type": str(value), "accepted": accepted},
        )


class SourceRegistry:
    """
    Registry of content sources.

    State machine per source: Active <-> Inactive, by explicit
    activate()/deactivate().
    """

    def __init__(
        self,
        path: str | Path | None = None,
        logger: StructuredLogger | None = None,
    ):
        self._path = Path(path) if path else None
        self._sources: dict[str, Source] = {}
        self._schedules: dict[str, Schedule] = {}
        self._lock = asyncio.Lock()
        self._logger = logger or get_logger("gleaner.registry")

    async def load(self) -> int:
        """Load persisted sources. Returns the number loaded."""
        if self._path is None or not self._path.exists():
            return 0

        async with self._lock:
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise StorageError(
                    f"Failed to read source registry: {e}",
                    context={"path": str(self._path)},
                    cause=e,
                )

            sources = [Source.model_validate(s) for s in raw.get("sources", [])]
            self._sources = {s.id: s for s in sources}
            self._schedules = {s.id: Schedule.parse(s.schedule) for s in sources}

        self._logger.info("Loaded sources", count=len(sources))
        return len(sources)

    async def add(self, source_type: str | SourceType, locator: str, schedule: str) -> Source:
        """
        Register a new active source.

        Raises:
            ValidationError: unknown type, empty locator or bad schedule
        """
        resolved = resolve_source_type(source_type)

        locator = locator.strip() if locator else ""
        if not locator:
            raise ValidationError("Source locator must not be empty", context={"type": resolved.value})

        parsed = Schedule.parse(schedule or "")

        source = Source(
            id=f"{resolved.value}-{uuid4().hex[:12]}",
            type=resolved,
            locator=locator,
            schedule=schedule.strip(),
        )

        async with self._lock:
            await self._commit(source, parsed)

        self._logger.info(
            "Added source",
            source_id=source.id,
            source_type=resolved.value,
            schedule=source.schedule,
        )
        return source

    async def get(self, source_id: str) -> Source:
        """Raises SourceNotFoundError for unknown ids."""
        async with self._lock:
            return self._require(source_id)

    async def list_sources(self, active_only: bool = False) -> list[Source]:
        """Sources in registration order."""
        async with self._lock:
            sources = list(self._sources.values())
        if active_only:
            sources = [s for s in sources if s.active]
        return sources

    async def due_sources(self, now: datetime | None = None) -> list[Source]:
        """Active sources whose schedule says they should run at now."""
        now = now or utcnow()
        async with self._lock:
            return [
                s
                for s in self._sources.values()
                if s.active and self._schedules[s.id].is_due(s.last_updated, now)
            ]

    async def activate(self, source_id: str) -> Source:
        return await self._set_active(source_id, True)

    async def deactivate(self, source_id: str) -> Source:
        return await self._set_active(source_id, False)

    async def mark_updated(self, source_id: str, at: datetime) -> Source:
        """Record a successful ingestion that started at `at`. Never moves backwards."""
        async with self._lock:
            source = self._require(source_id)
            if source.last_updated is not None and source.last_updated >= at:
                return source
            updated = source.model_copy(update={"last_updated": at})
            await self._commit(updated)
            return updated

    async def _set_active(self, source_id: str, active: bool) -> Source:
        async with self._lock:
            source = self._require(source_id)
            if source.active == active:
                return source
            updated = source.model_copy(update={"active": active})
            await self._commit(updated)

        self._logger.info("Source activated" if active else "Source deactivated", source_id=source_id)
        return updated

    def _require(self, source_id: str) -> Source:
        source = self._sources.get(source_id)
        if source is None:
            raise SourceNotFoundError(
                f"Source {source_id} not found",
                context={"source_id": source_id},
            )
        return source

    async def _commit(self, source: Source, schedule: Schedule | None = None) -> None:
        """
        Persist the registry with `source` applied, then apply it in memory.

        Memory is left untouched when persisting fails. Caller holds the lock.
        """
        sources = {**self._sources, source.id: source}
        await self._persist(sources)

        self._sources = sources
        if schedule is not None:
            self._schedules[source.id] = schedule

    async def _persist(self, sources: dict[str, Source]) -> None:
        """Write all sources atomically."""
        if self._path is None:
            return

        state = {"sources": [s.model_dump(mode="json") for s in sources.values()]}
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(tmp_path.write_text, json.dumps(state, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StorageError(
                f"Failed to persist source registry: {e}",
                context={"path": str(self._path)},
                cause=e,
            )

    def __len__(self) -> int:
        return len(self._sources)
