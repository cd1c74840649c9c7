"""
Vector Store Abstraction

Store document embeddings and rank them by cosine similarity.
Supports an in-process backend and Milvus.

Design decisions:
- Abstract interface for backend independence
- Upsert keyed by doc_id: overwrite, never duplicate
- Fixed dimension per store; mismatches raise, never coerce
- Deterministic ranking: score desc, updated_at desc, doc_id asc
- In-process backend persists through an explicit load()/flush() contract
"""

import asyncio
import json
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np

from gleaner.core.exceptions import DimensionMismatch, StorageError
from gleaner.core.locks import ReadWriteLock
from gleaner.core.types import ScoredRecord, VectorRecord, utcnow
from gleaner.observability.logging import StructuredLogger, get_logger


def cosine_similarity(a: list[float] | np.ndarray, b: list[float] | np.ndarray) -> float:
    """Normalized dot product in [-1, 1]; 0.0 when either vector is zero."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    return max(-1.0, min(1.0, score))


def rank_key(scored: ScoredRecord) -> tuple[float, float, str]:
    """Sort key giving score desc, then most recently updated, then doc_id."""
    return (-scored.score, -scored.record.updated_at.timestamp(), scored.record.doc_id)


class VectorStore(ABC):
    """
    Abstract vector store interface.

    Provides storage and similarity search for document embeddings.
    """

    @property
    @abstractmethod
    def dimension(self) -> int | None:
        """Established embedding dimension, None until the first write."""
        pass

    @abstractmethod
    async def upsert(self, doc_id: str, content: str, embedding: list[float]) -> VectorRecord:
        """
        Insert or overwrite a record.

        Raises:
            DimensionMismatch: embedding length differs from the store dimension
            StorageError: the write could not be committed
        """
        pass

    @abstractmethod
    async def similarity_search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        min_score: float = -1.0,
    ) -> list[ScoredRecord]:
        """Return at most top_k records scoring >= min_score, best first."""
        pass

    @abstractmethod
    async def get(self, doc_id: str) -> VectorRecord | None:
        """Get a record by doc_id."""
        pass

    @abstractmethod
    async def delete(self, doc_id: str) -> bool:
        """Delete a record by doc_id."""
        pass

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete records not updated since cutoff. Returns the count removed."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count stored records."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record."""
        pass

    def _check_dimension(self, embedding: list[float]) -> None:
        expected = self.dimension
        if expected is not None and len(embedding) != expected:
            raise DimensionMismatch(
                f"Expected embedding dimension {expected}, got {len(embedding)}",
                expected=expected,
                actual=len(embedding),
            )


class InMemoryVectorStore(VectorStore):
    """
    In-process vector store with exact linear-scan search.

    Search cost is O(N * D) per query. Durability is optional: when a
    snapshot path is configured, load() restores the collection and
    flush() writes it atomically. Writes are never flushed implicitly.
    """

    def __init__(
        self,
        dimension: int | None = None,
        snapshot_path: str | Path | None = None,
        logger: StructuredLogger | None = None,
    ):
        self._dimension = dimension
        self._snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._records: dict[str, VectorRecord] = {}
        self._vectors: dict[str, np.ndarray] = {}
        self._lock = ReadWriteLock()
        self._dirty = False
        self._logger = logger or get_logger("gleaner.vector_store")

    @property
    def dimension(self) -> int | None:
        return self._dimension

    @property
    def dirty(self) -> bool:
        """True when there are writes not yet flushed."""
        return self._dirty

    async def upsert(self, doc_id: str, content: str, embedding: list[float]) -> VectorRecord:
        vector = np.asarray(embedding, dtype=np.float64)
        if vector.ndim != 1:
            raise StorageError("Embedding must be a flat sequence of numbers", context={"doc_id": doc_id})

        async with self._lock.write():
            self._check_dimension(embedding)

            now = utcnow()
            existing = self._records.get(doc_id)
            if existing is not None and now <= existing.updated_at:
                # Coarse clocks can repeat; updated_at must still advance
                now = existing.updated_at

            record = VectorRecord(
                doc_id=doc_id,
                content=content,
                embedding=vector.tolist(),
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )

            # Single-step commit, no await between the two assignments
            if self._dimension is None:
                self._dimension = len(record.embedding)
            self._records[doc_id] = record
            self._vectors[doc_id] = vector
            self._dirty = True

        return record

    async def similarity_search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        min_score: float = -1.0,
    ) -> list[ScoredRecord]:
        if top_k <= 0:
            return []

        async with self._lock.read():
            if not self._records:
                return []

            self._check_dimension(query_embedding)

            query = np.asarray(query_embedding, dtype=np.float64)
            query_norm = np.linalg.norm(query)
            if query_norm == 0:
                scores = np.zeros(len(self._records))
                doc_ids = list(self._records)
            else:
                doc_ids = list(self._vectors)
                matrix = np.vstack([self._vectors[d] for d in doc_ids])
                norms = np.linalg.norm(matrix, axis=1)
                dots = matrix @ query
                with np.errstate(divide="ignore", invalid="ignore"):
                    scores = np.where(norms > 0, dots / (norms * query_norm), 0.0)
                scores = np.clip(scores, -1.0, 1.0)

            results = [
                ScoredRecord(record=self._records[doc_id], score=float(score))
                for doc_id, score in zip(doc_ids, scores)
                if float(score) >= min_score
            ]

        results.sort(key=rank_key)
        return results[:top_k]

    async def get(self, doc_id: str) -> VectorRecord | None:
        async with self._lock.read():
            return self._records.get(doc_id)

    async def delete(self, doc_id: str) -> bool:
        async with self._lock.write():
            if doc_id not in self._records:
                return False
            del self._records[doc_id]
            del self._vectors[doc_id]
            self._dirty = True
            return True

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._lock.write():
            stale = [d for d, r in self._records.items() if r.updated_at < cutoff]
            for doc_id in stale:
                del self._records[doc_id]
                del self._vectors[doc_id]
            if stale:
                self._dirty = True
            return len(stale)

    async def count(self) -> int:
        async with self._lock.read():
            return len(self._records)

    async def clear(self) -> None:
        async with self._lock.write():
            self._records.clear()
            self._vectors.clear()
            self._dirty = True

    # ------------------------------------------------------------------
    # Snapshot persistence
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """
        Replace the in-memory collection with the snapshot contents.

        Returns the number of records loaded (0 when there is no snapshot).
        """
        if self._snapshot_path is None or not self._snapshot_path.exists():
            return 0

        async with self._lock.write():
            try:
                state = json.loads(self._snapshot_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise StorageError(
                    f"Failed to read vector snapshot: {e}",
                    context={"path": str(self._snapshot_path)},
                    cause=e,
                )

            dimension = state.get("dimension")
            if self._dimension is not None and dimension is not None and dimension != self._dimension:
                raise DimensionMismatch(
                    f"Snapshot dimension {dimension} differs from configured {self._dimension}",
                    expected=self._dimension,
                    actual=dimension,
                )

            records = [VectorRecord.model_validate(r) for r in state.get("records", [])]
            self._records = {r.doc_id: r for r in records}
            self._vectors = {
                r.doc_id: np.asarray(r.embedding, dtype=np.float64) for r in records
            }
            if dimension is not None:
                self._dimension = dimension
            self._dirty = False

        self._logger.info("Loaded vector snapshot", records=len(records))
        return len(records)

    async def flush(self) -> bool:
        """
        Atomically write the collection to the snapshot path.

        Returns False when no snapshot path is configured.
        """
        if self._snapshot_path is None:
            return False

        async with self._lock.read():
            state = {
                "dimension": self._dimension,
                "saved_at": datetime.now(timezone.utc).isoformat(),
                "records": [r.model_dump(mode="json") for r in self._records.values()],
            }
            tmp_path = self._snapshot_path.with_suffix(self._snapshot_path.suffix + ".tmp")
            try:
                self._snapshot_path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path.write_text(json.dumps(state), encoding="utf-8")
                os.replace(tmp_path, self._snapshot_path)
            except OSError as e:
                raise StorageError(
                    f"Failed to write vector snapshot: {e}",
                    context={"path": str(self._snapshot_path)},
                    cause=e,
                )
            self._dirty = False

        return True


class MilvusVectorStore(VectorStore):
    """
    Milvus-based vector store.

    Delegates durability and ranking to Milvus (COSINE metric). Searches
    over-fetch and are re-sorted locally so ties at the top_k boundary
    follow the same order as the in-process backend.
    """

    SEARCH_OVERFETCH = 4
    MAX_SEARCH_LIMIT = 16384

    def __init__(
        self,
        dimension: int,
        host: str = "localhost",
        port: int = 19530,
        collection_name: str = "gleaner_documents",
        client: Any = None,
    ):
        self._dimension = dimension
        self._host = host
        self._port = port
        self._collection_name = collection_name
        self._client = client
        self._collection_ready = False
        self._lock = ReadWriteLock()

    async def _get_client(self):
        """Lazy initialization of Milvus client."""
        if self._client is None:
            try:
                from pymilvus import MilvusClient
            except ImportError:
                raise ImportError(
                    "pymilvus required. Install with: pip install pymilvus"
                )

            try:
                self._client = await asyncio.to_thread(
                    MilvusClient, uri=f"http://{self._host}:{self._port}"
                )
            except Exception as e:
                raise StorageError(f"Failed to connect to Milvus: {e}", cause=e)

        client = self._client
        if not self._collection_ready:
            collections = await self._call(client.list_collections)
            if self._collection_name not in collections:
                await self._call(
                    client.create_collection,
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    id_type="string",
                    max_length=128,
                    metric_type="COSINE",
                )
            self._collection_ready = True

        return client

    async def _call(self, fn, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                f"Milvus operation {getattr(fn, '__name__', fn)} failed: {e}",
                context={"collection": self._collection_name},
                cause=e,
            )

    @property
    def dimension(self) -> int:
        return self._dimension

    def _to_record(self, entity: dict[str, Any], doc_id: str) -> VectorRecord:
        return VectorRecord(
            doc_id=doc_id,
            content=entity.get("content", ""),
            embedding=list(entity.get("vector", [])),
            created_at=datetime.fromtimestamp(entity["created_at"], tz=timezone.utc),
            updated_at=datetime.fromtimestamp(entity["updated_at"], tz=timezone.utc),
        )

    async def upsert(self, doc_id: str, content: str, embedding: list[float]) -> VectorRecord:
        self._check_dimension(embedding)
        client = await self._get_client()

        async with self._lock.write():
            existing = await self._call(
                client.get,
                collection_name=self._collection_name,
                ids=[doc_id],
                output_fields=["created_at", "updated_at"],
            )
            now = utcnow().timestamp()
            created_at = now
            if existing:
                created_at = existing[0]["created_at"]
                now = max(now, existing[0]["updated_at"])

            row = {
                "id": doc_id,
                "vector": [float(x) for x in embedding],
                "content": content,
                "created_at": created_at,
                "updated_at": now,
            }
            await self._call(client.upsert, collection_name=self._collection_name, data=[row])

        return self._to_record(row, doc_id)

    async def similarity_search(
        self,
        query_embedding: list[float],
        top_k: int = 5,
        min_score: float = -1.0,
    ) -> list[ScoredRecord]:
        if top_k <= 0:
            return []
        self._check_dimension(query_embedding)
        client = await self._get_client()

        async with self._lock.read():
            hits = await self._call(
                client.search,
                collection_name=self._collection_name,
                data=[[float(x) for x in query_embedding]],
                limit=min(top_k * self.SEARCH_OVERFETCH, self.MAX_SEARCH_LIMIT),
                output_fields=["content", "vector", "created_at", "updated_at"],
                search_params={"metric_type": "COSINE"},
            )

        results = []
        for hit in hits[0] if hits else []:
            score = float(hit.get("distance", 0.0))
            if score < min_score:
                continue
            doc_id = str(hit.get("id"))
            results.append(
                ScoredRecord(record=self._to_record(hit.get("entity", {}), doc_id), score=score)
            )

        results.sort(key=rank_key)
        return results[:top_k]

    async def get(self, doc_id: str) -> VectorRecord | None:
        client = await self._get_client()
        async with self._lock.read():
            rows = await self._call(
                client.get,
                collection_name=self._collection_name,
                ids=[doc_id],
                output_fields=["content", "vector", "created_at", "updated_at"],
            )
        if not rows:
            return None
        return self._to_record(rows[0], doc_id)

    async def delete(self, doc_id: str) -> bool:
        client = await self._get_client()
        async with self._lock.write():
            result = await self._call(
                client.delete, collection_name=self._collection_name, ids=[doc_id]
            )
        return _delete_count(result) > 0

    async def delete_older_than(self, cutoff: datetime) -> int:
        client = await self._get_client()
        async with self._lock.write():
            result = await self._call(
                client.delete,
                collection_name=self._collection_name,
                filter=f"updated_at < {cutoff.timestamp()}",
            )
        return _delete_count(result)

    async def count(self) -> int:
        client = await self._get_client()
        async with self._lock.read():
            rows = await self._call(
                client.query,
                collection_name=self._collection_name,
                filter="",
                output_fields=["count(*)"],
            )
        return int(rows[0]["count(*)"]) if rows else 0

    async def clear(self) -> None:
        client = await self._get_client()
        async with self._lock.write():
            await self._call(client.drop_collection, self._collection_name)
            self._collection_ready = False


def _delete_count(result: Any) -> int:
    if isinstance(result, dict):
        return int(result.get("delete_count", 0))
    if isinstance(result, list):
        return len(result)
    return 0
