"""In-process vector memory with exact cosine search.

Useful for tests, notebooks and small corpora.  Records live in a dict
keyed by chunk id, so every upsert replaces the whole record.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from rag_backbone.retrieval.base import VectorMemory
from rag_backbone.retrieval.models import (
    Embedding,
    FilterSpec,
    SearchHit,
    VectorRecord,
    normalize_filters,
)

if TYPE_CHECKING:
    from rag_backbone.ingestion.embedder import EmbeddingGenerator

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorMemory(VectorMemory):
    """Dict-backed :class:`VectorMemory`."""

    def __init__(
        self,
        embeddings: EmbeddingGenerator,
        *,
        name: str = "memory",
        dimensions: int | None = None,
    ) -> None:
        super().__init__(embeddings, name=name, dimensions=dimensions)
        self._records: dict[str, VectorRecord] = {}

    async def upsert_batch(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        self._check_records(records)
        for record in records:
            self._records[record.id] = record

    async def delete(self, ids: Iterable[str]) -> None:
        for chunk_id in ids:
            self._records.pop(chunk_id, None)

    async def list_chunk_ids(self, document_key: str) -> set[str]:
        return {r.id for r in self._records.values() if r.document_key == document_key}

    async def get(self, chunk_id: str) -> VectorRecord | None:
        return self._records.get(chunk_id)

    async def purge(self) -> None:
        logger.warning("Purging all %d records from %s", len(self._records), self.name)
        self._records.clear()

    async def count(self) -> int:
        return len(self._records)

    async def health_check(self) -> bool:
        return True

    async def _search(
        self,
        query: Embedding,
        top_k: int,
        filters: FilterSpec,
    ) -> list[SearchHit]:
        clauses = normalize_filters(filters) or []
        scored: list[tuple[float, VectorRecord]] = []
        for record in self._records.values():
            if clauses:
                fields = record.filter_fields()
                if not all(c.matches(fields) for c in clauses):
                    continue
            scored.append((cosine_similarity(query.values, record.embedding), record))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [
            SearchHit(
                chunk_id=record.id,
                document=record.document,
                text=record.text,
                score=score,
                metadata=record.metadata,
            )
            for score, record in scored[:top_k]
        ]
