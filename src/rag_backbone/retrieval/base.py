"""Abstract base class for vector-memory backends.

Adding a new backend (pgvector, Qdrant, …) only requires subclassing
:class:`VectorMemory` and implementing the abstract methods.  The
ingestion service and the retriever are backend-agnostic.

A memory owns a reference to the :class:`EmbeddingGenerator` it was built
with so that :meth:`VectorMemory.search` can embed text queries itself.
The generator is shared read-only with the ingestion pipeline.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from rag_backbone.errors import DimensionMismatchError
from rag_backbone.retrieval.models import Embedding, FilterSpec, SearchHit, VectorRecord

if TYPE_CHECKING:
    from rag_backbone.ingestion.embedder import EmbeddingGenerator

logger = logging.getLogger(__name__)


class VectorMemory(ABC):
    """Backend-agnostic vector-memory interface.

    Parameters
    ----------
    embeddings:
        Generator used to embed text queries.
    name:
        Logical name of the collection / index / namespace.
    dimensions:
        Fixed vector size; defaults to ``embeddings.dimensions``.
    """

    def __init__(
        self,
        embeddings: EmbeddingGenerator,
        *,
        name: str = "default",
        dimensions: int | None = None,
    ) -> None:
        self.embeddings = embeddings
        self.name = name
        self._dimensions = dimensions if dimensions is not None else embeddings.dimensions

    @property
    def dimensions(self) -> int:
        """Vector size every write and vector read must match."""
        return self._dimensions

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    async def upsert_batch(self, records: Sequence[VectorRecord]) -> None:
        """Insert or replace *records* by id in one call."""
        ...

    @abstractmethod
    async def delete(self, ids: Iterable[str]) -> None:
        """Delete records by id; unknown ids are ignored."""
        ...

    @abstractmethod
    async def list_chunk_ids(self, document_key: str) -> set[str]:
        """Ids currently stored for *document_key*."""
        ...

    @abstractmethod
    async def purge(self) -> None:
        """Remove all data from the store."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of stored records."""
        ...

    @abstractmethod
    async def _search(
        self,
        query: Embedding,
        top_k: int,
        filters: FilterSpec,
    ) -> list[SearchHit]:
        """Backend search; arguments are already validated."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- shared behaviour -----------------------------------------------------

    async def upsert(self, record: VectorRecord) -> None:
        """Insert or replace a single record."""
        await self.upsert_batch([record])

    async def delete_by_document(self, document_key: str) -> None:
        """Delete every record whose ``document_key`` matches.

        Stale ids left behind by earlier content are included.  Succeeds
        when nothing matched.
        """
        self._check_document_key(document_key)
        ids = await self.list_chunk_ids(document_key)
        if not ids:
            logger.debug("No chunks found for document key %r in %s", document_key, self.name)
            return
        logger.info("Deleting %d chunks for document key %r from %s", len(ids), document_key, self.name)
        await self.delete(ids)

    async def search_by_vector(
        self,
        query: Embedding,
        top_k: int = 5,
        filters: FilterSpec = None,
    ) -> list[SearchHit]:
        """Return at most *top_k* hits for *query*, best first.

        Parameters
        ----------
        query:
            Pre-computed query embedding.
        top_k:
            Number of results to return; must be positive.
        filters:
            ``{field: value}`` mapping or list of :class:`MetadataFilter`.
        """
        if top_k <= 0:
            raise ValueError(f"top_k must be > 0, got {top_k}")
        self._check_dimensions(len(query.values), context="query embedding")
        return await self._search(query, top_k, filters)

    async def search(
        self,
        query: str,
        top_k: int = 5,
        filters: FilterSpec = None,
    ) -> list[SearchHit]:
        """Embed *query* with the owned generator and search."""
        if not query or not query.strip():
            raise ValueError("query must not be empty")
        if top_k <= 0:
            raise ValueError(f"top_k must be > 0, got {top_k}")
        embedding = await self.embeddings.generate(query)
        return await self.search_by_vector(embedding, top_k, filters)

    def _check_dimensions(self, actual: int, *, context: str = "embedding") -> None:
        if actual != self._dimensions:
            raise DimensionMismatchError(self._dimensions, actual, context=context)

    def _check_records(self, records: Sequence[VectorRecord]) -> None:
        for record in records:
            self._check_dimensions(len(record.embedding), context=f"record {record.id}")

    @staticmethod
    def _check_document_key(document_key: str) -> None:
        if not document_key or not document_key.strip():
            raise ValueError("document_key must not be empty")
