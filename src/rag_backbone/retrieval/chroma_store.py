"""Chroma implementation of the vector-memory abstraction."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

import chromadb

from rag_backbone.config import settings
from rag_backbone.retrieval.base import VectorMemory
from rag_backbone.retrieval.models import (
    Embedding,
    FilterSpec,
    MetadataFilter,
    SearchHit,
    VectorRecord,
    normalize_filters,
)

if TYPE_CHECKING:
    from rag_backbone.ingestion.embedder import EmbeddingGenerator

logger = logging.getLogger(__name__)

# Keys the store writes itself; chunk metadata never overrides them.
_RESERVED_KEYS = ("document_key", "display_name", "content_type", "metadata_json")


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    _OP_MAP = {
        "eq": "$eq",
        "ne": "$ne",
        "gt": "$gt",
        "gte": "$gte",
        "lt": "$lt",
        "lte": "$lte",
        "in": "$in",
        "nin": "$nin",
    }

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _to_chroma_metadata(record: VectorRecord) -> dict[str, Any]:
    """Flatten a record into Chroma metadata.

    Chroma metadata values must be flat str/int/float/bool, so only scalar
    chunk metadata is copied; the full map survives in ``metadata_json``.
    """
    meta: dict[str, Any] = {}
    for k, v in record.metadata.items():
        if k not in _RESERVED_KEYS and isinstance(v, (str, int, float, bool)):
            meta[k] = v
    meta["document_key"] = record.document_key
    if record.display_name is not None:
        meta["display_name"] = record.display_name
    if record.content_type is not None:
        meta["content_type"] = record.content_type
    if record.metadata_json is not None:
        meta["metadata_json"] = record.metadata_json
    return meta


def _score(distance: float, space: str) -> float:
    if space == "cosine":
        return 1.0 - distance
    if space == "ip":
        return -distance
    # L2 distances; convert to a 0-1 similarity score.
    return 1.0 / (1.0 + distance)


class ChromaVectorMemory(VectorMemory):
    """Chroma-backed vector memory.

    Parameters
    ----------
    embeddings:
        Generator used for text queries; also fixes :attr:`dimensions`.
    collection_name:
        Name of the Chroma collection.
    client:
        Pre-built chromadb client (e.g. ``chromadb.EphemeralClient()``).
        When omitted an ``HttpClient`` is created for *host* / *port*.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    distance:
        HNSW space — ``cosine``, ``l2`` or ``ip``.
    """

    def __init__(
        self,
        embeddings: EmbeddingGenerator,
        collection_name: str = settings.chroma_collection,
        *,
        client: Any | None = None,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        distance: str = settings.chroma_distance,
    ) -> None:
        super().__init__(embeddings, name=collection_name)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._distance = distance
        self._collection = self._get_or_create_collection()

    def _get_or_create_collection(self) -> Any:
        return self._client.get_or_create_collection(
            name=self.name,
            metadata={"hnsw:space": self._distance},
            embedding_function=None,
        )

    # -- VectorMemory overrides -----------------------------------------------

    async def upsert_batch(self, records: Sequence[VectorRecord]) -> None:
        if not records:
            return
        self._check_records(records)
        await asyncio.to_thread(
            self._collection.upsert,
            ids=[r.id for r in records],
            embeddings=[r.embedding for r in records],
            documents=[r.text for r in records],
            metadatas=[_to_chroma_metadata(r) for r in records],
        )

    async def delete(self, ids: Iterable[str]) -> None:
        id_list = list(ids)
        if id_list:
            await asyncio.to_thread(self._collection.delete, ids=id_list)

    async def list_chunk_ids(self, document_key: str) -> set[str]:
        result = await asyncio.to_thread(
            self._collection.get,
            where={"document_key": document_key},
            include=[],
        )
        return set(result.get("ids") or [])

    async def purge(self) -> None:
        logger.warning("Purging all records from Chroma collection %s", self.name)

        def _recreate() -> Any:
            self._client.delete_collection(self.name)
            return self._get_or_create_collection()

        self._collection = await asyncio.to_thread(_recreate)

    async def count(self) -> int:
        return await asyncio.to_thread(self._collection.count)

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._client.heartbeat)
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False

    async def _search(
        self,
        query: Embedding,
        top_k: int,
        filters: FilterSpec,
    ) -> list[SearchHit]:
        where = _build_chroma_where(normalize_filters(filters) or [])

        results = await asyncio.to_thread(
            self._collection.query,
            query_embeddings=[list(query.values)],
            n_results=top_k,
            where=where,
            include=["documents", "metadatas", "distances"],
        )

        ids = (results.get("ids") or [[]])[0]
        docs = (results.get("documents") or [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        hits: list[SearchHit] = []
        for chunk_id, content, meta, dist in zip(ids, docs, metas, distances):
            meta = meta or {}
            record = VectorRecord(
                id=chunk_id,
                text=content or "",
                document_key=meta.get("document_key", ""),
                display_name=meta.get("display_name"),
                content_type=meta.get("content_type"),
                metadata_json=meta.get("metadata_json"),
                embedding=[],
            )
            hits.append(
                SearchHit(
                    chunk_id=chunk_id,
                    document=record.document,
                    text=record.text,
                    score=_score(dist, self._distance),
                    metadata=record.metadata,
                )
            )
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits
