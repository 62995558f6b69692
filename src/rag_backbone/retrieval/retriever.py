"""Semantic retriever — similarity search with dedup and text cleanup.

This module is the **primary public interface** for retrieval.  It is
intentionally decoupled from LangChain retriever abstractions so that
non-agent callers (evaluation scripts, notebooks, tests) can use it
directly.

Usage::

    from rag_backbone.retrieval.retriever import SemanticRetriever

    retriever = SemanticRetriever(memory)
    hits = await retriever.retrieve("What is the refund policy?", top_k=5)
    for hit in hits:
        print(hit.short_ref(), hit.score, hit.text[:80])
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from rag_backbone.config import settings
from rag_backbone.retrieval.base import VectorMemory
from rag_backbone.retrieval.models import Embedding, FilterSpec, RetrieveOptions, SearchHit

logger = logging.getLogger(__name__)


def normalize_hit_text(text: str) -> str:
    """Dedup key for a hit's text: CRLF → LF, outer whitespace trimmed."""
    return (text or "").replace("\r\n", "\n").strip()


def dedup_hits(hits: list[SearchHit]) -> list[SearchHit]:
    """Keep the best-scoring hit per ``(document key, normalised text)``.

    Purely value-level: works on the hits already returned, best-first
    order is preserved.
    """
    best: dict[tuple[str, str], SearchHit] = {}
    for hit in hits:
        key = (hit.document.key or "", normalize_hit_text(hit.text))
        current = best.get(key)
        if current is None or hit.score > current.score:
            best[key] = hit
    return sorted(best.values(), key=lambda h: h.score, reverse=True)


class SemanticRetriever:
    """High-level retriever that wraps any :class:`VectorMemory`.

    Parameters
    ----------
    memory:
        A concrete vector memory.  When *None*, a
        :class:`~rag_backbone.retrieval.chroma_store.ChromaVectorMemory`
        with HuggingFace embeddings is created from the global settings.
    options:
        Dedup / trim switches (both enabled by default).
    default_k:
        Default number of results returned by :meth:`retrieve`.
    score_threshold:
        Minimum similarity score; results below this are discarded.
    """

    def __init__(
        self,
        memory: VectorMemory | None = None,
        *,
        options: RetrieveOptions | None = None,
        default_k: int = settings.retrieval_top_k,
        score_threshold: float | None = None,
    ) -> None:
        if memory is None:
            from rag_backbone.ingestion.embedder import HuggingFaceEmbeddingGenerator
            from rag_backbone.retrieval.chroma_store import ChromaVectorMemory

            memory = ChromaVectorMemory(HuggingFaceEmbeddingGenerator())
        self._memory = memory
        self.options = options or RetrieveOptions(
            enable_dedup=settings.retrieval_enable_dedup,
            enable_text_trim=settings.retrieval_enable_text_trim,
        )
        self.default_k = default_k
        self.score_threshold = score_threshold

    @property
    def memory(self) -> VectorMemory:
        return self._memory

    # -- public API -----------------------------------------------------------

    async def retrieve(
        self,
        query: str,
        top_k: int | None = None,
        filters: FilterSpec = None,
    ) -> list[SearchHit]:
        """Run a semantic search and return post-processed hits.

        Parameters
        ----------
        query:
            Natural-language query string.
        top_k:
            Number of results requested from the store (defaults to
            ``self.default_k``); must be positive.  Dedup may return fewer.
        filters:
            Optional metadata filters forwarded to the vector memory.

        Returns
        -------
        list[SearchHit]
            Ranked hits, best first.
        """
        top_k = self.default_k if top_k is None else top_k
        hits = await self._memory.search(query, top_k, filters)
        return self._post_process(hits)

    async def retrieve_by_embedding(
        self,
        embedding: Embedding,
        top_k: int | None = None,
        filters: FilterSpec = None,
    ) -> list[SearchHit]:
        """Same as :meth:`retrieve` but accepts a pre-computed embedding."""
        top_k = self.default_k if top_k is None else top_k
        hits = await self._memory.search_by_vector(embedding, top_k, filters)
        return self._post_process(hits)

    # -- LangChain compat -----------------------------------------------------

    def as_langchain_retriever(self, k: int = 5) -> Any:
        """Return a thin LangChain-compatible retriever wrapper.

        This intentionally imports LangChain only here so that the rest
        of the retrieval package has **zero** LangChain dependency.  The
        async path (``ainvoke``) is native; the sync path runs its own
        event loop and raises ``RuntimeError`` when called from inside one.
        """
        from langchain_core.documents import Document
        from langchain_core.retrievers import BaseRetriever

        outer = self

        class _LCRetriever(BaseRetriever):
            """Adapter that satisfies LangChain's retriever protocol."""

            def _get_relevant_documents(self_inner, query: str, **kwargs: Any) -> list[Document]:  # type: ignore[override]  # noqa: N805
                try:
                    asyncio.get_running_loop()
                except RuntimeError:
                    return hits_to_documents(asyncio.run(outer.retrieve(query, top_k=k)))
                raise RuntimeError(
                    "invoke() cannot run inside an active event loop; use 'await retriever.ainvoke(query)' instead"
                )

            async def _aget_relevant_documents(self_inner, query: str, **kwargs: Any) -> list[Document]:  # type: ignore[override]  # noqa: N805
                return hits_to_documents(await outer.retrieve(query, top_k=k))

        return _LCRetriever()

    # -- internals ------------------------------------------------------------

    def _post_process(self, hits: list[SearchHit]) -> list[SearchHit]:
        if self.score_threshold is not None:
            hits = [h for h in hits if h.score >= self.score_threshold]
        if self.options.enable_dedup:
            before = len(hits)
            hits = dedup_hits(hits)
            if len(hits) < before:
                logger.debug("Dedup dropped %d duplicate hits", before - len(hits))
        if self.options.enable_text_trim:
            hits = [h.model_copy(update={"text": h.text.strip()}) for h in hits]
        return hits


def hits_to_documents(hits: list[SearchHit]) -> list[Any]:
    """Convert :class:`SearchHit` objects to LangChain Documents.

    Source and citation fields are merged on top of the chunk metadata.
    """
    from langchain_core.documents import Document

    return [
        Document(
            page_content=hit.text,
            metadata={
                **hit.metadata,
                "source": hit.document.key,
                "display_name": hit.document.display_name,
                "content_type": hit.document.content_type,
                "chunk_id": hit.chunk_id,
                "chunk_index": hit.chunk_index,
                "score": hit.score,
                "citation": hit.short_ref(),
            },
        )
        for hit in hits
    ]
