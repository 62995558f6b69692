"""
Retrieval — vector memory, similarity search, and result post-processing.

This module wraps the vector store behind a clean interface so that
callers never need to know which DB is backing retrieval.

Public surface
--------------
- :class:`SemanticRetriever` — main entry point for retrieval with dedup.
- :class:`VectorMemory` — abstract backend (subclass for pgvector, etc.).
- :class:`InMemoryVectorMemory` — exact cosine search in process.
- :class:`ChromaVectorMemory` — default Chroma backend.
- :class:`SearchHit`, :class:`VectorRecord`, :class:`Embedding`,
  :class:`MetadataFilter`, :class:`RetrieveOptions` — data models.
"""

from rag_backbone.retrieval.base import VectorMemory
from rag_backbone.retrieval.memory_store import InMemoryVectorMemory
from rag_backbone.retrieval.models import (
    Embedding,
    MetadataFilter,
    RetrieveOptions,
    SearchHit,
    VectorRecord,
)
from rag_backbone.retrieval.retriever import SemanticRetriever, hits_to_documents

__all__ = [
    "ChromaVectorMemory",
    "Embedding",
    "InMemoryVectorMemory",
    "MetadataFilter",
    "RetrieveOptions",
    "SearchHit",
    "SemanticRetriever",
    "VectorMemory",
    "VectorRecord",
    "hits_to_documents",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorMemory to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorMemory":
        from rag_backbone.retrieval.chroma_store import ChromaVectorMemory

        return ChromaVectorMemory
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
