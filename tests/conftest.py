"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from rag_backbone.ingestion.embedder import HashEmbeddingGenerator
from rag_backbone.ingestion.service import DocumentIngestionService
from rag_backbone.retrieval.memory_store import InMemoryVectorMemory
from rag_backbone.retrieval.models import Embedding


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


class CountingEmbeddingGenerator(HashEmbeddingGenerator):
    """Hash embeddings that remember how often each entry point was called."""

    def __init__(self, dimensions: int = 32) -> None:
        super().__init__(dimensions)
        self.batch_calls: list[list[str]] = []
        self.query_calls: list[str] = []

    async def generate(self, text: str) -> Embedding:
        self.query_calls.append(text)
        return await super().generate(text)

    async def generate_batch(self, texts: Sequence[str]) -> list[Embedding]:
        self.batch_calls.append(list(texts))
        return await super().generate_batch(texts)


@pytest.fixture()
def embeddings() -> CountingEmbeddingGenerator:
    return CountingEmbeddingGenerator()


@pytest.fixture()
def memory(embeddings: CountingEmbeddingGenerator) -> InMemoryVectorMemory:
    return InMemoryVectorMemory(embeddings)


@pytest.fixture()
def service(memory: InMemoryVectorMemory, embeddings: CountingEmbeddingGenerator) -> DocumentIngestionService:
    return DocumentIngestionService(memory, embeddings)
