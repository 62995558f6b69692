"""Embedding generators.

Every generator has a fixed :attr:`EmbeddingGenerator.dimensions` and
returns one :class:`Embedding` per input text, in input order.  A batch
either succeeds as a whole or raises; nothing here retries.
"""

from __future__ import annotations

import hashlib
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Sequence

from rag_backbone.config import settings
from rag_backbone.errors import DimensionMismatchError, EmbeddingContractError
from rag_backbone.retrieval.models import Embedding

logger = logging.getLogger(__name__)


class EmbeddingGenerator(ABC):
    """Backend-agnostic embedding contract."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Dimensionality of every vector this generator returns."""
        ...

    @abstractmethod
    async def generate(self, text: str) -> Embedding:
        """Embed a single *text*."""
        ...

    @abstractmethod
    async def generate_batch(self, texts: Sequence[str]) -> list[Embedding]:
        """Embed *texts*; output length and order match the input."""
        ...

    # -- shared validation ----------------------------------------------------

    def _to_embedding(self, values: Sequence[float]) -> Embedding:
        if len(values) != self.dimensions:
            raise DimensionMismatchError(self.dimensions, len(values))
        return Embedding(values=[float(v) for v in values], dimensions=self.dimensions)

    def _to_embeddings(self, texts: Sequence[str], vectors: Sequence[Sequence[float]]) -> list[Embedding]:
        if len(vectors) != len(texts):
            raise EmbeddingContractError(len(texts), len(vectors))
        return [self._to_embedding(v) for v in vectors]


class HuggingFaceEmbeddingGenerator(EmbeddingGenerator):
    """Sentence-transformer embeddings via ``langchain_huggingface``.

    Parameters
    ----------
    model_name:
        HuggingFace model identifier.
    dimensions:
        Expected vector size.  ``0`` probes the model once with an empty
        query on first use.
    normalize_embeddings:
        Whether to L2-normalise vectors (recommended for cosine similarity).
    """

    def __init__(
        self,
        model_name: str = settings.embedding_model,
        *,
        dimensions: int = settings.embedding_dimensions,
        normalize_embeddings: bool = settings.normalize_embeddings,
    ) -> None:
        from langchain_huggingface import HuggingFaceEmbeddings

        self.model_name = model_name
        self._embedder = HuggingFaceEmbeddings(
            model_name=model_name,
            encode_kwargs={"normalize_embeddings": normalize_embeddings},
        )
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        if self._dimensions <= 0:
            self._dimensions = len(self._embedder.embed_query(""))
            logger.info("Probed %s: %d dimensions", self.model_name, self._dimensions)
        return self._dimensions

    async def generate(self, text: str) -> Embedding:
        return self._to_embedding(await self._embedder.aembed_query(text))

    async def generate_batch(self, texts: Sequence[str]) -> list[Embedding]:
        if not texts:
            return []
        vectors = await self._embedder.aembed_documents(list(texts))
        return self._to_embeddings(texts, vectors)


def deterministic_vector(text: str, dimensions: int) -> list[float]:
    """Unit vector seeded by the SHA-256 of *text* (stable across runs)."""
    if dimensions <= 0:
        raise ValueError("dimensions must be > 0")

    seed = hashlib.sha256(text.encode("utf-8")).digest()
    values: list[int] = []
    digest = seed
    while len(values) < dimensions:
        digest = hashlib.sha256(digest + seed).digest()
        values.extend(digest)

    vector = [(value / 127.5) - 1.0 for value in values[:dimensions]]
    norm = math.sqrt(sum(v * v for v in vector))
    if norm > 0:
        return [v / norm for v in vector]
    return vector


class HashEmbeddingGenerator(EmbeddingGenerator):
    """Offline generator: identical text always maps to the identical vector.

    Carries no semantics, so similarity scores are only meaningful for
    exact matches.  Intended for tests and smoke runs without a model.
    """

    def __init__(self, dimensions: int = 64) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be > 0")
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def generate(self, text: str) -> Embedding:
        return self._to_embedding(deterministic_vector(text, self._dimensions))

    async def generate_batch(self, texts: Sequence[str]) -> list[Embedding]:
        return self._to_embeddings(texts, [deterministic_vector(t, self._dimensions) for t in texts])
