"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "rag_backbone"
    chroma_distance: str = Field(
        default="cosine",
        description="Chroma HNSW space: 'cosine', 'l2' or 'ip'.",
    )

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dimensions: int = Field(
        default=0,
        description="Vector size of the embedding model. 0 probes the model once on first use.",
    )
    normalize_embeddings: bool = True

    # Ingestion
    chunk_size: int = 1200
    chunk_overlap: int = 200
    ingest_patterns: str = Field(
        default="*.txt,*.md,*.pdf",
        description="Comma-separated glob patterns used by folder ingestion.",
    )

    # Retrieval
    retrieval_top_k: int = 5
    retrieval_enable_dedup: bool = True
    retrieval_enable_text_trim: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def ingest_pattern_list(self) -> list[str]:
        """``ingest_patterns`` split into individual glob patterns."""
        return [p.strip() for p in self.ingest_patterns.split(",") if p.strip()]


# Module-level singleton; import `settings` wherever needed.
settings = Settings()
