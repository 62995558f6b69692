"""Data models flowing through the ingestion pipeline."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from rag_backbone.config import settings


class DocumentReference(BaseModel):
    """Logical reference to a source document.

    ``key`` is stable and unique per source (absolute path, URI,
    ``package://resource``) and is the identity used for delete and
    reindex.  It is never derived from content.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    display_name: str | None = None
    content_type: str | None = None


class ExtractionResult(BaseModel):
    """Plain text pulled out of one source, with optional page map."""

    model_config = ConfigDict(frozen=True)

    document: DocumentReference
    text: str
    pages: list[str] | None = None
    metadata: dict[str, Any] | None = None


class SplitChunk(BaseModel):
    """One bounded piece of an extraction; ``index`` is 0-based and gapless."""

    model_config = ConfigDict(frozen=True)

    document: DocumentReference
    index: int
    text: str
    metadata: dict[str, Any] | None = None


class IngestOptions(BaseModel):
    """Options controlling chunking, change detection and indexing.

    Attributes
    ----------
    chunk_size:
        Maximum characters per chunk.
    chunk_overlap:
        Characters repeated between windows cut at a hard character
        boundary.  Values ``>= chunk_size`` are clamped by the splitter.
    skip_if_unchanged:
        Skip embedding when the store already holds exactly the chunk ids
        this content produces.  Ids only cover the chunk text, so changes
        to ``default_metadata``, ``display_name`` or ``content_type`` alone
        are not detected; use :meth:`DocumentIngestionService.reindex`.
    normalize_whitespace:
        Normalise line endings and blank lines for raw-text ingestion.
    default_metadata:
        Metadata attached to every chunk (chunk metadata wins on conflict).
    prune_stale:
        After upserting, delete records of the same document whose ids are
        no longer produced.
    """

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default_factory=lambda: settings.chunk_size, gt=0)
    chunk_overlap: int = Field(default_factory=lambda: settings.chunk_overlap, ge=0)
    skip_if_unchanged: bool = True
    normalize_whitespace: bool = True
    default_metadata: dict[str, Any] | None = None
    prune_stale: bool = False


IngestStatus = Literal["ingested", "unchanged", "empty", "unsupported"]


class IngestResult(BaseModel):
    """Outcome of ingesting a single document."""

    document_key: str
    status: IngestStatus
    chunk_count: int = 0
    chunk_ids: list[str] = Field(default_factory=list)


class FolderIngestSummary(BaseModel):
    """Aggregate outcome of :meth:`DocumentIngestionService.ingest_folder`."""

    folder: str
    files_seen: int = 0
    results: list[IngestResult] = Field(default_factory=list)
    failures: dict[str, str] = Field(default_factory=dict)

    @property
    def ingested(self) -> int:
        return sum(1 for r in self.results if r.status == "ingested")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status != "ingested")
