"""Document ingestion — extract → split → embed → upsert.

:class:`DocumentIngestionService` is the write side of the RAG backbone.
It picks an extractor, splits the text, embeds every chunk in a single
batch and upserts the whole document in a single call, so a document is
either fully written or not written at all.

Chunk ids are ``<document key>::<chunk index>::<sha256 of chunk text>``,
which makes re-ingesting unchanged content idempotent.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from rag_backbone.config import settings
from rag_backbone.errors import EmbeddingContractError
from rag_backbone.ingestion.chunker import split_extraction
from rag_backbone.ingestion.knowledge_pack import load_knowledge_pack
from rag_backbone.ingestion.loader import ContentExtractor, default_extractors, normalize_page_text
from rag_backbone.ingestion.models import (
    DocumentReference,
    ExtractionResult,
    FolderIngestSummary,
    IngestOptions,
    IngestResult,
)
from rag_backbone.retrieval.models import VectorRecord

if TYPE_CHECKING:
    from rag_backbone.ingestion.embedder import EmbeddingGenerator
    from rag_backbone.retrieval.base import VectorMemory

logger = logging.getLogger(__name__)

ProgressSink = Callable[[str], None]


def chunk_id(document_key: str, index: int, text: str) -> str:
    """Stable id for the chunk at *index* of *document_key*."""
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return f"{document_key}::{index}::{digest}"


def normalize_whitespace(text: str) -> str:
    """CRLF → LF, no trailing blanks per line, at most one blank line, trimmed."""
    return normalize_page_text(text.replace("\r\n", "\n"))


def _report(progress: ProgressSink | None, message: str) -> None:
    if progress is None:
        return
    try:
        progress(message)
    except Exception:
        logger.warning("Progress sink failed for message %r", message, exc_info=True)


class DocumentIngestionService:
    """Orchestrates ingestion of files, folders, raw text and knowledge packs.

    Parameters
    ----------
    memory:
        Target vector memory.
    embeddings:
        Generator used for chunk embeddings.  Must produce vectors of
        ``memory.dimensions``.
    extractors:
        Ordered extractors; the first whose ``can_handle`` is true wins.
        Defaults to :func:`~rag_backbone.ingestion.loader.default_extractors`.
    """

    def __init__(
        self,
        memory: VectorMemory,
        embeddings: EmbeddingGenerator,
        extractors: Sequence[ContentExtractor] | None = None,
    ) -> None:
        self._memory = memory
        self._embeddings = embeddings
        self._extractors = list(extractors) if extractors is not None else default_extractors()

    @property
    def extractors(self) -> list[ContentExtractor]:
        return list(self._extractors)

    def select_extractor(self, path_or_uri: str) -> ContentExtractor | None:
        return next((e for e in self._extractors if e.can_handle(path_or_uri)), None)

    # -- public API -----------------------------------------------------------

    async def ingest(
        self,
        path_or_uri: str,
        options: IngestOptions | None = None,
        progress: ProgressSink | None = None,
    ) -> IngestResult:
        """Extract and index one file.

        Raises
        ------
        SourceNotFoundError
            The file does not exist.
        UnreadableSourceError
            The file is recognised but cannot be decoded.
        """
        options = options or IngestOptions()
        _report(progress, f"Ingesting {path_or_uri} ...")

        extractor = self.select_extractor(path_or_uri)
        if extractor is None:
            logger.warning("No content extractor can handle %r", path_or_uri)
            return IngestResult(document_key=path_or_uri, status="unsupported")

        extraction = await extractor.extract(path_or_uri)
        if not extraction.text.strip():
            logger.info("Skipping empty document %s", extraction.document.key)
            return IngestResult(document_key=extraction.document.key, status="empty")

        return await self._ingest_core(extraction, options, progress)

    async def ingest_folder(
        self,
        folder: str | Path,
        patterns: Sequence[str] | None = None,
        recursive: bool = True,
        options: IngestOptions | None = None,
        progress: ProgressSink | None = None,
    ) -> FolderIngestSummary:
        """Ingest every file under *folder* matching *patterns*, one at a time,
        in sorted path order.

        A missing folder yields an empty summary.  A failing file is logged
        and recorded in ``failures``; the remaining files still run.
        """
        options = options or IngestOptions()
        patterns = list(patterns) if patterns else settings.ingest_pattern_list
        root = Path(folder)
        summary = FolderIngestSummary(folder=str(root))

        if not root.is_dir():
            logger.warning("Folder %s does not exist", root)
            return summary

        seen: set[Path] = set()
        files: list[Path] = []
        for pattern in patterns:
            matches = root.rglob(pattern) if recursive else root.glob(pattern)
            for path in matches:
                if path.is_file() and path not in seen:
                    seen.add(path)
                    files.append(path)
        files.sort()

        summary.files_seen = len(files)
        for path in files:
            try:
                summary.results.append(await self.ingest(str(path), options, progress))
            except Exception as exc:
                logger.exception("Failed to ingest %s", path)
                summary.failures[str(path)] = str(exc)

        logger.info(
            "Folder %s: %d files, %d ingested, %d skipped, %d failed",
            root, summary.files_seen, summary.ingested, summary.skipped, len(summary.failures),
        )
        return summary

    async def reindex(
        self,
        path_or_uri: str,
        options: IngestOptions | None = None,
        progress: ProgressSink | None = None,
    ) -> IngestResult:
        """Same as :meth:`ingest` but always re-embeds and re-upserts."""
        options = (options or IngestOptions()).model_copy(update={"skip_if_unchanged": False})
        return await self.ingest(path_or_uri, options, progress)

    async def remove(self, document_key: str) -> None:
        """Delete every stored chunk of *document_key*."""
        logger.info("Removing all chunks for document %s", document_key)
        await self._memory.delete_by_document(document_key)

    async def ingest_text(
        self,
        document: DocumentReference,
        text: str,
        options: IngestOptions | None = None,
        progress: ProgressSink | None = None,
    ) -> IngestResult:
        """Index *text* directly under *document*, skipping extraction."""
        options = options or IngestOptions()
        _report(progress, f"Ingesting text for {document.key} ...")

        if options.normalize_whitespace:
            text = normalize_whitespace(text)

        extraction = ExtractionResult(document=document, text=text)
        return await self._ingest_core(extraction, options, progress)

    async def ingest_knowledge_pack(
        self,
        package: str,
        prefix: str = "",
        suffixes: tuple[str, ...] = (".md",),
        options: IngestOptions | None = None,
        progress: ProgressSink | None = None,
    ) -> list[IngestResult]:
        """Ingest resources bundled inside *package* (see :mod:`.knowledge_pack`)."""
        results: list[IngestResult] = []
        for document, text in load_knowledge_pack(package, prefix, suffixes):
            results.append(await self.ingest_text(document, text, options, progress))
        return results

    # -- internals ------------------------------------------------------------

    async def _ingest_core(
        self,
        extraction: ExtractionResult,
        options: IngestOptions,
        progress: ProgressSink | None,
    ) -> IngestResult:
        doc = extraction.document
        chunks = split_extraction(extraction, options.chunk_size, options.chunk_overlap)
        if not chunks:
            logger.info("No chunks produced for document %s", doc.key)
            return IngestResult(document_key=doc.key, status="empty")

        ids = [chunk_id(doc.key, c.index, c.text) for c in chunks]

        existing: set[str] | None = None
        if options.skip_if_unchanged or options.prune_stale:
            existing = await self._memory.list_chunk_ids(doc.key)
        if options.skip_if_unchanged and existing == set(ids):
            logger.info("Document %s unchanged (%d chunks); skipping", doc.key, len(ids))
            _report(progress, f"Unchanged: {doc.key}")
            return IngestResult(document_key=doc.key, status="unchanged", chunk_count=len(ids), chunk_ids=ids)

        texts = [c.text for c in chunks]
        embeddings = await self._embeddings.generate_batch(texts)
        if len(embeddings) != len(texts):
            raise EmbeddingContractError(len(texts), len(embeddings))

        records: list[VectorRecord] = []
        for chunk, cid, embedding in zip(chunks, ids, embeddings):
            metadata = {**(options.default_metadata or {}), **(chunk.metadata or {})}
            records.append(VectorRecord.from_chunk(cid, chunk.text, embedding, chunk.document, metadata))

        await self._memory.upsert_batch(records)

        if options.prune_stale and existing:
            stale = existing - set(ids)
            if stale:
                logger.info("Pruning %d stale chunks for document %s", len(stale), doc.key)
                await self._memory.delete(stale)

        logger.info("Ingested %d chunks for document %s", len(records), doc.key)
        _report(progress, f"Ingested {len(records)} chunks for {doc.key}")
        return IngestResult(document_key=doc.key, status="ingested", chunk_count=len(records), chunk_ids=ids)
