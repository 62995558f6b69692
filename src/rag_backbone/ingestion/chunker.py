"""Text chunking strategies.

:class:`HierarchicalTextSplitter` walks a fixed separator ladder
(paragraph → line → sentence → word → raw characters).  At every level it
repacks pieces greedily into buckets of at most ``chunk_size`` characters;
a bucket that is still too large descends one level.  Work is driven by an
explicit stack, so depth is bounded by the ladder length and the raw
character level always terminates.

Overlap is only applied at the raw character level, where a cut lands in
the middle of text.  Cuts on a separator never duplicate content.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from langchain_text_splitters import TextSplitter

from rag_backbone.errors import ConfigurationError
from rag_backbone.ingestion.models import ExtractionResult, SplitChunk

if TYPE_CHECKING:
    from langchain_core.documents import Document

logger = logging.getLogger(__name__)

# (joiner, pattern): splitting on the pattern removes exactly the joiner,
# so rejoining adjacent pieces restores the original text.
SEPARATOR_LADDER: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("\n\n", re.compile(r"\n\n")),
    ("\n", re.compile(r"\n")),
    (" ", re.compile(r"(?<=[.!?]) ")),
    (" ", re.compile(r" ")),
)


def clamp_overlap(chunk_size: int, chunk_overlap: int) -> int:
    """Validate *chunk_size* and bring *chunk_overlap* into ``[0, chunk_size)``."""
    if chunk_size <= 0:
        raise ConfigurationError(f"chunk_size must be > 0, got {chunk_size}", chunk_size=chunk_size)
    if chunk_overlap < 0:
        logger.warning("chunk_overlap %d is negative; using 0", chunk_overlap)
        return 0
    if chunk_overlap >= chunk_size:
        logger.warning(
            "chunk_overlap (%d) must be < chunk_size (%d); clamping to %d",
            chunk_overlap, chunk_size, chunk_size - 1,
        )
        return chunk_size - 1
    return chunk_overlap


class HierarchicalTextSplitter(TextSplitter):
    """Ladder splitter producing chunks of at most ``chunk_size`` characters.

    Parameters
    ----------
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Characters repeated between consecutive raw-character windows.
        Clamped to ``chunk_size - 1``.
    """

    def __init__(self, chunk_size: int = 1200, chunk_overlap: int = 200, **kwargs: Any) -> None:
        chunk_overlap = clamp_overlap(chunk_size, chunk_overlap)
        super().__init__(chunk_size=chunk_size, chunk_overlap=chunk_overlap, **kwargs)

    def split_text(self, text: str) -> list[str]:
        if not text or not text.strip():
            return []

        chunks: list[str] = []
        # LIFO stack of (segment, ladder level); pushed in reverse to keep order.
        stack: list[tuple[str, int]] = [(text, 0)]
        while stack:
            segment, level = stack.pop()
            if len(segment) <= self._chunk_size:
                self._accept(segment, chunks)
            elif level >= len(SEPARATOR_LADDER):
                for window in self._windows(segment):
                    self._accept(window, chunks)
            else:
                joiner, pattern = SEPARATOR_LADDER[level]
                buckets = self._repack(pattern.split(segment), joiner)
                for bucket in reversed(buckets):
                    stack.append((bucket, level + 1))
        return chunks

    # -- internals ------------------------------------------------------------

    @staticmethod
    def _accept(segment: str, chunks: list[str]) -> None:
        stripped = segment.strip()
        if stripped:
            chunks.append(stripped)

    def _repack(self, pieces: list[str], joiner: str) -> list[str]:
        """Greedily join *pieces* with *joiner* while the bucket still fits."""
        buckets: list[str] = []
        current: str | None = None
        for piece in pieces:
            if current is None:
                current = piece
            elif len(current) + len(joiner) + len(piece) <= self._chunk_size:
                current = current + joiner + piece
            else:
                buckets.append(current)
                current = piece
        if current is not None:
            buckets.append(current)
        return buckets

    def _windows(self, segment: str) -> list[str]:
        """Fixed-size windows stepping ``chunk_size - chunk_overlap`` characters."""
        size = self._chunk_size
        step = size - self._chunk_overlap
        windows: list[str] = []
        for start in range(0, len(segment), step):
            windows.append(segment[start : start + size])
            if start + size >= len(segment):
                break
        return windows


def split_extraction(
    extraction: ExtractionResult,
    chunk_size: int = 1200,
    chunk_overlap: int = 200,
) -> list[SplitChunk]:
    """Split *extraction* into ordered, gapless :class:`SplitChunk` objects.

    Parameters
    ----------
    extraction:
        Extracted text plus its document reference.
    chunk_size:
        Maximum number of characters per chunk.
    chunk_overlap:
        Characters repeated between windows cut at a hard boundary.

    Returns
    -------
    list[SplitChunk]
        Chunks with indexes ``0..N-1``; empty for blank input.
    """
    splitter = HierarchicalTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    metadata = dict(extraction.metadata) if extraction.metadata else None
    return [
        SplitChunk(document=extraction.document, index=index, text=text, metadata=metadata)
        for index, text in enumerate(splitter.split_text(extraction.text))
    ]


def chunk_documents(
    documents: list[Document],
    chunk_size: int = 1200,
    chunk_overlap: int = 200,
) -> list[Document]:
    """Split LangChain *documents* with the hierarchical ladder.

    Metadata of each source document is copied onto its chunks, together
    with a ``chunk_index`` counted per source document.
    """
    from langchain_core.documents import Document

    splitter = HierarchicalTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    chunked: list[Document] = []
    for doc in documents:
        for index, text in enumerate(splitter.split_text(doc.page_content)):
            chunked.append(Document(page_content=text, metadata={**doc.metadata, "chunk_index": index}))
    return chunked
