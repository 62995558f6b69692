"""Unit tests for the chunker module."""

from __future__ import annotations

import pytest
from langchain_core.documents import Document

from rag_backbone.errors import ConfigurationError
from rag_backbone.ingestion.chunker import (
    HierarchicalTextSplitter,
    chunk_documents,
    clamp_overlap,
    split_extraction,
)
from rag_backbone.ingestion.models import DocumentReference, ExtractionResult

DOC = DocumentReference(key="/docs/handbook.txt", display_name="handbook.txt", content_type="text/plain")


def _extraction(text: str, metadata: dict | None = None) -> ExtractionResult:
    return ExtractionResult(document=DOC, text=text, metadata=metadata)


# ── split_extraction ────────────────────────────────────────────────────


def test_long_text_is_split_into_bounded_chunks() -> None:
    text = ("The quick brown fox jumps over the lazy dog. " * 78)[:3500]
    chunks = split_extraction(_extraction(text), chunk_size=1200, chunk_overlap=200)
    assert len(chunks) >= 3
    assert all(len(c.text) <= 1200 for c in chunks)


def test_indexes_are_gapless_and_in_order() -> None:
    text = "\n\n".join(f"Paragraph {i}. " + "filler words here " * 20 for i in range(12))
    chunks = split_extraction(_extraction(text), chunk_size=300, chunk_overlap=50)
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert all(c.document == DOC for c in chunks)


def test_empty_and_blank_text_produce_no_chunks() -> None:
    assert split_extraction(_extraction("")) == []
    assert split_extraction(_extraction("   \n\n\t  ")) == []


def test_chunks_are_never_empty() -> None:
    text = "\n\n\n\nalpha\n\n\n\n\n\nbeta\n\n   \n\n" * 40
    chunks = split_extraction(_extraction(text), chunk_size=20, chunk_overlap=5)
    assert chunks
    assert all(c.text.strip() for c in chunks)


def test_chunks_inherit_extraction_metadata() -> None:
    chunks = split_extraction(_extraction("Short text.", metadata={"title": "Handbook"}))
    assert len(chunks) == 1
    assert chunks[0].metadata == {"title": "Handbook"}


def test_short_text_is_a_single_trimmed_chunk() -> None:
    chunks = split_extraction(_extraction("  Just one line.  \n"))
    assert [c.text for c in chunks] == ["Just one line."]


# ── Separator ladder ────────────────────────────────────────────────────


def test_paragraph_cuts_do_not_duplicate_text() -> None:
    paragraphs = [(f"P{i} " + "lorem " * 80).strip() for i in range(5)]
    text = "\n\n".join(paragraphs)
    splitter = HierarchicalTextSplitter(chunk_size=1200, chunk_overlap=200)

    chunks = splitter.split_text(text)

    assert len(chunks) == 3
    for i in range(5):
        assert sum(chunk.count(f"P{i} ") for chunk in chunks) == 1


def test_sentences_are_kept_whole_when_lines_are_too_long() -> None:
    sentences = [f"Sentence number {i:03d} is here." for i in range(40)]
    splitter = HierarchicalTextSplitter(chunk_size=100, chunk_overlap=10)

    chunks = splitter.split_text(" ".join(sentences))

    assert len(chunks) == 14
    assert all(c.startswith("Sentence") and c.endswith(".") for c in chunks)
    assert " ".join(chunks) == " ".join(sentences)


def test_word_level_split_when_no_sentence_breaks() -> None:
    text = " ".join(f"word{i}" for i in range(200))
    chunks = HierarchicalTextSplitter(chunk_size=50, chunk_overlap=10).split_text(text)
    assert all(len(c) <= 50 for c in chunks)
    assert " ".join(chunks) == text


# ── Hard character boundary ─────────────────────────────────────────────


def test_raw_windows_overlap_by_chunk_overlap() -> None:
    text = "".join(chr(97 + i % 26) for i in range(500))
    chunks = HierarchicalTextSplitter(chunk_size=100, chunk_overlap=20).split_text(text)

    assert len(chunks) == 6
    assert all(len(c) <= 100 for c in chunks)
    for previous, current in zip(chunks, chunks[1:]):
        assert current[:20] == previous[-20:]


def test_overlap_larger_than_size_is_clamped() -> None:
    text = "x" * 95
    chunks = HierarchicalTextSplitter(chunk_size=10, chunk_overlap=50).split_text(text)
    assert chunks
    assert all(len(c) <= 10 for c in chunks)


def test_clamp_overlap() -> None:
    assert clamp_overlap(100, 20) == 20
    assert clamp_overlap(100, 100) == 99
    assert clamp_overlap(100, 500) == 99
    assert clamp_overlap(100, -5) == 0


def test_non_positive_chunk_size_raises() -> None:
    with pytest.raises(ConfigurationError):
        HierarchicalTextSplitter(chunk_size=0, chunk_overlap=0)
    with pytest.raises(ConfigurationError):
        split_extraction(_extraction("text"), chunk_size=-1, chunk_overlap=0)


# ── LangChain documents ─────────────────────────────────────────────────


def test_chunk_documents_splits_long_text() -> None:
    """A document longer than chunk_size should be split."""
    long_text = "word " * 500  # ~2500 chars
    docs = [Document(page_content=long_text, metadata={"source": "test"})]
    chunks = chunk_documents(docs, chunk_size=256, chunk_overlap=32)
    assert len(chunks) > 1


def test_chunk_documents_preserves_metadata() -> None:
    """Metadata from the source document should be preserved in chunks."""
    docs = [Document(page_content="Short text.", metadata={"source": "test.md"})]
    chunks = chunk_documents(docs, chunk_size=256, chunk_overlap=0)
    assert all(c.metadata.get("source") == "test.md" for c in chunks)
    assert [c.metadata["chunk_index"] for c in chunks] == [0]


def test_chunk_documents_empty_input() -> None:
    """An empty list should return an empty list."""
    assert chunk_documents([]) == []
