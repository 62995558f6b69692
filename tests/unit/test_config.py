"""Unit tests for settings, option models and the error taxonomy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from rag_backbone.config import Settings
from rag_backbone.errors import (
    ConfigurationError,
    DimensionMismatchError,
    RagError,
    SourceNotFoundError,
    UnreadableSourceError,
)
from rag_backbone.ingestion.models import FolderIngestSummary, IngestOptions, IngestResult


class TestSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CHUNK_SIZE", raising=False)
        s = Settings(_env_file=None)
        assert s.chunk_size == 1200
        assert s.chunk_overlap == 200
        assert s.chroma_distance == "cosine"
        assert s.ingest_pattern_list == ["*.txt", "*.md", "*.pdf"]

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "800")
        monkeypatch.setenv("INGEST_PATTERNS", " *.md , ,*.rst")
        s = Settings(_env_file=None)
        assert s.chunk_size == 800
        assert s.ingest_pattern_list == ["*.md", "*.rst"]


class TestIngestOptions:
    def test_defaults_follow_settings(self) -> None:
        options = IngestOptions()
        assert options.skip_if_unchanged is True
        assert options.normalize_whitespace is True
        assert options.prune_stale is False
        assert options.chunk_size > options.chunk_overlap

    @pytest.mark.parametrize("kwargs", [{"chunk_size": 0}, {"chunk_overlap": -1}])
    def test_invalid_values_rejected(self, kwargs: dict) -> None:
        with pytest.raises(ValidationError):
            IngestOptions(**kwargs)

    def test_options_are_immutable(self) -> None:
        with pytest.raises(ValidationError):
            IngestOptions().chunk_size = 10  # type: ignore[misc]


def test_folder_summary_counts() -> None:
    summary = FolderIngestSummary(
        folder="/kb",
        files_seen=3,
        results=[
            IngestResult(document_key="a", status="ingested", chunk_count=2),
            IngestResult(document_key="b", status="unchanged"),
            IngestResult(document_key="c", status="empty"),
        ],
    )
    assert (summary.ingested, summary.skipped) == (1, 2)


class TestErrors:
    def test_hierarchy(self) -> None:
        assert issubclass(SourceNotFoundError, FileNotFoundError)
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(DimensionMismatchError, ValueError)
        assert all(issubclass(e, RagError) for e in (SourceNotFoundError, UnreadableSourceError))

    def test_to_dict(self) -> None:
        err = UnreadableSourceError("/kb/a.pdf", "bad xref", content_type="application/pdf")
        assert err.to_dict() == {
            "error": {
                "message": "Unreadable source /kb/a.pdf: bad xref",
                "code": "UNREADABLE_SOURCE",
                "details": {"path": "/kb/a.pdf", "reason": "bad xref", "content_type": "application/pdf"},
            }
        }

    def test_default_code_is_class_name(self) -> None:
        assert RagError("boom").code == "RagError"
