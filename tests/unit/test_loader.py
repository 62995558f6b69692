"""Unit tests for content extractors."""

from __future__ import annotations

from pathlib import Path

import pytest
from langchain_core.documents import Document

from rag_backbone.errors import SourceNotFoundError, UnreadableSourceError
from rag_backbone.ingestion import loader
from rag_backbone.ingestion.loader import (
    MarkdownExtractor,
    PdfExtractor,
    TextExtractor,
    default_extractors,
    extract_markdown_title,
    normalize_page_text,
    to_local_path,
)


# ── can_handle ──────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    ("extractor", "path", "expected"),
    [
        (TextExtractor(), "notes.txt", True),
        (TextExtractor(), "/var/log/app.LOG", True),
        (TextExtractor(), "readme.md", False),
        (MarkdownExtractor(), "guide.md", True),
        (MarkdownExtractor(), "guide.Markdown", True),
        (PdfExtractor(), "manual.PDF", True),
        (PdfExtractor(), "file:///srv/docs/manual.pdf", True),
        (PdfExtractor(), "https://example.com/manual.pdf", False),
        (TextExtractor(), "archive.zip", False),
    ],
)
def test_can_handle_by_extension(extractor, path: str, expected: bool) -> None:
    assert extractor.can_handle(path) is expected


def test_can_handle_does_not_touch_the_filesystem() -> None:
    assert TextExtractor().can_handle("/definitely/not/here.txt")


def test_default_extractor_order() -> None:
    kinds = [type(e) for e in default_extractors()]
    assert kinds == [TextExtractor, MarkdownExtractor, PdfExtractor]


def test_to_local_path() -> None:
    assert to_local_path("file:///tmp/a%20b.txt") == Path("/tmp/a b.txt")
    assert to_local_path("relative/doc.md") == Path("relative/doc.md")
    assert to_local_path("s3://bucket/doc.md") is None


# ── Text and Markdown ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_text_extraction(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("Line one.\nLine two.\n", encoding="utf-8")

    result = await TextExtractor().extract(str(path))

    assert result.text == "Line one.\nLine two.\n"
    assert result.document.key == str(path.resolve())
    assert result.document.display_name == "notes.txt"
    assert result.document.content_type == "text/plain"


@pytest.mark.asyncio
async def test_file_uri_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("hello", encoding="utf-8")

    result = await TextExtractor().extract(path.resolve().as_uri())

    assert result.text == "hello"
    assert result.document.key == str(path.resolve())


@pytest.mark.asyncio
async def test_markdown_title_in_metadata(tmp_path: Path) -> None:
    path = tmp_path / "guide.md"
    path.write_text("Intro line\n\n# Refund Guide\n\nBody text.\n", encoding="utf-8")

    result = await MarkdownExtractor().extract(str(path))

    assert result.metadata == {"title": "Refund Guide"}
    assert result.document.content_type == "text/markdown"
    assert "Body text." in result.text


@pytest.mark.asyncio
async def test_markdown_without_heading_has_no_metadata(tmp_path: Path) -> None:
    path = tmp_path / "plain.md"
    path.write_text("no headings here", encoding="utf-8")
    result = await MarkdownExtractor().extract(str(path))
    assert result.metadata is None


def test_extract_markdown_title() -> None:
    assert extract_markdown_title("## Sub\n# Main Title \n") == "Main Title"
    assert extract_markdown_title("nothing") == ""


# ── Failures ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_missing_file_raises_source_not_found(tmp_path: Path) -> None:
    missing = tmp_path / "missing.txt"
    with pytest.raises(SourceNotFoundError) as excinfo:
        await TextExtractor().extract(str(missing))
    assert isinstance(excinfo.value, FileNotFoundError)
    assert excinfo.value.details["path"] == str(missing)


@pytest.mark.asyncio
async def test_directory_is_not_a_source(tmp_path: Path) -> None:
    folder = tmp_path / "folder.txt"
    folder.mkdir()
    with pytest.raises(SourceNotFoundError):
        await TextExtractor().extract(str(folder))


@pytest.mark.asyncio
async def test_invalid_utf8_raises_unreadable(tmp_path: Path) -> None:
    path = tmp_path / "binary.txt"
    path.write_bytes(b"\xff\xfe\xfa\x00broken")
    with pytest.raises(UnreadableSourceError) as excinfo:
        await TextExtractor().extract(str(path))
    assert excinfo.value.code == "UNREADABLE_SOURCE"


@pytest.mark.asyncio
async def test_corrupt_pdf_raises_unreadable(tmp_path: Path) -> None:
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf at all")
    with pytest.raises(UnreadableSourceError) as excinfo:
        await PdfExtractor().extract(str(path))
    assert excinfo.value.details["content_type"] == "application/pdf"


# ── PDF ─────────────────────────────────────────────────────────────────


class FakePdfLoader:
    """Stands in for PyPDFLoader with canned pages."""

    pages = ["Page one  \n\n\n\nstill one\n", "   ", "Page three\t\nend"]

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path

    def load(self) -> list[Document]:
        return [Document(page_content=p, metadata={"page": i}) for i, p in enumerate(self.pages)]


@pytest.mark.asyncio
async def test_pdf_pages_are_normalised_and_joined(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(loader, "PyPDFLoader", FakePdfLoader)
    path = tmp_path / "manual.pdf"
    path.write_bytes(b"%PDF-1.4 placeholder")

    result = await PdfExtractor().extract(str(path))

    assert result.pages == ["Page one\n\nstill one", "", "Page three\nend"]
    assert result.text == "Page one\n\nstill one\n\nPage three\nend"
    assert result.metadata == {"page_count": 3}
    assert result.document.content_type == "application/pdf"


def test_normalize_page_text() -> None:
    assert normalize_page_text("a  \t\nb\n\n\n\n\nc\n") == "a\nb\n\nc"
