"""Content extractors — thin wrappers around LangChain document loaders.

Each extractor claims inputs by extension (plain paths or ``file://``
URIs) and turns them into an :class:`ExtractionResult`.  Loading happens
in a worker thread so the event loop is never blocked by file or PDF I/O.
"""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import unquote, urlparse

from langchain_community.document_loaders import PyPDFLoader, TextLoader

from rag_backbone.errors import SourceNotFoundError, UnreadableSourceError
from rag_backbone.ingestion.models import DocumentReference, ExtractionResult

logger = logging.getLogger(__name__)

_TRAILING_WS = re.compile(r"[ \t]+\n")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def to_local_path(path_or_uri: str) -> Path | None:
    """Resolve a plain path or ``file://`` URI; ``None`` for other schemes."""
    parsed = urlparse(path_or_uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    # Single-letter schemes are Windows drive letters, not URIs.
    if parsed.scheme and len(parsed.scheme) > 1:
        return None
    return Path(path_or_uri)


def normalize_page_text(text: str) -> str:
    """Drop trailing blanks before newlines and cap blank runs at one line."""
    text = _TRAILING_WS.sub("\n", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def extract_markdown_title(text: str) -> str:
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("# "):
            return line.lstrip("# ").strip()
    return ""


class ContentExtractor(ABC):
    """Turns a path or URI into plain text.

    Subclasses set :attr:`extensions` and :attr:`content_type` and
    implement :meth:`_load`, which runs in a worker thread.
    """

    extensions: tuple[str, ...] = ()
    content_type: str = "text/plain"

    def can_handle(self, path_or_uri: str) -> bool:
        """Cheap, side-effect-free check on the extension / URI scheme."""
        path = to_local_path(path_or_uri)
        return path is not None and path.suffix.lower() in self.extensions

    async def extract(self, path_or_uri: str) -> ExtractionResult:
        """Read *path_or_uri*.

        Raises
        ------
        SourceNotFoundError
            The target does not exist.
        UnreadableSourceError
            The target exists but cannot be decoded.
        """
        path = to_local_path(path_or_uri)
        if path is None or not path.is_file():
            raise SourceNotFoundError(path_or_uri)
        path = path.resolve()
        document = DocumentReference(
            key=str(path),
            display_name=path.name,
            content_type=self.content_type,
        )
        return await asyncio.to_thread(self._load, path, document)

    @abstractmethod
    def _load(self, path: Path, document: DocumentReference) -> ExtractionResult:
        ...

    def _read_text(self, path: Path) -> str:
        try:
            docs = TextLoader(str(path), encoding="utf-8").load()
        except RuntimeError as exc:
            # TextLoader wraps decode failures in RuntimeError.
            raise UnreadableSourceError(str(path), str(exc.__cause__ or exc), content_type=self.content_type) from exc
        return "".join(d.page_content for d in docs)


class TextExtractor(ContentExtractor):
    """Plain text, logs and CSV files, read verbatim."""

    extensions = (".txt", ".log", ".csv")
    content_type = "text/plain"

    def _load(self, path: Path, document: DocumentReference) -> ExtractionResult:
        return ExtractionResult(document=document, text=self._read_text(path))


class MarkdownExtractor(ContentExtractor):
    """Markdown files, read verbatim; the first ``# `` heading becomes the title."""

    extensions = (".md", ".markdown")
    content_type = "text/markdown"

    def _load(self, path: Path, document: DocumentReference) -> ExtractionResult:
        text = self._read_text(path)
        title = extract_markdown_title(text)
        return ExtractionResult(
            document=document,
            text=text,
            metadata={"title": title} if title else None,
        )


class PdfExtractor(ContentExtractor):
    """PDF files via ``PyPDFLoader``, one normalised text per page."""

    extensions = (".pdf",)
    content_type = "application/pdf"

    def _load(self, path: Path, document: DocumentReference) -> ExtractionResult:
        try:
            page_docs = PyPDFLoader(str(path)).load()
        except Exception as exc:
            # pypdf raises a variety of errors for damaged files.
            raise UnreadableSourceError(str(path), str(exc), content_type=self.content_type) from exc

        pages = [normalize_page_text(d.page_content) for d in page_docs]
        text = "\n\n".join(p for p in pages if p)
        logger.debug("Extracted %d pages (%d chars) from %s", len(pages), len(text), path)
        return ExtractionResult(
            document=document,
            text=text,
            pages=pages,
            metadata={"page_count": len(pages)},
        )


def default_extractors() -> list[ContentExtractor]:
    """Extractors in their fixed registration order."""
    return [TextExtractor(), MarkdownExtractor(), PdfExtractor()]
