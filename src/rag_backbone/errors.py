"""Exception taxonomy for ingestion and retrieval.

Unsupported formats and empty documents are *not* errors; the ingestion
service reports them as statuses.  Everything here is raised to the
caller for the single item that failed.
"""

from __future__ import annotations

from typing import Any


class RagError(Exception):
    """Base exception for all rag_backbone errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a JSON-friendly dict."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "details": self.details,
            }
        }


class SourceNotFoundError(RagError, FileNotFoundError):
    """The path or URI handed to an extractor does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Source not found: {path}",
            code="SOURCE_NOT_FOUND",
            details={"path": path},
        )
        self.filename = path


class UnreadableSourceError(RagError):
    """The source format was recognised but could not be decoded."""

    def __init__(self, path: str, reason: str, *, content_type: str | None = None) -> None:
        details: dict[str, Any] = {"path": path, "reason": reason}
        if content_type:
            details["content_type"] = content_type
        super().__init__(
            f"Unreadable source {path}: {reason}",
            code="UNREADABLE_SOURCE",
            details=details,
        )


class ConfigurationError(RagError, ValueError):
    """Invalid options, raised before any I/O happens."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


class DimensionMismatchError(RagError, ValueError):
    """A vector does not have the dimensionality its consumer expects."""

    def __init__(self, expected: int, actual: int, *, context: str = "embedding") -> None:
        super().__init__(
            f"{context} has {actual} dimensions, expected {expected}",
            code="DIMENSION_MISMATCH",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class EmbeddingContractError(RagError):
    """An embedding generator broke the one-output-per-input contract."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Embedding batch returned {actual} vectors for {expected} inputs",
            code="EMBEDDING_CONTRACT",
            details={"expected": expected, "actual": actual},
        )
