"""Domain models for stored vectors, search hits and metadata filters."""

from __future__ import annotations

import json
import operator
from collections.abc import Mapping, Sequence
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rag_backbone.ingestion.models import DocumentReference

_COMPARATORS = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"document_key"``,
        ``"content_type"`` or any key of the chunk metadata).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)

    # -- in-process evaluation -----------------------------------------------

    def matches(self, values: Mapping[str, Any]) -> bool:
        """Evaluate the filter against a flat mapping of record fields."""
        actual = values.get(self.field)
        if self.operator == "in":
            return actual in (self.value or [])
        if self.operator == "nin":
            return actual not in (self.value or [])
        compare = _COMPARATORS.get(self.operator)
        if compare is None:
            raise ValueError(f"Unsupported filter operator: {self.operator!r}")
        if self.operator in ("eq", "ne"):
            return compare(actual, self.value)
        if actual is None:
            return False
        try:
            return compare(actual, self.value)
        except TypeError:
            return False


FilterSpec = Union[Mapping[str, Any], Sequence[MetadataFilter], None]


def normalize_filters(filters: FilterSpec) -> list[MetadataFilter] | None:
    """Accept a ``{field: value}`` mapping or a list of filters.

    A mapping means one equality filter per key.  Empty input returns
    ``None`` so backends can skip filtering entirely.
    """
    if not filters:
        return None
    if isinstance(filters, Mapping):
        return [MetadataFilter.equals(k, v) for k, v in filters.items()]
    return list(filters)


class Embedding(BaseModel):
    """A dense vector together with its declared dimensionality."""

    model_config = ConfigDict(frozen=True)

    values: list[float]
    dimensions: int

    @model_validator(mode="after")
    def _check_length(self) -> Embedding:
        if len(self.values) != self.dimensions:
            raise ValueError(
                f"embedding has {len(self.values)} values but declares {self.dimensions} dimensions"
            )
        return self

    @classmethod
    def from_values(cls, values: Sequence[float]) -> Embedding:
        vector = [float(v) for v in values]
        return cls(values=vector, dimensions=len(vector))


class VectorRecord(BaseModel):
    """Persisted shape of one chunk — exactly one record per chunk id."""

    id: str
    text: str
    document_key: str
    display_name: str | None = None
    content_type: str | None = None
    metadata_json: str | None = None
    embedding: list[float]

    @classmethod
    def from_chunk(
        cls,
        chunk_id: str,
        text: str,
        embedding: Embedding,
        document: DocumentReference,
        metadata: Mapping[str, Any] | None = None,
    ) -> VectorRecord:
        """Build the stored record for one chunk.

        *metadata* is serialised to ``metadata_json``.  Values JSON cannot
        represent (``datetime``, ``Path``, ...) are stored as ``str(value)``
        and read back from :attr:`metadata` as strings.
        """
        return cls(
            id=chunk_id,
            text=text,
            document_key=document.key,
            display_name=document.display_name,
            content_type=document.content_type,
            metadata_json=json.dumps(dict(metadata), sort_keys=True, default=str) if metadata else None,
            embedding=list(embedding.values),
        )

    @property
    def document(self) -> DocumentReference:
        return DocumentReference(
            key=self.document_key,
            display_name=self.display_name,
            content_type=self.content_type,
        )

    @property
    def metadata(self) -> dict[str, Any]:
        """Deserialised ``metadata_json`` (empty when absent)."""
        if not self.metadata_json:
            return {}
        return json.loads(self.metadata_json)

    def filter_fields(self) -> dict[str, Any]:
        """Flat view used to evaluate :class:`MetadataFilter` in-process."""
        return {
            **self.metadata,
            "document_key": self.document_key,
            "display_name": self.display_name,
            "content_type": self.content_type,
        }


class SearchHit(BaseModel):
    """A single ranked chunk returned by a similarity search."""

    chunk_id: str
    document: DocumentReference
    text: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def chunk_index(self) -> int | None:
        """Chunk position parsed from ``key::index::hash`` ids."""
        parts = self.chunk_id.rsplit("::", 2)
        if len(parts) == 3 and parts[1].isdigit():
            return int(parts[1])
        return None

    def short_ref(self) -> str:
        """Return a compact ``[source§chunk]`` reference string."""
        source = self.document.display_name or self.document.key
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{source}§{chunk}]"

    def __str__(self) -> str:  # noqa: D105
        return f"{self.short_ref()} {self.text[:120]}…"


class RetrieveOptions(BaseModel):
    """Post-processing switches for :class:`SemanticRetriever`."""

    model_config = ConfigDict(frozen=True)

    enable_dedup: bool = True
    enable_text_trim: bool = True
