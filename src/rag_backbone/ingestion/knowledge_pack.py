"""Knowledge packs — documents shipped as resources inside a Python package."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import PurePosixPath

from rag_backbone.ingestion.models import DocumentReference

logger = logging.getLogger(__name__)

_CONTENT_TYPES = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".txt": "text/plain",
}


def _walk(node: Traversable, relative: PurePosixPath) -> Iterator[tuple[PurePosixPath, Traversable]]:
    for child in sorted(node.iterdir(), key=lambda c: c.name):
        child_path = relative / child.name
        if child.is_dir():
            yield from _walk(child, child_path)
        elif child.is_file():
            yield child_path, child


def load_knowledge_pack(
    package: str,
    prefix: str = "",
    suffixes: tuple[str, ...] = (".md",),
) -> Iterator[tuple[DocumentReference, str]]:
    """Yield ``(document, text)`` pairs for resources bundled in *package*.

    Parameters
    ----------
    package:
        Importable package name, e.g. ``"my_plugin.knowledge"``.
    prefix:
        Sub-directory inside the package to start from (``""`` = root).
    suffixes:
        File suffixes to include, compared case-insensitively.

    The document key is ``"<package>://<relative path>"`` so it stays
    stable across installs, independent of where the package lives.
    """
    root = resources.files(package)
    for part in PurePosixPath(prefix).parts:
        root = root / part
    if not root.is_dir():
        logger.warning("Knowledge pack %s has no resource directory %r", package, prefix)
        return

    wanted = tuple(s.lower() for s in suffixes)
    for relative, resource in _walk(root, PurePosixPath(prefix) if prefix else PurePosixPath()):
        suffix = relative.suffix.lower()
        if suffix not in wanted:
            continue
        document = DocumentReference(
            key=f"{package}://{relative.as_posix()}",
            display_name=relative.stem,
            content_type=_CONTENT_TYPES.get(suffix),
        )
        yield document, resource.read_text(encoding="utf-8")
