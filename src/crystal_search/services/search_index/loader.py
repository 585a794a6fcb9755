from __future__ import annotations

import json
from pathlib import Path
import re
import sys

from crystal_search.services.search_index.nodes import resolve_document_root
from crystal_search.services.search_index.types import PathMetadata, SourceDocument

CONTENT_EXTENSION = ".json"
PAGE_EXTENSION = ".mdx"
BACKUP_MARKER = "backup"
EXCLUDED_FILENAMES = frozenset({"gitdocai.config.json", "openapi.json", "search-index.json"})

UNKNOWN_VERSION = "unknown"
UNKNOWN_TAB = "Unknown"

_WORD_START = re.compile(r"\b\w")


def _is_candidate(path: Path) -> bool:
    name = path.name
    return (
        name.endswith(CONTENT_EXTENSION)
        and BACKUP_MARKER not in name
        and name not in EXCLUDED_FILENAMES
    )


def _walk(directory: Path, root: Path, found: list[str]) -> None:
    try:
        entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
    except OSError as exc:
        print(
            f"[search-index] warning: could not read directory {directory}: {exc}",
            file=sys.stderr,
            flush=True,
        )
        return

    for entry in entries:
        if entry.is_dir():
            _walk(entry, root, found)
        elif entry.is_file() and _is_candidate(entry):
            found.append(entry.relative_to(root).as_posix())


def discover_documents(content_root: Path) -> list[str]:
    if not content_root.exists():
        raise FileNotFoundError(f"Content root not found: {content_root}")
    if not content_root.is_dir():
        raise NotADirectoryError(f"Content root is not a directory: {content_root}")

    found: list[str] = []
    _walk(content_root, content_root, found)
    return found


def parse_path_metadata(relative_path: str) -> PathMetadata:
    parts = relative_path.replace("\\", "/").split("/")

    version_index = next(
        (index for index, part in enumerate(parts) if part.startswith("v")),
        None,
    )
    if version_index is None:
        return PathMetadata(version=UNKNOWN_VERSION, tab=UNKNOWN_TAB)

    tab = UNKNOWN_TAB
    if version_index + 1 < len(parts) and parts[version_index + 1]:
        raw_tab = parts[version_index + 1].replace("_", " ")
        tab = _WORD_START.sub(lambda match: match.group(0).upper(), raw_tab)

    return PathMetadata(version=parts[version_index], tab=tab)


def to_page_path(relative_path: str) -> str:
    normalized = relative_path.replace("\\", "/").lstrip("/")
    if normalized.endswith(CONTENT_EXTENSION):
        normalized = normalized[: -len(CONTENT_EXTENSION)] + PAGE_EXTENSION
    return f"/{normalized}"


def load_document(content_root: Path, relative_path: str) -> SourceDocument:
    """Read one page file; raises OSError or ValueError on unreadable input."""
    payload = json.loads((content_root / relative_path).read_text(encoding="utf-8"))
    metadata = parse_path_metadata(relative_path)

    return SourceDocument(
        relative_path=relative_path,
        page_path=to_page_path(relative_path),
        version=metadata.version,
        tab=metadata.tab,
        root=resolve_document_root(payload),
    )
