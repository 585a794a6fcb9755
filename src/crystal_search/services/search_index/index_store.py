from __future__ import annotations

from datetime import datetime, timezone
import json
import os
from pathlib import Path
from typing import Any

from crystal_search.services.search_index.types import Chunk


def chunk_to_record(chunk: Chunk) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": chunk.chunk_id,
        "pageId": chunk.page_id,
        "pagePath": chunk.page_path,
        "pageTitle": chunk.page_title,
        "sectionTitle": chunk.section_title,
        "content": chunk.content,
    }
    if chunk.heading_id is not None:
        record["headingId"] = chunk.heading_id
    record["position"] = chunk.position
    record["version"] = chunk.version
    record["tab"] = chunk.tab
    if chunk.embedding:
        record["embedding"] = chunk.embedding
    return record


def chunk_from_record(record: dict[str, Any]) -> Chunk:
    embedding = record.get("embedding")
    if isinstance(embedding, list) and embedding:
        embedding = [float(value) for value in embedding]
    else:
        embedding = None

    heading_id = record.get("headingId")
    return Chunk(
        chunk_id=str(record["id"]),
        page_path=str(record.get("pagePath", record.get("pageId", ""))),
        page_title=str(record.get("pageTitle", "")),
        section_title=str(record.get("sectionTitle", "")),
        content=str(record.get("content", "")),
        position=int(record.get("position", 0)),
        version=str(record.get("version", "")),
        tab=str(record.get("tab", "")),
        heading_id=heading_id if isinstance(heading_id, str) else None,
        embedding=embedding,
    )


def build_index_payload(
    chunks: list[Chunk],
    *,
    total_pages: int,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    timestamp = generated_at or datetime.now(timezone.utc)
    return {
        "chunks": [chunk_to_record(chunk) for chunk in chunks],
        "metadata": {
            "generatedAt": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "totalChunks": len(chunks),
            "totalPages": total_pages,
        },
    }


def persist_index(output_path: Path, payload: dict[str, Any]) -> int:
    """Atomically replace `output_path` with the serialized index.

    Returns the size in bytes of the written file.
    """
    data = json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")
    tmp_path = output_path.with_name(f"{output_path.name}.tmp")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        tmp_path.write_bytes(data)
        os.replace(tmp_path, output_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    return len(data)


def load_index(index_path: Path) -> tuple[list[Chunk], dict[str, Any]]:
    if not index_path.exists():
        raise FileNotFoundError(
            f"Search index file not found: {index_path}. Run `crystal-search-build` first."
        )

    payload = json.loads(index_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Invalid index payload in {index_path}: expected an object")

    records = payload.get("chunks")
    if not isinstance(records, list):
        raise ValueError(f"Invalid index payload in {index_path}: 'chunks' must be a list")

    metadata = payload.get("metadata")
    metadata = metadata if isinstance(metadata, dict) else {}

    chunks: list[Chunk] = []
    for record in records:
        if not isinstance(record, dict) or not isinstance(record.get("id"), str):
            continue
        try:
            chunks.append(chunk_from_record(record))
        except (TypeError, ValueError):
            continue

    return chunks, metadata
