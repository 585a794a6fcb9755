from __future__ import annotations

from pathlib import Path
import sys

from crystal_search.config import get_settings
from crystal_search.services.search_index.chunker import DEFAULT_MAX_WORDS, chunk_document
from crystal_search.services.search_index.embedder import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_CHARS,
    embed_chunks,
)
from crystal_search.services.search_index.embedding_client import (
    EmbeddingClient,
    load_embedding_client,
)
from crystal_search.services.search_index.index_store import build_index_payload, persist_index
from crystal_search.services.search_index.loader import discover_documents, load_document
from crystal_search.services.search_index.types import BuildSummary, IndexAccumulator


def collect_chunks(
    content_root: Path,
    relative_paths: list[str],
    *,
    max_words: int = DEFAULT_MAX_WORDS,
) -> IndexAccumulator:
    accumulator = IndexAccumulator()

    for relative_path in relative_paths:
        try:
            document = load_document(content_root, relative_path)
            chunks = chunk_document(
                document.root,
                page_path=document.page_path,
                version=document.version,
                tab=document.tab,
                max_words=max_words,
            )
        except (OSError, ValueError, RecursionError) as exc:
            print(
                f"[search-index] warning: failed to process {relative_path}: {exc}",
                file=sys.stderr,
                flush=True,
            )
            accumulator.skipped_files.append(relative_path)
            continue

        if chunks:
            accumulator.chunks.extend(chunks)
            accumulator.processed_pages += 1
            print(f"[search-index]   {document.page_path} -> {len(chunks)} chunks", flush=True)

    return accumulator


def build_search_index(
    *,
    content_root: Path,
    output_path: Path,
    embedding_client: EmbeddingClient | None = None,
    max_words: int = DEFAULT_MAX_WORDS,
    max_chars: int = DEFAULT_MAX_CHARS,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> BuildSummary:
    if embedding_client is None:
        embedding_client = load_embedding_client(get_settings())

    relative_paths = discover_documents(content_root)
    print(f"[search-index] found {len(relative_paths)} JSON files in {content_root}", flush=True)

    accumulator = collect_chunks(content_root, relative_paths, max_words=max_words)

    print(
        f"[search-index] generating embeddings for {len(accumulator.chunks)} chunks",
        flush=True,
    )
    chunks = embed_chunks(
        accumulator.chunks,
        embedding_client,
        max_chars=max_chars,
        batch_size=batch_size,
    )

    payload = build_index_payload(chunks, total_pages=accumulator.processed_pages)
    index_bytes = persist_index(output_path, payload)

    return BuildSummary(
        document_count=len(relative_paths),
        page_count=accumulator.processed_pages,
        chunk_count=len(chunks),
        embedded_count=sum(1 for chunk in chunks if chunk.embedding),
        index_path=str(output_path),
        index_bytes=index_bytes,
    )
