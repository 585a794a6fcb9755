from __future__ import annotations

from dataclasses import replace
import math
import sys

from crystal_search.services.search_index.embedding_client import (
    EmbeddingClient,
    EmbeddingClientError,
)
from crystal_search.services.search_index.types import Chunk

DEFAULT_MAX_CHARS = 512
DEFAULT_BATCH_SIZE = 16


def embedding_input(chunk: Chunk, *, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    return f"{chunk.section_title}. {chunk.content}"[:max_chars]


def normalize_vector(values: list[float]) -> list[float]:
    if not values:
        raise ValueError("embedding vector is empty")

    vector = [float(value) for value in values]
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0 or not math.isfinite(norm):
        raise ValueError("embedding vector has no usable norm")
    return [value / norm for value in vector]


def _warn(message: str) -> None:
    print(f"[search-index] warning: {message}", file=sys.stderr, flush=True)


def _embed_one(client: EmbeddingClient, chunk_id: str, text: str) -> list[float] | None:
    try:
        vectors = client.embed_texts([text])
        if len(vectors) != 1:
            raise EmbeddingClientError(f"expected 1 vector, got {len(vectors)}")
    except EmbeddingClientError as exc:
        _warn(f"failed to generate embedding for chunk {chunk_id}: {exc}")
        return None
    return vectors[0]


def _embed_batch(
    client: EmbeddingClient,
    chunk_ids: list[str],
    texts: list[str],
) -> list[list[float] | None]:
    if len(texts) == 1:
        return [_embed_one(client, chunk_ids[0], texts[0])]

    try:
        vectors = client.embed_texts(texts)
        if len(vectors) != len(texts):
            raise EmbeddingClientError(f"expected {len(texts)} vectors, got {len(vectors)}")
    except EmbeddingClientError as exc:
        _warn(f"batch of {len(texts)} chunks failed ({exc}); retrying one by one")
        return [_embed_one(client, chunk_id, text) for chunk_id, text in zip(chunk_ids, texts)]

    return list(vectors)


def embed_chunks(
    chunks: list[Chunk],
    client: EmbeddingClient,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[Chunk]:
    """Return the chunks with unit-length embeddings attached.

    A chunk whose embedding cannot be produced is returned unchanged, without
    an embedding. All accepted vectors share the length of the first one.
    """
    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")

    total = len(chunks)
    embedded: list[Chunk] = []
    dimensions: int | None = None

    for start in range(0, total, batch_size):
        batch = chunks[start : start + batch_size]
        vectors = _embed_batch(
            client,
            [chunk.chunk_id for chunk in batch],
            [embedding_input(chunk, max_chars=max_chars) for chunk in batch],
        )

        for chunk, raw in zip(batch, vectors):
            if raw is None:
                embedded.append(chunk)
                continue

            try:
                vector = normalize_vector(raw)
                if dimensions is not None and len(vector) != dimensions:
                    raise ValueError(f"expected {dimensions} dimensions, got {len(vector)}")
            except (TypeError, ValueError) as exc:
                _warn(f"failed to generate embedding for chunk {chunk.chunk_id}: {exc}")
                embedded.append(chunk)
                continue

            dimensions = len(vector)
            embedded.append(replace(chunk, embedding=vector))

        print(f"[search-index]   Progress: {len(embedded)}/{total} chunks embedded", flush=True)

    return embedded
