from __future__ import annotations

import math
from pathlib import Path
import re
import sys

from crystal_search.services.search_index.embedding_client import (
    EmbeddingClient,
    EmbeddingClientError,
)
from crystal_search.services.search_index.index_store import load_index
from crystal_search.services.search_index.types import Chunk, SearchHit

DEFAULT_MIN_SCORE = 0.15
PREVIEW_LENGTH = 150
PREVIEW_LEAD = 50

_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    return [token for token in _NON_WORD.sub(" ", text.lower()).split() if len(token) > 2]


def _cosine(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def find_matches(chunk: Chunk, query_text: str) -> list[str]:
    chunk_tokens = set(tokenize(f"{chunk.content} {chunk.section_title}"))
    return [token for token in tokenize(query_text) if token in chunk_tokens]


def extract_preview(content: str, query_text: str, max_length: int = PREVIEW_LENGTH) -> str:
    content_lower = content.lower()
    positions = [
        position
        for position in (content_lower.find(token) for token in tokenize(query_text))
        if position != -1
    ]

    if not positions:
        suffix = "..." if len(content) > max_length else ""
        return content[:max_length] + suffix

    match_position = min(positions)
    start = max(0, match_position - PREVIEW_LEAD)
    end = min(len(content), match_position + max_length)

    preview = content[start:end]
    if start > 0:
        preview = "..." + preview
    if end < len(content):
        preview = preview + "..."
    return preview


def _hit(chunk: Chunk, score: float, query_text: str) -> SearchHit:
    return SearchHit(
        chunk=chunk,
        score=score,
        matches=find_matches(chunk, query_text),
        preview=extract_preview(chunk.content, query_text),
    )


def _vector_hits(
    chunks: list[Chunk],
    query_text: str,
    query_embedding: list[float],
    *,
    min_score: float,
) -> list[SearchHit]:
    query_lower = query_text.lower()
    hits: list[SearchHit] = []

    for chunk in chunks:
        if not chunk.embedding:
            continue

        score = _cosine(query_embedding, chunk.embedding)
        if query_lower in chunk.section_title.lower():
            score *= 1.5
        if query_lower in chunk.page_title.lower():
            score *= 1.2

        if score > min_score:
            hits.append(_hit(chunk, score, query_text))

    return hits


def _keyword_hits(chunks: list[Chunk], query_text: str) -> list[SearchHit]:
    query_tokens = tokenize(query_text)
    if not query_tokens:
        return []

    query_lower = query_text.lower()
    hits: list[SearchHit] = []

    for chunk in chunks:
        chunk_tokens = tokenize(f"{chunk.content} {chunk.section_title} {chunk.page_title}")
        match_count = sum(
            1
            for query_token in query_tokens
            if any(query_token in token or token in query_token for token in chunk_tokens)
        )
        if match_count == 0:
            continue

        score = match_count / len(query_tokens)
        if query_lower in chunk.section_title.lower():
            score *= 2
        hits.append(_hit(chunk, score, query_text))

    return hits


def rank_chunks(
    chunks: list[Chunk],
    *,
    query_text: str,
    top_k: int = 10,
    embedding_client: EmbeddingClient | None = None,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[SearchHit]:
    normalized_query = query_text.strip()
    if not normalized_query:
        raise ValueError("query_text must not be empty")

    query_embedding: list[float] | None = None
    has_embeddings = any(chunk.embedding for chunk in chunks)
    if has_embeddings and embedding_client is not None:
        try:
            query_embedding = embedding_client.embed_texts([normalized_query])[0]
        except (EmbeddingClientError, IndexError) as exc:
            print(
                f"[search-query] warning: query embedding failed, using keyword search: {exc}",
                file=sys.stderr,
                flush=True,
            )

    if query_embedding is not None:
        hits = _vector_hits(chunks, normalized_query, query_embedding, min_score=min_score)
    else:
        hits = _keyword_hits(chunks, normalized_query)

    hits.sort(key=lambda hit: hit.score, reverse=True)
    return hits[: max(1, top_k)]


def search_index(
    *,
    index_path: Path,
    query_text: str,
    top_k: int = 10,
    embedding_client: EmbeddingClient | None = None,
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[SearchHit]:
    chunks, _ = load_index(index_path)
    return rank_chunks(
        chunks,
        query_text=query_text,
        top_k=top_k,
        embedding_client=embedding_client,
        min_score=min_score,
    )
