from __future__ import annotations

import hashlib
import math
import re
from typing import Protocol

import httpx

from crystal_search.config import Settings

_TOKEN_SPLIT = re.compile(r"[^\w\s]")


class EmbeddingClientError(RuntimeError):
    pass


class EmbeddingModelLoadError(RuntimeError):
    pass


class EmbeddingClient(Protocol):
    def embed_texts(self, texts: list[str]) -> list[list[float]]: ...


class OllamaEmbeddingClient:
    def __init__(self, *, base_url: str, model: str, timeout_seconds: float = 30.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_seconds = timeout_seconds

    @property
    def model(self) -> str:
        return self._model

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            response = httpx.post(
                f"{self._base_url}/embeddings",
                json={"model": self._model, "input": texts},
                timeout=self._timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmbeddingClientError(str(exc)) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise EmbeddingClientError(f"Invalid embeddings payload: {exc}") from exc

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise EmbeddingClientError("Invalid embeddings payload: missing data")

        vectors: list[list[float]] = []
        for item in data:
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list) or not embedding:
                raise EmbeddingClientError("Invalid embeddings payload: missing embedding vector")
            try:
                vectors.append([float(value) for value in embedding])
            except (TypeError, ValueError) as exc:
                raise EmbeddingClientError(f"Invalid embeddings payload: {exc}") from exc

        if len(vectors) != len(texts):
            raise EmbeddingClientError(
                f"Invalid embeddings payload: expected {len(texts)} vectors, got {len(vectors)}"
            )

        return vectors


class HashEmbeddingClient:
    """Offline feature-hashing embeddings.

    Each token of the lower-cased text is hashed with SHA-256 and spread over
    a few buckets; the bag is averaged and unit-normalised. Texts sharing
    vocabulary land close together, which is enough for builds without a
    model server and for tests.
    """

    def __init__(self, *, dimensions: int = 384, spread: int = 4) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be > 0")
        if spread <= 0:
            raise ValueError("spread must be > 0")
        self._dimensions = dimensions
        self._spread = spread

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _embed(self, text: str) -> list[float]:
        tokens = [
            token
            for token in _TOKEN_SPLIT.sub(" ", text.lower()).split()
            if len(token) > 2
        ]
        if not tokens and text.strip():
            tokens = [text.strip().lower()]
        vector = [0.0] * self._dimensions
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            for offset in range(self._spread):
                bucket = int.from_bytes(digest[offset * 4 : offset * 4 + 4], "big")
                sign = 1.0 if digest[16 + offset] & 1 else -1.0
                vector[bucket % self._dimensions] += sign / len(tokens)

        norm = math.sqrt(sum(value * value for value in vector))
        if norm > 0:
            return [value / norm for value in vector]

        return vector

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]


def build_embedding_client(settings: Settings) -> EmbeddingClient:
    backend = settings.embedding_backend
    if backend == "hash":
        return HashEmbeddingClient(dimensions=settings.embedding_dim)
    if backend == "ollama":
        return OllamaEmbeddingClient(
            base_url=settings.ollama_embed_base_url,
            model=settings.ollama_embed_model,
            timeout_seconds=settings.ollama_timeout_seconds,
        )
    raise EmbeddingModelLoadError(f"Unsupported embedding backend: {backend!r}")


def load_embedding_client(settings: Settings) -> EmbeddingClient:
    """Build the configured backend and make sure it can embed at all."""
    client = build_embedding_client(settings)
    if not settings.probe_embedding_backend:
        return client

    try:
        vectors = client.embed_texts(["search index warmup"])
    except EmbeddingClientError as exc:
        raise EmbeddingModelLoadError(
            f"Embedding backend {settings.embedding_backend!r} is unavailable: {exc}"
        ) from exc

    if not vectors or not vectors[0]:
        raise EmbeddingModelLoadError(
            f"Embedding backend {settings.embedding_backend!r} returned no vector"
        )
    return client
