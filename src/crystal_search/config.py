from dataclasses import dataclass
from functools import lru_cache
import os
from pathlib import Path


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    parsed = int(value)
    return max(minimum, parsed)


@dataclass(frozen=True)
class Settings:
    content_root: str
    index_path: str
    max_chunk_words: int
    embed_max_chars: int
    embedding_backend: str
    embedding_dim: int
    embedding_batch_size: int
    ollama_embed_base_url: str
    ollama_embed_model: str
    ollama_timeout_seconds: float
    probe_embedding_backend: bool


@lru_cache
def get_settings() -> Settings:
    content_root = os.getenv("SEARCH_CONTENT_ROOT", "public")
    index_path = os.getenv("SEARCH_INDEX_PATH") or str(Path(content_root) / "search-index.json")

    return Settings(
        content_root=content_root,
        index_path=index_path,
        max_chunk_words=_to_int(os.getenv("SEARCH_MAX_CHUNK_WORDS"), default=500, minimum=1),
        embed_max_chars=_to_int(os.getenv("SEARCH_EMBED_MAX_CHARS"), default=512, minimum=1),
        embedding_backend=os.getenv("SEARCH_EMBEDDING_BACKEND", "ollama").strip().lower(),
        embedding_dim=_to_int(os.getenv("SEARCH_EMBEDDING_DIM"), default=384, minimum=8),
        embedding_batch_size=_to_int(os.getenv("SEARCH_EMBED_BATCH_SIZE"), default=16, minimum=1),
        ollama_embed_base_url=os.getenv("OLLAMA_EMBED_BASE_URL", "http://localhost:11434/v1"),
        ollama_embed_model=os.getenv("OLLAMA_EMBED_MODEL", "all-minilm"),
        ollama_timeout_seconds=float(os.getenv("OLLAMA_TIMEOUT_SECONDS", "30")),
        probe_embedding_backend=_to_bool(os.getenv("SEARCH_PROBE_EMBEDDING"), default=True),
    )
