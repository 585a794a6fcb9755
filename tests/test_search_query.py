from collections.abc import Iterator
from pathlib import Path

from fastapi.testclient import TestClient
import pytest

from crystal_search.main import app, get_embedding_client
from crystal_search.services.search_index.embedding_client import EmbeddingClientError
from crystal_search.services.search_index.index_store import (
    build_index_payload,
    load_index,
    persist_index,
)
from crystal_search.services.search_index.query import (
    extract_preview,
    rank_chunks,
    search_index,
    tokenize,
)
from crystal_search.services.search_index.types import Chunk


class FakeEmbeddingClient:
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for text in texts:
            normalized = text.lower()
            vectors.append(
                [
                    float(normalized.count("webhook") + normalized.count("event")),
                    float(normalized.count("billing") + normalized.count("invoice")),
                ]
            )
        return vectors


class BrokenEmbeddingClient:
    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        raise EmbeddingClientError("model offline")


def _chunk(
    position: int,
    *,
    section_title: str,
    content: str,
    embedding: list[float] | None,
) -> Chunk:
    return Chunk(
        chunk_id=f"/v1/documentation/guide.mdx#chunk-{position}",
        page_path="/v1/documentation/guide.mdx",
        page_title="Guide",
        section_title=section_title,
        content=content,
        position=position,
        version="v1",
        tab="Documentation",
        heading_id=section_title.lower(),
        embedding=embedding,
    )


@pytest.fixture
def chunks() -> list[Chunk]:
    return [
        _chunk(0, section_title="Webhooks", content="Subscribe to webhook events.", embedding=[1.0, 0.0]),
        _chunk(1, section_title="Billing", content="Download an invoice each month.", embedding=[0.0, 1.0]),
        _chunk(2, section_title="Events", content="Event payloads and retries.", embedding=[0.8, 0.6]),
    ]


@pytest.fixture
def index_path(tmp_path: Path, chunks: list[Chunk]) -> Path:
    path = tmp_path / "public" / "search-index.json"
    persist_index(path, build_index_payload(chunks, total_pages=1))
    return path


def test_tokenize_drops_short_tokens_and_punctuation() -> None:
    assert tokenize("How do I set up Web-Hooks?") == ["how", "set", "web", "hooks"]


def test_extract_preview_centres_on_first_match() -> None:
    content = ("lorem " * 30) + "webhook delivery details " + ("ipsum " * 40)

    preview = extract_preview(content, "webhook")

    assert preview.startswith("...")
    assert preview.endswith("...")
    assert "webhook delivery" in preview


def test_extract_preview_without_match_returns_head() -> None:
    assert extract_preview("short text", "zebra") == "short text"
    assert extract_preview("x" * 200, "zebra") == "x" * 150 + "..."


def test_load_index_round_trips_chunks(index_path: Path, chunks: list[Chunk]) -> None:
    loaded, metadata = load_index(index_path)

    assert loaded == chunks
    assert metadata["totalChunks"] == 3
    assert metadata["totalPages"] == 1


def test_vector_search_ranks_by_similarity(index_path: Path) -> None:
    hits = search_index(
        index_path=index_path,
        query_text="webhook",
        top_k=2,
        embedding_client=FakeEmbeddingClient(),
    )

    assert [hit.chunk.section_title for hit in hits] == ["Webhooks", "Events"]
    assert hits[0].score == pytest.approx(1.5)
    assert hits[0].matches == ["webhook"]


def test_vector_search_filters_low_scores(chunks: list[Chunk]) -> None:
    hits = rank_chunks(chunks, query_text="invoice", embedding_client=FakeEmbeddingClient())

    assert [hit.chunk.section_title for hit in hits] == ["Billing", "Events"]


def test_keyword_fallback_when_query_embedding_fails(
    chunks: list[Chunk],
    capsys: pytest.CaptureFixture[str],
) -> None:
    hits = rank_chunks(chunks, query_text="billing", embedding_client=BrokenEmbeddingClient())

    assert [hit.chunk.section_title for hit in hits] == ["Billing"]
    assert hits[0].score == pytest.approx(2.0)
    assert "keyword search" in capsys.readouterr().err


def test_keyword_search_on_index_without_embeddings() -> None:
    plain = [
        _chunk(0, section_title="Setup", content="Install the runtime first.", embedding=None),
        _chunk(1, section_title="Usage", content="Type commands into the terminal.", embedding=None),
    ]

    hits = rank_chunks(plain, query_text="install runtime", embedding_client=FakeEmbeddingClient())

    assert len(hits) == 1
    assert hits[0].chunk.section_title == "Setup"
    assert hits[0].matches == ["install", "runtime"]


def test_empty_query_is_rejected(chunks: list[Chunk]) -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        rank_chunks(chunks, query_text="   ")


@pytest.fixture
def api_client(monkeypatch: pytest.MonkeyPatch, index_path: Path) -> Iterator[TestClient]:
    monkeypatch.setenv("SEARCH_INDEX_PATH", str(index_path))
    app.dependency_overrides[get_embedding_client] = lambda: FakeEmbeddingClient()
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def test_health(api_client: TestClient) -> None:
    response = api_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_search_endpoint_returns_hits(api_client: TestClient) -> None:
    response = api_client.post("/search", json={"query": "webhook", "k": 1})

    assert response.status_code == 200
    body = response.json()
    assert len(body) == 1
    assert body[0]["id"] == "/v1/documentation/guide.mdx#chunk-0"
    assert body[0]["headingId"] == "webhooks"
    assert body[0]["tab"] == "Documentation"
    assert "preview" in body[0]


def test_search_endpoint_validates_request(api_client: TestClient) -> None:
    assert api_client.post("/search", json={"query": "   "}).status_code == 400
    assert api_client.post("/search", json={"query": "x", "k": 50}).status_code == 422
    assert api_client.post("/search", json={"query": "x", "extra": 1}).status_code == 422


def test_search_metadata_endpoint(api_client: TestClient) -> None:
    response = api_client.get("/search/metadata")

    assert response.status_code == 200
    assert response.json()["totalChunks"] == 3


def test_search_endpoint_reports_missing_index(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("SEARCH_INDEX_PATH", str(tmp_path / "missing.json"))
    app.dependency_overrides[get_embedding_client] = lambda: FakeEmbeddingClient()
    try:
        with TestClient(app) as client:
            assert client.post("/search", json={"query": "webhook"}).status_code == 503
            assert client.get("/search/metadata").status_code == 503
    finally:
        app.dependency_overrides.clear()
