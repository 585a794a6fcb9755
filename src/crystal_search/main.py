from pathlib import Path
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from crystal_search.config import get_settings
from crystal_search.services.search_index import search_index
from crystal_search.services.search_index.embedding_client import (
    EmbeddingClient,
    build_embedding_client,
)
from crystal_search.services.search_index.index_store import load_index

app = FastAPI(title="Crystal Search API", version="0.1.0")


class SearchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1)
    k: int = Field(default=10, ge=1, le=20)


def get_embedding_client() -> EmbeddingClient:
    return build_embedding_client(get_settings())


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/search")
def search(
    request: SearchRequest,
    embedding_client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
) -> list[dict[str, Any]]:
    query = request.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="query must not be empty")

    settings = get_settings()

    try:
        hits = search_index(
            index_path=Path(settings.index_path),
            query_text=query,
            top_k=request.k,
            embedding_client=embedding_client,
        )
    except FileNotFoundError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return [
        {
            "id": hit.chunk.chunk_id,
            "pagePath": hit.chunk.page_path,
            "pageTitle": hit.chunk.page_title,
            "sectionTitle": hit.chunk.section_title,
            "headingId": hit.chunk.heading_id,
            "version": hit.chunk.version,
            "tab": hit.chunk.tab,
            "score": round(hit.score, 6),
            "matches": hit.matches,
            "preview": hit.preview,
        }
        for hit in hits
    ]


@app.get("/search/metadata")
def search_metadata() -> dict[str, Any]:
    settings = get_settings()

    try:
        _, metadata = load_index(Path(settings.index_path))
    except FileNotFoundError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return metadata


def run() -> None:
    import uvicorn

    uvicorn.run("crystal_search.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
