from crystal_search.services.search_index.ingest import build_search_index
from crystal_search.services.search_index.query import search_index
from crystal_search.services.search_index.types import BuildSummary, Chunk, SearchHit

__all__ = ["BuildSummary", "Chunk", "SearchHit", "build_search_index", "search_index"]
