from __future__ import annotations

import argparse
from pathlib import Path
import sys

from crystal_search.config import get_settings
from crystal_search.services.search_index.ingest import build_search_index


def _build_parser() -> argparse.ArgumentParser:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="crystal-search-build",
        description="Chunk and embed documentation pages into a semantic search index",
    )
    parser.add_argument(
        "--content-root",
        default=settings.content_root,
        help="Directory containing rich-text JSON pages",
    )
    parser.add_argument(
        "--output",
        default=settings.index_path,
        help="Path of the search-index.json artifact",
    )
    parser.add_argument(
        "--max-words",
        type=int,
        default=settings.max_chunk_words,
        help="Word ceiling after which a section is split",
    )
    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    settings = get_settings()

    print("[search-index] generating search index with embeddings", flush=True)
    try:
        summary = build_search_index(
            content_root=Path(args.content_root),
            output_path=Path(args.output),
            max_words=args.max_words,
            max_chars=settings.embed_max_chars,
            batch_size=settings.embedding_batch_size,
        )
    except Exception as exc:
        print(f"[search-index] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    print(
        "[search-index] completed "
        f"documents={summary.document_count} "
        f"pages={summary.page_count} "
        f"chunks={summary.chunk_count} "
        f"embedded={summary.embedded_count} "
        f"size_kb={summary.index_bytes / 1024:.2f} "
        f"output={summary.index_path}",
        flush=True,
    )


if __name__ == "__main__":
    main()
