from __future__ import annotations

from dataclasses import dataclass
import re

from crystal_search.services.search_index.nodes import extract_text
from crystal_search.services.search_index.types import BlockNode, Chunk, HeadingNode

DEFAULT_MAX_WORDS = 500
UNTITLED_PAGE = "Untitled"

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]")
_WHITESPACE_RUN = re.compile(r"\s+")


def slugify(text: str) -> str:
    slug = _NON_SLUG_CHARS.sub("", text.lower().strip())
    return _WHITESPACE_RUN.sub("-", slug)


@dataclass
class _Section:
    title: str = ""
    content: str = ""
    heading_id: str | None = None
    level: int = 0


def _page_title(root: BlockNode) -> str:
    # First level-1 heading wins, later ones are ordinary section headings.
    for node in root.children:
        if isinstance(node, HeadingNode) and node.level == 1:
            return extract_text(node).strip()
    return UNTITLED_PAGE


def chunk_document(
    root: BlockNode | None,
    *,
    page_path: str,
    version: str,
    tab: str,
    max_words: int = DEFAULT_MAX_WORDS,
) -> list[Chunk]:
    if max_words <= 0:
        raise ValueError("max_words must be > 0")
    if root is None:
        return []

    page_title = _page_title(root)
    chunks: list[Chunk] = []
    section = _Section()

    def flush() -> None:
        position = len(chunks)
        chunks.append(
            Chunk(
                chunk_id=f"{page_path}#chunk-{position}",
                page_path=page_path,
                page_title=page_title,
                section_title=section.title or page_title,
                content=section.content.strip(),
                position=position,
                version=version,
                tab=tab,
                heading_id=section.heading_id,
            )
        )

    for node in root.children:
        if isinstance(node, HeadingNode):
            if section.content.strip():
                flush()

            heading_text = extract_text(node).strip()
            section = _Section(
                title=heading_text,
                heading_id=slugify(heading_text),
                level=node.level,
            )
            continue

        text = extract_text(node)
        if text.strip():
            section.content += text + " "

        if len(section.content.split()) >= max_words:
            flush()
            section.content = ""

    if section.content.strip():
        flush()

    return chunks
