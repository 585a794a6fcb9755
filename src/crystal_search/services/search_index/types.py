from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class TextNode:
    text: str


@dataclass(frozen=True)
class HeadingNode:
    level: int
    attrs: dict[str, Any] = field(default_factory=dict)
    children: tuple[Node, ...] = ()


@dataclass(frozen=True)
class BlockNode:
    """Any non-heading, non-text node: paragraphs, lists and custom blocks."""

    type: str
    attrs: dict[str, Any] = field(default_factory=dict)
    text: str | None = None
    children: tuple[Node, ...] = ()


Node = Union[HeadingNode, TextNode, BlockNode]


@dataclass(frozen=True)
class PathMetadata:
    version: str
    tab: str


@dataclass(frozen=True)
class SourceDocument:
    relative_path: str
    page_path: str
    version: str
    tab: str
    root: BlockNode | None


@dataclass(frozen=True)
class Chunk:
    chunk_id: str
    page_path: str
    page_title: str
    section_title: str
    content: str
    position: int
    version: str
    tab: str
    heading_id: str | None = None
    embedding: list[float] | None = None

    @property
    def page_id(self) -> str:
        return self.page_path


@dataclass
class IndexAccumulator:
    chunks: list[Chunk] = field(default_factory=list)
    processed_pages: int = 0
    skipped_files: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BuildSummary:
    document_count: int
    page_count: int
    chunk_count: int
    embedded_count: int
    index_path: str
    index_bytes: int


@dataclass(frozen=True)
class SearchHit:
    chunk: Chunk
    score: float
    matches: list[str]
    preview: str
