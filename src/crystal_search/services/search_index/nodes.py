from __future__ import annotations

from typing import Any

from crystal_search.services.search_index.types import BlockNode, HeadingNode, Node, TextNode


def _heading_level(attrs: dict[str, Any]) -> int:
    level = attrs.get("level")
    if isinstance(level, str) and level.strip().isdigit():
        level = int(level.strip())
    if isinstance(level, bool) or not isinstance(level, int) or level < 1:
        return 1
    return level


def _parse_children(raw_content: object) -> tuple[Node, ...]:
    if not isinstance(raw_content, list):
        return ()
    return tuple(parse_node(item) for item in raw_content if isinstance(item, dict))


def parse_node(raw: dict[str, Any]) -> Node:
    """Convert one raw rich-text JSON object into its tagged node variant."""
    node_type = raw.get("type")
    node_type = node_type if isinstance(node_type, str) else ""

    attrs = raw.get("attrs")
    attrs = attrs if isinstance(attrs, dict) else {}

    text = raw.get("text")
    text = text if isinstance(text, str) else None

    if node_type == "text":
        return TextNode(text=text or "")

    children = _parse_children(raw.get("content"))
    if node_type == "heading":
        return HeadingNode(level=_heading_level(attrs), attrs=attrs, children=children)

    return BlockNode(type=node_type, attrs=attrs, text=text, children=children)


def extract_text(node: Node) -> str:
    if isinstance(node, TextNode):
        return node.text

    parts: list[str] = []
    if isinstance(node, BlockNode) and node.text:
        parts.append(node.text)
    parts.extend(extract_text(child) for child in node.children)
    return "".join(parts)


def resolve_document_root(payload: object) -> BlockNode | None:
    """Return the `doc` node of a page payload.

    Pages are stored either as a bare `{"type": "doc", ...}` node or wrapped
    in an object whose `content` field holds that node. Anything else has no
    usable root.
    """
    if not isinstance(payload, dict):
        return None

    doc = payload if payload.get("type") == "doc" else payload.get("content")
    if not isinstance(doc, dict) or not isinstance(doc.get("content"), list):
        return None

    root = parse_node(doc)
    if not isinstance(root, BlockNode):
        return None
    return root
