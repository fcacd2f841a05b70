# File: site_mapper/sitemap.py
"""site_mapper.sitemap: derived, loop-safe tree views of the discovery graph.

The crawl records a flat mapping ``canonical key -> PageRecord`` in which a
page may be linked from many parents and links may form cycles. The views
here are recomputed on demand and never stored:

* :func:`build_site_map` – hierarchy rooted at the seed; a child is expanded
  only under its canonical parent (first discoverer), other parents get a
  reference marker, and a node already on the current path is a loop leaf.
* :func:`build_path_tree` – pages grouped by URL path segments.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Set
from urllib.parse import urlsplit

from site_mapper.crawler.models import LinkStatus, PageRecord
from site_mapper.crawler.normalizer import UrlNormalizer

__all__: Sequence[str] = (
    "NodeKind",
    "SiteMapNode",
    "PathNode",
    "build_site_map",
    "build_path_tree",
    "render_tree",
)


class NodeKind(str, Enum):
    PAGE = "page"
    LOOP = "loop"
    REFERENCE = "reference"
    UNTRACKED = "untracked"


@dataclass(slots=True)
class SiteMapNode:
    """One rendered node of the derived site map."""

    url: str
    key: str
    status: Optional[LinkStatus]
    kind: NodeKind = NodeKind.PAGE
    children: List[SiteMapNode] = field(default_factory=list)

    def walk(self) -> Iterator[SiteMapNode]:
        """Pre-order traversal of this subtree."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict[str, object]:
        return {
            "url": self.url,
            "status": self.status.value if self.status else None,
            "kind": self.kind.value,
            "children": [c.to_dict() for c in self.children],
        }


def build_site_map(
    records: Mapping[str, PageRecord],
    root_url: str,
    normalizer: UrlNormalizer | None = None,
) -> SiteMapNode:
    """Project the discovery graph onto a finite tree rooted at ``root_url``.

    Children without a record (discovered but never admitted, e.g. beyond
    ``max_depth``) are returned as ``untracked`` leaves.
    """
    normalize = normalizer or UrlNormalizer()
    root_key = normalize(root_url)
    root_record = records.get(root_key)
    root = SiteMapNode(
        url=root_record.url if root_record else root_url,
        key=root_key,
        status=root_record.status if root_record else None,
    )
    # explicit stack instead of recursion: (node, record, ancestors incl. node)
    stack: List[tuple[SiteMapNode, Optional[PageRecord], Set[str]]] = [
        (root, root_record, {root_key})
    ]
    while stack:
        node, record, ancestors = stack.pop()
        if record is None:
            continue
        for child_url in record.children:
            child_key = normalize(child_url)
            child_record = records.get(child_key)
            child = SiteMapNode(
                url=child_url,
                key=child_key,
                status=child_record.status if child_record else None,
            )
            node.children.append(child)
            if child_record is None:
                child.kind = NodeKind.UNTRACKED
            elif child_key in ancestors:
                child.kind = NodeKind.LOOP
            elif child_record.parent is None or normalize(child_record.parent) != node.key:
                child.kind = NodeKind.REFERENCE
            else:
                stack.append((child, child_record, ancestors | {child_key}))
    return root


_MARKERS = {
    NodeKind.LOOP: "[LOOP]",
    NodeKind.REFERENCE: "[REF]",
    NodeKind.UNTRACKED: "[NOT QUEUED]",
}
_STATUS_MARKERS = {
    LinkStatus.SOFT_404: "[SOFT]",
    LinkStatus.BROKEN: "[ERR]",
    LinkStatus.ERROR: "[ERR]",
    LinkStatus.REDIRECT: "[REDIR]",
    LinkStatus.PENDING: "[PENDING]",
}


def render_tree(root: SiteMapNode, *, indent: str = "  ") -> str:
    """Indented text rendering; URLs are shown relative to the root."""
    base = root.url.rstrip("/")
    lines: List[str] = []
    stack: List[tuple[SiteMapNode, int]] = [(root, 0)]
    while stack:
        node, level = stack.pop()
        label = node.url[len(base):] if node.url.startswith(base) else node.url
        parts = [indent * level + (label or "/")]
        if node.status in _STATUS_MARKERS:
            parts.append(_STATUS_MARKERS[node.status])  # type: ignore[index]
        if node.kind in _MARKERS:
            parts.append(_MARKERS[node.kind])
        lines.append(" ".join(parts))
        stack.extend((c, level + 1) for c in reversed(node.children))
    return "\n".join(lines)


@dataclass(slots=True)
class PathNode:
    """Path-segment grouping node; ``url`` is set when a page ends here."""

    name: str
    children: Dict[str, PathNode] = field(default_factory=dict)
    count: int = 0
    url: Optional[str] = None


def build_path_tree(records: Mapping[str, PageRecord], root_name: str = "/") -> PathNode:
    """Group pages by URL path segments; ``count`` is the number of pages below."""
    root = PathNode(name=root_name)
    for record in records.values():
        try:
            segments = [s for s in urlsplit(record.url).path.split("/") if s]
        except ValueError:
            continue
        root.count += 1
        node = root
        for segment in segments:
            node = node.children.setdefault(segment.lower(), PathNode(name=segment.lower()))
            node.count += 1
        if segments:
            node.url = record.url
        else:
            root.url = record.url
    return root
