"""Typed nodes of a document's rich content.

Document content is stored as HTML. Inside the editor it is handled as a list
of nodes where the three kinds of embedded markers are first-class node types
instead of attribute conventions on generic elements.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

VOID_TAGS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)

BLOCK_TAGS = frozenset(
    {
        "address",
        "article",
        "blockquote",
        "div",
        "footer",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "li",
        "ol",
        "p",
        "pre",
        "section",
        "td",
        "th",
        "ul",
    }
)

ENTITY_LINK_CLASS = "entity-link"
ASSIGNED_BLOCK_CLASS = "assigned-text-block"
HIGHLIGHT_CLASS = "highlight"
BACKLINKS_CLASS = "backlinks-container"

# Legacy custom property some stored markers carry next to the inline color
_LEGACY_HIGHLIGHT_PROPERTY = "--entity-highlight-color"


@dataclass
class Text:
    value: str


@dataclass
class Element:
    """Any element that carries no marker semantics (formatting, blocks)."""

    tag: str
    attrs: Dict[str, Optional[str]] = field(default_factory=dict)
    children: List["Node"] = field(default_factory=list)

    @property
    def is_void(self) -> bool:
        return self.tag in VOID_TAGS


@dataclass
class EntityReference:
    """Inline reference to an entity, displayed by primary name or alias."""

    entity_id: str
    text: str
    text_type: str = "primary"
    alias_id: Optional[str] = None
    link: str = ""
    is_external: bool = False
    original_text: str = ""
    classes: List[str] = field(default_factory=list)
    attrs: Dict[str, Optional[str]] = field(default_factory=dict)
    # nested markup such as an assignment marker; empty for a plain-text reference
    children: List["Node"] = field(default_factory=list)


@dataclass
class AssignmentMarker:
    """Wraps a span of content that was assigned to an entity."""

    block_id: str
    entity_id: str
    entity_color: Optional[str] = None
    highlighted: bool = False
    style: Dict[str, str] = field(default_factory=dict)
    children: List["Node"] = field(default_factory=list)
    classes: List[str] = field(default_factory=list)
    attrs: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def highlight_color(self) -> Optional[str]:
        return self.style.get("background-color")

    def highlight_matches(self, color: Optional[str]) -> bool:
        if _LEGACY_HIGHLIGHT_PROPERTY in self.style:
            return False
        if color is None:
            return not self.highlighted and self.highlight_color is None
        return self.highlighted and self.highlight_color == color

    def apply_highlight(self, color: Optional[str]) -> None:
        """Show the highlight in ``color`` or clear it when ``color`` is None."""
        self.style.pop(_LEGACY_HIGHLIGHT_PROPERTY, None)
        if color is None:
            self.highlighted = False
            self.style.pop("background-color", None)
        else:
            self.highlighted = True
            self.style["background-color"] = color


@dataclass
class BacklinkAggregate:
    """Non-editable block listing every assignment of one entity."""

    entity_id: str
    children: List["Node"] = field(default_factory=list)
    classes: List[str] = field(default_factory=list)
    attrs: Dict[str, Optional[str]] = field(default_factory=dict)


Node = Union[Text, Element, EntityReference, AssignmentMarker, BacklinkAggregate]
Container = Union[Element, AssignmentMarker, BacklinkAggregate]


def children_of(node: Node) -> List[Node]:
    if isinstance(node, (Element, AssignmentMarker, BacklinkAggregate, EntityReference)):
        return node.children
    return []


def node_length(node: Node) -> int:
    """Number of text characters the node contributes to the document."""
    if isinstance(node, Text):
        return len(node.value)
    if isinstance(node, EntityReference):
        return len(node.text)
    return sum(node_length(child) for child in children_of(node))


def text_length(nodes: Iterable[Node]) -> int:
    return sum(node_length(node) for node in nodes)


def text_content(nodes: Iterable[Node]) -> str:
    parts: List[str] = []
    for node in nodes:
        if isinstance(node, Text):
            parts.append(node.value)
        elif isinstance(node, EntityReference):
            parts.append(node.text)
        else:
            parts.append(text_content(children_of(node)))
    return "".join(parts)


def normalize(nodes: List[Node]) -> List[Node]:
    """Merge adjacent text nodes and drop empty ones, recursively, in place."""
    merged: List[Node] = []
    for node in nodes:
        if isinstance(node, Text):
            if not node.value:
                continue
            if merged and isinstance(merged[-1], Text):
                merged[-1] = Text(merged[-1].value + node.value)
                continue
        else:
            normalize(children_of(node))
        merged.append(node)
    nodes[:] = merged
    return nodes


def iter_assignment_markers(nodes: Iterable[Node]) -> Iterable[AssignmentMarker]:
    """Yield assignment markers in document order, outermost first.

    Backlink aggregates are skipped: their content is a rendered copy of
    snapshots, not live markers of this document.
    """
    for node in nodes:
        if isinstance(node, AssignmentMarker):
            yield node
            yield from iter_assignment_markers(node.children)
        elif isinstance(node, (Element, EntityReference)):
            yield from iter_assignment_markers(node.children)


def iter_backlink_aggregates(nodes: Iterable[Node]) -> Iterable[BacklinkAggregate]:
    for node in nodes:
        if isinstance(node, BacklinkAggregate):
            yield node
        elif isinstance(node, (Element, AssignmentMarker)):
            yield from iter_backlink_aggregates(node.children)


def iter_entity_references(nodes: Iterable[Node]) -> Iterable[EntityReference]:
    for node in nodes:
        if isinstance(node, EntityReference):
            yield node
        elif isinstance(node, (Element, AssignmentMarker)):
            yield from iter_entity_references(node.children)


__all__ = [
    "VOID_TAGS",
    "BLOCK_TAGS",
    "Text",
    "Element",
    "EntityReference",
    "AssignmentMarker",
    "BacklinkAggregate",
    "Node",
    "Container",
    "children_of",
    "node_length",
    "text_length",
    "text_content",
    "normalize",
    "iter_assignment_markers",
    "iter_backlink_aggregates",
    "iter_entity_references",
]
