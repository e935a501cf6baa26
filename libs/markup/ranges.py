"""Selections and insertion points over a content tree.

Positions are character offsets into the document's text content; void
elements such as ``<br>`` occupy no characters. Markers are never split:
a boundary strictly inside an entity reference, or one that would cut an
assignment marker in two, is moved outward so the whole marker is covered.
Backlink aggregates cannot be selected into.
"""

from __future__ import annotations

from typing import Callable, List, NamedTuple, Optional, Tuple

from libs.core.exceptions import InvalidSelection

from .nodes import (
    BLOCK_TAGS,
    AssignmentMarker,
    BacklinkAggregate,
    Element,
    EntityReference,
    Node,
    Text,
    node_length,
    text_content,
    text_length,
)


class Selection(NamedTuple):
    start: int
    end: int

    @property
    def collapsed(self) -> bool:
        return self.start == self.end

    @classmethod
    def of(cls, nodes: List[Node], needle: str, occurrence: int = 0) -> "Selection":
        """Select the ``occurrence``-th appearance of ``needle`` in the text."""
        text = text_content(nodes)
        index = -1
        for _ in range(occurrence + 1):
            index = text.find(needle, index + 1)
            if index < 0:
                raise InvalidSelection(f"Text {needle!r} not found in document")
        return cls(index, index + len(needle))


# ----------------------------------------------------------------------
# marker spans


class _Span(NamedTuple):
    kind: str
    start: int
    end: int


def _marker_spans(nodes: List[Node], offset: int = 0) -> List[_Span]:
    spans: List[_Span] = []
    pos = offset
    for node in nodes:
        n = node_length(node)
        if isinstance(node, EntityReference):
            spans.append(_Span("reference", pos, pos + n))
        elif isinstance(node, BacklinkAggregate):
            spans.append(_Span("backlinks", pos, pos + n))
        elif isinstance(node, AssignmentMarker):
            spans.append(_Span("assignment", pos, pos + n))
            spans.extend(_marker_spans(node.children, pos))
        elif isinstance(node, Element):
            spans.extend(_marker_spans(node.children, pos))
        pos += n
    return spans


def expand_selection(nodes: List[Node], start: int, end: int) -> Selection:
    """Validate a selection and widen it so no marker has to be split."""

    total = text_length(nodes)
    if start >= end:
        raise InvalidSelection("Selection is empty")
    if start < 0 or end > total:
        raise InvalidSelection(f"Selection {start}..{end} is outside the document (length {total})")

    spans = _marker_spans(nodes)
    changed = True
    while changed:
        changed = False
        for span in spans:
            a, b = span.start, span.end
            if span.kind == "backlinks":
                if a < end and start < b:
                    raise InvalidSelection("Selection overlaps a backlinks block")
            elif span.kind == "reference":
                if a < start < b:
                    start, changed = a, True
                if a < end < b:
                    end, changed = b, True
            elif start < a < end < b:
                end, changed = b, True
            elif a < start < b < end:
                start, changed = a, True
    return Selection(start, end)


# ----------------------------------------------------------------------
# splitting


def _is_container(node: Node) -> bool:
    if isinstance(node, Element):
        return not node.is_void
    return isinstance(node, AssignmentMarker)


def split_children(children: List[Node], offset: int, zero_left: bool = True) -> Tuple[List[Node], List[Node]]:
    """Split a child list at a text offset, cloning partially covered elements.

    Zero-length children sitting exactly at ``offset`` go to the left part
    when ``zero_left`` is true, to the right part otherwise.
    """
    left: List[Node] = []
    right: List[Node] = []
    pos = 0
    for child in children:
        n = node_length(child)
        if pos + n < offset or (pos + n == offset and (n > 0 or zero_left)):
            left.append(child)
        elif pos >= offset:
            right.append(child)
        else:
            head, tail = _split_node(child, offset - pos)
            left.append(head)
            right.append(tail)
        pos += n
    return left, right


def _split_node(node: Node, offset: int) -> Tuple[Node, Node]:
    if isinstance(node, Text):
        return Text(node.value[:offset]), Text(node.value[offset:])
    if isinstance(node, Element) and not node.is_void:
        head, tail = split_children(node.children, offset)
        return (
            Element(node.tag, dict(node.attrs), head),
            Element(node.tag, dict(node.attrs), tail),
        )
    raise InvalidSelection("Selection boundary falls inside a marker")


# ----------------------------------------------------------------------
# operations


def wrap_range(
    nodes: List[Node],
    start: int,
    end: int,
    factory: Callable[[List[Node]], Node],
) -> Node:
    """Wrap the content between ``start`` and ``end`` in ``factory(children)``.

    The wrapper is placed in the deepest container holding the whole range.
    Formatting elements cut by the boundaries are split in two, the way a
    browser range extraction clones partially selected nodes.
    """
    start, end = expand_selection(nodes, start, end)
    return _wrap(nodes, start, end, factory)


def _wrap(children: List[Node], start: int, end: int, factory: Callable[[List[Node]], Node]) -> Node:
    pos = 0
    for child in children:
        n = node_length(child)
        if _is_container(child) and pos <= start and end <= pos + n:
            # a fully covered block still gets the marker inside it
            is_block = isinstance(child, Element) and child.tag in BLOCK_TAGS
            if is_block or pos < start or end < pos + n:
                return _wrap(child.children, start - pos, end - pos, factory)  # type: ignore[union-attr]
        pos += n
    left, rest = split_children(children, start, zero_left=True)
    middle, right = split_children(rest, end - start, zero_left=False)
    wrapper = factory(middle)
    children[:] = left + [wrapper] + right
    return wrapper


def insert_nodes(nodes: List[Node], offset: int, new_nodes: List[Node], top_level: bool = False) -> None:
    """Insert ``new_nodes`` at a text offset.

    Inline insertions descend into the element holding the offset, preferring
    the end of a block over the start of the next one. ``top_level`` keeps the
    insertion at the outermost level, splitting the block it falls in.
    """
    total = text_length(nodes)
    if not 0 <= offset <= total:
        raise InvalidSelection(f"Position {offset} is outside the document (length {total})")
    for span in _marker_spans(nodes):
        if span.kind == "backlinks" and span.start < offset < span.end:
            raise InvalidSelection("Position is inside a backlinks block")
        if span.kind == "reference" and span.start < offset < span.end:
            offset = span.end
    if top_level:
        offset = _top_level_offset(nodes, offset)
        left, right = split_children(nodes, offset, zero_left=True)
        nodes[:] = left + list(new_nodes) + right
    else:
        _insert(nodes, offset, list(new_nodes))


def _top_level_offset(nodes: List[Node], offset: int) -> int:
    """Move ``offset`` to the end of the outermost marker it falls inside, at any depth."""
    pos = 0
    for node in nodes:
        n = node_length(node)
        if pos < offset < pos + n:
            if isinstance(node, (AssignmentMarker, EntityReference)):
                return pos + n
            if isinstance(node, Element):
                return pos + _top_level_offset(node.children, offset - pos)
            return offset
        pos += n
    return offset


def _insert(children: List[Node], offset: int, new_nodes: List[Node]) -> None:
    pos = 0
    for child in children:
        n = node_length(child)
        if _is_container(child):
            inside = pos < offset < pos + n
            at_block = isinstance(child, Element) and child.tag in BLOCK_TAGS and pos <= offset <= pos + n
            if inside or at_block:
                _insert(child.children, offset - pos, new_nodes)  # type: ignore[union-attr]
                return
        pos += n
    left, right = split_children(children, offset, zero_left=False)
    children[:] = left + new_nodes + right


def unwrap_assignment(nodes: List[Node], block_id: str) -> Optional[AssignmentMarker]:
    """Remove the marker with ``block_id``, splicing its children in place."""
    for index, node in enumerate(nodes):
        if isinstance(node, AssignmentMarker) and node.block_id == block_id:
            nodes[index : index + 1] = node.children
            return node
        if isinstance(node, (Element, AssignmentMarker, EntityReference)):
            found = unwrap_assignment(node.children, block_id)
            if found is not None:
                return found
    return None


def markers_at(nodes: List[Node], start: int, end: int) -> List[AssignmentMarker]:
    """Assignment markers touching a cursor (``start == end``) or intersecting a selection."""
    found: List[AssignmentMarker] = []

    def walk(children: List[Node], offset: int) -> None:
        pos = offset
        for node in children:
            n = node_length(node)
            if isinstance(node, AssignmentMarker):
                a, b = pos, pos + n
                hit = a <= start <= b if start == end else (a < end and start < b)
                if hit:
                    found.append(node)
                walk(node.children, pos)
            elif isinstance(node, (Element, EntityReference)):
                walk(node.children, pos)
            pos += n

    walk(nodes, 0)
    return found


__all__ = [
    "Selection",
    "expand_selection",
    "split_children",
    "wrap_range",
    "insert_nodes",
    "unwrap_assignment",
    "markers_at",
]
