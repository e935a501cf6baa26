"""Typed content tree for documents: nodes, HTML codec and ranges."""

from .nodes import (
    Text,
    Element,
    EntityReference,
    AssignmentMarker,
    BacklinkAggregate,
    Node,
    node_length,
    text_length,
    text_content,
    normalize,
    iter_assignment_markers,
    iter_backlink_aggregates,
    iter_entity_references,
)
from .codec import parse, render
from .ranges import Selection, wrap_range, insert_nodes, unwrap_assignment, markers_at

__all__ = [
    "Text",
    "Element",
    "EntityReference",
    "AssignmentMarker",
    "BacklinkAggregate",
    "Node",
    "node_length",
    "text_length",
    "text_content",
    "normalize",
    "iter_assignment_markers",
    "iter_backlink_aggregates",
    "iter_entity_references",
    "parse",
    "render",
    "Selection",
    "wrap_range",
    "insert_nodes",
    "unwrap_assignment",
    "markers_at",
]
