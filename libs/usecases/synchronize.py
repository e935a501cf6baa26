"""Reconcile embedded markers with the live entity store."""

from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Tuple

from libs.core.models import Document, Entity
from libs.markup import (
    AssignmentMarker,
    BacklinkAggregate,
    Element,
    EntityReference,
    Node,
    Text,
    normalize,
    parse,
    render,
)
from libs.storage import Workspace

logger = logging.getLogger(__name__)


def synchronize(
    content: str, entities: Mapping[str, Entity], show_highlights: bool = True
) -> Tuple[str, bool]:
    """Return ``(new_content, changed)`` with every marker matching ``entities``.

    Entity references show the current primary name or alias and carry the
    current link; references to deleted entities become plain text. Assignment
    markers take the entity's current color and lose it when the entity is
    gone. Markers inside backlink aggregates are reconciled too. Unchanged
    content is returned as is.
    """

    nodes = parse(content)
    if not synchronize_nodes(nodes, entities, show_highlights):
        return content, False
    normalize(nodes)
    return render(nodes), True


def synchronize_nodes(nodes: List[Node], entities: Mapping[str, Entity], show_highlights: bool = True) -> bool:
    """In-place variant of :func:`synchronize`; returns whether anything changed."""
    changed = False
    result: List[Node] = []
    for node in nodes:
        if isinstance(node, EntityReference):
            changed = synchronize_nodes(node.children, entities, show_highlights) or changed
            entity = entities.get(node.entity_id)
            if entity is None:
                result.extend(node.children or [Text(node.text)])
                changed = True
                continue
            changed = _sync_reference(node, entity) or changed
        elif isinstance(node, AssignmentMarker):
            changed = _sync_assignment(node, entities.get(node.entity_id), show_highlights) or changed
            changed = synchronize_nodes(node.children, entities, show_highlights) or changed
        elif isinstance(node, (Element, BacklinkAggregate)):
            changed = synchronize_nodes(node.children, entities, show_highlights) or changed
        result.append(node)
    nodes[:] = result
    return changed


def _sync_reference(node: EntityReference, entity: Entity) -> bool:
    changed = False
    if node.text_type == "alias":
        alias = entity.find_alias(node.alias_id)
        if alias is None:
            # demotion is permanent: the alias id is dropped with it
            node.text_type = "primary"
            node.alias_id = None
            expected = entity.primary_name
            changed = True
        else:
            expected = alias.name
    elif node.text_type == "primary":
        expected = entity.primary_name
    else:
        return False

    if node.text != expected:
        node.text = expected
        _retext(node.children, expected)
        changed = True
    if node.link != entity.link or node.is_external != entity.is_external:
        node.link = entity.link
        node.is_external = entity.is_external
        changed = True
    return changed


def _retext(children: List[Node], text: str) -> None:
    """Replace the text under a reference, keeping a wrapper that spans all of it."""
    if not children:
        return
    if len(children) == 1 and isinstance(children[0], (Element, AssignmentMarker)) and children[0].children:
        _retext(children[0].children, text)
        return
    children[:] = [Text(text)]


def _sync_assignment(node: AssignmentMarker, entity: Optional[Entity], show: bool) -> bool:
    if entity is None:
        if node.entity_color is None and node.highlight_matches(None):
            return False
        node.entity_color = None
        node.apply_highlight(None)
        return True

    changed = False
    if node.entity_color != entity.color:
        node.entity_color = entity.color
        changed = True
    wanted = entity.color if show else None
    if not node.highlight_matches(wanted):
        node.apply_highlight(wanted)
        changed = True
    return changed


class SynchronizeDocument:
    """Synchronize one stored document and persist it when it changed."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    # ------------------------------------------------------------------
    def __call__(self, document_id: str, show_highlights: bool = True) -> Tuple[Document, bool]:
        document = self.workspace.get_document(document_id)
        content, changed = synchronize(document.content, self.workspace.entities, show_highlights)
        if changed:
            document = self.workspace.set_content(document_id, content)
            logger.info("Synchronized markers", extra={"document_id": document_id})
        return document, changed


class SynchronizeAll:
    """Run the synchronizer over every document in the workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    # ------------------------------------------------------------------
    def __call__(self, show_highlights: bool = True) -> List[str]:
        """Return the ids of the documents whose content changed."""
        sync = SynchronizeDocument(self.workspace)
        changed: List[str] = []
        for document_id in list(self.workspace.documents):
            _, did_change = sync(document_id, show_highlights)
            if did_change:
                changed.append(document_id)
        return changed


__all__ = ["synchronize", "synchronize_nodes", "SynchronizeDocument", "SynchronizeAll"]
