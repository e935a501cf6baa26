"""Assigning document spans to entities and removing those assignments."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from libs.core.exceptions import NotFoundError
from libs.core.i18n import I18n
from libs.core.models import AssignedTextBlock, Document
from libs.core.settings import get_settings
from libs.markup import (
    AssignmentMarker,
    Node,
    Selection,
    markers_at,
    normalize,
    parse,
    render,
    text_content,
    unwrap_assignment,
    wrap_range,
)
from libs.storage import Workspace

logger = logging.getLogger(__name__)


class AssignText:
    """Wrap a selection in an assignment marker and record the assignment."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    # ------------------------------------------------------------------
    def __call__(
        self,
        document_id: str,
        selection: Selection,
        entity_id: str,
        show_highlights: bool = True,
    ) -> AssignedTextBlock:
        document = self.workspace.get_document(document_id)
        entity = self.workspace.get_entity(entity_id)
        block_id = self.workspace.new_block_id()

        def make_marker(children: List[Node]) -> AssignmentMarker:
            marker = AssignmentMarker(
                block_id=block_id,
                entity_id=entity.id,
                entity_color=entity.color,
                children=children,
            )
            marker.apply_highlight(entity.color if show_highlights else None)
            return marker

        nodes = parse(document.content)
        start, end = selection
        marker = wrap_range(nodes, start, end, make_marker)
        normalize(nodes)

        block = AssignedTextBlock(
            id=block_id,
            entity_id=entity.id,
            document_id=document.id,
            plain_text=text_content(marker.children),
            html_content=render(marker.children),
        )
        self.workspace.set_content(document.id, render(nodes))
        self.workspace.add_assignment(block)
        logger.info(
            "Assigned text block",
            extra={"document_id": document.id, "entity_id": entity.id, "block_id": block_id},
        )
        return block


class RemoveAssignment:
    """Unwrap an assignment marker in place and delete its record."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    # ------------------------------------------------------------------
    def __call__(self, document_id: str, block_id: str) -> Document:
        document = self.workspace.get_document(document_id)
        nodes = parse(document.content)
        marker = unwrap_assignment(nodes, block_id)
        if marker is None and block_id not in self.workspace.assignments:
            raise NotFoundError(f"Assigned text block {block_id!r} not found")

        if marker is not None:
            normalize(nodes)
            document = self.workspace.set_content(document_id, render(nodes))
        else:
            logger.warning(
                "No marker for assignment in document",
                extra={"document_id": document_id, "block_id": block_id},
            )
        if block_id in self.workspace.assignments:
            self.workspace.delete_assignment(block_id)
        return document


@dataclass
class AssignmentCandidate:
    block_id: str
    entity_id: str
    entity_name: str
    plain_text: str


class AssignmentsAt:
    """List the assignments whose markers touch a cursor or intersect a selection.

    Only markers backed by a record of this document are reported, outermost
    first, so the caller can let the user choose which one to remove.
    """

    def __init__(self, workspace: Workspace, i18n: Optional[I18n] = None) -> None:
        self.workspace = workspace
        self.i18n = i18n or I18n(get_settings().language)

    # ------------------------------------------------------------------
    def __call__(self, document_id: str, selection: Selection) -> List[AssignmentCandidate]:
        document = self.workspace.get_document(document_id)
        start, end = selection
        candidates: List[AssignmentCandidate] = []
        for marker in markers_at(parse(document.content), start, end):
            block = self.workspace.assignments.get(marker.block_id)
            if block is None or block.entity_id != marker.entity_id or block.document_id != document_id:
                continue
            entity = self.workspace.entities.get(block.entity_id)
            candidates.append(
                AssignmentCandidate(
                    block_id=block.id,
                    entity_id=block.entity_id,
                    entity_name=entity.primary_name if entity else self.i18n.t("unknown_entity"),
                    plain_text=block.plain_text,
                )
            )
        return candidates


__all__ = ["AssignText", "RemoveAssignment", "AssignmentsAt", "AssignmentCandidate"]
