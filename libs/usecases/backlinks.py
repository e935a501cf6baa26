"""Backlink aggregates: compile, insert and refresh.

An aggregate lists every assignment of one entity, grouped under a heading
with the entity's primary name. It is a materialized view of the stores and
can be regenerated at any time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Tuple

from libs.core.exceptions import NoAssignments
from libs.core.i18n import I18n
from libs.core.models import AssignedTextBlock, Document, Entity
from libs.core.settings import get_settings
from libs.core.types import Result
from libs.markup import (
    AssignmentMarker,
    BacklinkAggregate,
    Element,
    Node,
    Text,
    insert_nodes,
    normalize,
    parse,
    render,
    text_length,
)
from libs.storage import Workspace

from .synchronize import synchronize_nodes

logger = logging.getLogger(__name__)

DOC_TITLE_CLASS = "backlink-doc-title"
EMPTY_CLASS = "backlinks-empty"


@dataclass
class BacklinkEntry:
    block_id: str
    document_id: str
    document_title: str
    html_content: str


@dataclass
class Backlinks:
    """Compiled backlinks of one entity."""

    entity_id: str
    entity_name: str
    entries: List[BacklinkEntry] = field(default_factory=list)

    def to_children(
        self,
        i18n: I18n,
        entities: Optional[Mapping[str, Entity]] = None,
        show_highlights: bool = True,
    ) -> List[Node]:
        """Heading plus one list item per entry.

        With ``entities`` the quoted snapshots are synchronized so they show
        current names and colors.
        """
        items: List[Node] = []
        for entry in self.entries:
            title = Element(
                "strong",
                {
                    "class": DOC_TITLE_CLASS,
                    "data-doc-id": entry.document_id,
                    "data-block-id": entry.block_id,
                },
                [Text(i18n.t("backlinks_from", title=entry.document_title))],
            )
            quoted = parse(entry.html_content)
            if entities is not None:
                synchronize_nodes(quoted, entities, show_highlights)
                normalize(quoted)
            quote = Element("blockquote", {}, quoted)
            items.append(Element("li", {}, [title, Element("br"), quote]))
        if not items:
            items.append(Element("li", {"class": EMPTY_CLASS}, [Text(i18n.t("backlinks_empty"))]))
        heading = Element("h4", {}, [Text(i18n.t("backlinks_heading", name=self.entity_name))])
        return [heading, Element("ul", {}, items)]

    def to_node(
        self,
        i18n: I18n,
        entities: Optional[Mapping[str, Entity]] = None,
        show_highlights: bool = True,
    ) -> BacklinkAggregate:
        return BacklinkAggregate(
            entity_id=self.entity_id, children=self.to_children(i18n, entities, show_highlights)
        )


def collect_backlinks(
    entity: Entity,
    blocks: List[AssignedTextBlock],
    documents: Mapping[str, Document],
    i18n: I18n,
) -> Backlinks:
    entries = []
    for block in blocks:
        document = documents.get(block.document_id)
        entries.append(
            BacklinkEntry(
                block_id=block.id,
                document_id=block.document_id,
                document_title=document.title if document else i18n.t("unknown_document"),
                html_content=block.html_content,
            )
        )
    return Backlinks(entity_id=entity.id, entity_name=entity.primary_name, entries=entries)


class CompileBacklinks:
    """Gather the backlinks of an entity, or report that it has none."""

    def __init__(self, workspace: Workspace, i18n: Optional[I18n] = None) -> None:
        self.workspace = workspace
        self.i18n = i18n or I18n(get_settings().language)

    # ------------------------------------------------------------------
    def __call__(self, entity_id: str) -> Result[Backlinks]:
        entity = self.workspace.get_entity(entity_id)
        blocks = self.workspace.assignments_for_entity(entity_id)
        if not blocks:
            return NoAssignments(entity.id, entity.primary_name)
        return collect_backlinks(entity, blocks, self.workspace.documents, self.i18n)


def refresh_backlinks(
    content: str, workspace: Workspace, i18n: I18n, show_highlights: bool = True
) -> Tuple[str, bool]:
    """Regenerate every aggregate in ``content``; drop those of deleted entities."""

    nodes = parse(content)
    if not _refresh_children(nodes, workspace, i18n, show_highlights):
        return content, False
    normalize(nodes)
    return render(nodes), True


def _refresh_children(children: List[Node], workspace: Workspace, i18n: I18n, show: bool) -> bool:
    changed = False
    kept: List[Node] = []
    for node in children:
        if isinstance(node, BacklinkAggregate):
            entity = workspace.entities.get(node.entity_id)
            if entity is None:
                changed = True
                continue
            backlinks = collect_backlinks(
                entity, workspace.assignments_for_entity(entity.id), workspace.documents, i18n
            )
            fresh = backlinks.to_children(i18n, workspace.entities, show)
            if render(fresh) != render(node.children):
                node.children = fresh
                changed = True
        elif isinstance(node, (Element, AssignmentMarker)):
            changed = _refresh_children(node.children, workspace, i18n, show) or changed
        kept.append(node)
    children[:] = kept
    return changed


class RefreshBacklinks:
    """Refresh the aggregates of a stored document and save it when changed."""

    def __init__(self, workspace: Workspace, i18n: Optional[I18n] = None) -> None:
        self.workspace = workspace
        self.i18n = i18n or I18n(get_settings().language)

    # ------------------------------------------------------------------
    def __call__(self, document_id: str, show_highlights: bool = True) -> Tuple[Document, bool]:
        document = self.workspace.get_document(document_id)
        content, changed = refresh_backlinks(document.content, self.workspace, self.i18n, show_highlights)
        if changed:
            document = self.workspace.set_content(document_id, content)
            logger.info("Backlinks refreshed", extra={"document_id": document_id})
        return document, changed


class InsertBacklinks:
    """Insert an entity's backlinks at a top-level position of a document."""

    def __init__(self, workspace: Workspace, i18n: Optional[I18n] = None) -> None:
        self.workspace = workspace
        self.i18n = i18n or I18n(get_settings().language)

    # ------------------------------------------------------------------
    def __call__(
        self,
        document_id: str,
        entity_id: str,
        position: Optional[int] = None,
        show_highlights: bool = True,
    ) -> Result[Document]:
        document = self.workspace.get_document(document_id)
        compiled = CompileBacklinks(self.workspace, self.i18n)(entity_id)
        if isinstance(compiled, NoAssignments):
            return compiled

        nodes = parse(document.content)
        offset = text_length(nodes) if position is None else position
        trailer = Element("p", {}, [Element("br")])
        aggregate = compiled.to_node(self.i18n, self.workspace.entities, show_highlights)
        insert_nodes(nodes, offset, [aggregate, trailer], top_level=True)
        normalize(nodes)
        return self.workspace.set_content(document_id, render(nodes))


__all__ = [
    "BacklinkEntry",
    "Backlinks",
    "collect_backlinks",
    "CompileBacklinks",
    "refresh_backlinks",
    "RefreshBacklinks",
    "InsertBacklinks",
]
