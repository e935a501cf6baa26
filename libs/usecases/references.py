"""Inserting entity references into document content."""

from __future__ import annotations

from typing import Optional

from libs.core.exceptions import ValidationError
from libs.core.models import Document, Entity
from libs.core.types import TextType
from libs.markup import EntityReference, Text, insert_nodes, normalize, parse, render, text_length
from libs.storage import Workspace

# Typed right after a reference so new text does not fuse into the marker
TRAILING_SPACE = "\u00a0"


def insert_entity_reference(
    content: str,
    position: Optional[int],
    entity: Entity,
    display_text: Optional[str] = None,
    text_type: TextType = "primary",
    alias_id: Optional[str] = None,
) -> str:
    """Return ``content`` with a reference to ``entity`` inserted at ``position``.

    ``position`` is a text offset; ``None`` appends at the end. Without
    ``display_text`` the reference shows the primary name or the alias name.
    """

    if text_type == "alias":
        alias = entity.find_alias(alias_id)
        if alias is None:
            raise ValidationError(f"Alias {alias_id!r} not found on {entity.primary_name!r}")
        display_text = display_text or alias.name
    else:
        alias_id = None
        display_text = display_text or entity.primary_name

    nodes = parse(content)
    reference = EntityReference(
        entity_id=entity.id,
        text=display_text,
        text_type=text_type,
        alias_id=alias_id,
        link=entity.link,
        is_external=entity.is_external,
        original_text=display_text,
    )
    offset = text_length(nodes) if position is None else position
    insert_nodes(nodes, offset, [reference, Text(TRAILING_SPACE)])
    normalize(nodes)
    return render(nodes)


class InsertEntityReference:
    """Insert a reference into a stored document and save it."""

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace

    # ------------------------------------------------------------------
    def __call__(
        self,
        document_id: str,
        position: Optional[int],
        entity_id: str,
        display_text: Optional[str] = None,
        text_type: TextType = "primary",
        alias_id: Optional[str] = None,
    ) -> Document:
        document = self.workspace.get_document(document_id)
        entity = self.workspace.get_entity(entity_id)
        content = insert_entity_reference(
            document.content, position, entity, display_text, text_type, alias_id
        )
        return self.workspace.set_content(document_id, content)


__all__ = ["insert_entity_reference", "InsertEntityReference", "TRAILING_SPACE"]
