"""Editor session: the open document and the operations run against it."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple

from libs.core.exceptions import PreconditionError
from libs.core.i18n import I18n
from libs.core.models import Alias, AssignedTextBlock, Document, Entity, Snapshot
from libs.core.settings import get_settings
from libs.core.types import Resolution, Result, TextType
from libs.markup import Selection
from libs.storage import Workspace

from .assignments import AssignmentCandidate, AssignmentsAt, AssignText, RemoveAssignment
from .backlinks import Backlinks, CompileBacklinks, InsertBacklinks, RefreshBacklinks
from .references import InsertEntityReference
from .synchronize import SynchronizeDocument


class EditorSession:
    """Holds the open document and the show-highlights toggle.

    Entity edits made through the session re-synchronize the open document
    only; other documents catch up when they are opened or when
    :class:`~libs.usecases.synchronize.SynchronizeAll` runs.
    """

    def __init__(
        self,
        workspace: Workspace,
        show_highlights: Optional[bool] = None,
        i18n: Optional[I18n] = None,
    ) -> None:
        settings = get_settings()
        self.workspace = workspace
        self.show_highlights = settings.show_highlights if show_highlights is None else show_highlights
        self.i18n = i18n or I18n(settings.language)
        self.current_document_id: Optional[str] = next(iter(workspace.documents), None)

    # ------------------------------------------------------------------
    # open document
    @property
    def document(self) -> Document:
        if self.current_document_id is None:
            raise PreconditionError("No document is open")
        return self.workspace.get_document(self.current_document_id)

    def open(self, document_id: str) -> Document:
        self.workspace.get_document(document_id)
        self.current_document_id = document_id
        document, _ = self.synchronize()
        return document

    def close(self) -> None:
        self.current_document_id = None

    def synchronize(self) -> Tuple[Document, bool]:
        return SynchronizeDocument(self.workspace)(self.document.id, self.show_highlights)

    def set_show_highlights(self, value: bool) -> None:
        self.show_highlights = value
        if self.current_document_id is not None:
            self.synchronize()

    def toggle_highlights(self) -> bool:
        self.set_show_highlights(not self.show_highlights)
        return self.show_highlights

    def _resync(self) -> None:
        if self.current_document_id is not None:
            self.synchronize()

    # ------------------------------------------------------------------
    # documents
    def create_document(self, title: str, folder_id: Optional[str] = None) -> Document:
        document = self.workspace.create_document(title, folder_id)
        self.current_document_id = document.id
        return document

    def delete_document(self, document_id: str) -> None:
        self.workspace.delete_document(document_id)
        if self.current_document_id == document_id:
            self.current_document_id = next(iter(self.workspace.documents), None)

    def import_snapshot(
        self, payload: Any, resolutions: Optional[Mapping[str, Resolution]] = None
    ) -> Snapshot:
        snapshot = self.workspace.import_snapshot(payload, resolutions)
        self.current_document_id = next(iter(self.workspace.documents), None)
        return snapshot

    # ------------------------------------------------------------------
    # entities
    def create_entity(self, primary_name: str, **fields: Any) -> Entity:
        entity = self.workspace.create_entity(primary_name, **fields)
        self._resync()
        return entity

    def update_entity(self, entity_id: str, **fields: Any) -> Entity:
        entity = self.workspace.update_entity(entity_id, **fields)
        self._resync()
        return entity

    def delete_entity(self, entity_id: str) -> List[str]:
        removed = self.workspace.delete_entity(entity_id)
        self._resync()
        return removed

    def add_alias(self, entity_id: str, name: str) -> Alias:
        alias = self.workspace.add_alias(entity_id, name)
        self._resync()
        return alias

    def rename_alias(self, entity_id: str, alias_id: str, name: str) -> Entity:
        entity = self.workspace.rename_alias(entity_id, alias_id, name)
        self._resync()
        return entity

    def remove_alias(self, entity_id: str, alias_id: str) -> Entity:
        entity = self.workspace.remove_alias(entity_id, alias_id)
        self._resync()
        return entity

    # ------------------------------------------------------------------
    # editing
    def assign(self, selection: Selection, entity_id: str) -> AssignedTextBlock:
        return AssignText(self.workspace)(self.document.id, selection, entity_id, self.show_highlights)

    def assignments_at(self, selection: Selection) -> List[AssignmentCandidate]:
        return AssignmentsAt(self.workspace, self.i18n)(self.document.id, selection)

    def remove_assignment(self, block_id: str) -> Document:
        return RemoveAssignment(self.workspace)(self.document.id, block_id)

    def insert_reference(
        self,
        position: Optional[int],
        entity_id: str,
        display_text: Optional[str] = None,
        text_type: TextType = "primary",
        alias_id: Optional[str] = None,
    ) -> Document:
        return InsertEntityReference(self.workspace)(
            self.document.id, position, entity_id, display_text, text_type, alias_id
        )

    def compile_backlinks(self, entity_id: str) -> Result[Backlinks]:
        return CompileBacklinks(self.workspace, self.i18n)(entity_id)

    def insert_backlinks(self, entity_id: str, position: Optional[int] = None) -> Result[Document]:
        return InsertBacklinks(self.workspace, self.i18n)(
            self.document.id, entity_id, position, self.show_highlights
        )

    def refresh_backlinks(self) -> Tuple[Document, bool]:
        return RefreshBacklinks(self.workspace, self.i18n)(self.document.id, self.show_highlights)


__all__ = ["EditorSession"]
