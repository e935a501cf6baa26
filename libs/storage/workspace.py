"""In-memory workspace owning the four collections.

Every mutation goes through a :class:`Workspace` method: it validates first,
mutates the in-memory collections, then forwards the change to the
persistence gateway. Gateway failures are logged and never roll back the
in-memory state, which stays the source of truth for the session.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as SchemaError

from libs.core.exceptions import (
    ImportValidationError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from libs.core.models import (
    Alias,
    AssignedTextBlock,
    Collection,
    Document,
    Entity,
    Folder,
    Record,
    Snapshot,
    new_block_id,
    new_id,
)
from libs.core.settings import get_settings
from libs.core.types import Resolution
from libs.markup import parse, text_content

from .gateway import NullGateway, PersistenceGateway

logger = logging.getLogger(__name__)

# Key prefix of an import resolution, e.g. ``doc-<id>``
RESOLUTION_PREFIX: Dict[Collection, str] = {
    Collection.DOCUMENTS: "doc",
    Collection.ENTITIES: "entity",
    Collection.ASSIGNED_TEXT_BLOCKS: "textblock",
    Collection.FOLDERS: "folder",
}

AliasInput = Union[Alias, str, Mapping[str, Any]]


@dataclass
class TreeItem:
    """Folder or document in the sidebar tree."""

    kind: str
    record: Union[Folder, Document]
    children: List["TreeItem"] = field(default_factory=list)


@dataclass
class ImportConflicts:
    """Imported records whose id already exists locally."""

    documents: List[Document] = field(default_factory=list)
    entities: List[Entity] = field(default_factory=list)
    text_blocks: List[AssignedTextBlock] = field(default_factory=list)
    folders: List[Folder] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.documents or self.entities or self.text_blocks or self.folders)

    def keys(self) -> List[str]:
        """Resolution keys for every conflict."""
        keys = [f"doc-{d.id}" for d in self.documents]
        keys += [f"entity-{e.id}" for e in self.entities]
        keys += [f"textblock-{b.id}" for b in self.text_blocks]
        keys += [f"folder-{f.id}" for f in self.folders]
        return keys


class Workspace:
    """Repository/service object for documents, folders, entities and assignments."""

    def __init__(self, gateway: PersistenceGateway | None = None, default_color: str | None = None) -> None:
        self.gateway: PersistenceGateway = gateway if gateway is not None else NullGateway()
        self.default_color = default_color or get_settings().default_entity_color
        self.documents: Dict[str, Document] = {}
        self.folders: Dict[str, Folder] = {}
        self.entities: Dict[str, Entity] = {}
        self.assignments: Dict[str, AssignedTextBlock] = {}

    @classmethod
    def load(cls, gateway: PersistenceGateway, default_color: str | None = None) -> "Workspace":
        """Build a workspace from everything the gateway holds."""

        workspace = cls(gateway, default_color)
        workspace._replace(gateway.fetch_all())
        return workspace

    def _replace(self, snapshot: Snapshot) -> None:
        self.documents = {d.id: d for d in snapshot.documents}
        self.folders = {f.id: f for f in snapshot.folders}
        self.entities = {e.id: e for e in snapshot.entities}
        self.assignments = {b.id: b for b in snapshot.assigned_text_blocks}

    # ------------------------------------------------------------------
    # persistence
    def _persist(self, collection: Collection, record: Record) -> None:
        try:
            self.gateway.persist(collection, record.to_record())
        except Exception:
            logger.exception(
                "Failed to persist record",
                extra={"collection": collection.value, "record_id": record.id},
            )

    def _forget(self, collection: Collection, record_id: str) -> None:
        try:
            self.gateway.delete(collection, record_id)
        except Exception:
            logger.exception(
                "Failed to delete record",
                extra={"collection": collection.value, "record_id": record_id},
            )

    # ------------------------------------------------------------------
    # documents
    def get_document(self, document_id: str) -> Document:
        try:
            return self.documents[document_id]
        except KeyError:
            raise NotFoundError(f"Document {document_id!r} not found") from None

    def create_document(self, title: str, folder_id: Optional[str] = None) -> Document:
        title = _required(title, "Document title")
        self._check_folder(folder_id)
        document = Document(id=self._unique_id(self.documents), title=title, content="", folder_id=folder_id)
        self.documents[document.id] = document
        self._persist(Collection.DOCUMENTS, document)
        return document

    def rename_document(self, document_id: str, title: str) -> Document:
        title = _required(title, "Document title")
        return self._save_document(self.get_document(document_id).model_copy(update={"title": title}))

    def move_document(self, document_id: str, folder_id: Optional[str]) -> Document:
        self._check_folder(folder_id)
        return self._save_document(self.get_document(document_id).model_copy(update={"folder_id": folder_id}))

    def set_content(self, document_id: str, content: str) -> Document:
        return self._save_document(self.get_document(document_id).model_copy(update={"content": content}))

    def delete_document(self, document_id: str) -> List[str]:
        """Delete a document and its assignments; return the removed block ids."""

        self.get_document(document_id)
        del self.documents[document_id]
        self._forget(Collection.DOCUMENTS, document_id)
        removed = [b.id for b in self.assignments.values() if b.document_id == document_id]
        for block_id in removed:
            self._drop_assignment(block_id)
        return removed

    def _save_document(self, document: Document) -> Document:
        self.documents[document.id] = document
        self._persist(Collection.DOCUMENTS, document)
        return document

    # ------------------------------------------------------------------
    # folders
    def get_folder(self, folder_id: str) -> Folder:
        try:
            return self.folders[folder_id]
        except KeyError:
            raise NotFoundError(f"Folder {folder_id!r} not found") from None

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> Folder:
        name = _required(name, "Folder name")
        self._check_folder(parent_id)
        folder = Folder(id=self._unique_id(self.folders), name=name, parent_id=parent_id, is_open=False)
        self.folders[folder.id] = folder
        self._persist(Collection.FOLDERS, folder)
        return folder

    def rename_folder(self, folder_id: str, name: str) -> Folder:
        name = _required(name, "Folder name")
        return self._save_folder(self.get_folder(folder_id).model_copy(update={"name": name}))

    def toggle_folder(self, folder_id: str) -> Folder:
        folder = self.get_folder(folder_id)
        return self._save_folder(folder.model_copy(update={"is_open": not folder.is_open}))

    def delete_folder(self, folder_id: str) -> None:
        """Delete an empty folder; folders with documents or sub-folders are refused."""

        self.get_folder(folder_id)
        if any(d.folder_id == folder_id for d in self.documents.values()):
            raise PreconditionError(
                "Cannot delete a folder that contains documents. Move or delete its documents first."
            )
        if any(f.parent_id == folder_id for f in self.folders.values()):
            raise PreconditionError(
                "Cannot delete a folder that contains sub-folders. Delete its sub-folders first."
            )
        del self.folders[folder_id]
        self._forget(Collection.FOLDERS, folder_id)

    def _save_folder(self, folder: Folder) -> Folder:
        self.folders[folder.id] = folder
        self._persist(Collection.FOLDERS, folder)
        return folder

    def _check_folder(self, folder_id: Optional[str]) -> None:
        if folder_id is not None and folder_id not in self.folders:
            raise ValidationError(f"Folder {folder_id!r} does not exist")

    # ------------------------------------------------------------------
    # entities
    def get_entity(self, entity_id: str) -> Entity:
        try:
            return self.entities[entity_id]
        except KeyError:
            raise NotFoundError(f"Entity {entity_id!r} not found") from None

    def create_entity(
        self,
        primary_name: str,
        aliases: Iterable[AliasInput] = (),
        description: str = "",
        link: str = "",
        is_external: bool = False,
        color: Optional[str] = None,
    ) -> Entity:
        fields = self._entity_fields(primary_name, aliases, description, link, is_external, color)
        entity = Entity(id=self._unique_id(self.entities), **fields)
        return self._save_entity(entity)

    def update_entity(
        self,
        entity_id: str,
        *,
        primary_name: Optional[str] = None,
        aliases: Optional[Iterable[AliasInput]] = None,
        description: Optional[str] = None,
        link: Optional[str] = None,
        is_external: Optional[bool] = None,
        color: Optional[str] = None,
    ) -> Entity:
        """Edit an entity; arguments left as ``None`` keep their current value."""

        current = self.get_entity(entity_id)
        fields = self._entity_fields(
            current.primary_name if primary_name is None else primary_name,
            current.aliases if aliases is None else aliases,
            current.description if description is None else description,
            current.link if link is None else link,
            current.is_external if is_external is None else is_external,
            current.color if color is None else color,
        )
        return self._save_entity(current.model_copy(update=fields))

    def add_alias(self, entity_id: str, name: str) -> Alias:
        entity = self.get_entity(entity_id)
        name = _required(name, "Alias name")
        if any(a.name == name for a in entity.aliases):
            raise ValidationError(f"Alias {name!r} already exists on {entity.primary_name!r}")
        alias = Alias(id=new_id(), name=name)
        self._save_entity(entity.model_copy(update={"aliases": [*entity.aliases, alias]}))
        return alias

    def rename_alias(self, entity_id: str, alias_id: str, name: str) -> Entity:
        """Rename an alias; renaming it to a blank name removes it."""

        entity = self.get_entity(entity_id)
        if entity.find_alias(alias_id) is None:
            raise NotFoundError(f"Alias {alias_id!r} not found on entity {entity_id!r}")
        name = (name or "").strip()
        if not name:
            return self.remove_alias(entity_id, alias_id)
        if any(a.name == name and a.id != alias_id for a in entity.aliases):
            raise ValidationError(f"Alias {name!r} already exists on {entity.primary_name!r}")
        aliases = [Alias(id=a.id, name=name) if a.id == alias_id else a for a in entity.aliases]
        return self._save_entity(entity.model_copy(update={"aliases": aliases}))

    def remove_alias(self, entity_id: str, alias_id: str) -> Entity:
        entity = self.get_entity(entity_id)
        aliases = [a for a in entity.aliases if a.id != alias_id]
        if len(aliases) == len(entity.aliases):
            raise NotFoundError(f"Alias {alias_id!r} not found on entity {entity_id!r}")
        return self._save_entity(entity.model_copy(update={"aliases": aliases}))

    def delete_entity(self, entity_id: str) -> List[str]:
        """Delete an entity and prune its assignments; return the removed block ids."""

        self.get_entity(entity_id)
        del self.entities[entity_id]
        self._forget(Collection.ENTITIES, entity_id)
        removed = [b.id for b in self.assignments.values() if b.entity_id == entity_id]
        for block_id in removed:
            self._drop_assignment(block_id)
        return removed

    def search_entities(self, query: str) -> List[Entity]:
        """Entities whose primary name or any alias contains ``query`` (case-insensitive)."""

        needle = (query or "").lower()
        return [
            e
            for e in self.entities.values()
            if needle in e.primary_name.lower() or any(needle in a.name.lower() for a in e.aliases)
        ]

    def _save_entity(self, entity: Entity) -> Entity:
        self.entities[entity.id] = entity
        self._persist(Collection.ENTITIES, entity)
        return entity

    def _entity_fields(
        self,
        primary_name: str,
        aliases: Iterable[AliasInput],
        description: str,
        link: str,
        is_external: bool,
        color: Optional[str],
    ) -> Dict[str, Any]:
        name = _required(primary_name, "Primary name")
        cleaned: List[Alias] = []
        for item in aliases:
            if isinstance(item, str):
                alias = Alias(id=new_id(), name=item)
            elif isinstance(item, Alias):
                alias = item
            else:
                alias = Alias.model_validate(item)
            alias_name = alias.name.strip()
            if not alias_name:
                continue
            if any(a.name == alias_name for a in cleaned):
                raise ValidationError(f"Duplicate alias name {alias_name!r}")
            cleaned.append(Alias(id=alias.id, name=alias_name))
        link = (link or "").strip()
        if is_external and not link:
            raise ValidationError("External link URL cannot be empty")
        if not is_external and link and link not in self.documents:
            raise ValidationError(f"Linked document {link!r} does not exist")
        return {
            "primary_name": name,
            "aliases": cleaned,
            "description": (description or "").strip(),
            "link": link,
            "is_external": bool(is_external),
            "color": color or self.default_color,
        }

    # ------------------------------------------------------------------
    # assignments
    def get_assignment(self, block_id: str) -> AssignedTextBlock:
        try:
            return self.assignments[block_id]
        except KeyError:
            raise NotFoundError(f"Assigned text block {block_id!r} not found") from None

    def new_block_id(self) -> str:
        block_id = new_block_id()
        while block_id in self.assignments:
            block_id = new_block_id()
        return block_id

    def add_assignment(self, block: AssignedTextBlock) -> AssignedTextBlock:
        if block.id in self.assignments:
            raise ValidationError(f"Assigned text block {block.id!r} already exists")
        self.get_entity(block.entity_id)
        self.get_document(block.document_id)
        self.assignments[block.id] = block
        self._persist(Collection.ASSIGNED_TEXT_BLOCKS, block)
        return block

    def delete_assignment(self, block_id: str) -> None:
        self.get_assignment(block_id)
        self._drop_assignment(block_id)

    def assignments_for_entity(self, entity_id: str) -> List[AssignedTextBlock]:
        return [b for b in self.assignments.values() if b.entity_id == entity_id]

    def assignments_for_document(self, document_id: str) -> List[AssignedTextBlock]:
        return [b for b in self.assignments.values() if b.document_id == document_id]

    def _drop_assignment(self, block_id: str) -> None:
        del self.assignments[block_id]
        self._forget(Collection.ASSIGNED_TEXT_BLOCKS, block_id)

    # ------------------------------------------------------------------
    # import / export
    def export_snapshot(self) -> Snapshot:
        return Snapshot(
            documents=list(self.documents.values()),
            folders=list(self.folders.values()),
            entities=list(self.entities.values()),
            assigned_text_blocks=list(self.assignments.values()),
        )

    @staticmethod
    def parse_import(payload: Any) -> Snapshot:
        """Validate an import payload; malformed payloads are rejected wholesale."""

        if not isinstance(payload, Mapping):
            raise ImportValidationError("Import payload must be a JSON object")
        expected = [c.value for c in Collection]
        if any(not isinstance(payload.get(key), list) for key in expected):
            raise ImportValidationError(
                'Invalid JSON structure: expected "documents", "entities", '
                '"assignedTextBlocks", and "folders" arrays.'
            )
        try:
            return Snapshot.model_validate(payload)
        except SchemaError as exc:
            raise ImportValidationError(f"Invalid record in import payload: {exc}") from exc

    def detect_conflicts(self, snapshot: Snapshot) -> ImportConflicts:
        return ImportConflicts(
            documents=[d for d in snapshot.documents if d.id in self.documents],
            entities=[e for e in snapshot.entities if e.id in self.entities],
            text_blocks=[b for b in snapshot.assigned_text_blocks if b.id in self.assignments],
            folders=[f for f in snapshot.folders if f.id in self.folders],
        )

    def import_snapshot(
        self, payload: Any, resolutions: Optional[Mapping[str, Resolution]] = None
    ) -> Snapshot:
        """Merge imported records into the workspace.

        New ids are appended. Existing ids keep the local record unless the
        resolution for ``<prefix>-<id>`` is ``"overwrite"``. The merged state
        then replaces everything stored behind the gateway.
        """

        snapshot = self.parse_import(payload)
        resolutions = resolutions or {}
        merged = {
            Collection.DOCUMENTS: (dict(self.documents), snapshot.documents),
            Collection.ENTITIES: (dict(self.entities), snapshot.entities),
            Collection.ASSIGNED_TEXT_BLOCKS: (dict(self.assignments), snapshot.assigned_text_blocks),
            Collection.FOLDERS: (dict(self.folders), snapshot.folders),
        }
        for collection, (current, imported) in merged.items():
            prefix = RESOLUTION_PREFIX[collection]
            for record in imported:
                choice = resolutions.get(f"{prefix}-{record.id}")
                if record.id not in current or choice == "overwrite":
                    current[record.id] = record

        result = Snapshot(
            documents=list(merged[Collection.DOCUMENTS][0].values()),
            folders=list(merged[Collection.FOLDERS][0].values()),
            entities=list(merged[Collection.ENTITIES][0].values()),
            assigned_text_blocks=list(merged[Collection.ASSIGNED_TEXT_BLOCKS][0].values()),
        )
        self._replace(result)
        try:
            self.gateway.replace_all(result)
        except Exception:
            logger.exception("Failed to replace stored data after import")
        return result

    # ------------------------------------------------------------------
    # queries
    def document_tree(self, query: str = "") -> List[TreeItem]:
        """Folders then documents per level, sorted by name, filtered by ``query``.

        Matching documents and folders stay visible together with all their
        ancestor folders; documents inside a matching folder are kept too.
        """

        needle = (query or "").lower()
        matched_folders = {f.id for f in self.folders.values() if needle in f.name.lower()}
        matched_docs = {d.id for d in self.documents.values() if needle in d.title.lower()}
        if needle and not matched_folders and not matched_docs:
            return []

        visible = set(matched_folders)
        starts = list(matched_folders) + [self.documents[d].folder_id for d in matched_docs]
        for folder_id in starts:
            while folder_id is not None and folder_id in self.folders:
                visible.add(folder_id)
                folder_id = self.folders[folder_id].parent_id

        def build(parent_id: Optional[str]) -> List[TreeItem]:
            items: List[TreeItem] = []
            for folder in sorted(
                (f for f in self.folders.values() if f.parent_id == parent_id), key=lambda f: f.name.lower()
            ):
                if needle and folder.id not in visible:
                    continue
                items.append(TreeItem("folder", folder, build(folder.id)))
            for document in sorted(
                (d for d in self.documents.values() if d.folder_id == parent_id), key=lambda d: d.title.lower()
            ):
                if needle and document.id not in matched_docs and document.folder_id not in matched_folders:
                    continue
                items.append(TreeItem("document", document))
            return items

        return build(None)

    def export_text(self, document_id: str) -> Tuple[str, str]:
        """Return ``(filename, plain_text)`` for a document."""

        document = self.get_document(document_id)
        filename = re.sub(r"[^a-z0-9]", "_", document.title, flags=re.IGNORECASE) + ".txt"
        return filename, text_content(parse(document.content))

    # ------------------------------------------------------------------
    # helpers
    @staticmethod
    def _unique_id(existing: Mapping[str, Any]) -> str:
        record_id = new_id()
        while record_id in existing:
            record_id = new_id()
        return record_id


def _required(value: Optional[str], label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{label} cannot be empty")
    return value


__all__ = ["Workspace", "TreeItem", "ImportConflicts", "RESOLUTION_PREFIX"]
