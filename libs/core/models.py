"""Pydantic models representing the workspace records.

Records travel as camelCase JSON (``primaryName``, ``folderId``...), the
format written to the collection files and exchanged over HTTP.
"""

from __future__ import annotations

import random
import string
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Type
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .settings import DEFAULT_ENTITY_COLOR


class Collection(str, Enum):
    """The four persisted collections."""

    DOCUMENTS = "documents"
    FOLDERS = "folders"
    ENTITIES = "entities"
    ASSIGNED_TEXT_BLOCKS = "assignedTextBlocks"


class Record(BaseModel):
    """Base model with camelCase wire aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Alias(BaseModel):
    id: str
    name: str


class Entity(Record):
    """Named referent (person, place, concept) that spans can point at."""

    primary_name: str
    aliases: List[Alias] = Field(default_factory=list)
    description: str = ""
    # Empty, an external URL, or a document id depending on ``is_external``
    link: str = ""
    is_external: bool = False
    color: str = DEFAULT_ENTITY_COLOR

    @field_validator("color", mode="before")
    @classmethod
    def _default_color(cls, value: Any) -> Any:
        return value or DEFAULT_ENTITY_COLOR

    @field_validator("description", "link", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("is_external", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Any:
        # Markers serialise the flag as "true"/"false"
        if isinstance(value, str):
            return value.lower() == "true"
        return bool(value)

    def find_alias(self, alias_id: Optional[str]) -> Optional[Alias]:
        if alias_id is None:
            return None
        return next((a for a in self.aliases if a.id == alias_id), None)


class Document(Record):
    title: str
    content: str = ""
    folder_id: Optional[str] = None


class Folder(Record):
    name: str
    parent_id: Optional[str] = None
    is_open: bool = False


class AssignedTextBlock(Record):
    """A span of one document assigned to one entity.

    ``plain_text`` and ``html_content`` are snapshots taken when the span was
    assigned; they are never re-derived from the live document.
    """

    entity_id: str
    document_id: str
    plain_text: str = ""
    html_content: str = ""


class Snapshot(BaseModel):
    """Complete copy of all four collections (export / bulk import)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    documents: List[Document] = Field(default_factory=list)
    folders: List[Folder] = Field(default_factory=list)
    entities: List[Entity] = Field(default_factory=list)
    assigned_text_blocks: List[AssignedTextBlock] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, List[Dict[str, Any]]]:
        return self.model_dump(by_alias=True)


MODEL_BY_COLLECTION: Dict[Collection, Type[Record]] = {
    Collection.DOCUMENTS: Document,
    Collection.FOLDERS: Folder,
    Collection.ENTITIES: Entity,
    Collection.ASSIGNED_TEXT_BLOCKS: AssignedTextBlock,
}


def new_id() -> str:
    return str(uuid4())


_BASE36 = string.digits + string.ascii_lowercase


def new_block_id() -> str:
    """Millisecond timestamp plus a random base36 suffix."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"{int(time.time() * 1000)}-{suffix}"


__all__ = [
    "Collection",
    "Record",
    "Alias",
    "Entity",
    "Document",
    "Folder",
    "AssignedTextBlock",
    "Snapshot",
    "MODEL_BY_COLLECTION",
    "new_id",
    "new_block_id",
]
