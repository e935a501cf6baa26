"""Core library exposing domain models, settings, exceptions and types."""

from .settings import Settings, get_settings, DEFAULT_ENTITY_COLOR
from .exceptions import (
    DomainError,
    NotFoundError,
    ValidationError,
    PreconditionError,
    InvalidSelection,
    ImportValidationError,
    NoAssignments,
    Error,
)
from .models import (
    Collection,
    Alias,
    Entity,
    Document,
    Folder,
    AssignedTextBlock,
    Snapshot,
)
from .types import Result, TextType, Resolution

__all__ = [
    "Settings",
    "get_settings",
    "DEFAULT_ENTITY_COLOR",
    "DomainError",
    "NotFoundError",
    "ValidationError",
    "PreconditionError",
    "InvalidSelection",
    "ImportValidationError",
    "NoAssignments",
    "Error",
    "Collection",
    "Alias",
    "Entity",
    "Document",
    "Folder",
    "AssignedTextBlock",
    "Snapshot",
    "Result",
    "TextType",
    "Resolution",
]
