"""Use cases operating on the workspace and document content."""

from .synchronize import synchronize, SynchronizeDocument, SynchronizeAll
from .assignments import AssignText, RemoveAssignment, AssignmentsAt, AssignmentCandidate
from .references import insert_entity_reference, InsertEntityReference
from .backlinks import (
    Backlinks,
    BacklinkEntry,
    CompileBacklinks,
    RefreshBacklinks,
    InsertBacklinks,
    refresh_backlinks,
)
from .session import EditorSession

__all__ = [
    "synchronize",
    "SynchronizeDocument",
    "SynchronizeAll",
    "AssignText",
    "RemoveAssignment",
    "AssignmentsAt",
    "AssignmentCandidate",
    "insert_entity_reference",
    "InsertEntityReference",
    "Backlinks",
    "BacklinkEntry",
    "CompileBacklinks",
    "RefreshBacklinks",
    "InsertBacklinks",
    "refresh_backlinks",
    "EditorSession",
]
