"""Workspace state and the persistence substrates behind it."""

from .gateway import PersistenceGateway, NullGateway, HttpGateway
from .json_store import JsonFileStore
from .workspace import Workspace, TreeItem, ImportConflicts

__all__ = [
    "PersistenceGateway",
    "NullGateway",
    "HttpGateway",
    "JsonFileStore",
    "Workspace",
    "TreeItem",
    "ImportConflicts",
]
