from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError
from pydantic.alias_generators import to_camel

from libs.core.exceptions import (
    DomainError,
    InvalidSelection,
    NoAssignments,
    NotFoundError,
    PreconditionError,
)
from libs.core.i18n import I18n
from libs.core.models import MODEL_BY_COLLECTION, Collection
from libs.core.settings import get_settings
from libs.core.types import TextType
from libs.logging import setup_logging
from libs.markup import Selection
from libs.storage import JsonFileStore, Workspace
from libs.usecases import (
    AssignmentsAt,
    AssignText,
    CompileBacklinks,
    InsertBacklinks,
    InsertEntityReference,
    RefreshBacklinks,
    RemoveAssignment,
    SynchronizeAll,
    SynchronizeDocument,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependency factories


def get_store() -> JsonFileStore:
    store = JsonFileStore(get_settings().data_dir)
    store.ensure_files()
    return store


def get_workspace(store: JsonFileStore = Depends(get_store)) -> Workspace:
    return Workspace.load(store)


def get_i18n() -> I18n:
    return I18n(get_settings().language)


# ---------------------------------------------------------------------------
# Pydantic schemas


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SynchronizeRequest(CamelModel):
    show_highlights: bool = True


class AssignRequest(CamelModel):
    start: int
    end: int
    entity_id: str
    show_highlights: bool = True


class InsertReferenceRequest(CamelModel):
    entity_id: str
    position: Optional[int] = Field(None, ge=0)
    display_text: Optional[str] = None
    text_type: TextType = "primary"
    alias_id: Optional[str] = None


class InsertBacklinksRequest(CamelModel):
    entity_id: str
    position: Optional[int] = Field(None, ge=0)
    show_highlights: bool = True


# ---------------------------------------------------------------------------
# FastAPI application


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    logger.info("API started", extra={"data_dir": str(get_settings().data_dir)})
    yield


app = FastAPI(title="Entity Editor API", lifespan=lifespan)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, (PreconditionError, NoAssignments)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=code, content={"message": str(exc)})


# Editor routes -------------------------------------------------------------


@app.post("/api/editor/synchronize-all")
def synchronize_all(
    req: SynchronizeRequest,
    workspace: Workspace = Depends(get_workspace),
) -> Dict[str, List[str]]:
    return {"changed": SynchronizeAll(workspace)(req.show_highlights)}


@app.post("/api/editor/documents/{document_id}/synchronize")
def synchronize_document(
    document_id: str,
    req: SynchronizeRequest,
    workspace: Workspace = Depends(get_workspace),
) -> Dict[str, Any]:
    document, changed = SynchronizeDocument(workspace)(document_id, req.show_highlights)
    return {"document": document.to_record(), "changed": changed}


@app.post("/api/editor/documents/{document_id}/assignments", status_code=status.HTTP_201_CREATED)
def assign_text(
    document_id: str,
    req: AssignRequest,
    workspace: Workspace = Depends(get_workspace),
) -> Dict[str, Any]:
    block = AssignText(workspace)(document_id, Selection(req.start, req.end), req.entity_id, req.show_highlights)
    return {"block": block.to_record(), "document": workspace.get_document(document_id).to_record()}


@app.get("/api/editor/documents/{document_id}/assignments")
def assignments_at(
    document_id: str,
    start: int = Query(..., ge=0),
    end: Optional[int] = Query(None, ge=0),
    workspace: Workspace = Depends(get_workspace),
    i18n: I18n = Depends(get_i18n),
) -> List[Dict[str, str]]:
    end = start if end is None else end
    if end < start:
        raise InvalidSelection("Selection end is before its start")
    candidates = AssignmentsAt(workspace, i18n)(document_id, Selection(start, end))
    return [
        {
            "id": c.block_id,
            "entityId": c.entity_id,
            "entityName": c.entity_name,
            "plainText": c.plain_text,
        }
        for c in candidates
    ]


@app.delete("/api/editor/documents/{document_id}/assignments/{block_id}")
def remove_assignment(
    document_id: str,
    block_id: str,
    workspace: Workspace = Depends(get_workspace),
) -> Dict[str, Any]:
    return RemoveAssignment(workspace)(document_id, block_id).to_record()


@app.post("/api/editor/documents/{document_id}/references")
def insert_reference(
    document_id: str,
    req: InsertReferenceRequest,
    workspace: Workspace = Depends(get_workspace),
) -> Dict[str, Any]:
    document = InsertEntityReference(workspace)(
        document_id, req.position, req.entity_id, req.display_text, req.text_type, req.alias_id
    )
    return document.to_record()


@app.post("/api/editor/documents/{document_id}/backlinks")
def insert_backlinks(
    document_id: str,
    req: InsertBacklinksRequest,
    workspace: Workspace = Depends(get_workspace),
    i18n: I18n = Depends(get_i18n),
) -> Dict[str, Any]:
    result = InsertBacklinks(workspace, i18n)(
        document_id, req.entity_id, req.position, req.show_highlights
    )
    if isinstance(result, NoAssignments):
        raise result
    return result.to_record()


@app.post("/api/editor/documents/{document_id}/backlinks/refresh")
def refresh_backlinks(
    document_id: str,
    show_highlights: bool = True,
    workspace: Workspace = Depends(get_workspace),
    i18n: I18n = Depends(get_i18n),
) -> Dict[str, Any]:
    document, changed = RefreshBacklinks(workspace, i18n)(document_id, show_highlights)
    return {"document": document.to_record(), "changed": changed}


@app.get("/api/editor/entities/{entity_id}/backlinks")
def compile_backlinks(
    entity_id: str,
    workspace: Workspace = Depends(get_workspace),
    i18n: I18n = Depends(get_i18n),
) -> Dict[str, Any]:
    result = CompileBacklinks(workspace, i18n)(entity_id)
    if isinstance(result, NoAssignments):
        return {"entityId": result.entity_id, "entityName": result.entity_name, "entries": []}
    return {
        "entityId": result.entity_id,
        "entityName": result.entity_name,
        "entries": [
            {
                "blockId": e.block_id,
                "documentId": e.document_id,
                "documentTitle": e.document_title,
                "htmlContent": e.html_content,
            }
            for e in result.entries
        ],
    }


# Collection routes ---------------------------------------------------------


@app.get("/api/data")
def get_all_data(store: JsonFileStore = Depends(get_store)) -> Dict[str, List[Dict[str, Any]]]:
    return store.read_all()


@app.post("/api/import")
def import_all_data(payload: Dict[str, Any], store: JsonFileStore = Depends(get_store)) -> Dict[str, str]:
    store.replace_all(payload)
    return {"message": "All data imported successfully!"}


@app.get("/api/{collection}")
def list_records(collection: Collection, store: JsonFileStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return store.list(collection)


@app.post("/api/{collection}", status_code=status.HTTP_201_CREATED)
def create_record(
    collection: Collection,
    payload: Dict[str, Any],
    store: JsonFileStore = Depends(get_store),
) -> Dict[str, Any]:
    record = _validate(collection, payload)
    return store.create(collection, record)


@app.put("/api/{collection}/{record_id}")
def update_record(
    collection: Collection,
    record_id: str,
    payload: Dict[str, Any],
    store: JsonFileStore = Depends(get_store),
) -> Dict[str, Any]:
    current = store.get(collection, record_id)
    # the stored id always wins over one sent in the body
    _validate(collection, {**current, **payload, "id": record_id})
    return store.update(collection, record_id, {**payload, "id": record_id})


@app.delete("/api/{collection}/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_record(
    collection: Collection,
    record_id: str,
    store: JsonFileStore = Depends(get_store),
) -> Response:
    store.remove(collection, record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _validate(collection: Collection, payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return MODEL_BY_COLLECTION[collection].model_validate(payload).to_record()
    except SchemaError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


__all__ = ["app"]
