"""
MediatorMate Service API
========================

FastAPI endpoints for the case data layer and the dashboard assistant.

Chat:
- POST /api/chat                     - Proxy a conversation plus caller-supplied context
- POST /api/assistant                - Same, with context read from the record store

Records:
- GET    /api/stores/{store}         - List records (optional ?index=&value=)
- POST   /api/stores/{store}         - Add a record
- GET    /api/stores/{store}/{id}    - Get one record
- PUT    /api/stores/{store}/{id}    - Insert or replace
- PATCH  /api/stores/{store}/{id}    - Merge a partial record
- DELETE /api/stores/{store}/{id}    - Delete one record

Forms and tasks:
- POST /api/forms/{kind}             - Submit a creation dialog
- POST /api/tasks/{id}/toggle        - Flip Done/Todo
- POST /api/tasks/bulk-delete        - Delete the given task ids
- GET  /api/tasks/{id}/download      - Task as a JSON file

Backup:
- GET  /api/export                   - Every store as JSON
- POST /api/import                   - Restore an export (?replace=true clears first)

- GET  /health                       - Health check

Run with:
    uvicorn mediator_mate.api:app --host 0.0.0.0 --port 3001
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .assistant import answer_from_store
from .chat_proxy import INVALID_MESSAGES, ChatProxy, parse_chat_request
from .config import get_settings
from .contexts import TasksContext
from .db.session import init_db
from .errors import (
    ChatError,
    ChatRequestError,
    DuplicateRecordError,
    RecordNotFoundError,
    RecordValidationError,
    StorageError,
    UnknownIndexError,
    UnknownStoreError,
)
from .exporter import export_records, import_records
from .forms import FORMS, FormSubmitter
from .notices import NoticeLog
from .schemas import AssistantResponse, BulkDeleteRequest, ChatResponse, HealthResponse
from .services import EntityServices
from .store import RecordStore

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="MediatorMate Service",
    description="Case data layer and dashboard assistant for a mediation practice",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS - get allowed origins from environment, default to the Vite dev server
def _parse_cors_origins(raw: str) -> List[str]:
    origins: List[str] = []
    for item in raw.split(","):
        origin = item.strip().strip('"').strip("'").rstrip("/")
        if origin:
            origins.append(origin)
    return origins

_cors_raw = os.environ.get(
    "CORS_ALLOW_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000"
)
CORS_ALLOW_ORIGINS = _parse_cors_origins(_cors_raw)
logger.info(f"CORS allow origins: {CORS_ALLOW_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)


# =============================================================================
# Dependencies
# =============================================================================

_services: Optional[EntityServices] = None
_chat_proxy: Optional[ChatProxy] = None


def get_services() -> EntityServices:
    global _services
    if _services is None:
        _services = EntityServices(RecordStore())
    return _services


def get_chat_proxy() -> ChatProxy:
    global _chat_proxy
    if _chat_proxy is None:
        _chat_proxy = ChatProxy(get_settings())
    return _chat_proxy


def _wire(records) -> List[Dict[str, Any]]:
    return [r.to_wire() for r in records]


async def _json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise ChatRequestError(INVALID_MESSAGES)


# =============================================================================
# Health
# =============================================================================

@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=settings.service_version,
        chat_configured=bool(settings.openai_api_key),
        timestamp=datetime.now()
    )


# =============================================================================
# Chat
# =============================================================================

@app.post(
    "/api/chat",
    response_model=ChatResponse,
    tags=["Chat"],
    responses={
        400: {"description": "Missing or invalid messages"},
        500: {"description": "API key missing or upstream failure"},
    },
)
async def chat(request: Request, proxy: ChatProxy = Depends(get_chat_proxy)):
    """
    Answer the last user message from the supplied context.

    Body: `{messages: [{role, content}], context?: {contacts, notes, tasks,
    caseFiles, documents, intakeForms}}`. Errors come back as `{error}`.
    """
    payload = await _json_body(request)
    return await proxy.handle(payload)


@app.post("/api/assistant", response_model=AssistantResponse, tags=["Chat"])
async def assistant(
    request: Request,
    proxy: ChatProxy = Depends(get_chat_proxy),
    services: EntityServices = Depends(get_services),
):
    """Like /api/chat, but the context is assembled from the record store"""
    chat_request = parse_chat_request(await _json_body(request))
    return await answer_from_store(services, proxy, chat_request.messages)


# =============================================================================
# Records
# =============================================================================

@app.get("/api/stores/{store}", tags=["Records"])
def list_records(
    store: str,
    index: Optional[str] = Query(None, description="Secondary lookup, e.g. by-status"),
    value: Optional[List[str]] = Query(None, description="Lookup value; repeat for compound lookups"),
    services: EntityServices = Depends(get_services),
):
    if index is None:
        return _wire(services.store.get_all(store))
    if not value:
        raise HTTPException(status_code=400, detail="value is required with index")

    columns = services.store.spec(store).indexes.get(index, ())
    if len(columns) > 1:
        # Empty parts of a compound lookup match NULL (root folders)
        lookup: Any = tuple(v or None for v in value)
    elif len(value) == 1:
        lookup = value[0]
    else:
        raise HTTPException(status_code=400, detail=f"{index} takes a single value")
    return _wire(services.store.get_by_index(store, index, lookup))


@app.post("/api/stores/{store}", status_code=201, tags=["Records"])
def add_record(
    store: str,
    record: Dict[str, Any] = Body(...),
    services: EntityServices = Depends(get_services),
):
    return services.store.add(store, record).to_wire()


@app.get("/api/stores/{store}/{record_id}", tags=["Records"])
def get_record(store: str, record_id: str, services: EntityServices = Depends(get_services)):
    record = services.store.get_by_id(store, record_id)
    if record is None:
        raise RecordNotFoundError(store, record_id)
    return record.to_wire()


@app.put("/api/stores/{store}/{record_id}", tags=["Records"])
def put_record(
    store: str,
    record_id: str,
    record: Dict[str, Any] = Body(...),
    services: EntityServices = Depends(get_services),
):
    if str(record.get("id", record_id)) != record_id:
        raise RecordValidationError(store, {"id": "Body id does not match the URL"})
    record["id"] = record_id
    return services.store.put(store, record).to_wire()


@app.patch("/api/stores/{store}/{record_id}", tags=["Records"])
def update_record(
    store: str,
    record_id: str,
    changes: Dict[str, Any] = Body(...),
    services: EntityServices = Depends(get_services),
):
    return services.store.update(store, record_id, changes).to_wire()


@app.delete("/api/stores/{store}/{record_id}", tags=["Records"])
def delete_record(store: str, record_id: str, services: EntityServices = Depends(get_services)):
    if not services.store.delete(store, record_id):
        raise RecordNotFoundError(store, record_id)
    return {"deleted": True, "id": record_id}


# =============================================================================
# Forms
# =============================================================================

@app.post("/api/forms/{kind}", status_code=201, tags=["Forms"])
def submit_form(
    kind: str,
    data: Dict[str, Any] = Body(...),
    services: EntityServices = Depends(get_services),
):
    if kind not in FORMS:
        raise HTTPException(status_code=404, detail=f"Unknown form: {kind}")

    notices = NoticeLog()
    result = FormSubmitter(services, notices).submit(kind, data)
    notice_dicts = [n.to_dict() for n in notices.notices]
    if result.ok:
        return {"record": result.record.to_wire(), "notices": notice_dicts}

    if result.field_errors:
        return JSONResponse(
            status_code=422,
            content={"error": "Validation failed", "fieldErrors": result.field_errors, "notices": notice_dicts},
        )
    return JSONResponse(
        status_code=503,
        content={"error": notice_dicts[-1]["description"] if notice_dicts else "Storage unavailable", "notices": notice_dicts},
    )


# =============================================================================
# Tasks
# =============================================================================

def _tasks_context(services: EntityServices, notices: NoticeLog) -> TasksContext:
    context = TasksContext(services.tasks, notices)
    if not context.reload():
        raise StorageError("tasks", "read")
    return context


@app.post("/api/tasks/bulk-delete", tags=["Tasks"])
def bulk_delete_tasks(request: BulkDeleteRequest, services: EntityServices = Depends(get_services)):
    notices = NoticeLog()
    context = _tasks_context(services, notices)
    for task_id in dict.fromkeys(request.ids):
        context.toggle_select(task_id)
    deleted = context.bulk_delete()
    if notices.errors:
        raise StorageError("tasks", "delete")
    return {"deleted": deleted, "notices": [n.to_dict() for n in notices.notices]}


@app.post("/api/tasks/{task_id}/toggle", tags=["Tasks"])
def toggle_task(task_id: str, services: EntityServices = Depends(get_services)):
    notices = NoticeLog()
    context = _tasks_context(services, notices)
    updated = context.toggle_completion(task_id)
    if updated is None:
        if notices.errors:
            raise StorageError("tasks", "update")
        raise RecordNotFoundError("tasks", task_id)
    return {"task": updated.to_wire(), "notices": [n.to_dict() for n in notices.notices]}


@app.get("/api/tasks/{task_id}/download", tags=["Tasks"])
def download_task(task_id: str, services: EntityServices = Depends(get_services)):
    context = _tasks_context(services, NoticeLog())
    download = context.download(task_id)
    if download is None:
        raise RecordNotFoundError("tasks", task_id)
    return Response(
        content=download.content,
        media_type=download.media_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )


# =============================================================================
# Export / Import
# =============================================================================

@app.get("/api/export", tags=["Backup"])
def export_data(services: EntityServices = Depends(get_services)):
    return export_records(services.store)


@app.post("/api/import", tags=["Backup"])
def import_data(
    payload: Dict[str, Any] = Body(...),
    replace: bool = Query(False),
    services: EntityServices = Depends(get_services),
):
    return {"imported": import_records(services.store, payload, replace=replace)}


# =============================================================================
# Lifecycle
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    settings = get_settings()
    logger.info(f"Starting MediatorMate Service v{settings.service_version}")
    for warning in settings.validate_chat_config():
        logger.warning(warning)

    try:
        init_db()
    except SQLAlchemyError as e:
        logger.error(f"Database initialisation failed; record endpoints will return 503: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    if _chat_proxy is not None:
        await _chat_proxy.close()
    logger.info("MediatorMate Service stopped")


# =============================================================================
# Error handlers
# =============================================================================

@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return JSONResponse(status_code=503, content={"error": str(exc)})


@app.exception_handler(UnknownStoreError)
@app.exception_handler(RecordNotFoundError)
async def not_found_handler(request: Request, exc: Exception):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(UnknownIndexError)
async def unknown_index_handler(request: Request, exc: UnknownIndexError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(DuplicateRecordError)
async def duplicate_handler(request: Request, exc: DuplicateRecordError):
    return JSONResponse(status_code=409, content={"error": str(exc)})


@app.exception_handler(RecordValidationError)
async def record_validation_handler(request: Request, exc: RecordValidationError):
    return JSONResponse(status_code=422, content={"error": str(exc), "fieldErrors": exc.errors})


@app.exception_handler(HTTPException)
async def api_http_exception_handler(request: Request, exc: HTTPException):
    """`{error}` bodies everywhere"""
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.error("Unhandled exception on %s: %s", request.url.path, exc.__class__.__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# =============================================================================
# Main (for direct execution)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "mediator_mate.api:app",
        host="0.0.0.0",
        port=get_settings().backend_port,
        reload=True
    )
