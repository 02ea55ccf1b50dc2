"""FastAPI application for session ingest and dataset export."""

import json
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from .. import __version__
from ..core.config import AppConfig, load_config
from ..core.errors import PayloadTooLarge, RecorderError, SchemaViolation, UnknownTask
from ..core.logging import get_logger, setup_logging
from ..core.storage import SessionStore, create_store
from ..models.tooling import CreateTaskBody, Task
from ..services.ingest import MAX_EXPORT_LIMIT, MIN_EXPORT_LIMIT, export_lines, ingest_session
from ..services.redaction import Redactor

logger = get_logger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

_STATUS_CODES = {
    PayloadTooLarge.kind: 413,
    UnknownTask.kind: 404,
}


def bearer_auth(api_tokens: List[str]):
    """Dependency rejecting requests without an allowed bearer token."""
    allowed = set(api_tokens)

    async def require_token(authorization: Optional[str] = Header(None)) -> str:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing Authorization bearer token")
        token = authorization[len("Bearer "):].strip()
        if token not in allowed:
            raise HTTPException(status_code=401, detail="Invalid token")
        return token

    return require_token


def create_app(config: Optional[AppConfig] = None, store: Optional[SessionStore] = None) -> FastAPI:
    """Build the ingest/export app.

    Args:
        config: Application config (default: load_config())
        store: Session store (default: file store under config.server.store_dir)

    Returns:
        Configured FastAPI app
    """
    config = config or load_config()
    store = store or create_store(config.server.store_dir)
    redactor = Redactor(config.recorder.redaction_patterns)
    max_record_bytes = config.server.max_record_bytes

    app = FastAPI(title="Dataset Recorder", version=__version__)
    app.state.store = store
    auth = [Depends(bearer_auth(config.server.api_tokens))]

    @app.exception_handler(RecorderError)
    async def recorder_error_handler(request: Request, exc: RecorderError):
        status_code = _STATUS_CODES.get(exc.kind, 400)
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        error = SchemaViolation(f"{location}: {first.get('msg', 'invalid request')}")
        return JSONResponse(status_code=400, content=error.to_dict())

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"ok": True}

    @app.get("/tasks", dependencies=auth)
    async def list_tasks():
        return [task.model_dump(mode="json", by_alias=True) for task in store.list_tasks()]

    @app.post("/tasks", status_code=201, dependencies=auth)
    async def create_task(body: CreateTaskBody):
        if any(task.id == body.id for task in store.list_tasks()):
            raise HTTPException(status_code=409, detail=f"Task already exists: {body.id}")
        task = store.put_task(Task(**body.model_dump()))
        logger.info(f"Created task {task.id}", extra={"task_id": task.id})
        return task.model_dump(mode="json", by_alias=True)

    @app.post("/sessions", status_code=201, dependencies=auth)
    async def create_session(request: Request):
        """Validate, redact and store a finalized session payload."""
        raw = await request.body()
        if len(raw) > max_record_bytes:
            raise PayloadTooLarge(f"Payload too large ({len(raw)} bytes), max {max_record_bytes}")
        try:
            body = json.loads(raw)
        except ValueError:
            raise SchemaViolation("Request body is not valid JSON")
        if not isinstance(body, dict):
            raise SchemaViolation("Request body must be a JSON object")

        stored = ingest_session(body, store, redactor=redactor, max_record_bytes=max_record_bytes)
        return {"sessionId": stored.id, "status": stored.status}

    @app.get("/export.jsonl", dependencies=auth)
    async def export_jsonl(
        task_id: str = Query(..., alias="taskId", min_length=1),
        limit: Optional[int] = Query(None, ge=MIN_EXPORT_LIMIT, le=MAX_EXPORT_LIMIT),
        since: Optional[datetime] = Query(None),
    ):
        """Stream one ``{"messages": [...]}`` line per stored session."""
        lines = export_lines(store, task_id, since=since, limit=limit)
        return StreamingResponse(lines, media_type=NDJSON_MEDIA_TYPE)

    return app


def serve(config: Optional[AppConfig] = None, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the app with uvicorn."""
    import uvicorn

    config = config or load_config()
    setup_logging(config.logging.level, config.logging.structured)
    app = create_app(config)
    host = host or config.server.host
    port = port or config.server.port
    logger.info(f"dataset server listening on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    serve()
