"""Ingest and export of finalized session records."""

import json
import uuid
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Union

from pydantic import ValidationError

from ..core.config import ServerConfig
from ..core.errors import PayloadTooLarge, SchemaViolation, UnknownTask
from ..core.logging import get_logger
from ..core.storage import SessionStore
from ..models.tooling import SessionPayload, StoredSession
from .record_builder import redact_record
from .redaction import Redactor
from .validator import describe_validation_error, validate_record, verify_declared_status

logger = get_logger(__name__)

MIN_EXPORT_LIMIT = 1
MAX_EXPORT_LIMIT = 5000


def parse_payload(body: Union[SessionPayload, Dict[str, Any]]) -> SessionPayload:
    if isinstance(body, SessionPayload):
        return body
    try:
        return SessionPayload.model_validate(body)
    except ValidationError as e:
        raise SchemaViolation(f"Invalid session payload: {describe_validation_error(e)}")


def payload_size_bytes(payload: SessionPayload) -> int:
    """UTF-8 size of the payload's compact JSON encoding."""
    encoded = json.dumps(payload.to_wire(), ensure_ascii=False, separators=(",", ":"))
    return len(encoded.encode("utf-8"))


def ingest_session(
    body: Union[SessionPayload, Dict[str, Any]],
    store: SessionStore,
    redactor: Optional[Redactor] = None,
    max_record_bytes: int = ServerConfig().max_record_bytes,
) -> StoredSession:
    """Validate, redact and store one session.

    Args:
        body: Session payload (wire form or model)
        store: Destination store; the task must already exist there
        redactor: Secret redactor applied to the whole record
        max_record_bytes: Size cap for the encoded payload

    Returns:
        The stored session, carrying the derived status

    Raises:
        SchemaViolation: Payload or record shape is invalid
        StatusMismatch: Declared status disagrees with the derived one
        PayloadTooLarge: Encoded payload exceeds max_record_bytes
        UnknownTask: No task with the payload's taskId
    """
    payload = parse_payload(body)
    report = verify_declared_status(payload.record, payload.status)

    size = payload_size_bytes(payload)
    if size > max_record_bytes:
        raise PayloadTooLarge(f"Payload too large ({size} bytes), max {max_record_bytes}")

    if not any(task.id == payload.task_id for task in store.list_tasks()):
        raise UnknownTask(f"Unknown task: {payload.task_id}", argument=payload.task_id)

    redactor = redactor or Redactor()
    record = redact_record(payload.record, redactor)
    validate_record(record)

    stored = store.put_session(
        StoredSession(
            id=uuid.uuid4().hex,
            task_id=payload.task_id,
            repo=payload.repo,
            base_ref=payload.base_ref,
            created_at=payload.created_at,
            status=report.status,
            metrics=payload.metrics,
            record=record,
        )
    )
    logger.info(
        f"Stored {report.status} session {stored.id}",
        extra={"session_id": stored.id, "task_id": stored.task_id},
    )
    return stored


def export_line(session: StoredSession) -> str:
    return json.dumps({"messages": session.record.to_wire()["messages"]}, ensure_ascii=False)


def export_lines(
    store: SessionStore,
    task_id: str,
    since: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> Iterator[str]:
    """Yield one NDJSON line per stored session of a task, oldest first.

    Raises:
        SchemaViolation: If limit is outside 1..5000
    """
    if limit is not None and not MIN_EXPORT_LIMIT <= limit <= MAX_EXPORT_LIMIT:
        raise SchemaViolation(
            f"limit must be between {MIN_EXPORT_LIMIT} and {MAX_EXPORT_LIMIT}",
            argument=str(limit),
        )
    sessions = store.list_sessions(task_id=task_id, since=since, limit=limit)
    return (export_line(session) + "\n" for session in sessions)
