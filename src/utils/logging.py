"""
Structured JSON logging with correlation IDs and bound execution context.

Every log line is one JSON object: timestamp, level, correlation_id, module,
message, then the context fields bound with log_context() (company_id,
workflow_id, execution_id, trigger_id) and per-call extras (action, error_code).

The correlation ID is set per request by middleware and persisted on webhook
call logs and executions. log_context() binds tenant and execution ids for the
duration of a webhook call or a run, so action handlers never pass them around.
"""
import json
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Iterator, Optional

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_bound_fields: ContextVar[Optional[dict]] = ContextVar("log_fields", default=None)

CONTEXT_FIELDS = ("company_id", "workflow_id", "execution_id", "trigger_id")
EXTRA_FIELDS = CONTEXT_FIELDS + ("action", "error_code")
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    """UUID4 hex, 32 chars."""
    return uuid.uuid4().hex


def get_log_context() -> dict:
    return dict(_bound_fields.get() or {})


@contextmanager
def log_context(**fields) -> Iterator[dict]:
    """
    Bind fields to every log line emitted inside the block.
    Nested blocks extend the outer binding; None values are skipped.
    """
    bound = {**get_log_context(), **{k: str(v) for k, v in fields.items() if v is not None}}
    token = _bound_fields.set(bound)
    try:
        yield bound
    finally:
        _bound_fields.reset(token)


class StructuredJsonFormatter(logging.Formatter):
    """Single-line JSON. Explicit extra= values win over bound context."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "correlation_id": get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
        }
        entry.update(get_log_context())

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val

        return json.dumps(entry, default=str)


def configure_structured_logging(log_level: str = "INFO") -> None:
    """Route the root logger through one JSON stdout handler. Call once at startup."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers[:] = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
