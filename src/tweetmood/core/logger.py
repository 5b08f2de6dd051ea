from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from rich.logging import RichHandler

# One id per pipeline run, attached to every record logged while it runs
_run_id: ContextVar[str] = ContextVar("run_id", default="")

# Attributes every LogRecord has; anything else was attached as context
_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "run_id"}

NOISY_LOGGERS = ("httpx", "httpcore")


def get_correlation_id() -> str:
    """Return the id of the run currently logging, or ''."""
    return _run_id.get()


def set_correlation_id(cid: Optional[str] = None) -> str:
    """Start tagging log records with ``cid`` (a fresh short uuid by default)."""
    cid = cid or uuid.uuid4().hex[:8]
    _run_id.set(cid)
    return cid


def _context_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED and not k.startswith("_")}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, context fields included."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        run_id = getattr(record, "run_id", "") or get_correlation_id()
        if run_id:
            payload["correlation_id"] = run_id
        payload.update(_context_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_correlation_id()
        return True


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Optional[str] = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """Configure the root logger once per process.

    Consoles get rich output; ``json_output`` (or ``LOG_JSON=1``) switches
    stdout to one JSON object per line. ``log_file`` always receives JSON.

    Examples:
        setup_logging("DEBUG")
        setup_logging(settings.log_level, json_output=settings.log_json)
    """
    json_output = json_output or os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")

    if json_output:
        console: logging.Handler = logging.StreamHandler(sys.stdout)
        console.setFormatter(StructuredFormatter())
    else:
        console = RichHandler(rich_tracebacks=True, show_path=False, markup=False)
        console.setFormatter(logging.Formatter("%(message)s"))

    handlers = [console]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers = []
    for handler in handlers:
        handler.addFilter(RunIdFilter())
        root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Loggers are namespaced by component: pipeline, classifier, store, ..."""
    return logging.getLogger(name)


class LogContext:
    """Attach fields to every record created inside the block.

    The record factory is process-wide, so worker threads started inside
    the block are tagged too.

    Example:
        with LogContext(stage="analyzing"):
            orchestrator.classify_all(texts)
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._previous = None

    def __enter__(self) -> "LogContext":
        previous = self._previous = logging.getLogRecordFactory()
        fields = self.fields

        def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = previous(*args, **kwargs)
            record.__dict__.update(fields)
            return record

        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, *args: Any) -> None:
        if self._previous is not None:
            logging.setLogRecordFactory(self._previous)
            self._previous = None


def _log_with_fields(logger: logging.Logger, level: int, msg: str, fields: dict[str, Any]) -> None:
    # Set after creation: fields may already exist on the record via LogContext
    if not logger.isEnabledFor(level):
        return
    record = logger.makeRecord(logger.name, level, "(tweetmood)", 0, msg, (), None)
    record.__dict__.update(fields)
    logger.handle(record)


def log_stage_event(
    logger: logging.Logger,
    stage: str,
    percent: int,
    message: str,
    **details: Any,
) -> None:
    """Log one pipeline progress update.

    The text reads ``[STAGE] 40% message key=value ...``; ``stage``,
    ``percent`` and every detail are also set as record fields for JSON
    output.
    """
    suffix = " ".join(f"{k}={v}" for k, v in details.items() if v is not None)
    text = f"[{stage.upper()}] {percent}% {message}"
    if suffix:
        text = f"{text} {suffix}"
    _log_with_fields(logger, logging.INFO, text, {"stage": stage, "percent": percent, **details})


def log_error_with_context(
    logger: logging.Logger,
    message: str,
    error: BaseException,
    **context: Any,
) -> None:
    """Log ``message: error`` at ERROR with the error type and ``context`` as fields."""
    fields = {"error": str(error), "error_type": type(error).__name__, **context}
    _log_with_fields(logger, logging.ERROR, f"{message}: {error}", fields)
