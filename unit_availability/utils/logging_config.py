"""
Structured Logging Configuration

Provides JSON-formatted logging with:
- Request ID tracking
- Actor context
- Operation timings
- Entity (unit / date) context for availability writes
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Any, Dict
from contextvars import ContextVar

# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')
actor_var: ContextVar[str] = ContextVar('actor', default='')


class JSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.
    Outputs logs in JSON format for easy parsing by log aggregators.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        actor = actor_var.get()
        if actor:
            log_data["actor"] = actor

        log_data["module"] = record.module
        log_data["function"] = record.funcName
        log_data["line"] = record.lineno

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_data'):
            log_data["data"] = record.extra_data

        if hasattr(record, 'duration_ms'):
            log_data["duration_ms"] = record.duration_ms

        if hasattr(record, 'entity_type'):
            log_data["entity_type"] = record.entity_type
        if hasattr(record, 'entity_id'):
            log_data["entity_id"] = record.entity_id

        return json.dumps(log_data, ensure_ascii=False, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter that adds structured context to log messages.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.get('extra', {})
        extra.update(self.extra)
        kwargs['extra'] = extra
        return msg, kwargs

    def log_with_context(
        self,
        level: int,
        msg: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        duration_ms: Optional[float] = None,
        **extra_data
    ):
        """Log with additional structured context."""
        extra = {}
        if entity_type:
            extra['entity_type'] = entity_type
        if entity_id:
            extra['entity_id'] = entity_id
        if duration_ms is not None:
            extra['duration_ms'] = duration_ms
        if extra_data:
            extra['extra_data'] = extra_data

        self.log(level, msg, extra=extra)

    def status_changed(self, unit_id: str, day: str, status: str, version: int):
        """Log a single cell write."""
        self.log_with_context(
            logging.INFO,
            f"Availability set: {unit_id} {day} -> {status}",
            entity_type="unit_availability",
            entity_id=unit_id,
            date=day,
            status=status,
            version=version
        )

    def status_cleared(self, unit_id: str, day: str, existed: bool):
        self.log_with_context(
            logging.INFO,
            f"Availability cleared: {unit_id} {day}",
            entity_type="unit_availability",
            entity_id=unit_id,
            date=day,
            existed=existed
        )

    def bulk_applied(self, unit_count: int, date_count: int, status: str, duration_ms: float):
        """Log a committed bulk edit."""
        self.log_with_context(
            logging.INFO,
            f"Bulk availability update: {unit_count} units x {date_count} dates -> {status}",
            entity_type="unit_availability",
            duration_ms=duration_ms,
            unit_count=unit_count,
            date_count=date_count,
            cells=unit_count * date_count,
            status=status
        )

    def index_loaded(self, unit_count: int, record_count: int, window: str, duration_ms: float):
        self.log_with_context(
            logging.DEBUG,
            f"Range index loaded: {record_count} records for {unit_count} units ({window})",
            entity_type="range_index",
            duration_ms=duration_ms,
            unit_count=unit_count,
            record_count=record_count,
            window=window
        )

    def api_request(self, method: str, path: str, status_code: int, duration_ms: float):
        """Log API request with performance data."""
        self.log_with_context(
            logging.INFO,
            f"{method} {path} - {status_code}",
            duration_ms=duration_ms,
            method=method,
            path=path,
            status_code=status_code
        )


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    include_uvicorn: bool = True
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON format (True for production)
        include_uvicorn: Also configure uvicorn loggers
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    logging.getLogger("unit_availability").setLevel(log_level)

    if include_uvicorn:
        for logger_name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
            logging.getLogger(logger_name).handlers = [handler]

    # Reduce noise from third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for the given module."""
    return StructuredLogger(logging.getLogger(name), {})


def set_request_context(request_id: str, actor: Optional[str] = None):
    """Set context for the current request."""
    request_id_var.set(request_id)
    if actor:
        actor_var.set(actor)


def clear_request_context():
    request_id_var.set('')
    actor_var.set('')
