"""
Structured JSON logging with per-request correlation IDs.
"""

import asyncio
import functools
import json
import logging
import logging.handlers
import sys
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Correlation ID of the request currently being processed
correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

_RESERVED_RECORD_FIELDS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'correlation_id'
})


@dataclass
class LogContext:
    """Request-scoped fields attached to every record a ContextualLogger emits."""
    correlation_id: Optional[str] = None
    operation: Optional[str] = None
    request_kind: Optional[str] = None
    identifier: Optional[str] = None
    network_id: Optional[int] = None
    additional_fields: Dict[str, Any] = field(default_factory=dict)

    def as_extra(self) -> Dict[str, Any]:
        extra = {
            key: value for key, value in (
                ("operation", self.operation),
                ("request_kind", self.request_kind),
                ("identifier", self.identifier),
                ("network_id", self.network_id),
            ) if value is not None
        }
        extra.update(self.additional_fields)
        return extra


class CorrelationIdFilter(logging.Filter):
    """Stamp the active correlation ID onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "unknown"
        return True


class StructuredFormatter(logging.Formatter):
    """
    Render log records as single-line JSON documents.

    Fields passed through ``extra=`` are collected under an ``extra`` key;
    values that are not JSON serializable are stringified.
    """

    def __init__(self, include_extra_fields: bool = True):
        super().__init__()
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "correlation_id": getattr(record, 'correlation_id', 'unknown'),
        }

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra_fields:
            extra_fields = {}
            for key, value in record.__dict__.items():
                if key in _RESERVED_RECORD_FIELDS:
                    continue
                try:
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)
            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ContextualLogger:
    """Logger wrapper that merges a LogContext into every call's ``extra``."""

    def __init__(self, name: str, context: Optional[LogContext] = None):
        self.logger = logging.getLogger(name)
        self.context = context or LogContext()

    def _log(self, level: int, message: str, *args, exc_info: Any = None, **fields) -> None:
        extra = self.context.as_extra()
        extra.update(fields)
        if self.context.correlation_id:
            correlation_id.set(self.context.correlation_id)
        self.logger.log(level, message, *args, exc_info=exc_info, extra=extra)

    def debug(self, message: str, *args, **fields) -> None:
        self._log(logging.DEBUG, message, *args, **fields)

    def info(self, message: str, *args, **fields) -> None:
        self._log(logging.INFO, message, *args, **fields)

    def warning(self, message: str, *args, **fields) -> None:
        self._log(logging.WARNING, message, *args, **fields)

    def error(self, message: str, *args, **fields) -> None:
        self._log(logging.ERROR, message, *args, **fields)

    def exception(self, message: str, *args, **fields) -> None:
        self._log(logging.ERROR, message, *args, exc_info=True, **fields)

    def with_context(self, **updates) -> 'ContextualLogger':
        """Return a logger whose context is this one's with ``updates`` applied."""
        additional = {**self.context.additional_fields, **updates.pop('additional_fields', {})}
        new_context = LogContext(
            correlation_id=updates.get('correlation_id', self.context.correlation_id),
            operation=updates.get('operation', self.context.operation),
            request_kind=updates.get('request_kind', self.context.request_kind),
            identifier=updates.get('identifier', self.context.identifier),
            network_id=updates.get('network_id', self.context.network_id),
            additional_fields=additional,
        )
        return ContextualLogger(self.logger.name, new_context)


class LoggingManager:
    """
    Process-wide logging setup.

    Installs console and rotating-file handlers on the root logger, either
    with the JSON formatter or a plain text one.
    """

    def __init__(self):
        self._configured = False
        self._handlers: Dict[str, logging.Handler] = {}

    @property
    def configured(self) -> bool:
        return self._configured

    def setup_logging(
        self,
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        max_file_size: int = 10 * 1024 * 1024,
        backup_count: int = 5,
        console_output: bool = True,
        structured_format: bool = True,
        force: bool = False,
    ) -> None:
        """
        Configure the root logger.

        Args:
            log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional path for a rotating log file
            max_file_size: Bytes before the log file rotates
            backup_count: Rotated files to keep
            console_output: Whether to log to stdout
            structured_format: JSON output when True, plain text otherwise
            force: Reconfigure even if logging was already set up
        """
        if self._configured and not force:
            return

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
        for handler in self._handlers.values():
            root_logger.removeHandler(handler)
        self._handlers.clear()

        if structured_format:
            formatter: logging.Formatter = StructuredFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(correlation_id)s - %(message)s'
            )

        if console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            console_handler.addFilter(CorrelationIdFilter())
            root_logger.addHandler(console_handler)
            self._handlers['console'] = console_handler

        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            file_handler.addFilter(CorrelationIdFilter())
            root_logger.addHandler(file_handler)
            self._handlers['file'] = file_handler

        self._quiet_third_party_loggers()
        self._configured = True

        logging.getLogger(__name__).info(
            "Logging configured",
            extra={
                "log_level": log_level,
                "log_file": log_file,
                "structured_format": structured_format,
            }
        )

    def _quiet_third_party_loggers(self) -> None:
        logging.getLogger('asyncio').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy.pool').setLevel(logging.WARNING)
        logging.getLogger('apscheduler').setLevel(logging.WARNING)
        logging.getLogger('watchdog').setLevel(logging.WARNING)

    def handler_names(self):
        return list(self._handlers)

    def create_correlation_id(self) -> str:
        return uuid.uuid4().hex

    def set_correlation_id(self, corr_id: Optional[str] = None) -> str:
        """Set (or generate) the correlation ID for the current context."""
        corr_id = corr_id or self.create_correlation_id()
        correlation_id.set(corr_id)
        return corr_id

    def get_correlation_id(self) -> Optional[str]:
        return correlation_id.get()

    def clear_correlation_id(self) -> None:
        correlation_id.set(None)


logging_manager = LoggingManager()


def get_logger(name: str, context: Optional[LogContext] = None) -> ContextualLogger:
    """Get a ContextualLogger for ``name``."""
    return ContextualLogger(name, context)


def with_correlation_id(corr_id: Optional[str] = None):
    """
    Run the decorated function under its own correlation ID.

    The previous ID is restored afterwards. Works for both coroutine
    functions and plain functions.
    """
    def decorator(func):
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                token = correlation_id.set(corr_id or logging_manager.create_correlation_id())
                try:
                    return await func(*args, **kwargs)
                finally:
                    correlation_id.reset(token)
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            token = correlation_id.set(corr_id or logging_manager.create_correlation_id())
            try:
                return func(*args, **kwargs)
            finally:
                correlation_id.reset(token)
        return sync_wrapper
    return decorator
