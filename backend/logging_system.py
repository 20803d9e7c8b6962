"""
Task Analytics — Structured Logging System

Every entry is a JSON document tagged with a category and the current request
context (request id, correlation id, resolved caller). Entries go to the
`task-analytics.events` stdlib logger and into a bounded ring that the
observability router can query.
"""

from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional
import contextvars
import json
import logging
import os
import time
import traceback
import uuid


class LogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def numeric(self) -> int:
        # Same scale as the stdlib logging levels
        return getattr(logging, self.name)


class LogCategory(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    DATABASE = "database"
    CACHE = "cache"
    AUTH = "auth"
    ANALYTICS = "analytics"
    SECURITY = "security"
    PERFORMANCE = "performance"
    SYSTEM = "system"


# ============================================================
# REQUEST CONTEXT
# ============================================================

@dataclass
class RequestContext:
    """Per-request identifiers; user_id is filled in once the caller is resolved"""
    request_id: str
    correlation_id: str
    user_id: Optional[str] = None
    started: float = field(default_factory=time.perf_counter)

    @classmethod
    def create(cls, request_id: Optional[str] = None, correlation_id: Optional[str] = None) -> "RequestContext":
        request_id = request_id or uuid.uuid4().hex
        # A request without an upstream correlation id starts its own chain
        return cls(request_id=request_id, correlation_id=correlation_id or request_id)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


_request_context: contextvars.ContextVar[Optional[RequestContext]] = contextvars.ContextVar(
    "analytics_request_context", default=None
)


def get_current_context() -> Optional[RequestContext]:
    return _request_context.get()


def set_current_context(context: RequestContext) -> contextvars.Token:
    return _request_context.set(context)


def reset_current_context(token: contextvars.Token) -> None:
    _request_context.reset(token)


# ============================================================
# ENTRIES + BUFFER
# ============================================================

@dataclass
class LogEntry:
    level: LogLevel
    category: LogCategory
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: Optional[str] = None
    correlation_id: Optional[str] = None
    user_id: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "category": self.category.value,
            "message": self.message,
            "request_id": self.request_id,
            "correlation_id": self.correlation_id,
            "user_id": self.user_id,
            "duration_ms": self.duration_ms,
            "metadata": self.metadata,
        }
        if self.error:
            body["error"] = self.error
        return body

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


class LogBuffer:
    """Ring of the most recent entries"""

    def __init__(self, max_size: int = 10000):
        self.max_size = max_size
        self._entries: Deque[LogEntry] = deque(maxlen=max_size)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def get_all(self) -> List[LogEntry]:
        return list(self._entries)

    def clear(self) -> int:
        dropped = len(self._entries)
        self._entries.clear()
        return dropped

    def filter(
        self,
        level: Optional[LogLevel] = None,
        category: Optional[LogCategory] = None,
        correlation_id: Optional[str] = None,
        user_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
    ) -> List[LogEntry]:
        """Newest first; `level` is a minimum, the other filters are exact matches"""
        checks: List[Callable[[LogEntry], bool]] = []
        if level:
            checks.append(lambda e: e.level.numeric >= level.numeric)
        if category:
            checks.append(lambda e: e.category == category)
        if correlation_id:
            checks.append(lambda e: e.correlation_id == correlation_id)
        if user_id:
            checks.append(lambda e: e.user_id == user_id)
        if search:
            needle = search.lower()
            checks.append(lambda e: needle in e.message.lower())

        matches = []
        for entry in reversed(self._entries):
            if all(check(entry) for check in checks):
                matches.append(entry)
                if len(matches) == limit:
                    break
        return matches


# ============================================================
# LOGGER
# ============================================================

class StructuredLogger:
    """Category-aware JSON logger with an in-memory tail"""

    def __init__(
        self,
        service_name: str = "task-analytics",
        min_level: LogLevel = LogLevel.INFO,
        buffer_size: int = 10000,
        emit: bool = True,
    ):
        self.service_name = service_name
        self.min_level = min_level
        self.buffer = LogBuffer(buffer_size)
        self.emit = emit
        self._stdlib = logging.getLogger(f"{service_name}.events")

    def _log(
        self,
        level: LogLevel,
        category: LogCategory,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
        duration_ms: Optional[float] = None,
    ) -> Optional[LogEntry]:
        if level.numeric < self.min_level.numeric:
            return None

        context = get_current_context()
        entry = LogEntry(
            level=level,
            category=category,
            message=message,
            request_id=context.request_id if context else None,
            correlation_id=context.correlation_id if context else None,
            user_id=context.user_id if context else None,
            duration_ms=round(duration_ms, 3) if duration_ms is not None else None,
            metadata=metadata or {},
        )
        if error is not None:
            entry.error = {
                "type": type(error).__name__,
                "message": str(error),
                "trace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
            }

        self.buffer.append(entry)
        if self.emit:
            self._stdlib.log(level.numeric, entry.to_json())
        return entry

    def debug(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.DEBUG, category, message, **kwargs)

    def info(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.INFO, category, message, **kwargs)

    def warning(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.WARNING, category, message, **kwargs)

    def error(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.ERROR, category, message, **kwargs)

    def critical(self, message: str, category: LogCategory = LogCategory.SYSTEM, **kwargs) -> Optional[LogEntry]:
        return self._log(LogLevel.CRITICAL, category, message, **kwargs)

    # Shorthands used across the service

    def response(self, method: str, path: str, status_code: int, duration_ms: float) -> Optional[LogEntry]:
        if status_code >= 500:
            level = LogLevel.ERROR
        elif status_code >= 400:
            level = LogLevel.WARNING
        else:
            level = LogLevel.INFO
        return self._log(
            level,
            LogCategory.RESPONSE,
            f"{method} {path} -> {status_code}",
            metadata={"method": method, "path": path, "status_code": status_code},
            duration_ms=duration_ms,
        )

    def cache(self, event: str, key: str, **metadata) -> Optional[LogEntry]:
        """Cache store/expire/evict events (debug only; hits are too frequent to log)"""
        return self.debug(f"Cache {event}: {key}", category=LogCategory.CACHE, metadata={"event": event, "key": key, **metadata})

    def security_event(self, event_type: str, metadata: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        return self.warning(
            f"Security event: {event_type}",
            category=LogCategory.SECURITY,
            metadata={"event": event_type, **(metadata or {})},
        )

    def performance(self, operation: str, duration_ms: float, metadata: Optional[Dict[str, Any]] = None) -> Optional[LogEntry]:
        # Aggregations over the whole tracker should finish well under a second
        level = LogLevel.WARNING if duration_ms >= 1000 else LogLevel.INFO
        return self._log(level, LogCategory.PERFORMANCE, f"{operation} took {duration_ms:.1f}ms",
                         metadata=metadata, duration_ms=duration_ms)

    def get_logs(self, **filters) -> List[LogEntry]:
        return self.buffer.filter(**filters)

    def get_stats(self) -> Dict[str, Any]:
        entries = self.buffer.get_all()
        return {
            "total_logs": len(entries),
            "level_distribution": dict(Counter(e.level.value for e in entries)),
            "category_distribution": dict(Counter(e.category.value for e in entries)),
            "error_types": dict(Counter(e.error["type"] for e in entries if e.error)),
            "buffer_size": self.buffer.max_size,
            "buffer_usage_pct": round(len(entries) / self.buffer.max_size * 100, 2),
        }


class TimedOperation:
    """Logs the duration of the wrapped block, or the failure that ended it"""

    def __init__(
        self,
        logger: StructuredLogger,
        operation: str,
        category: LogCategory = LogCategory.PERFORMANCE,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self.logger = logger
        self.operation = operation
        self.category = category
        self.metadata = metadata or {}
        self._started = 0.0

    def __enter__(self) -> "TimedOperation":
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        elapsed = (time.perf_counter() - self._started) * 1000
        if exc_val is None:
            self.logger.performance(self.operation, elapsed, metadata=self.metadata)
        else:
            self.logger.error(
                f"{self.operation} failed",
                category=self.category,
                metadata=self.metadata,
                error=exc_val,
                duration_ms=elapsed,
            )
        return False


_logger: Optional[StructuredLogger] = None


def get_logger() -> StructuredLogger:
    """Process-wide structured logger, configured from the environment on first use"""
    global _logger
    if _logger is None:
        _logger = StructuredLogger(
            service_name=os.getenv("SERVICE_NAME", "task-analytics"),
            min_level=LogLevel.DEBUG if os.getenv("DEBUG") else LogLevel.INFO,
            buffer_size=int(os.getenv("LOG_BUFFER_SIZE", "10000")),
            emit=os.getenv("LOG_JSON_STDOUT", "true").lower() == "true",
        )
    return _logger
