# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Check-aware logging
# PURPOSE: Tag every log line with the interface/family/handle it concerns
# CREATED: 17 OCT 2026
# ============================================================================
"""
Structured Logging

Checks for many interfaces run interleaved on one event loop, so a bare
"check completed: PORTAL" is useless without knowing which link it was.
log_context() pushes the interface, address family and handle id onto a
thread-local stack; the formatters pick them up.

Output:
- HumanFormatter (default):
    2026-10-17 09:12:44 DEBUG    connectivity.handle [if=eth0, af=AF_INET, handle=4]: ...
- StructuredFormatter (LOG_FORMAT=json): one JSON object per line

Usage:
    from core.logging import ComponentType, get_logger, log_context

    logger = get_logger(__name__, ComponentType.ENGINE)

    with log_context(ifname="eth0", addr_family="AF_INET", handle_id=4):
        logger.debug("start request")
"""

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class ComponentType(str, Enum):
    """Which part of the engine a logger belongs to."""
    ENGINE = "engine"
    PROBE = "probe"
    RESOLVER = "resolver"
    TRANSPORT = "transport"
    CONFIG = "config"
    TOOL = "tool"


@dataclass(frozen=True)
class LogContext:
    """Fields attached to every record logged inside a log_context() block."""
    ifname: Optional[str] = None
    addr_family: Optional[str] = None
    handle_id: Optional[int] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def merged(self, **overrides) -> "LogContext":
        """Child context: overrides win, extra dicts are combined."""
        extra = {**self.extra, **overrides.pop("extra", {})}
        return replace(self, extra=extra, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Set fields only, with extra flattened in."""
        result = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "extra" and getattr(self, f.name) is not None
        }
        result.update(self.extra)
        return result


_local = threading.local()
_ROOT_CONTEXT = LogContext()


def _stack() -> List[LogContext]:
    stack = getattr(_local, "stack", None)
    if stack is None:
        stack = _local.stack = []
    return stack


def get_current_context() -> LogContext:
    """Innermost active context (empty outside any log_context block)."""
    stack = _stack()
    return stack[-1] if stack else _ROOT_CONTEXT


@contextmanager
def log_context(**fields_):
    """
    Add fields to every record logged inside the block.

    Only wrap synchronous sections: the stack is per thread, so a block
    spanning an await would leak into whatever task runs next.
    """
    stack = _stack()
    stack.append(get_current_context().merged(**fields_))
    try:
        yield stack[-1]
    finally:
        stack.pop()


# ============================================================================
# FORMATTERS
# ============================================================================

def _timestamp() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for journald/log shippers."""

    def __init__(self, include_source: bool = True):
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _timestamp().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = get_current_context().to_dict()
        if context:
            payload["context"] = context

        data = getattr(record, "extra", None)
        if data:
            payload["data"] = data

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            payload["source"] = f"{record.filename}:{record.lineno}"

        return json.dumps(payload, default=str)


class HumanFormatter(logging.Formatter):
    """Single-line output with the check's interface, family and handle."""

    _LABELS = (("ifname", "if"), ("addr_family", "af"), ("handle_id", "handle"))

    def format(self, record: logging.LogRecord) -> str:
        context = get_current_context()
        tags = [
            f"{label}={getattr(context, name)}"
            for name, label in self._LABELS
            if getattr(context, name) is not None
        ]
        where = f" [{', '.join(tags)}]" if tags else ""

        line = (
            f"{_timestamp():%Y-%m-%d %H:%M:%S} {record.levelname:<8} "
            f"{record.name}{where}: {record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


# ============================================================================
# LOGGERS
# ============================================================================

class ContextLogger(logging.LoggerAdapter):
    """
    Adapter that stores the active context on each record as `record.extra`.

    The component given to get_logger() is filled in unless the context
    already names one.
    """

    def process(self, msg, kwargs):
        data = dict(kwargs.get("extra") or {})
        data.update(get_current_context().to_dict())

        component = (self.extra or {}).get("component")
        if component:
            data.setdefault("component", component)

        kwargs["extra"] = {"extra": data}
        return msg, kwargs


def get_logger(name: str, component: Optional[ComponentType] = None) -> ContextLogger:
    """Context-aware logger for module `name`."""
    return ContextLogger(
        logging.getLogger(name),
        {"component": component.value if component else None},
    )


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Install a single stderr handler on the root logger.

    Args:
        level: Level name or number
        json_output: JSON lines instead of human output (also LOG_FORMAT=json)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = HumanFormatter()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
]
