"""Diagnostics for cascade invocations.

A ``CascadeTracer`` formats leveled trace lines for one invocation and hands
them to a diagnostics sink. Lines look like::

    [2025-01-11 14:23:45.123] [INFO] [CascadeEngine] [+45ms] Starting operation: cascade

Tracing can be switched off per invocation from the configuration's
``enableTracing`` flag. Errors are always written.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

DEBUG = "DEBUG"
INFO = "INFO"
WARNING = "WARNING"
ERROR = "ERROR"

_LOGGING_LEVELS = {
    DEBUG: logging.DEBUG,
    INFO: logging.INFO,
    WARNING: logging.WARNING,
    ERROR: logging.ERROR,
}


class DiagnosticsSink(ABC):
    """Destination for trace lines of an invocation."""

    @abstractmethod
    def write(self, level: str, line: str) -> None:
        """Append one formatted trace line.

        Args:
            level: One of DEBUG, INFO, WARNING, ERROR.
            line: Fully formatted trace line.
        """
        pass


class LoggingSink(DiagnosticsSink):
    """Sink that forwards trace lines to a standard library logger."""

    def __init__(self, target: Optional[logging.Logger] = None):
        self.target = target or logging.getLogger("cascade_fields.trace")

    def write(self, level: str, line: str) -> None:
        self.target.log(_LOGGING_LEVELS.get(level, logging.INFO), line)


class MemorySink(DiagnosticsSink):
    """Sink that keeps trace lines in memory.

    Attributes:
        entries: List of (level, line) tuples in write order.
    """

    def __init__(self):
        self.entries: List[Tuple[str, str]] = []

    def write(self, level: str, line: str) -> None:
        self.entries.append((level, line))

    def lines(self, level: Optional[str] = None) -> List[str]:
        """Trace lines, optionally restricted to one level."""
        return [line for lvl, line in self.entries if level is None or lvl == level]

    def clear(self) -> None:
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)


class CascadeTracer:
    """Leveled, timed trace writer for a single invocation.

    Attributes:
        source: Name included in every line.
        enabled: Whether DEBUG/INFO/WARNING lines are written.
    """

    def __init__(self, sink: Optional[DiagnosticsSink] = None, source: str = "CascadeEngine"):
        self.sink = sink if sink is not None else LoggingSink()
        self.source = source
        self.enabled = True
        self._start = time.perf_counter()

    def set_enabled(self, enabled: bool) -> None:
        """Switch verbose tracing on or off. Errors are unaffected."""
        self.enabled = enabled

    @property
    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self._start) * 1000)

    def debug(self, message: str) -> None:
        if self.enabled:
            self._write(DEBUG, message)

    def info(self, message: str) -> None:
        if self.enabled:
            self._write(INFO, message)

    def warning(self, message: str) -> None:
        if self.enabled:
            self._write(WARNING, message)

    def error(self, message: str, exc: Optional[BaseException] = None) -> None:
        if exc is not None:
            message = f"{message} | Exception: {type(exc).__name__} - {exc}"
        self._write(ERROR, message)

    def start_operation(self, name: str) -> None:
        self.info(f"Starting operation: {name}")

    def end_operation(self, name: str) -> None:
        self.info(f"Completed operation: {name} | Elapsed: {self.elapsed_ms}ms")

    def log_context(self, context) -> None:
        """Record the pipeline coordinates of an execution context."""
        self.info(
            f"Execution Context - Message: {context.message_name} | Stage: {int(context.stage)} "
            f"| Depth: {context.depth}"
        )
        self.info(f"Primary Entity: {context.entity_name} | Primary Entity Id: {context.primary_id}")

    def _write(self, level: str, message: str) -> None:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        line = f"[{timestamp}] [{level}] [{self.source}] [+{self.elapsed_ms}ms] {message}"
        try:
            self.sink.write(level, line)
        except Exception as e:
            logger.error(f"Diagnostics sink failed: {e}", exc_info=True)
