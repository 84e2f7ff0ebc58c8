"""
Job log capture.

While a job runs, every record emitted under the `newsengine` logger from
that job's task (and the tasks it spawns) is copied into a bounded buffer
that the executor stores on the JobRun row. Captures are keyed by a
context variable so concurrent jobs never see each other's lines.
"""

import logging
from collections import Counter, deque
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Iterator

MAX_LOG_LINES = 500
MAX_MESSAGE_LENGTH = 1024

_active_capture: ContextVar["JobLogCapture | None"] = ContextVar("job_log_capture", default=None)


class JobLogCapture(logging.Handler):
    """Logging handler that keeps the newest lines of one job run."""

    def __init__(
        self,
        max_lines: int = MAX_LOG_LINES,
        max_message_length: int = MAX_MESSAGE_LENGTH,
        logger_name: str = "newsengine",
    ):
        super().__init__(level=logging.DEBUG)
        self.max_message_length = max_message_length
        self.logger_name = logger_name
        self._lines: deque[dict] = deque(maxlen=max_lines)

    def emit(self, record: logging.LogRecord):
        if _active_capture.get() is not self:
            return
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return

        if record.exc_info and record.exc_info[1] is not None:
            message = f"{message}: {record.exc_info[1]!r}"
        if len(message) > self.max_message_length:
            message = message[:self.max_message_length] + "...[truncated]"

        self._lines.append({
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": message,
        })

    @property
    def lines(self) -> list[dict]:
        return list(self._lines)

    def stats(self) -> dict[str, int]:
        """Number of captured lines per level."""
        return dict(Counter(line["level"] for line in self._lines))

    def clear(self):
        self._lines.clear()

    @contextmanager
    def capture(self) -> Iterator["JobLogCapture"]:
        """Attach to the package logger and capture records from this context."""
        target = logging.getLogger(self.logger_name)
        if target.level == logging.NOTSET:
            # Job logs keep INFO even when the root logger is quieter
            target.setLevel(logging.INFO)
        target.addHandler(self)
        token = _active_capture.set(self)
        try:
            yield self
        finally:
            _active_capture.reset(token)
            target.removeHandler(self)
