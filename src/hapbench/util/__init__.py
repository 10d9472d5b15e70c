from __future__ import annotations

from hapbench.util.logging import log_structured_event, new_job_id
from hapbench.util.timing import timed


class ReadableException(Exception):
    def __init__(self, message, cause=None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self):
        if self.cause is None:
            return str(self.message)
        return f"{self.message}: {self.cause!r}"


__all__ = [
    "ReadableException",
    "new_job_id",
    "log_structured_event",
    "timed",
]
