"""Typed failures raised by the content pipeline.

``client_error`` tells the HTTP layer whether the caller caused the failure
(bad input, not retryable without fixing it) or the operation itself failed.
"""
from __future__ import annotations

from typing import Optional


class BookPipelineError(Exception):
    client_error = False


class ArchiveOpenError(BookPipelineError):
    """The uploaded archive is missing, corrupt or unreadable."""

    client_error = True


class TraversalViolation(BookPipelineError):
    """An archive entry or content path would escape its root."""

    client_error = True


class FilesystemError(BookPipelineError):
    """Directory/file creation, removal or copy failed."""


class BuildProcessError(BookPipelineError):
    """The external generator failed; ``output`` holds its combined stdout/stderr."""

    def __init__(
        self,
        message: str,
        *,
        returncode: Optional[int] = None,
        output: str = "",
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.output = output
        self.timed_out = timed_out

    def __str__(self) -> str:
        base = super().__str__()
        if self.output:
            return f"{base}: {self.output.strip()}"
        return base
