"""Errors raised while turning a filled LaTeX document into a PDF."""
from __future__ import annotations

from typing import Optional


class CompilationError(RuntimeError):
    """Base class for every failure of the compile step."""


class DocumentGenerationError(CompilationError):
    """
    The compiler could not be reached or answered with a non-success HTTP status.

    The response body is not inspected, so the message only depends on the
    status code (when there was one).
    """

    def __init__(self, status_code: Optional[int] = None):
        self.status_code = status_code
        message = "Failed to generate PDF from LaTeX"
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)


class RemoteCompilationError(CompilationError):
    """The compiler ran but reported a failure, or returned an unusable payload."""

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or "Unknown error"
        super().__init__(f"LaTeX compilation failed: {self.detail}")


class CompilerUnavailableError(CompilationError):
    """The selected local toolchain is not installed."""
