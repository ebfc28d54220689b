"""Structured, severity-tagged errors shared by the upload pipeline.

Every failure that reaches a client is described by a :class:`StructuredError`
value.  It travels inside a single exception type, :class:`UploadError`, so
callers branch on ``error.severity`` instead of on exception subclasses.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class StructuredError:
    severity: Severity
    message: str
    details: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def display_message(self) -> str:
        """Message followed by the technical details, as shown in the client modal."""

        if self.details:
            return f"{self.message}\n\n{self.details}"
        return self.message


class UploadError(Exception):
    """Raised when an upload or finalize step cannot continue."""

    def __init__(self, error: StructuredError, *, status_code: int = 422) -> None:
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code

    @property
    def severity(self) -> Severity:
        return self.error.severity


def critical(
    message: str,
    details: str | None = None,
    context: dict[str, Any] | None = None,
    *,
    status_code: int = 422,
) -> UploadError:
    return UploadError(
        StructuredError(Severity.CRITICAL, message, details, context or {}),
        status_code=status_code,
    )


def warning(
    message: str,
    details: str | None = None,
    context: dict[str, Any] | None = None,
    *,
    status_code: int = 422,
) -> UploadError:
    return UploadError(
        StructuredError(Severity.WARNING, message, details, context or {}),
        status_code=status_code,
    )


def parse_error(exc: BaseException | str | None) -> StructuredError:
    """Normalise anything raised during processing into a :class:`StructuredError`."""

    if isinstance(exc, UploadError):
        return exc.error
    if isinstance(exc, BaseException):
        return StructuredError(
            Severity.CRITICAL,
            str(exc) or exc.__class__.__name__,
            details=exc.__class__.__name__,
        )
    if isinstance(exc, str):
        return StructuredError(Severity.CRITICAL, exc)
    return StructuredError(
        Severity.CRITICAL,
        "An unknown error occurred",
        details=json.dumps(exc, default=str, indent=2),
    )
