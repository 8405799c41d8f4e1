"""Utility types for consistent CLI error handling."""

from __future__ import annotations

from enum import IntEnum

from libraries.reconcile.errors import (
    ArchiveServiceError,
    DatasetRangeError,
    LedgerError,
    ReportSinkError,
    WindowProcessingError,
)


class ExitCode(IntEnum):
    """Standardised exit codes for the Robin CLI."""

    SUCCESS = 0
    VALIDATION = 1
    IO = 2
    CONFIG = 3
    EXTERNAL = 4
    RUNTIME = 5


class RobinError(Exception):
    """Base for predictable CLI errors that surface to users."""

    exit_code: ExitCode = ExitCode.RUNTIME
    label = "Error"

    def __init__(
        self, message: str, *, exit_code: ExitCode | int | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is None:
            exit_code = type(self).exit_code
        self.exit_code = ExitCode(exit_code)

    def __str__(self) -> str:  # pragma: no cover - exercised through Typer.
        return self.message

    @property
    def heading(self) -> str:
        """Return a short label describing the error class."""

        return type(self).label


class RobinValidationError(RobinError):
    """Raised when user input fails validation checks."""

    exit_code = ExitCode.VALIDATION
    label = "Validation error"


class RobinIOError(RobinError):
    """Raised when report files cannot be written."""

    exit_code = ExitCode.IO
    label = "I/O error"


class RobinConfigError(RobinError):
    """Raised when configuration or environment is invalid."""

    exit_code = ExitCode.CONFIG
    label = "Configuration error"


class RobinExternalServiceError(RobinError):
    """Raised when the ledger or the archive fails to respond correctly."""

    exit_code = ExitCode.EXTERNAL
    label = "External service error"


class RobinRuntimeError(RobinError):
    """Raised for unexpected runtime failures."""

    exit_code = ExitCode.RUNTIME
    label = "Runtime error"


def translate_error(exc: Exception) -> RobinError:
    """Map a reconciliation failure onto the matching CLI error."""

    cause = exc.cause if isinstance(exc, WindowProcessingError) else exc
    message = str(exc)
    if isinstance(cause, DatasetRangeError):
        return RobinConfigError(message)
    if isinstance(cause, ReportSinkError):
        return RobinIOError(message)
    if isinstance(cause, (LedgerError, ArchiveServiceError)):
        return RobinExternalServiceError(message)
    return RobinRuntimeError(message)


__all__ = [
    "ExitCode",
    "RobinError",
    "RobinValidationError",
    "RobinIOError",
    "RobinConfigError",
    "RobinExternalServiceError",
    "RobinRuntimeError",
    "translate_error",
]
