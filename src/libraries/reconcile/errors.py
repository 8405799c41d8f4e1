"""Exceptions raised by the archive reconciliation workflow."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class DatasetRangeError(ReconciliationError):
    """Raised when the requested dataset range cannot be scanned."""


class LedgerError(ReconciliationError):
    """Raised when the upload ledger cannot be queried."""


class ArchiveServiceError(ReconciliationError):
    """Raised when the archive listing service fails to respond correctly."""


class ReportSinkError(ReconciliationError):
    """Raised when discrepancy records cannot be persisted."""


class WindowProcessingError(ReconciliationError):
    """Raised when a dataset-ID window aborts the run.

    The message always names the window so a rerun can resume from it.
    """

    def __init__(self, start: int, end: int, cause: Exception) -> None:
        self.start = start
        self.end = end
        self.cause = cause
        super().__init__(
            f"Reconciliation aborted while processing dataset IDs {start}-{end}: {cause}"
        )


__all__ = [
    "ReconciliationError",
    "DatasetRangeError",
    "LedgerError",
    "ArchiveServiceError",
    "ReportSinkError",
    "WindowProcessingError",
]
