"""Protocols describing the collaborators used by the reconciliation engine."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol, Sequence

from libraries.reconcile.models import ArchivedFile, DiscrepancyRecord

LedgerRow = Mapping[str, Any]


class LedgerSource(Protocol):
    """Authoritative record of what was uploaded to the archive."""

    def get_max_verified_dataset_id(self) -> int: ...

    def get_upload_rows(self, dataset_id_start: int, dataset_id_end: int) -> Sequence[LedgerRow]: ...


class ArchiveSource(Protocol):
    """Listing service reporting what the archive physically holds."""

    def list_files(self, dataset_ids: Iterable[int]) -> list[ArchivedFile]: ...


class ReportSink(Protocol):
    """Append-only destination for discrepancy records."""

    def append(self, record: DiscrepancyRecord) -> None: ...

    def flush(self) -> None: ...


class ProgressCallback(Protocol):
    def __call__(self, units_completed: int, total_units: int) -> None: ...


__all__ = [
    "LedgerRow",
    "LedgerSource",
    "ArchiveSource",
    "ReportSink",
    "ProgressCallback",
]
