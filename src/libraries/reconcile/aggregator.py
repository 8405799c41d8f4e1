"""Fold ledger rows into per-dataset, per-subdirectory upload groups."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional

import structlog

from libraries.reconcile.models import UploadGroup, UploadRecord
from libraries.reconcile.sources import LedgerRow

log = structlog.get_logger(__name__)

MAX_LOGGED_PARSE_WARNINGS = 10

GroupsBySubdirectory = Dict[str, UploadGroup]
GroupsByDataset = Dict[int, GroupsBySubdirectory]


class ParseWarnings:
    """Count field parse failures, logging only the first few."""

    def __init__(self, limit: int = MAX_LOGGED_PARSE_WARNINGS) -> None:
        self.limit = limit
        self.count = 0

    def warn(self, column: str, value: Any, *, entry_id: Any = None) -> None:
        self.count += 1
        if self.count <= self.limit:
            log.warning(
                "ledger.parse_warning",
                column=column,
                value=value,
                entry_id=entry_id,
            )
        elif self.count == self.limit + 1:
            log.warning("ledger.parse_warning.suppressed", limit=self.limit)


def _parse_int(
    row: LedgerRow,
    column: str,
    warnings: ParseWarnings,
    *,
    entry_id: Any = None,
) -> int:
    value = row.get(column)
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            as_float = float(value)
        except (TypeError, ValueError):
            warnings.warn(column, value, entry_id=entry_id)
            return 0
        if as_float.is_integer():
            return int(as_float)
        warnings.warn(column, value, entry_id=entry_id)
        return 0


def _parse_entered(row: LedgerRow, warnings: ParseWarnings, *, entry_id: Any = None) -> Optional[datetime]:
    value = row.get("entered")
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        warnings.warn("entered", value, entry_id=entry_id)
        return None


def parse_upload_row(row: LedgerRow, warnings: ParseWarnings) -> UploadRecord:
    """Convert a raw ledger row into an :class:`UploadRecord`.

    Unparseable numbers are recorded as warnings and treated as zero.
    """

    entry_id = row.get("entry_id")
    return UploadRecord(
        entry_id=_parse_int(row, "entry_id", warnings, entry_id=entry_id),
        job=_parse_int(row, "job", warnings, entry_id=entry_id),
        dataset_id=_parse_int(row, "dataset_id", warnings, entry_id=entry_id),
        subdirectory=str(row.get("subdirectory") or "").strip(),
        files_new=_parse_int(row, "file_count_new", warnings, entry_id=entry_id),
        files_updated=_parse_int(row, "file_count_updated", warnings, entry_id=entry_id),
        total_bytes=_parse_int(row, "bytes", warnings, entry_id=entry_id),
        status_num=_parse_int(row, "status_num", warnings, entry_id=entry_id),
        transaction_id=_parse_int(row, "transaction_id", warnings, entry_id=entry_id),
        entered=_parse_entered(row, warnings, entry_id=entry_id),
    )


class UploadGroupAggregator:
    """Group upload records by dataset and subdirectory.

    When *id_filter* is given, rows for other datasets are dropped before
    grouping.
    """

    def __init__(
        self,
        *,
        id_filter: Optional[Iterable[int]] = None,
        warnings: Optional[ParseWarnings] = None,
    ) -> None:
        self.id_filter = frozenset(id_filter) if id_filter is not None else None
        self.warnings = warnings or ParseWarnings()
        self.skipped_empty = 0

    def aggregate(
        self,
        rows: Iterable[LedgerRow],
        *,
        parse: Callable[[LedgerRow, ParseWarnings], UploadRecord] = parse_upload_row,
    ) -> GroupsByDataset:
        groups: GroupsByDataset = {}
        for row in rows:
            record = parse(row, self.warnings)
            if self.id_filter is not None and record.dataset_id not in self.id_filter:
                continue
            if record.files_touched < 1:
                self.skipped_empty += 1
                log.debug("ledger.skip_empty_upload", record=str(record))
                continue

            by_subdirectory = groups.setdefault(record.dataset_id, {})
            group = by_subdirectory.get(record.subdirectory)
            if group is None:
                by_subdirectory[record.subdirectory] = UploadGroup.from_record(record)
            else:
                group.add(record)
        return groups


__all__ = [
    "GroupsByDataset",
    "GroupsBySubdirectory",
    "MAX_LOGGED_PARSE_WARNINGS",
    "ParseWarnings",
    "UploadGroupAggregator",
    "parse_upload_row",
]
