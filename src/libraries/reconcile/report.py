"""Tab-delimited report of discrepancy records."""

from __future__ import annotations

import csv
import re
import time
from datetime import date, datetime
from pathlib import Path
from typing import IO, Any, Callable, List, Optional, Sequence

import structlog

from libraries.reconcile.errors import ReportSinkError
from libraries.reconcile.models import DiscrepancyRecord

log = structlog.get_logger(__name__)

DATE_TIME_FORMAT = "%Y-%m-%d %I:%M:%S %p"
REPORT_PREFIX = "ArchiveValidation"
FLUSH_INTERVAL_SECONDS = 15.0

_CONTROL_WHITESPACE = re.compile(r"[\t\r\n]+")

REPORT_COLUMNS = (
    "StatusDate",
    "EntryID",
    "Job",
    "DatasetID",
    "Subdirectory",
    "StatusNum",
    "TransactionID",
    "Entered",
    "Files",
    "FilesInArchive",
    "Bytes",
    "BytesInArchive",
    "MatchRatio",
    "Comment",
)


def report_path(output_dir: Path, today: Optional[date] = None) -> Path:
    """Return the dated report file inside *output_dir*."""

    stamp = (today or date.today()).strftime("%Y-%m-%d")
    return output_dir / f"{REPORT_PREFIX}_{stamp}.txt"


def _format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime(DATE_TIME_FORMAT)


def _cell(value: str) -> str:
    return _CONTROL_WHITESPACE.sub(" ", value)


def format_row(record: DiscrepancyRecord) -> List[str]:
    """Render *record* as report cells in :data:`REPORT_COLUMNS` order.

    Tabs and line breaks inside a cell are collapsed to a space so every
    record stays on one line with exactly one cell per column.
    """

    upload = record.record
    cells = [
        _format_timestamp(record.status_date),
        str(upload.entry_id),
        str(upload.job),
        str(upload.dataset_id),
        upload.subdirectory,
        str(upload.status_num),
        str(upload.transaction_id),
        _format_timestamp(upload.entered),
        str(record.expected_files),
        str(record.actual_files),
        str(record.expected_bytes),
        str(record.actual_bytes),
        record.match_ratio.format(),
        record.comment,
    ]
    return [_cell(value) for value in cells]


class TabularReportSink:
    """Append discrepancy rows to a tab-delimited text file.

    With ``append=True`` an existing report is resumed and the header is only
    written when the file is new or empty; otherwise the file is replaced.
    Writes are flushed at most every ``flush_interval`` seconds via
    :meth:`flush` and always on :meth:`close`.
    """

    def __init__(
        self,
        path: Path,
        *,
        append: bool = True,
        flush_interval: float = FLUSH_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.path = path
        self.append_mode = append
        self.flush_interval = flush_interval
        self.rows_written = 0
        self._clock = clock
        self._handle: Optional[IO[str]] = None
        self._writer: Any = None
        self._last_flush = clock()

    def open(self) -> "TabularReportSink":
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                if self.append_mode:
                    log.info("report.append", path=str(self.path))
                    write_header = self.path.stat().st_size == 0
                else:
                    log.info("report.overwrite", path=str(self.path))
                    self.path.unlink()
                    write_header = True
            else:
                log.info("report.create", path=str(self.path))
                write_header = True

            self._handle = self.path.open("a", encoding="utf-8", newline="")
            self._writer = csv.writer(self._handle, delimiter="\t", lineterminator="\n")
            if write_header:
                self._write_line(REPORT_COLUMNS)
        except OSError as exc:
            raise ReportSinkError(f"Unable to open report '{self.path}': {exc}") from exc
        return self

    def _write_line(self, cells: Sequence[str]) -> None:
        if self._writer is None:
            raise ReportSinkError("report sink is not open")
        self._writer.writerow(cells)

    def append(self, record: DiscrepancyRecord) -> None:
        try:
            self._write_line(format_row(record))
        except OSError as exc:
            raise ReportSinkError(f"Unable to write to report '{self.path}': {exc}") from exc
        self.rows_written += 1

    def flush(self, *, force: bool = False) -> None:
        if self._handle is None:
            return
        now = self._clock()
        if not force and now - self._last_flush < self.flush_interval:
            return
        try:
            self._handle.flush()
        except OSError as exc:
            raise ReportSinkError(f"Unable to flush report '{self.path}': {exc}") from exc
        self._last_flush = now

    def close(self) -> None:
        if self._handle is None:
            return
        try:
            self._handle.flush()
            self._handle.close()
        except OSError as exc:
            raise ReportSinkError(f"Unable to close report '{self.path}': {exc}") from exc
        finally:
            self._handle = None
            self._writer = None

    def __enter__(self) -> "TabularReportSink":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class MemoryReportSink:
    """Collect records in memory; used for previews and tests."""

    def __init__(self) -> None:
        self.records: List[DiscrepancyRecord] = []
        self.flushes = 0

    def append(self, record: DiscrepancyRecord) -> None:
        self.records.append(record)

    def flush(self) -> None:
        self.flushes += 1


__all__ = [
    "DATE_TIME_FORMAT",
    "FLUSH_INTERVAL_SECONDS",
    "MemoryReportSink",
    "REPORT_COLUMNS",
    "TabularReportSink",
    "format_row",
    "report_path",
]
