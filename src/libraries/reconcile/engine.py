"""Reconciliation engine driving the ledger, archive and report collaborators."""

from __future__ import annotations

import time
from collections import Counter
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from libraries.reconcile.aggregator import GroupsByDataset, ParseWarnings, UploadGroupAggregator
from libraries.reconcile.batcher import Clock, LookupBatcher, Sleeper
from libraries.reconcile.comparator import ReconciliationComparator
from libraries.reconcile.errors import (
    LedgerError,
    ReconciliationError,
    WindowProcessingError,
)
from libraries.reconcile.options import RunOptions
from libraries.reconcile.planner import DatasetRangePlanner, DatasetWindow, ScanPlan
from libraries.reconcile.sources import (
    ArchiveSource,
    LedgerRow,
    LedgerSource,
    ProgressCallback,
    ReportSink,
)

log = structlog.get_logger(__name__)


class RunSummary(BaseModel):
    """Totals reported once a reconciliation run has finished."""

    lower_bound: int
    upper_bound: int
    total_units: int
    windows_processed: int = 0
    datasets_examined: int = 0
    uploads_examined: int = 0
    archive_calls: int = 0
    records_written: int = 0
    parse_warnings: int = 0
    skipped_empty_uploads: int = 0
    comment_counts: Mapping[str, int] = Field(default_factory=dict)
    runtime_seconds: float = 0.0
    preview: bool = False

    @property
    def clean_records(self) -> int:
        return self.comment_counts.get("", 0)


def _no_progress(units_completed: int, total_units: int) -> None:
    return None


class ReconciliationEngine:
    """Scan the ledger window by window and report archive discrepancies.

    Windows are processed strictly in order; a failure in any window aborts
    the run with a :class:`WindowProcessingError` naming that window.
    """

    def __init__(
        self,
        *,
        ledger: LedgerSource,
        archive: Optional[ArchiveSource],
        sink: ReportSink,
        options: RunOptions,
        progress: Optional[ProgressCallback] = None,
        comparator: Optional[ReconciliationComparator] = None,
        now: Callable[[], datetime] = datetime.now,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleeper] = None,
    ) -> None:
        self.ledger = ledger
        self.archive = archive
        self.sink = sink
        self.options = options
        self.progress: ProgressCallback = progress or _no_progress
        self.comparator = comparator or ReconciliationComparator()
        self._now = now

        self.batcher = LookupBatcher(
            archive,
            batch_size=options.archive_batch_size,
            min_interval_ms=options.msec_between_lookup,
            preview=options.preview,
            clock=clock or time.monotonic,
            sleep=sleep or time.sleep,
        )
        self.warnings = ParseWarnings()
        self._comments: Counter[str] = Counter()

    def plan(self) -> ScanPlan:
        planner = DatasetRangePlanner(self.ledger, batch_size=self.options.ledger_batch_size)
        try:
            return planner.plan(
                start=self.options.dataset_id_start,
                end=self.options.dataset_id_end,
                dataset_ids=self.options.dataset_ids,
            )
        except ReconciliationError:
            raise
        except Exception as exc:
            log.error("ledger.max_verified_failed", error=str(exc))
            raise LedgerError(f"Unable to look up the highest verified dataset ID: {exc}") from exc

    def _fetch_rows(self, window: DatasetWindow) -> Sequence[LedgerRow]:
        try:
            return self.ledger.get_upload_rows(window.start, window.end)
        except LedgerError:
            raise
        except Exception as exc:
            raise LedgerError(f"Ledger query failed: {exc}") from exc

    def _process_window(
        self,
        plan: ScanPlan,
        window: DatasetWindow,
        aggregator: UploadGroupAggregator,
        summary: RunSummary,
    ) -> None:
        rows = self._fetch_rows(window)
        groups: GroupsByDataset = aggregator.aggregate(rows)
        summary.uploads_examined += len(rows)
        if not groups:
            log.debug("reconcile.window.empty", window=str(window))
            return

        log.info(
            "reconcile.window.start",
            message=f"Examining {len(rows)} uploads for Dataset IDs {window.start} to {window.end}",
            window=str(window),
            datasets=len(groups),
        )
        summary.datasets_examined += len(groups)

        for result in self.batcher.batches(sorted(groups)):
            if not result.previewed:
                records = self.comparator.compare(
                    result.dataset_ids,
                    groups,
                    result.files or [],
                    status_date=self._now(),
                )
                for record in records:
                    self.sink.append(record)
                    self._comments[record.comment] += 1
                summary.records_written += len(records)
            self.progress(plan.units_through(result.dataset_ids[-1]), plan.total_units)

    def run(self) -> RunSummary:
        """Execute the reconciliation workflow."""

        start_time = time.perf_counter()
        plan = self.plan()
        aggregator = UploadGroupAggregator(id_filter=plan.id_filter, warnings=self.warnings)
        summary = RunSummary(
            lower_bound=plan.lower_bound,
            upper_bound=plan.upper_bound,
            total_units=plan.total_units,
            preview=self.options.preview,
        )

        for window in plan.windows():
            try:
                self._process_window(plan, window, aggregator, summary)
                self.sink.flush()
            except Exception as exc:
                log.error(
                    "reconcile.window.failed",
                    window=str(window),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise WindowProcessingError(window.start, window.end, exc) from exc

            summary.windows_processed += 1
            self.progress(plan.units_through(window.end), plan.total_units)

        summary.archive_calls = self.batcher.calls
        summary.parse_warnings = self.warnings.count
        summary.skipped_empty_uploads = aggregator.skipped_empty
        summary.comment_counts = dict(self._comments)
        summary.runtime_seconds = time.perf_counter() - start_time

        self.progress(plan.total_units, plan.total_units)
        log.info(
            "reconcile.complete",
            windows=summary.windows_processed,
            datasets=summary.datasets_examined,
            records=summary.records_written,
            parse_warnings=summary.parse_warnings,
            preview=summary.preview,
        )
        return summary


__all__ = ["ReconciliationEngine", "RunSummary"]
