"""Reconcile the upload ledger against the archive's own file listing."""

from libraries.reconcile.aggregator import ParseWarnings, UploadGroupAggregator, parse_upload_row
from libraries.reconcile.batcher import LookupBatcher, LookupResult
from libraries.reconcile.comparator import (
    ReconciliationComparator,
    compare_dataset,
    score_counts,
)
from libraries.reconcile.engine import ReconciliationEngine, RunSummary
from libraries.reconcile.errors import (
    ArchiveServiceError,
    DatasetRangeError,
    LedgerError,
    ReconciliationError,
    ReportSinkError,
    WindowProcessingError,
)
from libraries.reconcile.models import (
    ArchivedFile,
    DiscrepancyRecord,
    MatchKind,
    MatchRatio,
    UploadGroup,
    UploadRecord,
)
from libraries.reconcile.options import RunOptions
from libraries.reconcile.planner import DatasetRangePlanner, DatasetWindow, ScanPlan
from libraries.reconcile.report import MemoryReportSink, TabularReportSink, report_path

__all__ = [
    "ArchiveServiceError",
    "ArchivedFile",
    "DatasetRangeError",
    "DatasetRangePlanner",
    "DatasetWindow",
    "DiscrepancyRecord",
    "LedgerError",
    "LookupBatcher",
    "LookupResult",
    "MatchKind",
    "MatchRatio",
    "MemoryReportSink",
    "ParseWarnings",
    "ReconciliationComparator",
    "ReconciliationEngine",
    "ReconciliationError",
    "ReportSinkError",
    "RunOptions",
    "RunSummary",
    "ScanPlan",
    "TabularReportSink",
    "UploadGroup",
    "UploadGroupAggregator",
    "UploadRecord",
    "WindowProcessingError",
    "compare_dataset",
    "parse_upload_row",
    "report_path",
    "score_counts",
]
