"""Plan which dataset IDs a reconciliation run should scan."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence

import structlog

from libraries.reconcile.errors import DatasetRangeError
from libraries.reconcile.options import DEFAULT_LEDGER_BATCH_SIZE
from libraries.reconcile.sources import LedgerSource

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DatasetWindow:
    """Inclusive range of dataset IDs processed together."""

    start: int
    end: int

    def __contains__(self, dataset_id: object) -> bool:
        return isinstance(dataset_id, int) and self.start <= dataset_id <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class ScanPlan:
    """Bounds and windows for one reconciliation run.

    ``explicit_ids`` is empty when scanning a continuous range.
    """

    lower_bound: int
    upper_bound: int
    total_units: int
    max_verified_id: int
    batch_size: int = DEFAULT_LEDGER_BATCH_SIZE
    explicit_ids: tuple[int, ...] = ()

    @property
    def id_filter(self) -> Optional[frozenset[int]]:
        return frozenset(self.explicit_ids) if self.explicit_ids else None

    def windows(self) -> Iterator[DatasetWindow]:
        """Yield the windows to process, in ascending dataset-ID order."""

        start: Optional[int] = self.lower_bound
        while start is not None and start <= self.upper_bound:
            end = min(self.upper_bound, start + self.batch_size - 1)
            yield DatasetWindow(start, end)
            start = self._next_start(end)

    def _next_start(self, window_end: int) -> Optional[int]:
        if not self.explicit_ids:
            return window_end + 1
        index = bisect_right(self.explicit_ids, window_end)
        if index >= len(self.explicit_ids):
            return None
        return self.explicit_ids[index]

    def units_through(self, dataset_id: int) -> int:
        """Return how many work units are done once *dataset_id* is processed."""

        if self.explicit_ids:
            return bisect_right(self.explicit_ids, dataset_id)
        completed = dataset_id - self.lower_bound + 1
        return max(0, min(completed, self.total_units))


def _normalise_ids(dataset_ids: Iterable[int]) -> tuple[int, ...]:
    return tuple(sorted(set(dataset_ids)))


def plan_explicit(
    dataset_ids: Sequence[int],
    max_verified_id: int,
    *,
    batch_size: int = DEFAULT_LEDGER_BATCH_SIZE,
) -> ScanPlan:
    """Plan a scan restricted to an explicit set of dataset IDs."""

    ids = _normalise_ids(dataset_ids)
    if not ids:
        raise DatasetRangeError("the explicit dataset ID list is empty")

    lower = ids[0]
    upper = min(ids[-1], max_verified_id)
    if bisect_left(ids, upper + 1) == 0:
        raise DatasetRangeError(
            f"none of the {len(ids)} requested dataset IDs are at or below the "
            f"highest verified dataset ID ({max_verified_id})"
        )

    return ScanPlan(
        lower_bound=lower,
        upper_bound=upper,
        total_units=len(ids),
        max_verified_id=max_verified_id,
        batch_size=batch_size,
        explicit_ids=ids,
    )


def plan_range(
    start: int,
    end: Optional[int],
    max_verified_id: int,
    *,
    batch_size: int = DEFAULT_LEDGER_BATCH_SIZE,
) -> ScanPlan:
    """Plan a scan over a continuous dataset-ID range.

    An *end* of ``None`` or ``0`` means "up to the highest verified dataset".
    """

    if start == 0:
        raise DatasetRangeError("a non-zero starting dataset ID is required")

    requested_end = end or max_verified_id
    upper = min(requested_end, max_verified_id)
    total = upper - start + 1
    if total < 1:
        raise DatasetRangeError(
            f"Total datasets should not be negative; computed {total} "
            f"using {upper} - {start} + 1"
        )

    return ScanPlan(
        lower_bound=start,
        upper_bound=upper,
        total_units=total,
        max_verified_id=max_verified_id,
        batch_size=batch_size,
    )


class DatasetRangePlanner:
    """Resolve run options against the ledger's highest verified dataset."""

    def __init__(self, ledger: LedgerSource, *, batch_size: int = DEFAULT_LEDGER_BATCH_SIZE) -> None:
        if batch_size < 1:
            msg = "batch_size must be at least 1"
            raise ValueError(msg)
        self.ledger = ledger
        self.batch_size = batch_size

    def plan(
        self,
        *,
        start: int = 0,
        end: Optional[int] = None,
        dataset_ids: Sequence[int] = (),
    ) -> ScanPlan:
        max_verified_id = self.ledger.get_max_verified_dataset_id()
        log.info("reconcile.plan.max_verified", max_verified_id=max_verified_id)

        if dataset_ids:
            plan = plan_explicit(dataset_ids, max_verified_id, batch_size=self.batch_size)
        else:
            plan = plan_range(start, end, max_verified_id, batch_size=self.batch_size)

        log.info(
            "reconcile.plan.ready",
            lower_bound=plan.lower_bound,
            upper_bound=plan.upper_bound,
            total_units=plan.total_units,
            explicit=bool(plan.explicit_ids),
        )
        return plan


__all__ = [
    "DatasetWindow",
    "DatasetRangePlanner",
    "ScanPlan",
    "plan_explicit",
    "plan_range",
]
