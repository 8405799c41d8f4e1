"""Pace archive lookups in small sub-batches of dataset IDs."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional

import structlog

from libraries.reconcile.errors import ArchiveServiceError
from libraries.reconcile.models import ArchivedFile
from libraries.reconcile.options import (
    DEFAULT_ARCHIVE_BATCH_SIZE,
    DEFAULT_MSEC_BETWEEN_LOOKUP,
)
from libraries.reconcile.sources import ArchiveSource

log = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


@dataclass(frozen=True)
class LookupResult:
    """Archive files returned for one sub-batch of dataset IDs.

    ``files`` is ``None`` in preview mode, where the archive is not contacted.
    """

    dataset_ids: tuple[int, ...]
    files: Optional[List[ArchivedFile]]

    @property
    def previewed(self) -> bool:
        return self.files is None


def chunk_ids(dataset_ids: Iterable[int], size: int) -> Iterator[tuple[int, ...]]:
    """Split *dataset_ids* into tuples of at most *size* IDs, keeping order."""

    batch: list[int] = []
    for dataset_id in dataset_ids:
        batch.append(dataset_id)
        if len(batch) >= size:
            yield tuple(batch)
            batch = []
    if batch:
        yield tuple(batch)


class LookupBatcher:
    """Stream dataset IDs to the archive service with a minimum call interval.

    The interval is measured from the end of one archive call to the start of
    the next and is kept across windows for the lifetime of the batcher.
    """

    def __init__(
        self,
        archive: Optional[ArchiveSource],
        *,
        batch_size: int = DEFAULT_ARCHIVE_BATCH_SIZE,
        min_interval_ms: int = DEFAULT_MSEC_BETWEEN_LOOKUP,
        preview: bool = False,
        clock: Clock = time.monotonic,
        sleep: Sleeper = time.sleep,
    ) -> None:
        if batch_size < 1:
            msg = "batch_size must be at least 1"
            raise ValueError(msg)
        if min_interval_ms < 0:
            msg = "min_interval_ms must be non-negative"
            raise ValueError(msg)
        if archive is None and not preview:
            msg = "an archive source is required unless running in preview mode"
            raise ValueError(msg)
        self.archive = archive
        self.batch_size = batch_size
        self.min_interval = min_interval_ms / 1000.0
        self.preview = preview
        self._clock = clock
        self._sleep = sleep
        self._last_call_end: Optional[float] = None
        self.calls = 0

    def _wait_for_slot(self) -> None:
        if self._last_call_end is None:
            return
        remaining = self.min_interval - (self._clock() - self._last_call_end)
        if remaining > 0:
            self._sleep(remaining)

    def _lookup(self, dataset_ids: tuple[int, ...]) -> List[ArchivedFile]:
        archive = self.archive
        if archive is None:
            raise ArchiveServiceError("no archive source configured for lookups")
        self._wait_for_slot()
        try:
            files = archive.list_files(dataset_ids)
        except ArchiveServiceError:
            log.error("archive.lookup_failed", dataset_ids=list(dataset_ids))
            raise
        except Exception as exc:
            log.error(
                "archive.lookup_failed",
                dataset_ids=list(dataset_ids),
                error=str(exc),
            )
            raise ArchiveServiceError(
                f"archive lookup failed for dataset IDs {list(dataset_ids)}: {exc}"
            ) from exc
        finally:
            self._last_call_end = self._clock()
            self.calls += 1
        return files

    def batches(self, dataset_ids: Iterable[int]) -> Iterator[LookupResult]:
        """Yield one :class:`LookupResult` per sub-batch of *dataset_ids*."""

        for batch in chunk_ids(dataset_ids, self.batch_size):
            if self.preview:
                log.info(
                    "archive.preview",
                    message=f"Preview: retrieve archive metadata for {len(batch)} datasets",
                    dataset_ids=list(batch),
                )
                yield LookupResult(batch, None)
                continue
            yield LookupResult(batch, self._lookup(batch))


__all__ = ["LookupBatcher", "LookupResult", "chunk_ids"]
