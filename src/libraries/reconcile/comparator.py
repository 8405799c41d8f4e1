"""Compare aggregated upload groups with the archive's file listing."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

import structlog

from libraries.reconcile.models import (
    ROOT_SUBDIRECTORY,
    ArchivedFile,
    DiscrepancyRecord,
    MatchRatio,
    UploadGroup,
)

log = structlog.get_logger(__name__)

RATIO_EPSILON = 1e-9

COMMENT_MISSING = "Missing"
COMMENT_FEWER_BYTES = "Files match, but fewer bytes"
COMMENT_EXTRA_BYTES = "Files match, but extra bytes"
COMMENT_EXTRA_FILES = "Extra files, but bytes match"
COMMENT_EXTRA_FILES_AND_BYTES = "Extra files and extra bytes"
COMMENT_MISSING_FILES = "Missing files"
COMMENT_EMPTY_ROOT = (
    "Empty dataset directory (found files in subdirectories but not in the root directory)"
)

Score = Tuple[float, str]


def score_counts(
    expected_files: int,
    actual_files: int,
    expected_bytes: int,
    actual_bytes: int,
    *,
    is_root: bool,
) -> Score:
    """Return ``(ratio, comment)`` for one group's expected and actual totals."""

    if actual_files == 0:
        return 0.0, COMMENT_MISSING

    if actual_files == expected_files:
        if actual_bytes == expected_bytes:
            return 1.0, ""
        if actual_bytes < expected_bytes:
            return actual_bytes / expected_bytes, COMMENT_FEWER_BYTES
        return 1.0, COMMENT_EXTRA_BYTES

    if actual_files > expected_files and actual_bytes == expected_bytes:
        return 1.0, COMMENT_EXTRA_FILES

    if actual_files > expected_files and actual_bytes > expected_bytes:
        # Root uploads are counted conservatively and routinely show extras.
        if is_root:
            return 1.0, ""
        return 1.0, COMMENT_EXTRA_FILES_AND_BYTES

    if expected_files == 0:
        return 0.0, COMMENT_MISSING_FILES
    return actual_files / expected_files, COMMENT_MISSING_FILES


def _is_one(value: float) -> bool:
    return math.isclose(value, 1.0, rel_tol=0.0, abs_tol=RATIO_EPSILON)


def _join_comments(*comments: str) -> str:
    return "; ".join(comment for comment in comments if comment)


def build_record(
    group: UploadGroup,
    actual_files: int,
    actual_bytes: int,
    *,
    status_date: datetime,
    root_anomaly: bool = False,
) -> DiscrepancyRecord:
    """Score *group* and wrap the result in a :class:`DiscrepancyRecord`."""

    value, comment = score_counts(
        group.max_files_touched,
        actual_files,
        group.max_bytes,
        actual_bytes,
        is_root=group.is_root,
    )

    flag_anomaly = root_anomaly and group.is_root
    if flag_anomaly:
        comment = _join_comments(comment, COMMENT_EMPTY_ROOT)

    if _is_one(value):
        ratio = MatchRatio.flagged_perfect() if flag_anomaly else MatchRatio.perfect()
    else:
        ratio = MatchRatio.ratio(value)

    return DiscrepancyRecord(
        status_date=status_date,
        record=group.representative,
        expected_files=group.max_files_touched,
        actual_files=actual_files,
        expected_bytes=group.max_bytes,
        actual_bytes=actual_bytes,
        match_ratio=ratio,
        comment=comment,
    )


def _total_bytes(files: Iterable[ArchivedFile]) -> int:
    return sum(item.size_bytes for item in files)


def files_for_subdirectory(files: Iterable[ArchivedFile], subdirectory: str) -> List[ArchivedFile]:
    """Return files stored in *subdirectory* or any folder nested below it."""

    target = subdirectory.lower()
    prefix = f"{target}/"
    matches: List[ArchivedFile] = []
    for item in files:
        path = item.subdirectory_path.lower()
        if path == target or path.startswith(prefix):
            matches.append(item)
    return matches


def compare_dataset(
    dataset_id: int,
    groups: Mapping[str, UploadGroup],
    files: Sequence[ArchivedFile],
    *,
    status_date: datetime,
) -> List[DiscrepancyRecord]:
    """Reconcile one dataset's upload groups against its archived files.

    Every group yields exactly one record. Directory entries in *files* are
    ignored.
    """

    dataset_files = [
        item for item in files if item.dataset_id == dataset_id and not item.is_directory
    ]
    root_files = [item for item in dataset_files if item.subdirectory_path == ROOT_SUBDIRECTORY]

    records: List[DiscrepancyRecord] = []
    emitted: set[str] = set()
    found_in_archive = False

    root_group = groups.get(ROOT_SUBDIRECTORY)
    if root_group is not None:
        root_anomaly = not root_files and bool(dataset_files)
        compared = dataset_files if root_anomaly else root_files
        records.append(
            build_record(
                root_group,
                len(compared),
                _total_bytes(compared),
                status_date=status_date,
                root_anomaly=root_anomaly,
            )
        )
        emitted.add(ROOT_SUBDIRECTORY)
        found_in_archive = bool(compared)

    # Without any archived files there is no dataset location to probe.
    skip_subdirectories = root_group is not None and not dataset_files

    if not skip_subdirectories:
        for subdirectory, group in groups.items():
            if subdirectory == ROOT_SUBDIRECTORY:
                continue
            matches = files_for_subdirectory(dataset_files, subdirectory)
            records.append(
                build_record(
                    group,
                    len(matches),
                    _total_bytes(matches),
                    status_date=status_date,
                )
            )
            emitted.add(subdirectory)
            if matches:
                found_in_archive = True

    if not found_in_archive:
        log.debug("reconcile.dataset_missing", dataset_id=dataset_id, groups=len(groups))
        for subdirectory, group in groups.items():
            if subdirectory in emitted:
                continue
            records.append(build_record(group, 0, 0, status_date=status_date))

    return records


def index_files_by_dataset(files: Iterable[ArchivedFile]) -> Dict[int, List[ArchivedFile]]:
    index: Dict[int, List[ArchivedFile]] = defaultdict(list)
    for item in files:
        if item.is_directory:
            continue
        index[item.dataset_id].append(item)
    return index


class ReconciliationComparator:
    """Reconcile a batch of datasets and return records in dataset-ID order."""

    def compare(
        self,
        dataset_ids: Iterable[int],
        groups_by_dataset: Mapping[int, Mapping[str, UploadGroup]],
        files: Iterable[ArchivedFile],
        *,
        status_date: datetime,
    ) -> List[DiscrepancyRecord]:
        files_by_dataset = index_files_by_dataset(files)
        records: List[DiscrepancyRecord] = []
        dataset_list = sorted(set(dataset_ids))
        for dataset_id in dataset_list:
            groups = groups_by_dataset.get(dataset_id)
            if not groups:
                continue
            records.extend(
                compare_dataset(
                    dataset_id,
                    groups,
                    files_by_dataset.get(dataset_id, []),
                    status_date=status_date,
                )
            )

        log.info(
            "reconcile.compare.complete",
            datasets=len(dataset_list),
            records=len(records),
        )
        return records


__all__ = [
    "COMMENT_EMPTY_ROOT",
    "COMMENT_EXTRA_BYTES",
    "COMMENT_EXTRA_FILES",
    "COMMENT_EXTRA_FILES_AND_BYTES",
    "COMMENT_FEWER_BYTES",
    "COMMENT_MISSING",
    "COMMENT_MISSING_FILES",
    "RATIO_EPSILON",
    "ReconciliationComparator",
    "build_record",
    "compare_dataset",
    "files_for_subdirectory",
    "index_files_by_dataset",
    "score_counts",
]
