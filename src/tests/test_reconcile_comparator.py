"""Tests for scoring upload groups against archived files."""

from __future__ import annotations

from datetime import datetime

import pytest
from hypothesis import given, strategies as st

from libraries.reconcile.comparator import (
    COMMENT_EMPTY_ROOT,
    COMMENT_EXTRA_BYTES,
    COMMENT_EXTRA_FILES,
    COMMENT_EXTRA_FILES_AND_BYTES,
    COMMENT_FEWER_BYTES,
    COMMENT_MISSING,
    COMMENT_MISSING_FILES,
    ReconciliationComparator,
    build_record,
    compare_dataset,
    files_for_subdirectory,
    score_counts,
)
from libraries.reconcile.models import (
    ArchivedFile,
    MatchKind,
    UploadGroup,
    UploadRecord,
)

STATUS_DATE = datetime(2024, 3, 1, 14, 30, 0)


def _group(
    dataset_id: int = 100,
    subdirectory: str = "",
    files: int = 5,
    size: int = 1000,
    entry_id: int = 1,
) -> UploadGroup:
    record = UploadRecord(
        entry_id=entry_id,
        job=10,
        dataset_id=dataset_id,
        subdirectory=subdirectory,
        files_new=files,
        total_bytes=size,
    )
    return UploadGroup.from_record(record)


def _files(dataset_id: int, subdirectory: str, count: int, size: int) -> list[ArchivedFile]:
    return [
        ArchivedFile(
            dataset_id=dataset_id,
            subdirectory_path=subdirectory,
            name=f"file_{index}.raw",
            size_bytes=size,
        )
        for index in range(count)
    ]


@pytest.mark.parametrize(
    ("expected", "actual", "expected_bytes", "actual_bytes", "is_root", "ratio", "comment"),
    [
        (10, 10, 1000, 1000, True, 1.0, ""),
        (5, 5, 1000, 400, False, 0.4, COMMENT_FEWER_BYTES),
        (5, 5, 1000, 1200, False, 1.0, COMMENT_EXTRA_BYTES),
        (5, 7, 1000, 1000, False, 1.0, COMMENT_EXTRA_FILES),
        (5, 7, 1000, 1200, True, 1.0, ""),
        (5, 7, 1000, 1200, False, 1.0, COMMENT_EXTRA_FILES_AND_BYTES),
        (10, 4, 1000, 999, False, 0.4, COMMENT_MISSING_FILES),
        (5, 7, 1000, 200, False, 1.4, COMMENT_MISSING_FILES),
        (10, 0, 1000, 0, False, 0.0, COMMENT_MISSING),
        (10, 0, 1000, 5000, True, 0.0, COMMENT_MISSING),
    ],
)
def test_score_counts_table(
    expected: int,
    actual: int,
    expected_bytes: int,
    actual_bytes: int,
    is_root: bool,
    ratio: float,
    comment: str,
) -> None:
    value, text = score_counts(
        expected, actual, expected_bytes, actual_bytes, is_root=is_root
    )

    assert value == pytest.approx(ratio)
    assert text == comment


def test_upload_group_rejects_empty_expectation() -> None:
    with pytest.raises(ValueError):
        _group(files=0)


def test_build_record_formats_partial_ratio() -> None:
    record = build_record(_group(subdirectory="QC"), 5, 400, status_date=STATUS_DATE)

    assert record.match_ratio.kind is MatchKind.RATIO
    assert record.match_ratio.format() == "0.40"
    assert record.comment == COMMENT_FEWER_BYTES


def test_root_anomaly_emits_flagged_sentinel() -> None:
    group = _group(subdirectory="", files=3, size=300)
    files = _files(100, "QC", 3, 100)

    records = compare_dataset(100, {"": group}, files, status_date=STATUS_DATE)

    assert len(records) == 1
    record = records[0]
    assert record.match_ratio.kind is MatchKind.FLAGGED_PERFECT
    assert record.match_ratio.format() == "-1"
    assert record.comment == COMMENT_EMPTY_ROOT
    assert record.actual_files == 3
    assert record.actual_bytes == 300


def test_root_anomaly_joins_scoring_comment() -> None:
    group = _group(subdirectory="", files=5, size=1000)
    files = _files(100, "QC", 2, 100)

    (record,) = compare_dataset(100, {"": group}, files, status_date=STATUS_DATE)

    assert record.match_ratio.kind is MatchKind.RATIO
    assert record.match_ratio.format() == "0.40"
    assert record.comment == f"{COMMENT_MISSING_FILES}; {COMMENT_EMPTY_ROOT}"


def test_root_files_present_is_not_an_anomaly() -> None:
    group = _group(subdirectory="", files=2, size=200)
    files = _files(100, "", 2, 100) + _files(100, "QC", 4, 50)

    (record,) = compare_dataset(100, {"": group}, files, status_date=STATUS_DATE)

    assert record.match_ratio.is_perfect
    assert record.comment == ""
    assert record.actual_files == 2


def test_subdirectory_match_is_case_insensitive_and_includes_nested_folders() -> None:
    files = [
        ArchivedFile(dataset_id=1, subdirectory_path="QC", name="a", size_bytes=1),
        ArchivedFile(dataset_id=1, subdirectory_path="qc/plots", name="b", size_bytes=1),
        ArchivedFile(dataset_id=1, subdirectory_path="QC_old", name="c", size_bytes=1),
        ArchivedFile(dataset_id=1, subdirectory_path="", name="d", size_bytes=1),
    ]

    matches = files_for_subdirectory(files, "Qc")

    assert [item.name for item in matches] == ["a", "b"]


def test_directory_entries_are_ignored() -> None:
    group = _group(subdirectory="QC", files=1, size=10)
    files = [
        ArchivedFile(dataset_id=100, subdirectory_path="QC", name="plots", is_directory=True),
        ArchivedFile(dataset_id=100, subdirectory_path="QC", name="a.png", size_bytes=10),
    ]

    (record,) = compare_dataset(100, {"QC": group}, files, status_date=STATUS_DATE)

    assert record.actual_files == 1
    assert record.match_ratio.is_perfect


def test_absent_dataset_emits_missing_for_every_group_once() -> None:
    groups = {
        "": _group(subdirectory="", entry_id=1),
        "QC": _group(subdirectory="QC", entry_id=2),
        "Logs": _group(subdirectory="Logs", entry_id=3),
    }

    records = compare_dataset(100, groups, [], status_date=STATUS_DATE)

    assert sorted(record.subdirectory for record in records) == ["", "Logs", "QC"]
    assert all(record.comment == COMMENT_MISSING for record in records)
    assert all(record.match_ratio.format() == "0.00" for record in records)


def test_absent_dataset_without_root_group() -> None:
    groups = {"QC": _group(subdirectory="QC")}

    records = compare_dataset(100, groups, [], status_date=STATUS_DATE)

    assert len(records) == 1
    assert records[0].comment == COMMENT_MISSING


def test_mixed_dataset_scores_each_subdirectory() -> None:
    groups = {
        "": _group(subdirectory="", files=2, size=200, entry_id=1),
        "QC": _group(subdirectory="QC", files=3, size=300, entry_id=2),
        "Logs": _group(subdirectory="Logs", files=1, size=10, entry_id=3),
    }
    files = _files(100, "", 2, 100) + _files(100, "QC", 3, 100)

    records = {r.subdirectory: r for r in compare_dataset(100, groups, files, status_date=STATUS_DATE)}

    assert records[""].match_ratio.is_perfect
    assert records["QC"].match_ratio.is_perfect
    assert records["Logs"].comment == COMMENT_MISSING
    assert len(records) == 3


def test_comparator_orders_records_by_dataset_and_is_idempotent() -> None:
    groups = {
        200: {"": _group(dataset_id=200, files=1, size=5)},
        100: {"": _group(dataset_id=100, files=1, size=5)},
    }
    files = _files(100, "", 1, 5) + _files(200, "", 1, 7)
    comparator = ReconciliationComparator()

    first = comparator.compare([200, 100], groups, files, status_date=STATUS_DATE)
    second = comparator.compare([200, 100], groups, files, status_date=STATUS_DATE)

    assert [record.dataset_id for record in first] == [100, 200]
    assert first == second
    assert first[1].comment == COMMENT_EXTRA_BYTES


def test_comparator_skips_ids_without_groups() -> None:
    groups = {100: {"": _group(dataset_id=100, files=1, size=5)}}

    records = ReconciliationComparator().compare(
        [100, 101], groups, _files(100, "", 1, 5), status_date=STATUS_DATE
    )

    assert [record.dataset_id for record in records] == [100]


@given(
    expected=st.integers(min_value=1, max_value=10_000),
    actual=st.integers(min_value=0, max_value=10_000),
    expected_bytes=st.integers(min_value=0, max_value=10**12),
    actual_bytes=st.integers(min_value=0, max_value=10**12),
    is_root=st.booleans(),
)
def test_score_counts_properties(
    expected: int, actual: int, expected_bytes: int, actual_bytes: int, is_root: bool
) -> None:
    value, comment = score_counts(
        expected, actual, expected_bytes, actual_bytes, is_root=is_root
    )

    assert value >= 0
    if actual == 0:
        assert (value, comment) == (0.0, COMMENT_MISSING)
    if actual == expected and actual_bytes == expected_bytes:
        assert (value, comment) == (1.0, "")
    if actual < expected:
        assert comment == COMMENT_MISSING_FILES or actual == 0
