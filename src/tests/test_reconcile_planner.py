"""Tests for planning dataset-ID windows."""

from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from libraries.reconcile.errors import DatasetRangeError
from libraries.reconcile.planner import (
    DatasetRangePlanner,
    DatasetWindow,
    plan_explicit,
    plan_range,
)


class _Ledger:
    def __init__(self, max_verified: int) -> None:
        self.max_verified = max_verified

    def get_max_verified_dataset_id(self) -> int:
        return self.max_verified

    def get_upload_rows(self, dataset_id_start: int, dataset_id_end: int) -> list:
        return []


def test_explicit_ids_are_clamped_to_max_verified() -> None:
    plan = plan_explicit([100, 9, 5, 9], 50, batch_size=100)

    assert plan.lower_bound == 5
    assert plan.upper_bound == 50
    assert plan.total_units == 3
    assert plan.explicit_ids == (5, 9, 100)
    assert list(plan.windows()) == [DatasetWindow(5, 50)]
    assert plan.id_filter == frozenset({5, 9, 100})


def test_explicit_ids_above_max_verified_raise() -> None:
    with pytest.raises(DatasetRangeError):
        plan_explicit([60, 70], 50)


def test_explicit_windows_skip_gaps_between_ids() -> None:
    plan = plan_explicit([5, 300, 301, 2000], 5000, batch_size=100)

    assert list(plan.windows()) == [
        DatasetWindow(5, 104),
        DatasetWindow(300, 399),
        DatasetWindow(2000, 2000),
    ]
    assert plan.units_through(104) == 1
    assert plan.units_through(301) == 3


def test_range_windows_cover_every_id() -> None:
    plan = plan_range(1, 250, 1000, batch_size=100)

    windows = list(plan.windows())

    assert windows == [DatasetWindow(1, 100), DatasetWindow(101, 200), DatasetWindow(201, 250)]
    assert plan.total_units == 250
    assert plan.id_filter is None
    assert plan.units_through(150) == 150
    assert plan.units_through(9999) == 250


def test_range_end_defaults_to_max_verified() -> None:
    for end in (None, 0):
        plan = plan_range(10, end, 42)
        assert plan.upper_bound == 42
        assert plan.total_units == 33


def test_range_end_is_clamped_to_max_verified() -> None:
    plan = plan_range(10, 500, 42)

    assert plan.upper_bound == 42


def test_range_starting_above_max_verified_raises() -> None:
    with pytest.raises(DatasetRangeError, match="computed -9 using 50 - 60 \\+ 1"):
        plan_range(60, None, 50)


def test_range_requires_a_start() -> None:
    with pytest.raises(DatasetRangeError):
        plan_range(0, 10, 50)


def test_window_membership() -> None:
    window = DatasetWindow(10, 20)

    assert 10 in window
    assert 20 in window
    assert 21 not in window
    assert str(window) == "10-20"


def test_planner_reads_max_verified_from_ledger() -> None:
    planner = DatasetRangePlanner(_Ledger(500), batch_size=100)

    plan = planner.plan(start=450)

    assert plan.upper_bound == 500
    assert plan.max_verified_id == 500
    assert plan.total_units == 51


def test_planner_prefers_explicit_ids() -> None:
    planner = DatasetRangePlanner(_Ledger(500), batch_size=100)

    plan = planner.plan(start=1, dataset_ids=[7, 3])

    assert plan.explicit_ids == (3, 7)
    assert plan.total_units == 2


@given(
    ids=st.sets(st.integers(min_value=1, max_value=20_000), min_size=1, max_size=60),
    max_verified=st.integers(min_value=1, max_value=20_000),
    batch_size=st.integers(min_value=100, max_value=5000),
)
def test_explicit_windows_cover_every_scannable_id(
    ids: set[int], max_verified: int, batch_size: int
) -> None:
    if min(ids) > max_verified:
        with pytest.raises(DatasetRangeError):
            plan_explicit(sorted(ids), max_verified, batch_size=batch_size)
        return

    plan = plan_explicit(sorted(ids), max_verified, batch_size=batch_size)
    windows = list(plan.windows())

    scannable = [dataset_id for dataset_id in ids if dataset_id <= max_verified]
    for dataset_id in scannable:
        assert sum(dataset_id in window for window in windows) == 1
    assert all(window.end <= plan.upper_bound for window in windows)
    assert [window.start for window in windows] == sorted(window.start for window in windows)
    assert plan.units_through(plan.upper_bound) == len(scannable)
