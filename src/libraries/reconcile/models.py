"""Data models exchanged between the ledger, the archive and the report."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

ROOT_SUBDIRECTORY = ""


class UploadRecord(BaseModel):
    """One ledger row describing an upload of a dataset (sub)directory."""

    model_config = ConfigDict(frozen=True)

    entry_id: int
    job: int
    dataset_id: int
    subdirectory: str = ROOT_SUBDIRECTORY
    files_new: int = 0
    files_updated: int = 0
    total_bytes: int = 0
    status_num: int = 0
    transaction_id: int = 0
    entered: datetime | None = None

    @property
    def files_touched(self) -> int:
        return self.files_new + self.files_updated

    @property
    def is_root(self) -> bool:
        return self.subdirectory == ROOT_SUBDIRECTORY

    def __str__(self) -> str:
        if self.is_root:
            return f"Entry_ID {self.entry_id}, DatasetID {self.dataset_id}, no subdirectory"
        return (
            f"Entry_ID {self.entry_id}, DatasetID {self.dataset_id}, "
            f"Subdirectory {self.subdirectory}"
        )


@dataclass(slots=True)
class UploadGroup:
    """Upload attempts for one ``(dataset_id, subdirectory)`` pair.

    Repeated attempts supersede each other, so the expected file and byte
    counts are running maxima over the contributing records, never sums.
    """

    representative: UploadRecord
    max_files_touched: int
    max_bytes: int
    contributing_records: list[UploadRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.max_files_touched < 1:
            msg = f"upload group for {self.representative} must expect at least one file"
            raise ValueError(msg)
        if not self.contributing_records:
            self.contributing_records.append(self.representative)

    @classmethod
    def from_record(cls, record: UploadRecord) -> "UploadGroup":
        return cls(
            representative=record,
            max_files_touched=record.files_touched,
            max_bytes=record.total_bytes,
        )

    @property
    def dataset_id(self) -> int:
        return self.representative.dataset_id

    @property
    def subdirectory(self) -> str:
        return self.representative.subdirectory

    @property
    def is_root(self) -> bool:
        return self.representative.is_root

    def add(self, record: UploadRecord) -> None:
        self.max_files_touched = max(self.max_files_touched, record.files_touched)
        self.max_bytes = max(self.max_bytes, record.total_bytes)
        self.contributing_records.append(record)


class ArchivedFile(BaseModel):
    """A file (or directory entry) reported by the archive listing service."""

    model_config = ConfigDict(frozen=True)

    dataset_id: int
    subdirectory_path: str = ROOT_SUBDIRECTORY
    name: str = ""
    size_bytes: int = Field(default=0, ge=0)
    is_directory: bool = False
    hashsum: str | None = None

    @property
    def relative_path(self) -> str:
        if not self.subdirectory_path:
            return self.name
        return f"{self.subdirectory_path}/{self.name}"


class MatchKind(str, Enum):
    PERFECT = "perfect"
    RATIO = "ratio"
    FLAGGED_PERFECT = "flagged_perfect"


@dataclass(frozen=True, slots=True)
class MatchRatio:
    """Agreement score for one upload group.

    ``FLAGGED_PERFECT`` is an out-of-band marker for a numerically perfect
    score that carries a warning; it is rendered as ``-1`` and never compared
    numerically.
    """

    kind: MatchKind
    value: float = 1.0

    @classmethod
    def perfect(cls) -> "MatchRatio":
        return cls(MatchKind.PERFECT)

    @classmethod
    def flagged_perfect(cls) -> "MatchRatio":
        return cls(MatchKind.FLAGGED_PERFECT)

    @classmethod
    def ratio(cls, value: float) -> "MatchRatio":
        return cls(MatchKind.RATIO, value)

    @property
    def is_perfect(self) -> bool:
        return self.kind is MatchKind.PERFECT

    def format(self) -> str:
        if self.kind is MatchKind.FLAGGED_PERFECT:
            return "-1"
        if self.kind is MatchKind.PERFECT:
            return "1.00"
        return f"{self.value:.2f}"


@dataclass(frozen=True, slots=True)
class DiscrepancyRecord:
    """One report row comparing an upload group with the archive contents."""

    status_date: datetime
    record: UploadRecord
    expected_files: int
    actual_files: int
    expected_bytes: int
    actual_bytes: int
    match_ratio: MatchRatio
    comment: str = ""

    @property
    def dataset_id(self) -> int:
        return self.record.dataset_id

    @property
    def subdirectory(self) -> str:
        return self.record.subdirectory


__all__ = [
    "ROOT_SUBDIRECTORY",
    "UploadRecord",
    "UploadGroup",
    "ArchivedFile",
    "MatchKind",
    "MatchRatio",
    "DiscrepancyRecord",
]
