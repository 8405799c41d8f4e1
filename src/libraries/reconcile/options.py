"""Validated options for a reconciliation run."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_LEDGER_BATCH_SIZE = 1000
DEFAULT_ARCHIVE_BATCH_SIZE = 5
DEFAULT_MSEC_BETWEEN_LOOKUP = 500


class RunOptions(BaseModel):
    """Options controlling which datasets are checked and how they are paced."""

    dataset_id_start: int = Field(default=0, ge=0)
    dataset_id_end: int | None = Field(default=None, ge=0)
    dataset_ids: tuple[int, ...] = ()
    output_dir: Path = Field(default_factory=Path.cwd)
    append_to_output: bool = True
    ledger_batch_size: int = Field(default=DEFAULT_LEDGER_BATCH_SIZE, ge=100, le=5000)
    archive_batch_size: int = Field(default=DEFAULT_ARCHIVE_BATCH_SIZE, ge=1, le=50)
    msec_between_lookup: int = Field(default=DEFAULT_MSEC_BETWEEN_LOOKUP, ge=50, le=10000)
    preview: bool = False

    @field_validator("dataset_ids", mode="before")
    @classmethod
    def _dedupe_ids(cls, value: object) -> object:
        if value is None:
            return ()
        if isinstance(value, (list, tuple, set, frozenset)):
            return tuple(sorted(set(value)))
        return value

    @model_validator(mode="after")
    def _require_start_or_ids(self) -> "RunOptions":
        if self.dataset_id_start == 0 and not self.dataset_ids:
            msg = "either a starting dataset ID or a list of dataset IDs is required"
            raise ValueError(msg)
        return self

    @property
    def explicit_ids(self) -> bool:
        return bool(self.dataset_ids)


__all__ = [
    "DEFAULT_ARCHIVE_BATCH_SIZE",
    "DEFAULT_LEDGER_BATCH_SIZE",
    "DEFAULT_MSEC_BETWEEN_LOOKUP",
    "RunOptions",
]
