"""SQLite implementation of the upload ledger."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog

from libraries.ledger.schema import UPLOADS_TABLE
from libraries.reconcile.errors import LedgerError

log = structlog.get_logger(__name__)

LEDGER_COLUMNS = (
    "entry_id",
    "job",
    "dataset_id",
    "subdirectory",
    "file_count_new",
    "file_count_updated",
    "bytes",
    "status_num",
    "transaction_id",
    "entered",
)

_MAX_VERIFIED_QUERY = f"SELECT MAX(dataset_id) FROM {UPLOADS_TABLE} WHERE verified > 0"

# One row per (dataset_id, subdirectory): the verified upload touching the most files.
_UPLOAD_ROWS_QUERY = f"""
    SELECT {", ".join(LEDGER_COLUMNS)}
    FROM (
        SELECT {", ".join(LEDGER_COLUMNS)},
               ROW_NUMBER() OVER (
                   PARTITION BY dataset_id, subdirectory
                   ORDER BY file_count_new + file_count_updated DESC, entry_id
               ) AS ranking
        FROM {UPLOADS_TABLE}
        WHERE dataset_id BETWEEN ? AND ? AND verified > 0
    ) ranked
    WHERE ranked.ranking = 1
    ORDER BY dataset_id, subdirectory, entry_id
"""


class SqliteLedgerSource:
    """Read upload ledger rows from a SQLite database."""

    def __init__(
        self,
        database: Union[str, Path, None] = None,
        *,
        connection: Optional[sqlite3.Connection] = None,
    ) -> None:
        if connection is None and database is None:
            raise ValueError("either database or connection must be provided")
        self.database = database
        self._connection = connection

    @classmethod
    def from_env(cls) -> "SqliteLedgerSource":
        from libraries.ledger.config import load_config

        return cls(load_config().database)

    def _connect(self) -> sqlite3.Connection:
        if self._connection is None:
            try:
                self._connection = sqlite3.connect(str(self.database))
            except sqlite3.Error as exc:
                log.error("ledger.connect_failed", database=str(self.database), error=str(exc))
                raise LedgerError(f"Unable to open ledger '{self.database}': {exc}") from exc
            log.info("ledger.connected", database=str(self.database))
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "SqliteLedgerSource":
        self._connect()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get_max_verified_dataset_id(self) -> int:
        try:
            row = self._connect().execute(_MAX_VERIFIED_QUERY).fetchone()
        except sqlite3.Error as exc:
            log.error("ledger.max_verified_failed", error=str(exc))
            raise LedgerError(f"Unable to look up the highest verified dataset ID: {exc}") from exc
        if not row or row[0] is None:
            return 0
        return int(row[0])

    def get_upload_rows(self, dataset_id_start: int, dataset_id_end: int) -> List[Dict[str, Any]]:
        try:
            cursor = self._connect().execute(
                _UPLOAD_ROWS_QUERY, (dataset_id_start, dataset_id_end)
            )
            rows = cursor.fetchall()
        except sqlite3.Error as exc:
            log.error(
                "ledger.query_failed",
                dataset_id_start=dataset_id_start,
                dataset_id_end=dataset_id_end,
                error=str(exc),
            )
            raise LedgerError(
                f"Ledger query failed for dataset IDs {dataset_id_start}-{dataset_id_end}: {exc}"
            ) from exc

        log.debug(
            "ledger.rows",
            dataset_id_start=dataset_id_start,
            dataset_id_end=dataset_id_end,
            rows=len(rows),
        )
        return [dict(zip(LEDGER_COLUMNS, row)) for row in rows]


__all__ = ["LEDGER_COLUMNS", "SqliteLedgerSource"]
