"""Versioned schema for the SQLite upload ledger."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Iterable, Sequence

import structlog

log = structlog.get_logger(__name__)

UPLOADS_TABLE = "archive_uploads"
SCHEMA_VERSION_TABLE = "ledger_schema_versions"


@dataclass(frozen=True)
class Migration:
    """One named schema change; ``statements`` run inside a single transaction."""

    identifier: str
    description: str
    statements: tuple[str, ...]


MIGRATIONS: tuple[Migration, ...] = (
    Migration(
        "0001_archive_uploads",
        "Create the archive upload ledger.",
        (
            f"""
            CREATE TABLE IF NOT EXISTS {UPLOADS_TABLE} (
                entry_id INTEGER PRIMARY KEY,
                job INTEGER NOT NULL DEFAULT 0,
                dataset_id INTEGER NOT NULL,
                subdirectory TEXT NOT NULL DEFAULT '',
                file_count_new INTEGER NOT NULL DEFAULT 0,
                file_count_updated INTEGER NOT NULL DEFAULT 0,
                bytes TEXT,
                status_num INTEGER NOT NULL DEFAULT 0,
                transaction_id INTEGER NOT NULL DEFAULT 0,
                verified INTEGER NOT NULL DEFAULT 0,
                entered TEXT
            )
            """,
        ),
    ),
    Migration(
        "0002_verified_dataset_index",
        "Index verified uploads by dataset and subdirectory.",
        (
            f"""
            CREATE INDEX IF NOT EXISTS idx_{UPLOADS_TABLE}_verified_dataset
                ON {UPLOADS_TABLE} (verified, dataset_id, subdirectory)
            """,
        ),
    ),
)


def _create_version_table(connection: sqlite3.Connection) -> None:
    connection.execute(
        f"CREATE TABLE IF NOT EXISTS {SCHEMA_VERSION_TABLE} ("
        "identifier TEXT PRIMARY KEY, "
        "description TEXT NOT NULL, "
        "applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP)"
    )


def get_applied_migrations(connection: sqlite3.Connection) -> list[str]:
    """Return identifiers of the migrations recorded on *connection*, oldest first."""

    _create_version_table(connection)
    rows = connection.execute(
        f"SELECT identifier FROM {SCHEMA_VERSION_TABLE} ORDER BY applied_at, identifier"
    ).fetchall()
    return [identifier for (identifier,) in rows]


def apply_migrations(
    connection: sqlite3.Connection,
    *,
    migrations: Sequence[Migration] | None = None,
) -> list[str]:
    """Bring *connection* up to date and return the identifiers just applied."""

    pending_source = MIGRATIONS if migrations is None else migrations
    with connection:
        already = set(get_applied_migrations(connection))
        pending = [item for item in pending_source if item.identifier not in already]
        for migration in pending:
            for statement in migration.statements:
                connection.execute(statement)
            connection.execute(
                f"INSERT INTO {SCHEMA_VERSION_TABLE} (identifier, description) VALUES (?, ?)",
                (migration.identifier, migration.description),
            )
            log.info("ledger.migration_applied", identifier=migration.identifier)
    return [migration.identifier for migration in pending]


def latest_migration_id(migrations: Iterable[Migration] | None = None) -> str | None:
    known = list(MIGRATIONS if migrations is None else migrations)
    return known[-1].identifier if known else None


__all__ = [
    "MIGRATIONS",
    "Migration",
    "SCHEMA_VERSION_TABLE",
    "UPLOADS_TABLE",
    "apply_migrations",
    "get_applied_migrations",
    "latest_migration_id",
]
