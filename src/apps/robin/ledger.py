"""Typer command preparing an empty upload ledger database."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

import structlog
import typer

from apps.robin.utils.errors import ExitCode, RobinConfigError, RobinIOError
from libraries.ledger.config import load_config
from libraries.ledger.schema import apply_migrations, latest_migration_id

log = structlog.get_logger(__name__)


def _resolve_database(database: Optional[Path]) -> Path:
    if database is not None:
        return database
    try:
        return load_config().database
    except ValueError as exc:
        raise RobinConfigError(
            "Ledger database not configured. Pass --ledger-db or set ROBIN_LEDGER_DB."
        ) from exc


def init_ledger(
    ledger_db: Optional[Path] = typer.Option(
        None, "--ledger-db", help="SQLite upload ledger (overrides ROBIN_LEDGER_DB)"
    ),
) -> ExitCode:
    """Create or upgrade the upload ledger schema."""

    database = _resolve_database(ledger_db)
    try:
        database.parent.mkdir(parents=True, exist_ok=True)
        connection = sqlite3.connect(str(database))
    except (OSError, sqlite3.Error) as exc:
        raise RobinIOError(f"Unable to open ledger '{database}': {exc}") from exc

    try:
        applied = apply_migrations(connection)
    except sqlite3.Error as exc:
        raise RobinIOError(f"Unable to migrate ledger '{database}': {exc}") from exc
    finally:
        connection.close()

    log.info("ledger.migrated", database=str(database), applied=applied)
    if applied:
        typer.secho(
            f"Applied {len(applied)} migration(s) to {database}", fg=typer.colors.GREEN
        )
    else:
        typer.secho(
            f"{database} is up to date ({latest_migration_id()})", fg=typer.colors.BLUE
        )
    return ExitCode.SUCCESS


__all__ = ["init_ledger"]
