"""Upload ledger access."""

from libraries.ledger.schema import (
    MIGRATIONS,
    UPLOADS_TABLE,
    Migration,
    apply_migrations,
    get_applied_migrations,
    latest_migration_id,
)
from libraries.ledger.sqlite import LEDGER_COLUMNS, SqliteLedgerSource

__all__ = [
    "LEDGER_COLUMNS",
    "MIGRATIONS",
    "Migration",
    "SqliteLedgerSource",
    "UPLOADS_TABLE",
    "apply_migrations",
    "get_applied_migrations",
    "latest_migration_id",
]
