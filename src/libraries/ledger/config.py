"""Configuration loader for the upload ledger.

``ROBIN_LEDGER_DB``
    Path of the SQLite database holding the ``archive_uploads`` table.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    database: Path = Field(
        validation_alias=AliasChoices("ROBIN_LEDGER_DB", "LEDGER_DB", "database")
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def load_config() -> LedgerSettings:
    """Load ledger settings from the environment or the optional ``.env`` file."""

    return LedgerSettings()
