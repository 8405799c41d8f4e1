"""Configuration loader for the archive metadata service.

The settings model reads the following environment variables (optionally from a
``.env`` file when running locally):

``ROBIN_ARCHIVE_URL``
    Base URL of the archive metadata server.
``ROBIN_ARCHIVE_SEARCH_KEY``
    Metadata key used to look files up by dataset ID.
``ROBIN_ARCHIVE_TIMEOUT``
    Per-request timeout in seconds.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SEARCH_KEY = "omics.dms.dataset_id"


class ArchiveSettings(BaseSettings):
    base_url: str = Field(
        validation_alias=AliasChoices("ROBIN_ARCHIVE_URL", "ARCHIVE_URL", "base_url")
    )
    search_key: str = Field(
        default=DEFAULT_SEARCH_KEY,
        validation_alias=AliasChoices(
            "ROBIN_ARCHIVE_SEARCH_KEY", "ARCHIVE_SEARCH_KEY", "search_key"
        ),
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        validation_alias=AliasChoices("ROBIN_ARCHIVE_TIMEOUT", "ARCHIVE_TIMEOUT", "timeout"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def load_config() -> ArchiveSettings:
    """Load configuration from environment variables or the optional ``.env`` file."""

    return ArchiveSettings()
