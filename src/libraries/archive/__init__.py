"""Client for the archive metadata service."""

from libraries.archive.client import (
    ArchiveMetadataClient,
    normalise_subdirectory,
    parse_file_entries,
)
from libraries.archive.config import ArchiveSettings, load_config

__all__ = [
    "ArchiveMetadataClient",
    "ArchiveSettings",
    "load_config",
    "normalise_subdirectory",
    "parse_file_entries",
]
