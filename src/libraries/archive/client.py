"""Thin REST client for the archive metadata service.

The service answers ``GET /fileinfo/files_for_keyvalue/<key>/<value>`` with a
JSON array of file objects (``name``, ``subdir``, ``size``, ``hashsum``).
:class:`ArchiveMetadataClient` turns those into
:class:`~libraries.reconcile.models.ArchivedFile` instances.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping
from urllib.parse import quote, urljoin

import requests
import structlog
from requests import Session

from libraries.archive.config import DEFAULT_SEARCH_KEY
from libraries.reconcile.errors import ArchiveServiceError
from libraries.reconcile.models import ArchivedFile

log = structlog.get_logger(__name__)


def normalise_subdirectory(value: Any) -> str:
    """Return *value* as a forward-slash path without surrounding separators."""

    if not value:
        return ""
    text = str(value).replace("\\", "/")
    parts = [part for part in text.split("/") if part and part != "."]
    return "/".join(parts)


def _parse_size(dataset_id: int, entry: Mapping[str, Any]) -> int:
    value = entry.get("size")
    if value is None or value == "":
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        log.warning(
            "archive.bad_size",
            dataset_id=dataset_id,
            name=entry.get("name"),
            subdir=entry.get("subdir"),
            size=value,
        )
        return 0


def parse_file_entries(dataset_id: int, payload: Any) -> List[ArchivedFile]:
    """Convert the service's JSON array into archived files for *dataset_id*.

    Entries repeating the same subdirectory, name and hash are dropped.
    """

    if not isinstance(payload, list):
        raise ArchiveServiceError(
            f"Archive response for dataset {dataset_id} is not a JSON array"
        )

    files: List[ArchivedFile] = []
    seen: set[tuple[str, str, str]] = set()
    duplicates = 0
    for entry in payload:
        if not isinstance(entry, Mapping):
            continue
        subdirectory = normalise_subdirectory(entry.get("subdir"))
        name = str(entry.get("name") or "")
        hashsum = entry.get("hashsum")
        key = (subdirectory.lower(), name.lower(), str(hashsum or ""))
        if hashsum and key in seen:
            duplicates += 1
            continue
        seen.add(key)
        files.append(
            ArchivedFile(
                dataset_id=dataset_id,
                subdirectory_path=subdirectory,
                name=name,
                size_bytes=_parse_size(dataset_id, entry),
                is_directory=bool(entry.get("is_directory") or entry.get("is_folder")),
                hashsum=str(hashsum) if hashsum else None,
            )
        )

    if duplicates:
        log.debug("archive.duplicate_entries", dataset_id=dataset_id, duplicates=duplicates)
    return files


class ArchiveMetadataClient:
    """Helper for listing the files the archive holds for each dataset."""

    def __init__(
        self,
        base_url: str,
        *,
        search_key: str = DEFAULT_SEARCH_KEY,
        timeout: float = 60.0,
        session: Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided")

        self.base_url = base_url.rstrip("/")
        self.search_key = search_key
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")

    @classmethod
    def from_env(cls) -> "ArchiveMetadataClient":
        """Build a client from ``ROBIN_ARCHIVE_*`` environment variables."""

        from libraries.archive.config import load_config

        settings = load_config()
        return cls(
            settings.base_url,
            search_key=settings.search_key,
            timeout=settings.timeout,
        )

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------
    def _build_url(self, *segments: str) -> str:
        base = f"{self.base_url}/"
        path = "/".join(quote(segment.strip("/"), safe="") for segment in segments if segment)
        return urljoin(base, path)

    def _get_json(self, url: str) -> Any:
        log.debug("archive.request", url=url)
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            log.error("archive.request_error", url=url, error=str(exc))
            raise ArchiveServiceError(f"GET {url} failed: {exc}") from exc

        if not response.ok:
            log.error(
                "archive.request_failed",
                url=url,
                status=response.status_code,
                text=response.text,
            )
            raise ArchiveServiceError(f"GET {url} failed with {response.status_code}")

        if not response.content:
            return []
        try:
            return response.json()
        except ValueError as exc:
            raise ArchiveServiceError(f"GET {url} returned invalid JSON") from exc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def files_for_dataset(self, dataset_id: int) -> List[ArchivedFile]:
        url = self._build_url(
            "fileinfo", "files_for_keyvalue", self.search_key, str(dataset_id)
        )
        return parse_file_entries(dataset_id, self._get_json(url))

    def list_files(self, dataset_ids: Iterable[int]) -> List[ArchivedFile]:
        """Return the archived files for every ID in *dataset_ids*."""

        files: List[ArchivedFile] = []
        ids = list(dataset_ids)
        for dataset_id in ids:
            files.extend(self.files_for_dataset(dataset_id))
        log.info("archive.list_files", datasets=len(ids), files=len(files))
        return files


__all__ = ["ArchiveMetadataClient", "normalise_subdirectory", "parse_file_entries"]
