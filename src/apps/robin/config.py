"""Load Robin configuration profiles from ``robin.toml`` files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for older runtimes.
    import tomli as tomllib  # type: ignore[no-redef]

from apps.robin.utils.errors import RobinConfigError

CONFIG_FILENAME = "robin.toml"
PROFILE_ENV = "ROBIN_PROFILE"
PROJECT_ROOT_ENV = "ROBIN_PROJECT_ROOT"


@dataclass(frozen=True)
class ProfileContext:
    """A resolved configuration profile and the files it was merged from."""

    name: str
    data: Mapping[str, Any]
    sources: tuple[Path, ...]

    def get_int(self, key: str) -> int | None:
        value = self.data.get(key)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise RobinConfigError(f"Profile '{self.name}' setting '{key}' must be an integer")
        return value

    def get_bool(self, key: str) -> bool | None:
        value = self.data.get(key)
        if value is None:
            return None
        if not isinstance(value, bool):
            raise RobinConfigError(f"Profile '{self.name}' setting '{key}' must be true or false")
        return value

    def get_path(self, key: str) -> Path | None:
        value = self.data.get(key)
        if value is None:
            return None
        if not isinstance(value, str) or not value:
            raise RobinConfigError(f"Profile '{self.name}' setting '{key}' must be a path")
        return Path(value).expanduser()


def load_profile(
    *,
    profile: str | None = None,
    workspace: Path | None = None,
    project_root: Path | None = None,
) -> ProfileContext:
    """Merge ``robin.toml`` files and select *profile*.

    Files are read from the user configuration directory, then the project
    root, then *workspace*; later files override earlier ones key by key.
    Without an explicit *profile* the ``ROBIN_PROFILE`` environment variable,
    then the highest precedence ``default_profile`` entry, then ``"default"``
    is used.
    """

    merged: Dict[str, Any] = {}
    sources: list[Path] = []

    for path in _iter_config_paths(workspace=workspace, project_root=project_root):
        try:
            with path.open("rb") as handle:
                document = tomllib.load(handle)
        except OSError as exc:  # pragma: no cover - filesystem errors are rare.
            raise RobinConfigError(f"Unable to read configuration file '{path}': {exc}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise RobinConfigError(f"Invalid TOML in '{path}': {exc}") from exc
        merged = _deep_merge(merged, document)
        sources.append(path)

    profiles = merged.get("profiles", {})
    if not isinstance(profiles, Mapping):
        raise RobinConfigError("The 'profiles' table must contain mappings of settings")

    name = _determine_profile_name(merged, profile)
    if name in profiles:
        raw = profiles[name]
        if not isinstance(raw, Mapping):
            raise RobinConfigError(f"Profile '{name}' must be a mapping of configuration values")
        data: Mapping[str, Any] = dict(raw)
    elif name == "default" or not profiles:
        data = {}
    else:
        available = ", ".join(sorted(str(key) for key in profiles))
        raise RobinConfigError(
            f"Profile '{name}' was not found. Available profiles: {available}."
        )

    return ProfileContext(name=name, data=data, sources=tuple(sources))


def _user_config_paths() -> tuple[Path, ...]:
    candidates = []
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        candidates.append(Path(xdg_config) / "robin" / CONFIG_FILENAME)
    home = Path(os.path.expanduser("~"))
    candidates.append(home / ".config" / "robin" / CONFIG_FILENAME)
    candidates.append(home / CONFIG_FILENAME)
    return tuple(candidates)


def _iter_config_paths(
    *, workspace: Path | None, project_root: Path | None
) -> Iterable[Path]:
    if project_root is None:
        env_root = os.environ.get(PROJECT_ROOT_ENV)
        project_root = Path(env_root) if env_root else Path.cwd()

    candidates = [
        *_user_config_paths(),
        project_root / CONFIG_FILENAME,
        project_root / ".robin" / CONFIG_FILENAME,
    ]
    if workspace is not None:
        candidates.append(workspace / CONFIG_FILENAME)

    seen: set[Path] = set()
    for path in candidates:
        if path in seen or not path.exists():
            continue
        seen.add(path)
        yield path


def _deep_merge(base: Dict[str, Any], new: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {**base}
    for key, value in new.items():
        if key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def _determine_profile_name(config: Mapping[str, Any], override: str | None) -> str:
    if override:
        return override
    env_profile = os.environ.get(PROFILE_ENV)
    if env_profile:
        return env_profile
    default_profile = config.get("default_profile")
    if isinstance(default_profile, str) and default_profile:
        return default_profile
    return "default"


__all__ = ["CONFIG_FILENAME", "ProfileContext", "load_profile"]
