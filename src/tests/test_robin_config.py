from __future__ import annotations

from pathlib import Path

import pytest

from apps.robin.config import load_profile
from apps.robin.utils.errors import RobinConfigError


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.delenv("ROBIN_PROFILE", raising=False)
    monkeypatch.setenv("ROBIN_PROJECT_ROOT", str(tmp_path / "project"))
    return home


def test_load_profile_merges_precedence(tmp_path: Path) -> None:
    _write(
        tmp_path / "home" / ".config" / "robin" / "robin.toml",
        """
default_profile = "nightly"

[profiles.nightly]
ledger_batch_size = 2000
msec_between_lookup = 750
output_dir = "~/reports"
""".strip()
        + "\n",
    )
    _write(
        tmp_path / "project" / "robin.toml",
        """
[profiles.nightly]
msec_between_lookup = 250
append = false
""".strip()
        + "\n",
    )
    workspace = tmp_path / "workspace"
    _write(
        workspace / "robin.toml",
        """
[profiles.nightly]
archive_batch_size = 10
""".strip()
        + "\n",
    )

    context = load_profile(workspace=workspace)

    assert context.name == "nightly"
    assert context.get_int("ledger_batch_size") == 2000
    assert context.get_int("msec_between_lookup") == 250
    assert context.get_int("archive_batch_size") == 10
    assert context.get_bool("append") is False
    assert context.get_path("output_dir") == tmp_path / "home" / "reports"
    assert len(context.sources) == 3


def test_profile_environment_variable_selects_profile(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _write(
        tmp_path / "project" / "robin.toml",
        """
[profiles.default]
archive_batch_size = 5

[profiles.fast]
archive_batch_size = 20
""".strip()
        + "\n",
    )
    monkeypatch.setenv("ROBIN_PROFILE", "fast")

    assert load_profile().get_int("archive_batch_size") == 20
    assert load_profile(profile="default").get_int("archive_batch_size") == 5


def test_missing_configuration_yields_empty_default_profile() -> None:
    context = load_profile()

    assert context.name == "default"
    assert context.data == {}
    assert context.get_int("ledger_batch_size") is None


def test_unknown_profile_raises(tmp_path: Path) -> None:
    _write(tmp_path / "project" / "robin.toml", "[profiles.nightly]\nappend = true\n")

    with pytest.raises(RobinConfigError, match="nightly"):
        load_profile(profile="weekly")


def test_invalid_toml_raises(tmp_path: Path) -> None:
    _write(tmp_path / "project" / "robin.toml", "[profiles.nightly\n")

    with pytest.raises(RobinConfigError, match="Invalid TOML"):
        load_profile()


def test_wrong_value_types_raise(tmp_path: Path) -> None:
    _write(
        tmp_path / "project" / "robin.toml",
        '[profiles.default]\nledger_batch_size = "many"\nappend = 1\n',
    )

    context = load_profile()

    with pytest.raises(RobinConfigError):
        context.get_int("ledger_batch_size")
    with pytest.raises(RobinConfigError):
        context.get_bool("append")
