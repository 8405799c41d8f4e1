"""Console entry point for the Robin CLI application."""

from __future__ import annotations

import sys
from typing import Sequence

import typer

from apps.robin.app import app
from apps.robin.utils.errors import ExitCode, RobinError


def _handle_cli_error(exc: RobinError) -> ExitCode:
    """Render a user friendly error message and return the exit code."""

    typer.secho(f"{exc.heading}: {exc}", fg=typer.colors.RED, err=True)
    return exc.exit_code


def main(argv: Sequence[str] | None = None) -> int:
    """Invoke the root Typer application."""

    try:
        result = app(
            args=list(argv) if argv is not None else None,
            standalone_mode=False,
        )
    except RobinError as exc:
        return int(_handle_cli_error(exc))
    if result is None:
        return int(ExitCode.SUCCESS)
    return int(result)


if __name__ == "__main__":
    sys.exit(main())
