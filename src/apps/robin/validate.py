"""Typer command comparing the upload ledger with the archive contents."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import structlog
import typer
from pydantic import ValidationError

from apps.robin.config import ProfileContext, load_profile
from apps.robin.utils.errors import (
    ExitCode,
    RobinConfigError,
    RobinValidationError,
    translate_error,
)
from apps.robin.utils.progress import progress_tracker
from libraries.archive.client import ArchiveMetadataClient
from libraries.ledger.sqlite import SqliteLedgerSource
from libraries.reconcile.engine import ReconciliationEngine, RunSummary
from libraries.reconcile.errors import ReconciliationError
from libraries.reconcile.options import RunOptions
from libraries.reconcile.report import TabularReportSink, report_path

log = structlog.get_logger(__name__)


def load_dataset_ids(path: Path) -> list[int]:
    """Read dataset IDs from *path*, one per line.

    Blank lines and ``#`` comments are ignored.
    """

    if not path.is_file():
        raise RobinValidationError(f"Dataset ID file '{path}' does not exist")

    ids: list[int] = []
    with path.open(encoding="utf-8") as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            line = raw_line.split("#", 1)[0].strip()
            if not line:
                continue
            try:
                dataset_id = int(line)
            except ValueError:
                raise RobinValidationError(
                    f"{path}:{line_number}: '{line}' is not a dataset ID"
                ) from None
            if dataset_id <= 0:
                raise RobinValidationError(
                    f"{path}:{line_number}: dataset IDs must be positive"
                )
            ids.append(dataset_id)

    if not ids:
        raise RobinValidationError(f"Dataset ID file '{path}' does not list any dataset IDs")
    return ids


def _build_ledger(database: Optional[Path]) -> SqliteLedgerSource:
    if database is not None:
        return SqliteLedgerSource(database)
    try:
        return SqliteLedgerSource.from_env()
    except ValidationError as exc:
        raise RobinConfigError(
            "Ledger database not configured. Pass --ledger-db or set ROBIN_LEDGER_DB."
        ) from exc


def _build_archive(base_url: Optional[str]) -> ArchiveMetadataClient:
    if base_url:
        return ArchiveMetadataClient(base_url)
    try:
        return ArchiveMetadataClient.from_env()
    except ValidationError as exc:
        raise RobinConfigError(
            "Archive service not configured. Pass --archive-url or set ROBIN_ARCHIVE_URL."
        ) from exc


def _resolve_options(
    profile: ProfileContext,
    *,
    start: Optional[int],
    end: Optional[int],
    output: Optional[Path],
    dataset_ids: list[int],
    append: Optional[bool],
    ledger_batch: Optional[int],
    archive_batch: Optional[int],
    msec: Optional[int],
    preview: bool,
) -> RunOptions:
    settings: dict[str, object] = {
        "dataset_id_start": start or 0,
        "dataset_id_end": end or None,
        "dataset_ids": dataset_ids,
        "preview": preview,
    }
    overrides = {
        "output_dir": output or profile.get_path("output_dir"),
        "append_to_output": append if append is not None else profile.get_bool("append"),
        "ledger_batch_size": ledger_batch or profile.get_int("ledger_batch_size"),
        "archive_batch_size": archive_batch or profile.get_int("archive_batch_size"),
        "msec_between_lookup": msec or profile.get_int("msec_between_lookup"),
    }
    settings.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return RunOptions.model_validate(settings)
    except ValidationError as exc:
        details = "; ".join(error["msg"] for error in exc.errors())
        raise RobinValidationError(f"Invalid options: {details}") from exc


def _echo_summary(summary: RunSummary, report: Path) -> None:
    typer.secho(
        f"Checked {summary.datasets_examined} dataset(s) in "
        f"{summary.windows_processed} window(s) between IDs "
        f"{summary.lower_bound} and {summary.upper_bound}",
        fg=typer.colors.CYAN,
    )
    if summary.preview:
        typer.secho("Preview mode: the archive was not contacted", fg=typer.colors.BLUE)
        return

    discrepancies = {
        comment: count for comment, count in summary.comment_counts.items() if comment
    }
    if discrepancies:
        typer.secho("Discrepancies detected:", fg=typer.colors.YELLOW)
        for comment, count in sorted(discrepancies.items()):
            typer.secho(f"  {comment}: {count}", fg=typer.colors.YELLOW)
    else:
        typer.secho("All uploads match the archive", fg=typer.colors.GREEN)
    if summary.parse_warnings:
        typer.secho(
            f"{summary.parse_warnings} ledger value(s) could not be parsed",
            fg=typer.colors.YELLOW,
        )
    typer.secho(
        f"Wrote {summary.records_written} row(s) to {report}", fg=typer.colors.BLUE
    )


def validate(
    start: Optional[int] = typer.Argument(None, help="First dataset ID"),
    end: Optional[int] = typer.Argument(
        None, help="Last dataset ID to validate (defaults to the highest verified ID)"
    ),
    output: Optional[Path] = typer.Argument(
        None, help="Directory where the results file will be created"
    ),
    ids_file: Optional[Path] = typer.Option(
        None,
        "--ids-file",
        "--ids",
        help="File with dataset IDs to check (one ID per line)",
    ),
    append: Optional[bool] = typer.Option(
        None,
        "--append/--no-append",
        help="Append results to an existing report for today (default: append)",
    ),
    ledger_batch: Optional[int] = typer.Option(
        None,
        "--ledger-batch",
        min=100,
        max=5000,
        help="Number of dataset IDs per ledger query",
    ),
    archive_batch: Optional[int] = typer.Option(
        None,
        "--archive-batch",
        min=1,
        max=50,
        help="Number of dataset IDs per archive lookup",
    ),
    msec: Optional[int] = typer.Option(
        None,
        "--msec",
        min=50,
        max=10000,
        help="Minimum milliseconds between archive lookups",
    ),
    preview: bool = typer.Option(
        False, "--preview", help="Query the ledger but skip archive lookups"
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Exit with a non-zero code when discrepancies are found"
    ),
    ledger_db: Optional[Path] = typer.Option(
        None, "--ledger-db", help="SQLite upload ledger (overrides ROBIN_LEDGER_DB)"
    ),
    archive_url: Optional[str] = typer.Option(
        None, "--archive-url", help="Archive metadata server (overrides ROBIN_ARCHIVE_URL)"
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="Configuration profile to load from robin.toml files."
    ),
) -> ExitCode:
    """Compare the upload ledger against the archive and report discrepancies."""

    profile_context = load_profile(profile=profile)
    dataset_ids = load_dataset_ids(ids_file) if ids_file is not None else []
    if not start and not dataset_ids:
        raise RobinValidationError(
            "You must either provide a starting dataset ID or specify --ids-file"
        )

    options = _resolve_options(
        profile_context,
        start=start,
        end=end,
        output=output,
        dataset_ids=dataset_ids,
        append=append,
        ledger_batch=ledger_batch,
        archive_batch=archive_batch,
        msec=msec,
        preview=preview,
    )

    ledger = _build_ledger(ledger_db or profile_context.get_path("ledger_db"))
    archive = None
    if not options.preview:
        archive = _build_archive(archive_url or profile_context.data.get("archive_url"))

    report = report_path(options.output_dir)
    log.info(
        "validate.start",
        start=options.dataset_id_start,
        end=options.dataset_id_end,
        explicit_ids=len(options.dataset_ids),
        report=str(report),
        preview=options.preview,
    )

    try:
        with TabularReportSink(report, append=options.append_to_output) as sink:
            with progress_tracker("Validate Archive Uploads", total=1) as progress:
                engine = ReconciliationEngine(
                    ledger=ledger,
                    archive=archive,
                    sink=sink,
                    options=options,
                    progress=progress,
                )
                summary = engine.run()
    except ReconciliationError as exc:
        log.error("validate.failed", error=str(exc))
        raise translate_error(exc) from exc
    finally:
        ledger.close()

    _echo_summary(summary, report)
    if strict and any(comment for comment in summary.comment_counts):
        return ExitCode.VALIDATION
    return ExitCode.SUCCESS


__all__ = ["load_dataset_ids", "validate"]
