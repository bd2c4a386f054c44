"""CLI entry point for Gmail Sender Purge."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import click
import httplib2
from googleapiclient.errors import HttpError

from .aggregator import SenderAggregate
from .analysis import analyze_mailbox
from .auth import check_auth, get_gmail_service
from .backoff import BackoffController
from .checkpoint import CheckpointStore
from .constants import ANALYSIS_CHECKPOINT, ANALYSIS_QUERY, DELETE_CRITERIA
from .deleter import BatchDeleter, read_target_list
from .display import (
    configure_logging,
    console,
    create_progress,
    display_analysis_results,
    display_checkpoint,
    display_deletion_summary,
)
from .export import write_deletion_report
from .models import AnalysisResult, Checkpoint

logger = logging.getLogger(__name__)

# Failures that end a run early; anything written so far stays in the checkpoint directory.
ABORT_ERRORS = (HttpError, OSError, httplib2.HttpLib2Error)


def _connect(credentials: Path | None, token: Path | None):
    try:
        return get_gmail_service(credentials, token)
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e


def _aborted(mode: str, error: Exception, checkpoints: CheckpointStore) -> click.ClickException:
    logger.error("%s aborted: %s", mode, error)
    return click.ClickException(
        f"{mode} aborted: {error}\nPartial progress was saved under {checkpoints.directory}"
    )


@click.command()
@click.version_option(version="0.1.0", prog_name="gmail-sender-purge")
@click.option(
    "--delete",
    "delete_list",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="File of sender addresses to delete messages from (one per line).",
)
@click.argument("max_per_sender", required=False, type=click.IntRange(min=1))
@click.option(
    "-q",
    "--query",
    default=None,
    help=f"Analysis search query (default '{ANALYSIS_QUERY}'), or extra criteria "
    f"appended to 'from:<sender>' when deleting (default '{DELETE_CRITERIA}').",
)
@click.option("-m", "--max-messages", default=None, type=int, help="Maximum messages to analyze.")
@click.option("-o", "--output-dir", default=".", type=click.Path(file_okay=False, path_type=Path), help="Directory for CSV reports.")
@click.option("--checkpoint-dir", default=None, type=click.Path(file_okay=False, path_type=Path), help="Directory for progress checkpoints.")
@click.option(
    "--max-wait",
    default=None,
    type=click.FloatRange(min=0),
    help="Stop retrying a rate-limited call once this many seconds have passed since its first attempt.",
)
@click.option("--show-progress", is_flag=True, help="Show saved checkpoints and exit.")
@click.option("--clear-progress", is_flag=True, help="Delete saved checkpoints and exit.")
@click.option("--credentials", default=None, type=click.Path(dir_okay=False, path_type=Path), help="OAuth client secrets file.")
@click.option("--token", default=None, type=click.Path(dir_okay=False, path_type=Path), help="Cached OAuth token file.")
@click.option("--check-auth", "auth_only", is_flag=True, help="Only test Gmail authentication.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(
    delete_list: Path | None,
    max_per_sender: int | None,
    query: str | None,
    max_messages: int | None,
    output_dir: Path,
    checkpoint_dir: Path | None,
    max_wait: float | None,
    show_progress: bool,
    clear_progress: bool,
    credentials: Path | None,
    token: Path | None,
    auth_only: bool,
    verbose: bool,
) -> None:
    """Gmail Sender Purge - analyze senders, or bulk-delete their messages.

    Without options, analyzes unread mail and writes a per-sender CSV report.
    With --delete LISTFILE [MAX_PER_SENDER], deletes messages from every
    sender listed in LISTFILE.
    """
    configure_logging(verbose)

    if auth_only:
        if not check_auth(credentials, token):
            raise SystemExit(1)
        return

    if max_per_sender is not None and delete_list is None:
        raise click.UsageError("MAX_PER_SENDER is only valid together with --delete.")

    checkpoints = CheckpointStore(checkpoint_dir)

    if show_progress:
        _show_progress(checkpoints)
        return

    if clear_progress:
        _clear_progress(checkpoints)
        return

    backoff = BackoffController(max_elapsed=max_wait, sleep=time.sleep)

    if delete_list is not None:
        _run_delete(delete_list, max_per_sender, query, output_dir, checkpoints, backoff, credentials, token)
    else:
        _run_analysis(query, max_messages, output_dir, checkpoints, backoff, credentials, token)


def _show_progress(checkpoints: CheckpointStore) -> None:
    keys = checkpoints.keys()
    if not keys:
        console.print(f"[dim]No saved progress in {checkpoints.directory}[/dim]")
        return

    for key in keys:
        data = checkpoints.load(key)
        if data is None:
            console.print(f"[yellow]{key}: unreadable, skipped[/yellow]")
            continue
        checkpoint = Checkpoint.from_dict(data)
        display_checkpoint(key, checkpoint)

        if key == ANALYSIS_CHECKPOINT:
            aggregate = SenderAggregate.from_snapshot(checkpoint.stats.get("senders") or {})
            display_analysis_results(
                AnalysisResult(total_messages=aggregate.total_messages, senders=aggregate.stats)
            )


def _clear_progress(checkpoints: CheckpointStore) -> None:
    removed = [key for key in checkpoints.keys() if checkpoints.delete(key)]
    if removed:
        console.print(f"[green]Removed {len(removed)} checkpoint(s): {', '.join(removed)}[/green]")
    else:
        console.print(f"[dim]No saved progress in {checkpoints.directory}[/dim]")


def _run_analysis(
    query: str | None,
    max_messages: int | None,
    output_dir: Path,
    checkpoints: CheckpointStore,
    backoff: BackoffController,
    credentials: Path | None,
    token: Path | None,
) -> None:
    console.print("[bold]Starting email analysis...[/bold]")
    service = _connect(credentials, token)

    try:
        result = analyze_mailbox(
            service,
            checkpoints,
            output_dir=output_dir,
            query=query if query is not None else ANALYSIS_QUERY,
            max_results=max_messages,
            backoff=backoff,
            sleep=time.sleep,
        )
    except ABORT_ERRORS as e:
        raise _aborted("Analysis", e, checkpoints) from e

    display_analysis_results(result)


def _run_delete(
    delete_list: Path,
    max_per_sender: int | None,
    query: str | None,
    output_dir: Path,
    checkpoints: CheckpointStore,
    backoff: BackoffController,
    credentials: Path | None,
    token: Path | None,
) -> None:
    try:
        targets = read_target_list(delete_list)
    except FileNotFoundError as e:
        raise click.ClickException(f"Email list file not found: {delete_list}") from e

    if not targets:
        console.print(f"[yellow]No email addresses found in {delete_list}[/yellow]")
        return

    console.print(f"[bold]Starting bulk delete for {len(targets)} senders...[/bold]")
    service = _connect(credentials, token)
    deleter = BatchDeleter(service, backoff, sleep=time.sleep)

    try:
        with create_progress("Deleting messages") as progress:
            task = progress.add_task("deleting", total=len(targets))

            def on_target(target: str, deleted: int) -> None:
                progress.advance(task)

            result = deleter.delete_targets(
                targets,
                checkpoints=checkpoints,
                max_per_target=max_per_sender,
                criteria=query if query is not None else DELETE_CRITERIA,
                callback=on_target,
            )

        result.report_path = write_deletion_report(result.per_target, output_dir)
    except ABORT_ERRORS as e:
        raise _aborted("Deletion", e, checkpoints) from e

    display_deletion_summary(result)
