"""Analysis orchestration - list messages, aggregate by sender, write report."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable

from .aggregator import SenderAggregate, aggregate_messages
from .backoff import BackoffController
from .checkpoint import CheckpointStore
from .constants import ANALYSIS_QUERY
from .display import console, create_progress
from .export import write_analysis_report
from .models import AnalysisResult
from .paginator import Paginator


def analyze_mailbox(
    service,
    checkpoints: CheckpointStore,
    output_dir: str | Path = ".",
    query: str | None = ANALYSIS_QUERY,
    max_results: int | None = None,
    backoff: BackoffController | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AnalysisResult:
    """Run a full analysis: list IDs, aggregate metadata, write the CSV report."""
    backoff = backoff or BackoffController(sleep=sleep)
    paginator = Paginator(service, backoff, checkpoints=checkpoints, sleep=sleep)

    # Step 1: List message IDs
    console.print("[bold]Step 1/3:[/bold] Listing message IDs...")
    with create_progress("Listing messages") as progress:
        task = progress.add_task("listing", total=None)

        def on_page(page_number: int, fetched: int) -> None:
            progress.update(task, completed=fetched)

        ids = paginator.fetch_all(query, max_results=max_results, callback=on_page)
        progress.update(task, completed=len(ids), total=len(ids))

    console.print(f"  Found [bold]{len(ids)}[/bold] messages")

    # Step 2: Fetch metadata and aggregate
    console.print("[bold]Step 2/3:[/bold] Aggregating senders...")
    with create_progress("Reading metadata") as progress:
        task = progress.add_task("reading", total=len(ids))

        def on_batch(processed: int, total: int) -> None:
            progress.update(task, completed=processed)

        aggregate = aggregate_messages(
            service,
            ids,
            backoff,
            checkpoints=checkpoints,
            aggregate=SenderAggregate(),
            sleep=sleep,
            callback=on_batch,
        )

    # Step 3: Report
    console.print("[bold]Step 3/3:[/bold] Writing report...")
    report_path = write_analysis_report(aggregate.sorted_stats(), output_dir)
    console.print(f"  Analysis written to [bold]{report_path}[/bold]")

    return AnalysisResult(
        total_messages=aggregate.total_messages,
        senders=aggregate.stats,
        report_path=report_path,
    )
