"""CSV reports for analysis and deletion runs."""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path

from .constants import (
    ANALYSIS_REPORT_HEADER,
    ANALYSIS_REPORT_PREFIX,
    DELETION_REPORT_HEADER,
    DELETION_REPORT_PREFIX,
)
from .models import SenderStats


def report_timestamp(now: datetime | None = None) -> str:
    """Return a sortable, filename-safe UTC timestamp like 2024-01-15T10-30-00-123Z."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"


def _report_path(output_dir: str | Path, prefix: str, now: datetime | None) -> Path:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir / f"{prefix}-{report_timestamp(now)}.csv"


def write_analysis_report(
    stats: list[tuple[str, SenderStats]],
    output_dir: str | Path = ".",
    now: datetime | None = None,
) -> Path:
    """Write sender statistics, in the given order, to a timestamped CSV.

    ``totalSize`` is reported in megabytes with two decimals.
    """
    path = _report_path(output_dir, ANALYSIS_REPORT_PREFIX, now)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(ANALYSIS_REPORT_HEADER)
        for sender, s in stats:
            writer.writerow(
                [
                    sender,
                    s.count,
                    f"{s.total_size / 1024 / 1024:.2f}",
                    s.last_seen or "",
                ]
            )
    return path


def write_deletion_report(
    per_target: dict[str, int],
    output_dir: str | Path = ".",
    now: datetime | None = None,
) -> Path:
    """Write per-sender deletion counts to a timestamped CSV."""
    path = _report_path(output_dir, DELETION_REPORT_PREFIX, now)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(DELETION_REPORT_HEADER)
        for email, count in per_target.items():
            writer.writerow([email, count])
    return path
