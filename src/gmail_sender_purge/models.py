"""Data models for Gmail Sender Purge."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MessageMeta:
    """Metadata extracted from a single Gmail message."""

    message_id: str
    sender: str | None  # Full From header value, None when absent
    date: str = ""
    size_estimate: int = 0  # bytes


@dataclass
class MessagePage:
    """One page of a messages.list response."""

    message_ids: list[str] = field(default_factory=list)
    next_page_token: str | None = None
    result_size_estimate: int | None = None


@dataclass
class SenderStats:
    """Aggregated statistics for a single sender."""

    count: int = 0
    total_size: int = 0  # bytes
    last_seen: str | None = None  # raw Date header


@dataclass
class Checkpoint:
    """Resumable progress snapshot stored under a run key."""

    cursor: str | None = None
    stats: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Checkpoint:
        return cls(
            cursor=data.get("cursor"),
            stats=dict(data.get("stats") or {}),
            timestamp=data.get("timestamp") or "",
        )


@dataclass
class AnalysisResult:
    """Result of an analysis run."""

    total_messages: int
    senders: dict[str, SenderStats] = field(default_factory=dict)
    report_path: Path | None = None


@dataclass
class DeletionResult:
    """Result of a multi-target deletion run."""

    total_deleted: int = 0
    per_target: dict[str, int] = field(default_factory=dict)
    aborted_targets: list[str] = field(default_factory=list)
    last_completed_target: str | None = None
    report_path: Path | None = None
