"""Per-sender statistics over a stream of message metadata."""

from __future__ import annotations

import logging
import re
import time
from email.utils import parsedate_to_datetime
from typing import Callable

from tenacity import RetryCallState, Retrying, stop_after_attempt, wait_fixed

from .backoff import BackoffController
from .checkpoint import CheckpointStore
from .constants import (
    ANALYSIS_CHECKPOINT,
    BATCH_PAUSE,
    BATCH_SIZE,
    METADATA_ATTEMPTS,
    METADATA_RETRY_DELAY,
    PROGRESS_SAVE_INTERVAL,
    UNKNOWN_SENDER,
)
from .gmail_client import get_message_metadata
from .models import Checkpoint, MessageMeta, SenderStats

logger = logging.getLogger(__name__)

_ANGLE_ADDR_RE = re.compile(r"<(.+)>")


def extract_sender_key(from_value: str) -> str:
    """Return the grouping key for a From header.

    Uses the text inside angle brackets when present, otherwise the trimmed
    header.  No case folding or RFC 5322 parsing is attempted:
      "Alice <a@x.com>"        -> "a@x.com"
      "a@x.com"                -> "a@x.com"
      "A <a@x.com> <b@y.com>"  -> "a@x.com> <b@y.com"  (greedy match)
      ""                       -> ""
    """
    m = _ANGLE_ADDR_RE.search(from_value)
    if m:
        return m.group(1)
    return from_value.strip()


def _parse_date(value: str | None):
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        return None
    return parsed


class SenderAggregate:
    """Mapping of sender key to SenderStats, in first-seen order."""

    def __init__(self, stats: dict[str, SenderStats] | None = None) -> None:
        self.stats: dict[str, SenderStats] = stats if stats is not None else {}

    def __len__(self) -> int:
        return len(self.stats)

    def ingest(self, meta: MessageMeta) -> None:
        key = UNKNOWN_SENDER if meta.sender is None else extract_sender_key(meta.sender)
        stats = self.stats.setdefault(key, SenderStats())
        stats.count += 1
        stats.total_size += meta.size_estimate
        stats.last_seen = _latest_date(stats.last_seen, meta.date or None)

    def sorted_stats(self) -> list[tuple[str, SenderStats]]:
        """Senders by descending count; ties keep first-seen order."""
        return sorted(self.stats.items(), key=lambda item: item[1].count, reverse=True)

    @property
    def total_messages(self) -> int:
        return sum(s.count for s in self.stats.values())

    def to_snapshot(self) -> dict:
        return {
            key: {"count": s.count, "total_size": s.total_size, "last_seen": s.last_seen}
            for key, s in self.stats.items()
        }

    @classmethod
    def from_snapshot(cls, data: dict) -> SenderAggregate:
        return cls(
            {
                key: SenderStats(
                    count=int(value.get("count", 0)),
                    total_size=int(value.get("total_size", 0)),
                    last_seen=value.get("last_seen"),
                )
                for key, value in data.items()
            }
        )


def _latest_date(current: str | None, candidate: str | None) -> str | None:
    """Keep whichever Date header is more recent.

    An unparseable candidate only replaces an empty or unparseable value.
    """
    if candidate is None:
        return current
    if current is None:
        return candidate
    current_dt = _parse_date(current)
    candidate_dt = _parse_date(candidate)
    if candidate_dt is None:
        return candidate if current_dt is None else current
    if current_dt is None or candidate_dt > current_dt:
        return candidate
    return current


def aggregate_messages(
    service,
    message_ids: list[str],
    backoff: BackoffController,
    checkpoints: CheckpointStore | None = None,
    aggregate: SenderAggregate | None = None,
    batch_size: int = BATCH_SIZE,
    batch_pause: float = BATCH_PAUSE,
    attempts: int = METADATA_ATTEMPTS,
    retry_delay: float = METADATA_RETRY_DELAY,
    save_interval: int = PROGRESS_SAVE_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
    callback: Callable[[int, int], None] | None = None,
) -> SenderAggregate:
    """Fetch metadata for every ID and fold it into a SenderAggregate.

    Each fetch goes through ``backoff`` for quota errors and is retried
    ``attempts`` times with a fixed ``retry_delay`` for anything else.  When
    a message still cannot be read the aggregate so far is checkpointed and
    the error propagates.  A checkpoint is also written whenever the number
    of processed messages is a multiple of ``save_interval``, and the loop
    pauses ``batch_pause`` seconds after every batch.
    """
    aggregate = aggregate if aggregate is not None else SenderAggregate()
    total = len(message_ids)
    processed = 0

    def _log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            "Failed to read message %s (attempt %d/%d): %s",
            retry_state.args[0] if retry_state.args else "?",
            retry_state.attempt_number,
            attempts,
            retry_state.outcome.exception(),
        )

    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(retry_delay),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )

    def _fetch(msg_id: str) -> MessageMeta:
        return backoff.execute(lambda: get_message_metadata(service, msg_id))

    for start in range(0, total, batch_size):
        batch = message_ids[start:start + batch_size]

        for msg_id in batch:
            try:
                meta = retrying(_fetch, msg_id)
            except Exception:
                logger.error("Failed to process message %s after %d attempts", msg_id, attempts)
                _save(checkpoints, aggregate, processed)
                raise
            aggregate.ingest(meta)
            processed += 1

        logger.info("Processed %d of %d messages", processed, total)
        if callback:
            callback(processed, total)

        if save_interval and processed % save_interval == 0:
            _save(checkpoints, aggregate, processed)

        sleep(batch_pause)

    return aggregate


def _save(checkpoints: CheckpointStore | None, aggregate: SenderAggregate, processed: int) -> None:
    if checkpoints is None:
        return
    snapshot = Checkpoint(stats={"processed": processed, "senders": aggregate.to_snapshot()})
    checkpoints.save(ANALYSIS_CHECKPOINT, snapshot.to_dict())
