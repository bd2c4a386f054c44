"""Bulk deletion of messages from a list of senders."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from .backoff import BackoffController
from .checkpoint import CheckpointStore
from .constants import BASE_DELAY, DELETE_BATCH_SIZE, DELETE_CHECKPOINT, DELETE_CRITERIA, MAX_FAILED_ATTEMPTS
from .gmail_client import batch_delete_messages
from .models import Checkpoint, DeletionResult
from .paginator import Paginator

logger = logging.getLogger(__name__)


def build_sender_query(sender: str, criteria: str | None = DELETE_CRITERIA) -> str:
    """Return the Gmail search query selecting messages from *sender*."""
    query = f"from:{sender}"
    if criteria:
        query = f"{query} {criteria}"
    return query


def read_target_list(path: str | Path) -> list[str]:
    """Read sender addresses, one per line, skipping blanks and # comments."""
    targets: list[str] = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                targets.append(line)
    return targets


class BatchDeleter:
    """Delete every message matching a filter, one page at a time.

    Each iteration lists up to ``batch_size`` matching IDs from the first
    page and deletes exactly those, so the result window shrinks as the run
    progresses.  Quota errors are absorbed by the backoff controller; any
    other failure counts against ``max_failed_attempts`` consecutive batch
    failures, after which the target is abandoned and the partial count
    returned.
    """

    def __init__(
        self,
        service,
        backoff: BackoffController,
        paginator: Paginator | None = None,
        batch_size: int = DELETE_BATCH_SIZE,
        max_failed_attempts: int = MAX_FAILED_ATTEMPTS,
        base_delay: float = BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.service = service
        self.backoff = backoff
        self.paginator = paginator or Paginator(service, backoff, sleep=sleep)
        self.batch_size = batch_size
        self.max_failed_attempts = max_failed_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def delete_all_matching(self, filter_expression: str, max_messages: int | None = None) -> int:
        """Delete messages matching *filter_expression* and return the count."""
        deleted, _ = self._delete(filter_expression, max_messages)
        return deleted

    def _delete(self, filter_expression: str, max_messages: int | None) -> tuple[int, bool]:
        """Return ``(deleted_count, aborted)``."""
        deleted = 0
        failed_attempts = 0

        while True:
            size = self.batch_size
            if max_messages is not None:
                remaining = max_messages - deleted
                if remaining <= 0:
                    logger.info("Reached limit of %d messages for %s", max_messages, filter_expression)
                    break
                size = min(size, remaining)

            try:
                page = self.paginator.fetch_page(filter_expression, max_results=size)
                ids = page.message_ids[:size]
                if not ids:
                    logger.info("No more messages to delete for %s", filter_expression)
                    break

                if page.result_size_estimate:
                    logger.info("Estimated remaining messages: %d", page.result_size_estimate)

                self.backoff.execute(lambda: batch_delete_messages(self.service, ids))
            except Exception as exc:  # noqa: BLE001
                failed_attempts += 1
                logger.error(
                    "Batch deletion error (attempt %d/%d): %s",
                    failed_attempts,
                    self.max_failed_attempts,
                    exc,
                )
                if failed_attempts >= self.max_failed_attempts:
                    logger.error(
                        "Giving up on %s after %d failed batches; %d messages deleted",
                        filter_expression,
                        failed_attempts,
                        deleted,
                    )
                    return deleted, True
                self._sleep(self.base_delay * 2)
                continue

            deleted += len(ids)
            failed_attempts = 0
            logger.info("Progress: deleted %d messages for %s", deleted, filter_expression)
            self._sleep(self.base_delay)

        return deleted, False

    def delete_targets(
        self,
        targets: list[str],
        checkpoints: CheckpointStore | None = None,
        max_per_target: int | None = None,
        criteria: str | None = DELETE_CRITERIA,
        callback: Callable[[str, int], None] | None = None,
    ) -> DeletionResult:
        """Delete messages for each sender in turn, checkpointing after each.

        Targets are processed strictly one after another.  A target that is
        abandoned after repeated failures keeps its partial count and the
        run moves on to the next one.
        """
        result = DeletionResult()
        logger.info("Processing %d email addresses...", len(targets))

        for target in targets:
            logger.info("Deleting messages from %s...", target)
            deleted, aborted = self._delete(build_sender_query(target, criteria), max_per_target)

            result.total_deleted += deleted
            result.per_target[target] = result.per_target.get(target, 0) + deleted
            if aborted:
                result.aborted_targets.append(target)
            result.last_completed_target = target

            if checkpoints is not None:
                snapshot = Checkpoint(
                    stats={
                        "total_deleted": result.total_deleted,
                        "last_completed_target": target,
                        "per_target": dict(result.per_target),
                        "aborted_targets": list(result.aborted_targets),
                    }
                )
                checkpoints.save(DELETE_CHECKPOINT, snapshot.to_dict())

            if callback:
                callback(target, deleted)

            self._sleep(self.base_delay)

        return result
