"""Cursor-based retrieval of message IDs."""

from __future__ import annotations

import logging
import time
from typing import Callable

from .backoff import BackoffController
from .checkpoint import CheckpointStore
from .constants import FETCH_CHECKPOINT, PAGE_SIZE, THROTTLE_EVERY, THROTTLE_PAUSE
from .gmail_client import list_messages_page
from .models import Checkpoint, MessagePage

logger = logging.getLogger(__name__)


class Paginator:
    """Drive messages.list page by page through the backoff controller.

    Results are concatenated in page order and never deduplicated: if the
    mailbox changes during iteration the same ID may appear twice.
    """

    def __init__(
        self,
        service,
        backoff: BackoffController,
        checkpoints: CheckpointStore | None = None,
        page_size: int = PAGE_SIZE,
        throttle_every: int = THROTTLE_EVERY,
        throttle_pause: float = THROTTLE_PAUSE,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.service = service
        self.backoff = backoff
        self.checkpoints = checkpoints
        self.page_size = page_size
        self.throttle_every = throttle_every
        self.throttle_pause = throttle_pause
        self._sleep = sleep

    def fetch_page(
        self,
        query: str | None,
        page_token: str | None = None,
        max_results: int | None = None,
    ) -> MessagePage:
        """Fetch one page of IDs, retrying quota errors."""
        size = max_results or self.page_size
        return self.backoff.execute(
            lambda: list_messages_page(self.service, query=query, page_token=page_token, max_results=size)
        )

    def fetch_all(
        self,
        query: str | None,
        max_results: int | None = None,
        callback: Callable[[int, int], None] | None = None,
    ) -> list[str]:
        """Return every message ID matching *query*, in listing order.

        ``callback`` receives ``(page_number, ids_so_far)`` after each page.
        On failure the IDs collected so far are written to the
        ``failed-fetch-progress`` checkpoint before the error propagates.
        """
        ids: list[str] = []
        page_token: str | None = None
        page_number = 0
        pauses_taken = 0

        try:
            while True:
                page_number += 1
                logger.debug("Fetching page %d...", page_number)
                page = self.fetch_page(query, page_token=page_token)
                ids.extend(page.message_ids)
                if max_results and len(ids) >= max_results:
                    del ids[max_results:]

                if callback:
                    callback(page_number, len(ids))

                page_token = page.next_page_token
                if not page_token or (max_results and len(ids) >= max_results):
                    break

                # Proactive pause each time another THROTTLE_EVERY refs accumulate
                if self.throttle_every and len(ids) // self.throttle_every > pauses_taken:
                    pauses_taken = len(ids) // self.throttle_every
                    logger.debug("Taking a short break to avoid rate limits...")
                    self._sleep(self.throttle_pause)
        except Exception:
            logger.exception("Error fetching messages on page %d", page_number)
            self._flush(ids, page_token, query)
            raise

        logger.info("Total messages fetched: %d", len(ids))
        return ids

    def _flush(self, ids: list[str], page_token: str | None, query: str | None) -> None:
        if not ids or self.checkpoints is None:
            return
        snapshot = Checkpoint(cursor=page_token, stats={"query": query or "", "message_ids": ids})
        self.checkpoints.save(FETCH_CHECKPOINT, snapshot.to_dict())
