"""Gmail API client functions for listing, reading and deleting messages."""

from __future__ import annotations

from .constants import METADATA_HEADERS, PAGE_SIZE
from .models import MessageMeta, MessagePage


def list_messages_page(
    service,
    query: str | None = None,
    page_token: str | None = None,
    max_results: int = PAGE_SIZE,
) -> MessagePage:
    """Request a single page of message IDs matching the query."""
    kwargs: dict = {
        "userId": "me",
        "maxResults": max_results,
        "fields": "messages/id,nextPageToken,resultSizeEstimate",
    }
    if query:
        kwargs["q"] = query
    if page_token:
        kwargs["pageToken"] = page_token

    resp = service.users().messages().list(**kwargs).execute()
    return MessagePage(
        message_ids=[msg["id"] for msg in resp.get("messages", [])],
        next_page_token=resp.get("nextPageToken") or None,
        result_size_estimate=resp.get("resultSizeEstimate"),
    )


def get_message_metadata(service, message_id: str) -> MessageMeta:
    """Fetch the From/Date headers and size estimate of one message."""
    resp = service.users().messages().get(
        userId="me",
        id=message_id,
        format="metadata",
        metadataHeaders=METADATA_HEADERS,
    ).execute()

    headers = {}
    for h in resp.get("payload", {}).get("headers", []):
        headers.setdefault(h["name"], h["value"])

    return MessageMeta(
        message_id=message_id,
        sender=headers.get("From"),
        date=headers.get("Date", ""),
        size_estimate=int(resp.get("sizeEstimate") or 0),
    )


def batch_delete_messages(service, message_ids: list[str]) -> None:
    """Permanently delete the given messages with one batchDelete call."""
    service.users().messages().batchDelete(
        userId="me",
        body={"ids": message_ids},
    ).execute()
