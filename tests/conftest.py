"""Shared fixtures for tests."""

from __future__ import annotations

import pytest


class FakeRequest:
    """Stand-in for a googleapiclient HttpRequest."""

    def __init__(self, action) -> None:
        self._action = action

    def execute(self):
        return self._action()


def _pop(queue: list):
    if not queue:
        raise AssertionError("Unexpected API call: no response queued")
    item = queue.pop(0)
    if isinstance(item, BaseException):
        raise item
    return item


class FakeMessages:
    """Scriptable users().messages() resource.

    ``list_responses`` and ``delete_outcomes`` are consumed in call order; an
    exception instance in either queue is raised instead of returned.
    ``get_failures`` maps a message ID to exceptions raised before the
    metadata in ``metadata`` is returned.
    """

    def __init__(self) -> None:
        self.list_responses: list = []
        self.list_calls: list[dict] = []
        self.metadata: dict[str, dict] = {}
        self.get_failures: dict[str, list] = {}
        self.get_calls: list[str] = []
        self.delete_outcomes: list = []
        self.deleted_batches: list[list[str]] = []

    def list(self, **kwargs):
        self.list_calls.append(kwargs)
        return FakeRequest(lambda: _pop(self.list_responses))

    def get(self, userId, id, format=None, metadataHeaders=None):  # noqa: A002, N803
        def _run():
            self.get_calls.append(id)
            failures = self.get_failures.get(id)
            if failures:
                raise failures.pop(0)
            return self.metadata[id]

        return FakeRequest(_run)

    def batchDelete(self, userId, body):  # noqa: N802, N803
        def _run():
            outcome = _pop(self.delete_outcomes) if self.delete_outcomes else None
            self.deleted_batches.append(list(body["ids"]))
            return outcome

        return FakeRequest(_run)


class FakeUsers:
    def __init__(self, messages: FakeMessages) -> None:
        self._messages = messages

    def messages(self) -> FakeMessages:
        return self._messages

    def getProfile(self, userId):  # noqa: N802, N803
        return FakeRequest(lambda: {"emailAddress": "me@example.com"})


class FakeGmailService:
    def __init__(self) -> None:
        self.messages = FakeMessages()

    def users(self) -> FakeUsers:
        return FakeUsers(self.messages)


class SleepRecorder:
    """Replacement for time.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


def make_page(ids: list[str], token: str | None = None, estimate: int | None = None) -> dict:
    resp: dict = {}
    if ids:
        resp["messages"] = [{"id": i, "threadId": i} for i in ids]
    if token:
        resp["nextPageToken"] = token
    if estimate is not None:
        resp["resultSizeEstimate"] = estimate
    return resp


def make_message(msg_id: str, sender: str | None, date: str = "", size: int = 0) -> dict:
    headers = []
    if sender is not None:
        headers.append({"name": "From", "value": sender})
    if date:
        headers.append({"name": "Date", "value": date})
    return {"id": msg_id, "sizeEstimate": size, "payload": {"headers": headers}}


def ids_for(prefix: str, count: int) -> list[str]:
    return [f"{prefix}{i:04d}" for i in range(count)]


@pytest.fixture
def fake_service() -> FakeGmailService:
    return FakeGmailService()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()
