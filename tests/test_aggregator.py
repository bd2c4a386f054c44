"""Tests for sender aggregation."""

import pytest
from conftest import make_message

from gmail_sender_purge.aggregator import SenderAggregate, aggregate_messages, extract_sender_key
from gmail_sender_purge.backoff import BackoffController
from gmail_sender_purge.checkpoint import CheckpointStore
from gmail_sender_purge.constants import ANALYSIS_CHECKPOINT
from gmail_sender_purge.models import MessageMeta


@pytest.mark.parametrize(
    ("from_value", "expected"),
    [
        ("Alice <a@x.com>", "a@x.com"),
        ('"Smith, Alice" <a@x.com>', "a@x.com"),
        ("<a@x.com>", "a@x.com"),
        ("a@x.com", "a@x.com"),
        ("  a@x.com  ", "a@x.com"),
        ("Alice <A@X.com>", "A@X.com"),
        ("A <a@x.com> <b@y.com>", "a@x.com> <b@y.com"),
        ("Broken <a@x.com", "Broken <a@x.com"),
        ("<>", "<>"),
        ("", ""),
    ],
)
def test_extract_sender_key(from_value, expected):
    """The address inside angle brackets is the sender key."""
    assert extract_sender_key(from_value) == expected


def _meta(sender, date="", size=0, msg_id="m"):
    return MessageMeta(message_id=msg_id, sender=sender, date=date, size_estimate=size)


def test_display_name_variants_share_key():
    """Different display names for one address share a row."""
    agg = SenderAggregate()
    agg.ingest(_meta("Alice <a@x.com>"))
    agg.ingest(_meta("a@x.com"))
    assert list(agg.stats) == ["a@x.com"]
    assert agg.stats["a@x.com"].count == 2


def test_case_is_not_normalized():
    agg = SenderAggregate()
    agg.ingest(_meta("a@x.com"))
    agg.ingest(_meta("A@X.com"))
    assert len(agg) == 2


def test_ingest_accumulates_size():
    """Counts and sizes add up per sender."""
    agg = SenderAggregate()
    agg.ingest(_meta("a@x.com", size=100))
    agg.ingest(_meta("a@x.com", size=250))
    assert agg.stats["a@x.com"].total_size == 350
    assert agg.total_messages == 2


def test_missing_from_header_is_unknown():
    """Messages without a From header are counted as Unknown."""
    agg = SenderAggregate()
    agg.ingest(_meta(None))
    assert agg.stats["Unknown"].count == 1


def test_last_seen_keeps_most_recent_date():
    """last_seen keeps the newest parseable Date header."""
    agg = SenderAggregate()
    newest = "Mon, 15 Jan 2024 10:00:00 +0000"
    agg.ingest(_meta("a@x.com", date=newest))
    agg.ingest(_meta("a@x.com", date="Sun, 14 Jan 2024 09:00:00 +0000"))
    agg.ingest(_meta("a@x.com", date="not a date"))
    agg.ingest(_meta("a@x.com"))
    assert agg.stats["a@x.com"].last_seen == newest


def test_last_seen_unparseable_fills_empty():
    agg = SenderAggregate()
    agg.ingest(_meta("a@x.com"))
    assert agg.stats["a@x.com"].last_seen is None
    agg.ingest(_meta("a@x.com", date="yesterday"))
    assert agg.stats["a@x.com"].last_seen == "yesterday"
    agg.ingest(_meta("a@x.com", date="Mon, 15 Jan 2024 10:00:00 +0000"))
    assert agg.stats["a@x.com"].last_seen == "Mon, 15 Jan 2024 10:00:00 +0000"


def test_sorted_stats_descending_with_stable_ties():
    """Senders sort by count descending and ties keep first-seen order."""
    agg = SenderAggregate()
    for sender in ["b@x.com", "a@x.com", "c@x.com", "a@x.com", "c@x.com", "d@x.com"]:
        agg.ingest(_meta(sender))
    assert [k for k, _ in agg.sorted_stats()] == ["a@x.com", "c@x.com", "b@x.com", "d@x.com"]


def test_snapshot_round_trip():
    """An aggregate survives a snapshot and restore."""
    agg = SenderAggregate()
    agg.ingest(_meta("a@x.com", date="Mon, 15 Jan 2024 10:00:00 +0000", size=7))
    agg.ingest(_meta("b@x.com"))
    restored = SenderAggregate.from_snapshot(agg.to_snapshot())
    assert restored.stats == agg.stats


def _queue_messages(fake_service, counts):
    ids = []
    for sender, count in counts.items():
        for i in range(count):
            msg_id = f"{sender}-{i}"
            fake_service.messages.metadata[msg_id] = make_message(msg_id, f"{sender.title()} <{sender}>", size=1024)
            ids.append(msg_id)
    return ids


def test_aggregate_messages_counts_senders(fake_service, sleeper):
    """Every listed message is fetched and counted once."""
    ids = _queue_messages(fake_service, {"sender2": 3, "sender1": 5, "sender3": 2})

    agg = aggregate_messages(fake_service, ids, BackoffController(sleep=sleeper), sleep=sleeper)

    assert {k: s.count for k, s in agg.stats.items()} == {"sender2": 3, "sender1": 5, "sender3": 2}
    assert [k for k, _ in agg.sorted_stats()] == ["sender1", "sender2", "sender3"]
    # one batch of ten -> one inter-batch pause
    assert sleeper.calls == [1.0]


def test_aggregate_messages_threads_existing_aggregate(fake_service, sleeper):
    """New messages are added to an aggregate passed in."""
    ids = _queue_messages(fake_service, {"a@x.com": 2})
    existing = SenderAggregate()
    existing.ingest(_meta("a@x.com"))

    result = aggregate_messages(fake_service, ids, BackoffController(sleep=sleeper), aggregate=existing, sleep=sleeper)

    assert result is existing
    assert result.stats["a@x.com"].count == 3


def test_pause_after_every_batch(fake_service, sleeper):
    """A pause follows every batch, including the last one."""
    ids = _queue_messages(fake_service, {"a@x.com": 5})
    progress = []

    aggregate_messages(
        fake_service,
        ids,
        BackoffController(sleep=sleeper),
        batch_size=2,
        sleep=sleeper,
        callback=lambda done, total: progress.append((done, total)),
    )

    assert sleeper.calls == [1.0, 1.0, 1.0]
    assert progress == [(2, 5), (4, 5), (5, 5)]


def test_transient_failures_retried_with_fixed_delay(fake_service, sleeper):
    """Non-quota failures retry after a fixed 2 second delay."""
    ids = _queue_messages(fake_service, {"a@x.com": 1})
    fake_service.messages.get_failures[ids[0]] = [ConnectionError("reset"), ConnectionError("reset")]

    agg = aggregate_messages(fake_service, ids, BackoffController(sleep=sleeper), sleep=sleeper)

    assert agg.stats["a@x.com"].count == 1
    assert sleeper.calls == [2.0, 2.0, 1.0]


def test_quota_failures_use_backoff(fake_service, sleeper):
    """Quota failures wait exponentially inside one attempt."""
    ids = _queue_messages(fake_service, {"a@x.com": 1})
    fake_service.messages.get_failures[ids[0]] = [RuntimeError("Resource has been exhausted")]

    aggregate_messages(fake_service, ids, BackoffController(sleep=sleeper), sleep=sleeper)

    assert sleeper.calls == [2.0, 1.0]


def test_exhausted_attempts_checkpoint_and_propagate(fake_service, sleeper, tmp_path):
    """Exhausted retries save the aggregate and re-raise."""
    store = CheckpointStore(tmp_path)
    ids = _queue_messages(fake_service, {"a@x.com": 2})
    fake_service.messages.get_failures[ids[1]] = [ConnectionError("down")] * 3

    with pytest.raises(ConnectionError):
        aggregate_messages(
            fake_service, ids, BackoffController(sleep=sleeper), checkpoints=store, sleep=sleeper
        )

    assert fake_service.messages.get_calls.count(ids[1]) == 3
    saved = store.load(ANALYSIS_CHECKPOINT)
    assert saved["stats"]["processed"] == 1
    assert saved["stats"]["senders"]["a@x.com"]["count"] == 1


def test_periodic_checkpoint(fake_service, sleeper, tmp_path):
    """The aggregate is saved each time save_interval messages are processed."""
    store = CheckpointStore(tmp_path)
    ids = _queue_messages(fake_service, {"a@x.com": 6, "b@x.com": 2})
    saves = []
    original_save = store.save

    def recording_save(key, snapshot):
        saves.append(snapshot["stats"]["processed"])
        return original_save(key, snapshot)

    store.save = recording_save

    aggregate_messages(
        fake_service,
        ids,
        BackoffController(sleep=sleeper),
        checkpoints=store,
        batch_size=2,
        save_interval=4,
        sleep=sleeper,
    )

    assert saves == [4, 8]
    assert store.load(ANALYSIS_CHECKPOINT)["stats"]["senders"]["b@x.com"]["count"] == 2
