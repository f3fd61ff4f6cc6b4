"""
Tests for Change Notifications, Journals and Replay
===================================================
"""

import json

import pytest

from consent_ledger.core.models import (
    ConsentChanged,
    DataCategory,
    NotificationKind,
    RecordRedacted,
    VerificationChanged,
)
from consent_ledger.core.exceptions import JournalError
from consent_ledger.core.utils import ManualClock
from consent_ledger.governance.notifications import (
    ChangeNotifier,
    JsonlJournal,
    notification_from_dict,
    open_journal,
)
from consent_ledger.governance.persistence import LedgerDB
from consent_ledger.governance.registry import DataRegistry, replay


class CollectingSink:
    def __init__(self):
        self.received = []

    def write(self, notification):
        self.received.append(notification)


class BrokenSink:
    def write(self, notification):
        raise RuntimeError("indexer offline")


def verification(organization="org", verified=True, emitted_at=1):
    return VerificationChanged(
        emitted_at=emitted_at, actor="admin", organization=organization, verified=verified
    )


def populated_registry(*sinks):
    """Registry driven through every kind of mutation."""
    clock = ManualClock(1_000)
    registry = DataRegistry("admin", clock=clock)
    for sink in sinks:
        registry.notifier.subscribe(sink)

    registry.set_verified("admin", "org", True)
    registry.set_consent("alice", "health", True, 0, "https://terms", "0xbeef")
    registry.set_agent_approval("alice", "device", True)
    clock.advance(10)
    registry.add_data_record("device", "alice", "health", "0xaa", "cid1", "0x01", 900)
    clock.advance(10)
    registry.add_data_record("alice", "alice", "health", "0xbb", "cid2", "0x02", 950)
    registry.redact_data("alice", 0)
    registry.set_insurer_approval("alice", "org", True)
    registry.set_consent("alice", "health", False)
    return registry


class TestChangeNotifier:
    """Tests for ChangeNotifier."""

    def test_publish_assigns_sequence(self):
        """Sequences start at 0 and increase by one."""
        notifier = ChangeNotifier()
        first = notifier.publish(verification())
        second = notifier.publish(verification(verified=False))

        assert (first.sequence, second.sequence) == (0, 1)
        assert notifier.journal() == (first, second)
        assert notifier.since(1) == [second]

    def test_fan_out_in_subscription_order(self):
        """Every sink receives the sequenced notification."""
        notifier = ChangeNotifier()
        a, b = CollectingSink(), CollectingSink()
        notifier.subscribe(a)
        notifier.subscribe(b)

        published = notifier.publish(verification())

        assert a.received == [published]
        assert b.received == [published]

    def test_failing_sink_is_isolated(self):
        """A broken sink neither blocks other sinks nor loses the notification."""
        notifier = ChangeNotifier()
        good = CollectingSink()
        notifier.subscribe(BrokenSink())
        notifier.subscribe(good)

        notifier.publish(verification())

        assert len(notifier) == 1
        assert len(good.received) == 1
        assert notifier.failed_deliveries == 1

    def test_registry_survives_failing_sink(self):
        """A mutation stays applied when a sink fails."""
        registry = DataRegistry("admin", clock=ManualClock(0))
        registry.notifier.subscribe(BrokenSink())

        registry.set_verified("admin", "org", True)
        assert registry.is_verified("org") is True

    def test_unsubscribe(self):
        """Unsubscribed sinks stop receiving notifications."""
        notifier = ChangeNotifier()
        sink = CollectingSink()
        notifier.subscribe(sink)
        assert notifier.unsubscribe(sink) is True
        assert notifier.unsubscribe(sink) is False

        notifier.publish(verification())
        assert sink.received == []

    def test_close_flushes_and_closes_sinks(self):
        """close() flushes buffered sinks and closes those that can be closed."""
        notifier = ChangeNotifier()
        calls = []

        class BufferedSink(CollectingSink):
            def flush(self):
                calls.append("flush")

            def close(self):
                calls.append("close")

        notifier.subscribe(BufferedSink())
        notifier.subscribe(CollectingSink())
        notifier.close()

        assert calls == ["flush", "close"]

    def test_sink_must_have_write(self):
        """Objects without write() are refused."""
        with pytest.raises(TypeError):
            ChangeNotifier().subscribe(object())


class TestNotificationFromDict:
    """Tests for notification_from_dict."""

    def test_round_trip_of_each_kind(self):
        """Every notification kind comes back as its own type."""
        registry = populated_registry()
        for notification in registry.notifier.journal():
            data = json.loads(json.dumps(notification.to_log_entry()))
            assert notification_from_dict(data) == notification

    def test_unknown_kind(self):
        """Unknown kinds raise JournalError."""
        with pytest.raises(JournalError):
            notification_from_dict({"kind": "record_deleted", "emitted_at": 0})

    def test_malformed_fields(self):
        """Invalid field values raise JournalError."""
        with pytest.raises(JournalError):
            notification_from_dict(
                {"kind": "record_redacted", "emitted_at": 0, "actor": "a", "index": -1}
            )


class TestJsonlJournal:
    """Tests for JsonlJournal."""

    def test_write_through_and_read_back(self, tmp_path):
        """Each notification is one JSON line, read back typed."""
        journal = JsonlJournal(str(tmp_path / "logs" / "ledger.jsonl"))
        registry = populated_registry(journal)

        lines = journal.path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == len(registry.notifier)
        assert json.loads(lines[0])["kind"] == "verification_changed"
        assert list(journal.read()) == list(registry.notifier.journal())

    def test_buffered_writes(self, tmp_path):
        """Buffered notifications reach the file on flush."""
        path = tmp_path / "ledger.jsonl"
        journal = JsonlJournal(str(path), buffer_size=10)
        notifier = ChangeNotifier()
        notifier.subscribe(journal)

        notifier.publish(verification())
        assert not path.exists()

        journal.flush()
        assert len(list(journal.read())) == 1

    def test_missing_file(self, tmp_path):
        """Reading a missing journal fails clearly."""
        journal = JsonlJournal(str(tmp_path / "absent.jsonl"))
        with pytest.raises(JournalError):
            list(journal.read())

    def test_corrupt_line(self, tmp_path):
        """Invalid JSON raises JournalError naming the line."""
        path = tmp_path / "ledger.jsonl"
        path.write_text("{not json}\n", encoding="utf-8")
        with pytest.raises(JournalError, match="line 1"):
            list(JsonlJournal(str(path)).read())


class TestLedgerDB:
    """Tests for the SQLite journal."""

    def test_persist_and_query(self):
        """Stored notifications can be filtered by kind and subject."""
        db = LedgerDB(":memory:")
        registry = populated_registry(db)

        assert db.count() == len(registry.notifier)
        assert db.last_sequence() == len(registry.notifier) - 1
        assert db.read() == list(registry.notifier.journal())

        added = db.query(kind=NotificationKind.RECORD_ADDED)
        assert [n.index for n in added] == [0, 1]

        consent = db.query(kind="consent_changed", subject="alice")
        assert all(isinstance(n, ConsentChanged) for n in consent)
        assert len(consent) == 2

        assert [n.sequence for n in db.query(since=6)] == [6, 7]
        db.close()

    def test_duplicate_sequence_rejected(self):
        """A sequence number can only be stored once."""
        db = LedgerDB(":memory:")
        published = ChangeNotifier().publish(verification())
        db.write(published)

        with pytest.raises(JournalError):
            db.write(published)

    def test_unsequenced_rejected(self):
        """Notifications must be published before they are persisted."""
        with pytest.raises(JournalError):
            LedgerDB(":memory:").write(verification())

    def test_file_database(self, tmp_path):
        """A file database survives reopening."""
        path = str(tmp_path / "db" / "ledger.db")
        db = LedgerDB(path)
        populated_registry(db)
        db.close()

        reopened = LedgerDB(path)
        assert reopened.count() == 8
        reopened.close()


class TestReplay:
    """Tests for rebuilding a registry from its journal."""

    def test_replay_restores_state(self):
        """Replayed state matches the original registry."""
        original = populated_registry()
        rebuilt = replay(original.notifier.journal(), "admin")

        assert rebuilt.is_verified("org") is True
        assert rebuilt.is_insurer_approved("alice", "org") is True
        assert rebuilt.is_agent_approved("alice", "device") is True
        assert rebuilt.get_consent("alice", "alice", "health") == original.get_consent(
            "alice", "alice", "health"
        )
        assert rebuilt.get_record_count("alice", "alice") == 2
        for index in range(2):
            assert rebuilt.get_record_at("alice", "org", index) == original.get_record_at(
                "alice", "org", index
            )
        assert rebuilt.get_record_at("alice", "alice", 0).redacted is True
        assert rebuilt.notifier.journal() == original.notifier.journal()

    def test_replay_reconstructs_consent_history(self):
        """Past consent states survive only in the journal."""
        registry = populated_registry()
        history = [
            n.to_consent().active
            for n in registry.notifier.journal()
            if isinstance(n, ConsentChanged) and n.category == DataCategory.HEALTH
        ]
        assert history == [True, False]

    def test_replay_from_jsonl(self, tmp_path):
        """A JSON-lines journal replays to the same state."""
        journal = JsonlJournal(str(tmp_path / "ledger.jsonl"))
        original = populated_registry(journal)

        rebuilt = replay(journal.read(), "admin")
        assert rebuilt.notifier.journal() == original.notifier.journal()

    def test_rebuilt_registry_continues(self):
        """New mutations on a replayed registry continue the sequence."""
        original = populated_registry()
        rebuilt = replay(original.notifier.journal(), "admin", clock=ManualClock(5_000))

        rebuilt.set_consent("alice", "health", True)
        index = rebuilt.add_data_record(
            "alice", "alice", "health", "0xcc", "cid3", "0x03", 4_000
        )
        assert index == 2
        assert rebuilt.notifier.journal()[-1].sequence == len(original.notifier) + 1

    def test_gap_rejected(self):
        """A journal with a missing sequence is refused."""
        journal = list(populated_registry().notifier.journal())
        del journal[3]
        with pytest.raises(JournalError):
            replay(journal, "admin")

    def test_redaction_of_unknown_record_rejected(self):
        """A redaction without its record is inconsistent."""
        bogus = RecordRedacted(sequence=0, emitted_at=0, actor="alice", subject="alice", index=0)
        with pytest.raises(JournalError):
            replay([bogus], "admin")


class TestOpenJournal:
    """Tests for open_journal."""

    def test_memory_backend_has_no_sink(self):
        assert open_journal("memory") is None

    def test_backends(self, tmp_path):
        assert isinstance(open_journal("jsonl", str(tmp_path / "j.jsonl")), JsonlJournal)
        assert isinstance(open_journal("sqlite", str(tmp_path / "j.db")), LedgerDB)

    def test_path_required(self):
        with pytest.raises(JournalError):
            open_journal("sqlite")
