"""Tests for the in-process and SQL tracking stores."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from mailsbe.changes import ChangeFeed
from mailsbe.exceptions import DuplicateTokenError, StoreError
from mailsbe.models import ChangeKind
from mailsbe.stores.memory import MemoryTrackingStore
from mailsbe.stores.sql import SQLTrackingStore

from conftest import OWNER, OTHER_OWNER

SEEN_AT = datetime(2026, 10, 19, 9, 15, 30, tzinfo=timezone.utc)


class TestStoreCrud:
    """Behaviour shared by every store."""

    def test_create_starts_unseen(self, store):
        record = store.create(OWNER, "a@x.com", "invoice", "tok-1")

        assert record.id is not None
        assert record.owner == OWNER
        assert record.recipient_address == "a@x.com"
        assert record.description == "invoice"
        assert record.seen is False
        assert record.seen_at is None
        assert record.created_at.tzinfo is not None

    def test_find_by_token(self, store):
        created = store.create(OWNER, "a@x.com", "", "tok-1")

        assert store.find_by_token("tok-1") == created
        assert store.find_by_token("tok-2") is None

    def test_duplicate_token_rejected(self, store):
        store.create(OWNER, "a@x.com", "", "tok-1")

        with pytest.raises(DuplicateTokenError):
            store.create(OTHER_OWNER, "b@x.com", "", "tok-1")

    def test_list_is_newest_first_and_scoped(self, store):
        first = store.create(OWNER, "a@x.com", "first", "tok-1")
        second = store.create(OWNER, "b@x.com", "second", "tok-2")
        store.create(OTHER_OWNER, "c@x.com", "other", "tok-3")

        listed = store.list_for_owner(OWNER)

        assert [r.id for r in listed] == [second.id, first.id]
        assert store.list_for_owner("nobody") == []

    def test_get_is_owner_scoped(self, store):
        record = store.create(OWNER, "a@x.com", "", "tok-1")

        assert store.get(record.id, OWNER) == record
        assert store.get(record.id, OTHER_OWNER) is None

    def test_delete_is_owner_scoped(self, store):
        record = store.create(OWNER, "a@x.com", "", "tok-1")

        assert store.delete(record.id, OTHER_OWNER) is False
        assert store.get(record.id, OWNER) is not None

        assert store.delete(record.id, OWNER) is True
        assert store.get(record.id, OWNER) is None
        assert store.find_by_token("tok-1") is None
        assert store.delete(record.id, OWNER) is False

    def test_uuid_id_matches_nothing(self, store):
        store.create(OWNER, "a@x.com", "", "tok-1")
        row_id = "5b0e7c1e-2f4a-4d8e-9c61-0a3f2b7d9e10"

        assert store.get(row_id, OWNER) is None
        assert store.delete(row_id, OWNER) is False


class TestMarkSeen:
    """Tests for the conditional unseen to seen transition."""

    def test_first_mark_sets_timestamp(self, store):
        store.create(OWNER, "a@x.com", "", "tok-1")

        updated = store.mark_seen("tok-1", SEEN_AT)

        assert updated.seen is True
        assert updated.seen_at == SEEN_AT
        assert store.find_by_token("tok-1").seen_at == SEEN_AT

    def test_second_mark_is_a_no_op(self, store):
        store.create(OWNER, "a@x.com", "", "tok-1")
        store.mark_seen("tok-1", SEEN_AT)

        assert store.mark_seen("tok-1", SEEN_AT + timedelta(hours=1)) is None
        assert store.find_by_token("tok-1").seen_at == SEEN_AT

    def test_unknown_token(self, store):
        assert store.mark_seen("missing", SEEN_AT) is None

    def test_only_the_matching_record_changes(self, store):
        store.create(OWNER, "a@x.com", "", "tok-1")
        store.create(OWNER, "b@x.com", "", "tok-2")

        store.mark_seen("tok-1", SEEN_AT)

        assert store.find_by_token("tok-2").seen is False


class TestChangePublishing:
    """Stores announce their own writes on the change feed."""

    def test_writes_are_published_to_the_owner(self, store):
        events = []
        other = []
        store.feed.subscribe(OWNER, events.append)
        store.feed.subscribe(OTHER_OWNER, other.append)

        record = store.create(OWNER, "a@x.com", "", "tok-1")
        store.mark_seen("tok-1", SEEN_AT)
        store.mark_seen("tok-1", SEEN_AT)
        store.delete(record.id, OWNER)

        assert [e.kind for e in events] == [ChangeKind.INSERT, ChangeKind.UPDATE, ChangeKind.DELETE]
        assert events[1].record.seen_at == SEEN_AT
        assert other == []

    def test_shared_feed(self):
        feed = ChangeFeed()
        store = MemoryTrackingStore(feed=feed)
        events = []
        feed.subscribe(OWNER, events.append)

        store.create(OWNER, "a@x.com", "", "tok-1")

        assert store.feed is feed
        assert len(events) == 1


class TestConcurrentOpens:
    """Simultaneous first opens must store exactly one timestamp."""

    def _race(self, store, workers=10):
        store.create(OWNER, "a@x.com", "", "tok-race")
        barrier = threading.Barrier(workers)
        results = []
        lock = threading.Lock()

        def attempt(offset):
            barrier.wait()
            outcome = store.mark_seen("tok-race", SEEN_AT + timedelta(seconds=offset))
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return [r for r in results if r is not None]

    def test_memory_store(self):
        winners = self._race(MemoryTrackingStore())

        assert len(winners) == 1

    def test_sql_store(self, tmp_path):
        store = SQLTrackingStore(f"sqlite:///{tmp_path / 'race.db'}", timeout=10.0)
        try:
            winners = self._race(store)

            assert len(winners) == 1
            assert store.find_by_token("tok-race").seen_at == winners[0].seen_at
        finally:
            store.close()


class TestSQLStore:
    """SQL-specific behaviour."""

    def test_file_database_persists_across_instances(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'mailsbe.db'}"
        first = SQLTrackingStore(url)
        first.create(OWNER, "a@x.com", "invoice", "tok-1")
        first.mark_seen("tok-1", SEEN_AT)
        first.close()

        second = SQLTrackingStore(url)
        try:
            record = second.find_by_token("tok-1")
            assert record.description == "invoice"
            assert record.seen_at == SEEN_AT
        finally:
            second.close()

    def test_other_constraint_is_not_a_duplicate(self, sql_store):
        with pytest.raises(StoreError, match="constraint") as exc_info:
            sql_store.create(None, "a@x.com", "", "tok-1")

        assert not isinstance(exc_info.value, DuplicateTokenError)
        assert sql_store.find_by_token("tok-1") is None

    def test_context_manager_closes(self, tmp_path):
        with SQLTrackingStore(f"sqlite:///{tmp_path / 'ctx.db'}") as store:
            store.create(OWNER, "a@x.com", "", "tok-1")
            assert len(store.list_for_owner(OWNER)) == 1
