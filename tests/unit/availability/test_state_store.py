"""Unit tests for availability/state_store.py."""

import threading

from deployment_exporter.availability.state_store import AvailabilityStateStore
from deployment_exporter.models import DowntimeRecord, EntityKey, Recovery
from tests.conftest import at, ns

KEY = EntityKey("prod", "api")


class TestBasicOperations:
    def test_missing_key_is_not_an_error(self, store):
        assert store.get(KEY) is None
        assert store.remove(KEY) is None
        assert KEY not in store
        assert len(store) == 0

    def test_put_get_remove(self, store):
        record = DowntimeRecord(down_since_ns=ns(10.0))
        store.put(KEY, record)

        assert store.get(KEY) == record
        assert store.get(KEY).down_since == 10.0
        assert KEY in store
        assert store.remove(KEY) == record
        assert store.get(KEY) is None

    def test_keys_is_a_copy(self, store):
        store.put(KEY, DowntimeRecord(ns(1.0)))
        keys = store.keys()
        store.remove(KEY)
        assert keys == [KEY]


class TestMarkDown:
    def test_creates_record_once(self, store):
        first = store.mark_down(KEY, at(10.0))
        second = store.mark_down(KEY, at(20.0))

        assert first == DowntimeRecord(down_since_ns=ns(10.0))
        assert second is None
        assert store.get(KEY).down_since == 10.0

    def test_clock_not_read_when_already_down(self, store):
        store.mark_down(KEY, at(1.0))
        reads = []

        def clock():
            reads.append(1)
            return ns(2.0)

        assert store.mark_down(KEY, clock) is None
        assert reads == []

    def test_independent_keys(self, store):
        other = EntityKey("prod", "worker")
        assert store.mark_down(KEY, at(1.0)) is not None
        assert store.mark_down(other, at(2.0)) is not None
        assert len(store) == 2


class TestClear:
    def test_claims_record_once(self, store):
        store.mark_down(KEY, at(5.0))

        assert store.clear(KEY, at(7.5)) == Recovery(ns(5.0), ns(7.5))
        assert store.clear(KEY, at(8.0)) is None

    def test_recovery_is_never_negative(self, store):
        store.mark_down(KEY, at(101.0))

        recovery = store.clear(KEY, at(100.0))

        assert recovery.elapsed_ns == 0
        assert recovery.elapsed_milliseconds == 0


class TestThreadSafety:
    """Concurrent callers racing on the same key."""

    def test_concurrent_mark_down_creates_one_record(self):
        store = AvailabilityStateStore()
        barrier = threading.Barrier(16)
        created = []
        lock = threading.Lock()

        def worker(i):
            barrier.wait()
            record = store.mark_down(KEY, at(i))
            if record is not None:
                with lock:
                    created.append(record)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(created) == 1
        assert store.get(KEY) == created[0]

    def test_concurrent_clear_claims_once(self):
        store = AvailabilityStateStore()
        store.mark_down(KEY, at(1.0))
        barrier = threading.Barrier(16)
        claimed = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            recovery = store.clear(KEY, at(2.0))
            if recovery is not None:
                with lock:
                    claimed.append(recovery)

        threads = [threading.Thread(target=worker) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert claimed == [Recovery(ns(1.0), ns(2.0))]
        assert KEY not in store

    def test_clear_is_timed_after_a_racing_mark_down(self):
        """Timestamps are taken under the lock, so they follow lock order."""
        store = AvailabilityStateStore()
        counter = iter(range(1, 10_000))
        counter_lock = threading.Lock()

        def clock():
            with counter_lock:
                return next(counter)

        barrier = threading.Barrier(2)
        results = []

        def down():
            barrier.wait()
            store.mark_down(KEY, clock)

        def up():
            barrier.wait()
            results.append(store.clear(KEY, clock))

        threads = [threading.Thread(target=down), threading.Thread(target=up)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        recovery = results[0]
        if recovery is not None:
            assert recovery.recovered_at_ns > recovery.down_since_ns
