"""
Unit tests for KeyedLocks and the in-memory record store's per-pair locking.
"""

import threading

from adaptive_learning.db.locks import KeyedLocks
from adaptive_learning.domain.models import SchedulingRecord


class TestKeyedLocks:
    def test_entry_dropped_after_release(self):
        locks = KeyedLocks()

        with locks.hold(("s1", "q1")):
            assert len(locks) == 1

        assert len(locks) == 0

    def test_entry_dropped_when_block_raises(self):
        locks = KeyedLocks()

        try:
            with locks.hold("k"):
                raise ValueError("boom")
        except ValueError:
            pass

        assert len(locks) == 0

    def test_waiter_runs_after_holder(self):
        locks = KeyedLocks()
        entered = threading.Event()
        order = []

        def second():
            entered.set()
            with locks.hold("k"):
                order.append("second")

        with locks.hold("k"):
            waiter = threading.Thread(target=second)
            waiter.start()
            entered.wait()
            order.append("first")
        waiter.join()

        assert order == ["first", "second"]
        assert len(locks) == 0

    def test_distinct_keys_do_not_block(self):
        locks = KeyedLocks()

        with locks.hold("a"), locks.hold("b"):
            assert len(locks) == 2


class TestRecordStoreLocks:
    def test_lock_map_empty_after_reviews_and_deletes(self, record_store):
        for qid in ("q1", "q2", "q3"):
            with record_store.locked("s1", qid):
                record_store.save(SchedulingRecord("s1", qid))

        assert len(record_store._key_locks) == 0
        assert record_store.delete_for_student("s1") == 3
        assert len(record_store._key_locks) == 0
