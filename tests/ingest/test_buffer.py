"""Tests for PendingBatch and bounded requeue."""

from ingest.buffer import REQUEUE_CAP, PendingBatch
from ingest.types import CastEvent


def _casts(*fids):
    return [CastEvent(subject_id=fid, observed_at_ms=1000 + fid) for fid in fids]


class TestPendingBatch:
    def test_preserves_insertion_order_and_duplicates(self):
        batch = PendingBatch()
        for event in _casts(3, 1, 3):
            batch.append(event)

        assert len(batch) == 3
        assert [e.subject_id for e in batch] == [3, 1, 3]

    def test_swap_empties_buffer(self):
        batch = PendingBatch(_casts(1, 2))

        taken = batch.swap()

        assert [e.subject_id for e in taken] == [1, 2]
        assert len(batch) == 0
        assert not batch

    def test_appends_after_swap_do_not_touch_taken_list(self):
        batch = PendingBatch(_casts(1))
        taken = batch.swap()
        batch.append(_casts(2)[0])

        assert [e.subject_id for e in taken] == [1]
        assert [e.subject_id for e in batch] == [2]


class TestRequeue:
    def test_cap_is_ten(self):
        assert REQUEUE_CAP == 10

    def test_small_batch_fully_requeued(self):
        batch = PendingBatch()
        dropped = batch.requeue(_casts(1, 2, 3))

        assert dropped == 0
        assert [e.subject_id for e in batch] == [1, 2, 3]

    def test_keeps_first_ten_in_order(self):
        batch = PendingBatch()
        failed = _casts(*range(20))

        dropped = batch.requeue(failed)

        assert dropped == 10
        assert [e.subject_id for e in batch] == list(range(10))

    def test_survivors_go_ahead_of_newer_casts(self):
        batch = PendingBatch(_casts(100, 101))

        batch.requeue(_casts(1, 2, 3))

        assert [e.subject_id for e in batch] == [1, 2, 3, 100, 101]

    def test_custom_cap(self):
        batch = PendingBatch()
        assert batch.requeue(_casts(1, 2, 3), cap=1) == 2
        assert [e.subject_id for e in batch] == [1]
