"""Tests for the Proof Store and stats recorder."""

import threading

import pytest

from proof_relayer.models.record import ProofStatus
from proof_relayer.store.proof_store import ProofStore
from proof_relayer.store.stats import StatsRecorder


class TestProofStore:
    def setup_method(self):
        self.store = ProofStore(db_path=":memory:")

    def test_mark_in_flight_once(self):
        assert self.store.try_mark_in_flight("p1") is True
        assert self.store.try_mark_in_flight("p1") is False
        assert self.store.is_in_flight("p1")
        assert self.store.is_known("p1")

    def test_settle(self):
        self.store.try_mark_in_flight("p1")
        self.store.mark_settled("p1", "0xabc", 101)
        record = self.store.get("p1")
        assert record.status == ProofStatus.SETTLED
        assert record.receipt_handle == "0xabc"
        assert record.confirmed_block == 101
        assert self.store.settled_ids() == ["p1"]

    def test_settled_cannot_be_claimed(self):
        self.store.try_mark_in_flight("p1")
        self.store.mark_settled("p1", "0xabc", 101)
        assert self.store.try_mark_in_flight("p1") is False

    def test_rollback_only_removes_in_flight(self):
        self.store.try_mark_in_flight("p1")
        assert self.store.rollback_in_flight("p1") is True
        assert self.store.is_known("p1") is False

        self.store.try_mark_in_flight("p2")
        self.store.mark_settled("p2", "0xdef", 5)
        assert self.store.rollback_in_flight("p2") is False
        assert self.store.is_settled("p2")

    def test_rejected_is_permanent(self):
        assert self.store.mark_rejected("p1", "expired") is True
        assert self.store.try_mark_in_flight("p1") is False
        assert self.store.rollback_in_flight("p1") is False
        record = self.store.get("p1")
        assert record.status == ProofStatus.REJECTED
        assert record.rejection_reason == "expired"

    def test_reject_does_not_overwrite_settled(self):
        self.store.try_mark_in_flight("p1")
        self.store.mark_settled("p1", "0xabc", 1)
        assert self.store.mark_rejected("p1", "expired") is False
        assert self.store.is_settled("p1")

    def test_settle_does_not_overwrite_rejected(self):
        self.store.mark_rejected("p1", "expired")
        self.store.mark_settled("p1", "0xabc", 1)
        assert self.store.status("p1") == ProofStatus.REJECTED

    def test_counts(self):
        self.store.try_mark_in_flight("a")
        self.store.try_mark_in_flight("b")
        self.store.mark_settled("b", "0x1", 1)
        self.store.mark_rejected("c", "untrusted_signer")
        assert self.store.counts() == {"in_flight": 1, "settled": 1, "rejected": 1}

    def test_unknown_identifier(self):
        assert self.store.get("missing") is None
        assert self.store.status("missing") is None

    def test_concurrent_claims_single_winner(self):
        winners = []

        def claim():
            if self.store.try_mark_in_flight("race"):
                winners.append(1)

        threads = [threading.Thread(target=claim) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(winners) == 1

    def test_file_backed_store_survives_restart(self, tmp_path):
        db = str(tmp_path / "proofs.sqlite")
        store = ProofStore(db)
        store.try_mark_in_flight("p1")
        store.mark_settled("p1", "0xabc", 7)
        store.try_mark_in_flight("p2")
        store.close()

        reopened = ProofStore(db)
        assert reopened.is_settled("p1")
        assert reopened.recover_in_flight() == ["p2"]
        # Crash-orphaned in-flight entries stay claimed
        assert reopened.try_mark_in_flight("p2") is False


class TestStatsRecorder:
    def test_success_accumulates(self):
        stats = StatsRecorder()
        stats.record_success(fee_spent=1_250_000, benefit=23_470_000)
        stats.record_success(fee_spent=750_000, benefit=0)
        snap = stats.snapshot()
        assert snap.successful_executions == 2
        assert snap.total_fee_spent == 2_000_000
        assert snap.total_benefit_captured == 23_470_000

    def test_snapshot_is_a_copy(self):
        stats = StatsRecorder()
        snap = stats.snapshot()
        stats.record_failure()
        assert snap.failed_executions == 0
        assert stats.snapshot().failed_executions == 1

    def test_negative_values_refused(self):
        stats = StatsRecorder()
        with pytest.raises(ValueError):
            stats.record_success(fee_spent=-1, benefit=0)
        with pytest.raises(ValueError):
            stats.record_candidates(-1)

    def test_cycle_counters(self):
        stats = StatsRecorder()
        stats.record_cycle()
        stats.record_cycle(failed=True)
        snap = stats.snapshot()
        assert snap.cycles_run == 2
        assert snap.cycle_errors == 1
