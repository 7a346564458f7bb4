"""Thread-safe cumulative counters for the relayer."""

import threading

from proof_relayer.models.agent import AgentStats


class StatsRecorder:
    """
    Owns the agent's AgentStats. Updates come from concurrent execution
    attempts; snapshots are copies and never wait on a running cycle.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._stats = AgentStats()

    def snapshot(self) -> AgentStats:
        with self._lock:
            return self._stats.model_copy()

    def record_candidates(self, count: int) -> None:
        if count < 0:
            raise ValueError("candidate count must be non-negative")
        with self._lock:
            self._stats.candidates_seen += count

    def record_success(self, fee_spent: int, benefit: int) -> None:
        if fee_spent < 0 or benefit < 0:
            raise ValueError("fee and benefit must be non-negative")
        with self._lock:
            self._stats.successful_executions += 1
            self._stats.total_fee_spent += fee_spent
            self._stats.total_benefit_captured += benefit

    def record_failure(self) -> None:
        with self._lock:
            self._stats.failed_executions += 1

    def record_rejection(self) -> None:
        with self._lock:
            self._stats.rejected_proofs += 1

    def record_deferral(self) -> None:
        with self._lock:
            self._stats.deferred_evaluations += 1

    def record_expired_while_pending(self) -> None:
        with self._lock:
            self._stats.expired_while_pending += 1

    def record_cycle(self, failed: bool = False) -> None:
        with self._lock:
            self._stats.cycles_run += 1
            if failed:
                self._stats.cycle_errors += 1
