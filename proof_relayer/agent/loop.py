"""
Relayer Agent — the orchestrator loop.

Watches the TEE matcher for execution proofs and settles them on-chain on
behalf of users who never send a transaction themselves.

Cycle:
  POLL → VALIDATE → TIME_GATE → (EXECUTE | DEFER) → DRAIN_PENDING → SLEEP

Behavioral Contract:
- Rejected proofs are recorded and never reconsidered
- Deferred proofs are re-evaluated exactly once per cycle against that
  cycle's network state, and re-checked for expiry first
- Per-proof failures never abort a cycle. A proof whose step raised goes back
  to the pending queue, or is left for the source to re-offer if it was never
  validated. A failed cycle never stops the loop, it only doubles that
  iteration's sleep
- Only an explicit stop (`stop()` or the caller's stop event) ends the loop.
  Submissions already started finish; no new ones start.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, List, Optional
from uuid import uuid4

from proof_relayer.agent.pending import PendingQueue
from proof_relayer.execution.engine import ExecutionEngine
from proof_relayer.execution.targets import ExecutionTarget
from proof_relayer.models.agent import AgentConfig, AgentStats, CycleReport
from proof_relayer.models.execution import ExecutionResult, ExecutionStatus
from proof_relayer.models.proof import ExecutionProof
from proof_relayer.models.timing import NetworkState
from proof_relayer.models.validation import RejectionReason, ValidationResult
from proof_relayer.sources.proof_source import ProofSource
from proof_relayer.store.proof_store import ProofStore
from proof_relayer.store.stats import StatsRecorder
from proof_relayer.timing.advisor import TimingAdvisor
from proof_relayer.validation.validator import ProofValidator, is_expired

logger = logging.getLogger(__name__)


class CycleError(Exception):
    """The proof source or the network was unavailable; the cycle did nothing."""
    pass


class RelayerAgent:
    """
    Owns the agent state (proof store, stats, pending queue) and drives the
    validator, timing advisor and execution engine.
    """

    def __init__(
        self,
        proof_source: ProofSource,
        execution_target: ExecutionTarget,
        proof_store: Optional[ProofStore] = None,
        config: Optional[AgentConfig] = None,
        stats: Optional[StatsRecorder] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.source = proof_source
        self.target = execution_target
        self.store = proof_store or ProofStore()
        self.config = config or AgentConfig()
        self.stats_recorder = stats or StatsRecorder()
        self.pending = PendingQueue()
        self._clock = clock

        self.validator = ProofValidator(self.config)
        self.advisor = TimingAdvisor(self.config)
        self.engine = ExecutionEngine(
            target=execution_target,
            store=self.store,
            stats=self.stats_recorder,
            config=self.config,
            clock=clock,
        )

        self.last_report: Optional[CycleReport] = None
        self._cycle_lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None
        self._stop_requested = False
        self._running = False

    @property
    def status(self) -> str:
        """Current agent status."""
        return "running" if self._running else "stopped"

    @property
    def stats(self) -> AgentStats:
        """Snapshot of the cumulative stats. Never blocks on a running cycle."""
        return self.stats_recorder.snapshot()

    def now(self) -> int:
        """Current time in unix seconds, from the injected clock."""
        return int(self._clock())

    def next_delay(self, cycle_failed: bool) -> float:
        """Sleep before the next tick: doubled once after a failed cycle."""
        interval = self.config.poll_interval_seconds
        return interval * 2 if cycle_failed else interval

    async def run_cycle(self) -> CycleReport:
        """Run exactly one poll cycle. Raises CycleError if intake failed."""
        async with self._cycle_lock:
            try:
                report = await self._run_cycle()
            except Exception:
                self.stats_recorder.record_cycle(failed=True)
                raise
            self.stats_recorder.record_cycle()
            self.last_report = report
            return report

    async def _run_cycle(self) -> CycleReport:
        report = CycleReport(
            cycle_id=f"cycle_{uuid4().hex[:12]}",
            started_at=datetime.utcnow(),
        )

        # POLL: nothing is touched until the cycle has all its inputs
        try:
            candidates = await self.source.fetch_candidates()
            network = await self._read_network_state()
        except Exception as exc:
            raise CycleError(f"intake failed: {exc}") from exc

        now = self.now()
        report.fetched = len(candidates)
        report.fee_price = network.fee_price
        report.block_height = network.block_height

        fresh = self._filter_new(candidates, report)
        # Snapshot only; each carried proof leaves the queue as it is handled
        carried = self.pending.proofs()
        self.stats_recorder.record_candidates(len(fresh))
        if fresh:
            logger.info("cycle.candidates cycle_id=%s new=%d", report.cycle_id, len(fresh))

        # VALIDATE → TIME_GATE
        approved = []
        for proof in fresh:
            try:
                validation = self.validator.validate(proof, self.config.trusted_signer, now)
                if not validation.accepted:
                    self._reject(proof, validation, report)
                    continue
            except Exception:
                # Left unrecorded, so it is validated again when re-offered
                self._step_failed(proof, "validate", report)
                continue
            logger.info("proof.accepted proof_id=%s user=%s", proof.proof_id, proof.user)
            if self._time_gate(proof, network, report):
                approved.append(proof)

        await self._execute_all(approved, report)

        # DRAIN_PENDING: proofs deferred in earlier cycles, once each
        ready = []
        for proof in carried:
            self.pending.remove(proof.proof_id)
            try:
                if self.store.is_known(proof.proof_id):
                    continue
                if self.config.recheck_expiry_on_retry and is_expired(
                    proof, now, self.config.max_proof_age_seconds
                ):
                    self._expire(proof, report)
                    continue
            except Exception:
                self._step_failed(proof, "drain", report)
                self.pending.append(proof)
                continue
            if self._time_gate(proof, network, report):
                ready.append(proof)

        await self._execute_all(ready, report)

        report.finished_at = datetime.utcnow()
        logger.info(
            "cycle.completed cycle_id=%s fetched=%d rejected=%d deferred=%d "
            "executed=%d failed=%d errored=%d pending=%d",
            report.cycle_id, report.fetched, len(report.rejected), len(report.deferred),
            len(report.executed), len(report.failed), len(report.errored), len(self.pending),
        )
        return report

    async def _read_network_state(self) -> NetworkState:
        fee_price = await self.target.current_fee_price()
        block_height = await self.target.current_block_height()
        return NetworkState(
            fee_price=fee_price,
            block_height=block_height,
            observed_at=datetime.utcnow(),
        )

    def _filter_new(
        self, candidates: List[ExecutionProof], report: CycleReport
    ) -> List[ExecutionProof]:
        """Drop identifiers already settled, in-flight, rejected, pending or repeated."""
        fresh = []
        seen = set()
        for proof in candidates:
            proof_id = proof.proof_id
            if proof_id in seen or proof_id in self.pending or self.store.is_known(proof_id):
                report.filtered.append(proof_id)
                continue
            seen.add(proof_id)
            fresh.append(proof)
        return fresh

    def _reject(
        self, proof: ExecutionProof, validation: ValidationResult, report: CycleReport
    ) -> None:
        self.store.mark_rejected(proof.proof_id, validation.reason.value)
        self.stats_recorder.record_rejection()
        report.rejected.append(proof.proof_id)
        logger.warning(
            "proof.rejected proof_id=%s reason=%s detail=%s",
            proof.proof_id, validation.reason.value, validation.detail,
        )

    def _expire(self, proof: ExecutionProof, report: CycleReport) -> None:
        self.store.mark_rejected(proof.proof_id, RejectionReason.EXPIRED.value)
        self.stats_recorder.record_expired_while_pending()
        report.expired.append(proof.proof_id)
        logger.warning("proof.expired_while_pending proof_id=%s", proof.proof_id)

    def _time_gate(
        self, proof: ExecutionProof, network: NetworkState, report: CycleReport
    ) -> bool:
        try:
            decision = self.advisor.evaluate(proof, network)
        except Exception:
            self._step_failed(proof, "time_gate", report)
            self.pending.append(proof)
            return False
        if decision.execute:
            logger.info(
                "proof.timing_ok proof_id=%s fee_price=%d block=%d risk=%s",
                proof.proof_id, decision.fee_price, decision.block_height,
                decision.risk_tier.value if decision.risk_tier else "unchecked",
            )
            return True

        self.pending.append(proof)
        self.stats_recorder.record_deferral()
        report.deferred.append(proof.proof_id)
        logger.info("proof.deferred proof_id=%s reason=%s", proof.proof_id, decision.reason)
        return False

    async def _execute_all(self, proofs: List[ExecutionProof], report: CycleReport) -> None:
        """Execute distinct proofs concurrently, bounded by max_concurrent_submissions."""
        if not proofs:
            return
        semaphore = asyncio.Semaphore(self.config.max_concurrent_submissions)

        async def run(proof: ExecutionProof) -> None:
            async with semaphore:
                if self._stopping():
                    self.pending.append(proof)
                    report.skipped.append(proof.proof_id)
                    return
                try:
                    result = await self.engine.execute(proof)
                except Exception:
                    self._step_failed(proof, "execute", report)
                    self.pending.append(proof)
                    return
            self._record_result(proof, result, report)

        await asyncio.gather(*(run(p) for p in proofs))

    def _step_failed(self, proof: ExecutionProof, step: str, report: CycleReport) -> None:
        report.errored.append(proof.proof_id)
        logger.exception("proof.step_failed proof_id=%s step=%s", proof.proof_id, step)

    def _record_result(
        self, proof: ExecutionProof, result: ExecutionResult, report: CycleReport
    ) -> None:
        if result.success:
            report.executed.append(proof.proof_id)
        elif result.status == ExecutionStatus.UNCONFIRMED:
            # Still marked in-flight; never resubmitted automatically
            report.failed.append(proof.proof_id)
        elif result.status == ExecutionStatus.FAILED:
            report.failed.append(proof.proof_id)
            if self.config.requeue_failed_executions:
                self.pending.append(proof)

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Run the agent loop until stopped."""
        if stop_event is None:
            stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._running = True
        self.store.recover_in_flight()
        logger.info(
            "agent.started trusted_signer=%s poll_interval=%s",
            self.config.trusted_signer, self.config.poll_interval_seconds,
        )

        try:
            while not stop_event.is_set() and not self._stop_requested:
                failed = False
                try:
                    await self.run_cycle()
                except CycleError as exc:
                    failed = True
                    logger.error("cycle.failed error=%s", exc)
                except Exception:
                    failed = True
                    logger.exception("cycle.unexpected_error")
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.next_delay(failed))
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
            logger.info("agent.stopped")

    def _stopping(self) -> bool:
        if self._stop_requested:
            return True
        return self._stop_event is not None and self._stop_event.is_set()

    def stop(self) -> None:
        """Stop taking new cycles and starting new submissions. A stopped agent stays stopped."""
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    def summary(self) -> dict:
        """Stats plus queue and ledger sizes, for shutdown reporting."""
        return {
            "status": self.status,
            "stats": self.stats.model_dump(),
            "pending": len(self.pending),
            "proofs": self.store.counts(),
        }
