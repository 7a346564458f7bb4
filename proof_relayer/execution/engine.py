"""
Execution Engine — submits validated, timing-approved proofs on-chain.

The relayer pays the fee; the user receives the output asset without
sending a transaction.

Behavioral Contract:
- Idempotent: an identifier settled in the Proof Store is never submitted again
- Marks the identifier in-flight before submitting, so two attempts can never
  race to spend the relayer's gas on the same proof
- Rolls back the in-flight marking when the call never left or was refused,
  so a later retry is possible. A timed-out submission or confirmation keeps
  the marking: the call may still land, and resubmitting would pay twice
- Records outcomes in the Proof Store and the stats recorder
- Never re-queues a failed proof; that is the orchestrator's decision
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Optional

from proof_relayer.execution.targets import ConfirmationTimeout, ExecutionTarget
from proof_relayer.models.agent import AgentConfig
from proof_relayer.models.execution import ExecutionResult, ExecutionStatus
from proof_relayer.models.proof import ExecutionProof
from proof_relayer.store.proof_store import ProofStore
from proof_relayer.store.stats import StatsRecorder

logger = logging.getLogger(__name__)


def gas_budget_with_buffer(base_estimate: int, buffer_percent: int) -> int:
    """Conservative gas limit: the base estimate plus a percentage buffer."""
    return base_estimate * (100 + buffer_percent) // 100


class ExecutionEngine:
    """Builds and submits the `executePrivateOrder` call for one proof."""

    def __init__(
        self,
        target: ExecutionTarget,
        store: ProofStore,
        stats: StatsRecorder,
        config: Optional[AgentConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.target = target
        self.store = store
        self.stats = stats
        self.config = config or AgentConfig()
        self._clock = clock

    async def execute(self, proof: ExecutionProof) -> ExecutionResult:
        """
        Settle a proof on-chain.

        Returns SETTLED, ALREADY_SETTLED (no-op), IN_FLIGHT_ELSEWHERE (no-op),
        UNCONFIRMED (timed out, still marked) or FAILED with the error.
        """
        proof_id = proof.proof_id

        if self.store.is_settled(proof_id):
            record = self.store.get(proof_id)
            logger.info("proof.already_settled proof_id=%s", proof_id)
            return ExecutionResult(
                proof_id=proof_id,
                status=ExecutionStatus.ALREADY_SETTLED,
                receipt_handle=record.receipt_handle if record else None,
                confirmed_block=record.confirmed_block if record else None,
                executed_at=datetime.utcnow(),
            )

        if not self.store.try_mark_in_flight(proof_id):
            # Lost the race, or the proof settled between the two checks
            if self.store.is_settled(proof_id):
                return await self.execute(proof)
            logger.info("proof.in_flight_elsewhere proof_id=%s", proof_id)
            return ExecutionResult(
                proof_id=proof_id,
                status=ExecutionStatus.IN_FLIGHT_ELSEWHERE,
                executed_at=datetime.utcnow(),
            )

        base_gas = self.config.base_gas_estimate
        gas_budget = gas_budget_with_buffer(base_gas, self.config.fee_buffer_percent)
        fee_price = None
        try:
            fee_price = await self.target.current_fee_price()
            deadline = int(self._clock()) + self.config.submission_validity_seconds
            call_struct = proof.to_call_struct(deadline)
        except Exception as exc:
            return self._fail(proof_id, exc, gas_budget, fee_price)

        logger.info(
            "proof.submitting proof_id=%s user=%s gas_budget=%d fee_price=%d deadline=%d",
            proof_id, proof.user, gas_budget, fee_price, deadline,
        )
        receipt_handle = None
        try:
            receipt_handle = await asyncio.wait_for(
                self.target.submit(call_struct, gas_budget),
                timeout=self.config.submission_timeout_seconds,
            )
            logger.info("proof.submitted proof_id=%s receipt=%s", proof_id, receipt_handle)

            confirmed_block = await asyncio.wait_for(
                self.target.await_confirmation(receipt_handle),
                timeout=self.config.confirmation_timeout_seconds,
            )
        except (asyncio.TimeoutError, ConfirmationTimeout) as exc:
            # Cancelling the wait does not recall a call already on its way out
            error = str(exc) or exc.__class__.__name__
            self.stats.record_failure()
            logger.error(
                "proof.outcome_unknown proof_id=%s receipt=%s error=%s",
                proof_id, receipt_handle, error,
            )
            return ExecutionResult(
                proof_id=proof_id,
                status=ExecutionStatus.UNCONFIRMED,
                receipt_handle=receipt_handle,
                gas_budget=gas_budget,
                fee_price=fee_price,
                error=error,
                executed_at=datetime.utcnow(),
            )
        except Exception as exc:
            return self._fail(proof_id, exc, gas_budget, fee_price)

        self.store.mark_settled(proof_id, receipt_handle, confirmed_block)
        fee_spent = base_gas * fee_price
        self.stats.record_success(fee_spent, proof.mev_saved)
        logger.info(
            "proof.settled proof_id=%s block=%d amount_out=%d fee_spent=%d mev_saved=%d",
            proof_id, confirmed_block, proof.amount_out, fee_spent, proof.mev_saved,
        )
        return ExecutionResult(
            proof_id=proof_id,
            status=ExecutionStatus.SETTLED,
            receipt_handle=receipt_handle,
            confirmed_block=confirmed_block,
            gas_budget=gas_budget,
            fee_price=fee_price,
            fee_spent=fee_spent,
            benefit_captured=proof.mev_saved,
            executed_at=datetime.utcnow(),
        )

    def _fail(
        self,
        proof_id: str,
        exc: Exception,
        gas_budget: int,
        fee_price: Optional[int],
    ) -> ExecutionResult:
        """Nothing reached the chain: release the marking so a later retry can run."""
        error = str(exc) or exc.__class__.__name__
        self.store.rollback_in_flight(proof_id)
        self.stats.record_failure()
        logger.error("proof.execution_failed proof_id=%s error=%s", proof_id, error)
        return ExecutionResult(
            proof_id=proof_id,
            status=ExecutionStatus.FAILED,
            gas_budget=gas_budget,
            fee_price=fee_price,
            error=error,
            executed_at=datetime.utcnow(),
        )
