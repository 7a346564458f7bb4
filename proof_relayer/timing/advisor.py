"""
Timing Advisor — decides whether now is an acceptable moment to submit.

Gates, evaluated fresh every cycle for every accepted-but-unexecuted proof:
  1. Fee price: defer while the network fee price is above the ceiling
  2. Risk (toggle): classify the trade; only HIGH risk defers
  3. Block position: block height is carried in the decision context
     for richer heuristics (builder preferences, private mempools); it
     never defers today

A failing gate defers the proof. It never rejects it.
"""

from typing import Callable, Optional

from proof_relayer.models.agent import AgentConfig
from proof_relayer.models.proof import ExecutionProof
from proof_relayer.models.timing import NetworkState, RiskTier, TimingDecision


def assess_risk(proof: ExecutionProof, large_trade_threshold: int) -> RiskTier:
    """
    Classify a proof's front-running exposure.

    Batch settlement keeps ordinary trades LOW; large trades are MEDIUM.
    No heuristic produces HIGH yet (mempool / order-book analysis plugs in here).
    """
    if proof.amount_in > large_trade_threshold:
        return RiskTier.MEDIUM
    return RiskTier.LOW


class TimingAdvisor:
    """Near-stateless timing policy. Network state is passed in by the caller."""

    def __init__(
        self,
        config: Optional[AgentConfig] = None,
        risk_assessor: Optional[Callable[[ExecutionProof, int], RiskTier]] = None,
    ):
        self.config = config or AgentConfig()
        self._assess_risk = risk_assessor or assess_risk

    def evaluate(self, proof: ExecutionProof, network: NetworkState) -> TimingDecision:
        """Run all gates and return the decision with its context."""

        def decision(execute: bool, reason: Optional[str] = None, tier=None) -> TimingDecision:
            return TimingDecision(
                proof_id=proof.proof_id,
                execute=execute,
                reason=reason,
                fee_price=network.fee_price,
                block_height=network.block_height,
                risk_tier=tier,
            )

        # 1. Fee price
        if network.fee_price > self.config.max_fee_price:
            return decision(
                False,
                f"fee price {network.fee_price} above ceiling {self.config.max_fee_price}",
            )

        # 2. Risk
        tier = None
        if self.config.risk_gating_enabled:
            tier = self._assess_risk(proof, self.config.large_trade_threshold)
            if tier == RiskTier.HIGH:
                return decision(False, "high front-running risk", tier)

        # 3. Block position: observed only
        return decision(True, tier=tier)

    def should_execute_now(self, proof: ExecutionProof, network: NetworkState) -> bool:
        return self.evaluate(proof, network).execute
