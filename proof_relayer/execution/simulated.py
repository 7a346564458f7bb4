"""
Simulated execution target for demos and tests.

A deterministic in-memory chain: fee prices follow a scripted sequence,
every confirmation mines a new block, and failures can be injected per call.
"""

import hashlib
from typing import Any, Dict, Iterable, List, Optional, Set

from proof_relayer.execution.targets import ConfirmationError, SubmissionError


class SimulatedExecutionTarget:
    """In-memory stand-in for the hook contract and its chain."""

    def __init__(
        self,
        fee_prices: Optional[Iterable[int]] = None,
        block_height: int = 1_000_000,
    ):
        # The last scripted fee price repeats once the sequence is exhausted
        self._fee_prices: List[int] = list(fee_prices or [5])
        self.block_height = block_height
        self.submissions: List[Dict[str, Any]] = []
        self.confirmed: Dict[str, int] = {}
        self.fail_submissions: Set[str] = set()      # Proof ids whose submit raises
        self.fail_confirmations: Set[str] = set()    # Proof ids whose confirmation raises
        self.unavailable = False                     # Network reads raise
        self._pending: Dict[str, str] = {}           # receipt handle -> proof id

    def set_fee_price(self, fee_price: int) -> None:
        self._fee_prices = [fee_price]

    async def current_fee_price(self) -> int:
        if self.unavailable:
            raise ConnectionError("simulated network unavailable")
        if len(self._fee_prices) > 1:
            return self._fee_prices.pop(0)
        return self._fee_prices[0]

    async def current_block_height(self) -> int:
        if self.unavailable:
            raise ConnectionError("simulated network unavailable")
        return self.block_height

    async def submit(self, call_struct: Dict[str, Any], gas_budget: int) -> str:
        proof_id = call_struct["intentHash"]
        if proof_id in self.fail_submissions:
            raise SubmissionError(f"simulated revert on submit for {proof_id}")
        nonce = len(self.submissions)
        self.submissions.append({"call": call_struct, "gas_budget": gas_budget})
        handle = "0x" + hashlib.sha256(f"{proof_id}:{nonce}".encode()).hexdigest()
        self._pending[handle] = proof_id
        return handle

    async def await_confirmation(self, receipt_handle: str) -> int:
        proof_id = self._pending.pop(receipt_handle, None)
        if proof_id is None:
            raise ConfirmationError(f"unknown receipt handle {receipt_handle}")
        if proof_id in self.fail_confirmations:
            raise ConfirmationError(f"simulated drop of {receipt_handle}")
        self.block_height += 1
        self.confirmed[receipt_handle] = self.block_height
        return self.block_height

    def submitted_proof_ids(self) -> List[str]:
        return [s["call"]["intentHash"] for s in self.submissions]
