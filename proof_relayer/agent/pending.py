"""Pending Queue: valid proofs deferred by the timing advisor."""

from collections import OrderedDict
from typing import List

from proof_relayer.models.proof import ExecutionProof


class PendingQueue:
    """
    FIFO of deferred proofs, unique by identifier.

    Mutated only by the agent loop. Order only affects retry fairness.
    """

    def __init__(self):
        self._items: "OrderedDict[str, ExecutionProof]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, proof_id: object) -> bool:
        return proof_id in self._items

    def append(self, proof: ExecutionProof) -> bool:
        """Enqueue a proof. Returns False if it is already pending."""
        if proof.proof_id in self._items:
            return False
        self._items[proof.proof_id] = proof
        return True

    def remove(self, proof_id: str) -> bool:
        """Dequeue a proof by identifier. Returns False if it was not pending."""
        return self._items.pop(proof_id, None) is not None

    def proofs(self) -> List[ExecutionProof]:
        return list(self._items.values())

    def ids(self) -> List[str]:
        return list(self._items.keys())
