"""
Proof sources: where candidate execution proofs come from.

The TEE matcher publishes its output as JSON, either the task result envelope
`{"success": true, "executionProofs": [...]}` or a bare list of proofs.
Sources never filter already-settled proofs; the agent does.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Sequence, Union

from pydantic import ValidationError

from proof_relayer.models.proof import ExecutionProof

logger = logging.getLogger(__name__)


class ProofSourceError(Exception):
    """Raised when a source cannot produce candidates this cycle."""
    pass


class ProofSource(Protocol):
    async def fetch_candidates(self) -> List[ExecutionProof]:
        """Current candidate set. May be empty; never holds duplicates."""
        ...


def dedupe(proofs: Iterable[ExecutionProof]) -> List[ExecutionProof]:
    """Drop repeated identifiers, keeping the first occurrence."""
    seen = set()
    unique = []
    for proof in proofs:
        if proof.proof_id in seen:
            continue
        seen.add(proof.proof_id)
        unique.append(proof)
    return unique


def parse_proofs(payload: Union[dict, list]) -> List[ExecutionProof]:
    """
    Parse a TEE output payload into proofs.

    Records that fail to parse are logged and skipped; they never reach
    the validator.
    """
    if isinstance(payload, dict):
        if not payload.get("success", True):
            logger.warning("source.unsuccessful_task_output")
            return []
        records = payload.get("executionProofs", [])
    else:
        records = payload

    if not isinstance(records, list):
        raise ProofSourceError("executionProofs must be a list")

    proofs = []
    for index, record in enumerate(records):
        try:
            proofs.append(ExecutionProof.model_validate(record))
        except ValidationError as exc:
            logger.warning(
                "source.invalid_record index=%d errors=%d", index, exc.error_count()
            )
    return dedupe(proofs)


class StaticProofSource:
    """
    In-memory source. Each fetch returns the next scripted batch; the last
    batch repeats, mimicking a matcher that keeps publishing the same output.
    """

    def __init__(self, batches: Optional[Sequence[Sequence[ExecutionProof]]] = None):
        self._batches: List[List[ExecutionProof]] = [list(b) for b in (batches or [[]])]
        self.fetch_count = 0
        self.fail_next = False

    def publish(self, proofs: Sequence[ExecutionProof]) -> None:
        """Replace future output with a single repeating batch."""
        self._batches = [list(proofs)]

    async def fetch_candidates(self) -> List[ExecutionProof]:
        self.fetch_count += 1
        if self.fail_next:
            self.fail_next = False
            raise ProofSourceError("static source unavailable")
        if len(self._batches) > 1:
            return dedupe(self._batches.pop(0))
        return dedupe(self._batches[0])


class FileProofSource:
    """Reads the TEE output file on every fetch. A missing file means no candidates."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def fetch_candidates(self) -> List[ExecutionProof]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise ProofSourceError(f"cannot read {self.path}: {exc}") from exc
        return parse_proofs(payload)


def sample_proof(tee_signer: str, now: int) -> ExecutionProof:
    """The demo proof the matcher emits for a 1000 USDC -> 0.385 ETH fill."""
    return ExecutionProof(
        batch_id="0x" + "a" * 16,
        timestamp=now,
        user="0x742d35Cc6634C0532925a3b844Bc9e7595f8fE21",
        token_in="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        token_out="0x4200000000000000000000000000000000000006",
        amount_in=1_000_000_000,
        amount_out=385_000_000_000_000_000,
        clearing_price=2_598_420_000,
        proof_id="0x" + "b" * 64,
        user_signature="0x" + "c" * 130,
        tee_signature="0x" + "d" * 130,
        tee_signer=tee_signer,
        merkle_root="0x" + "e" * 64,
        mev_saved=23_470_000,
    )
