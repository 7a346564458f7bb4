"""
Proof Validator — admission rules for candidate execution proofs.

Behavioral Contract:
- Accepts a candidate ExecutionProof, the trusted attester identity and `now`
- Applies a fixed, ordered set of hard gates; the first failure short-circuits:
  identity, freshness, signature format, amounts
- Returns a ValidationResult with a machine-readable rejection reason
- Pure: identical inputs always yield identical results
- Structural only. Cryptographic verification of the TEE signature happens
  inside the hook contract.
"""

import string
import time
from typing import Callable, List, Optional, Tuple

from proof_relayer.models.agent import AgentConfig
from proof_relayer.models.proof import ExecutionProof
from proof_relayer.models.validation import RejectionReason, ValidationResult

_HEX_DIGITS = frozenset(string.hexdigits)


def is_expired(proof: ExecutionProof, now: int, max_age_seconds: int) -> bool:
    """True once a proof is older than the maximum age or past its own expiry."""
    if now - proof.timestamp > max_age_seconds:
        return True
    return proof.expires_at is not None and now >= proof.expires_at


def _strip_hex_prefix(value: str) -> str:
    if value[:2] in ("0x", "0X"):
        return value[2:]
    return value


def _check_identity(
    proof: ExecutionProof, trusted_identity: str, now: int, config: AgentConfig
) -> Optional[Tuple[RejectionReason, str]]:
    if proof.tee_signer.lower() != trusted_identity.lower():
        return (
            RejectionReason.UNTRUSTED_SIGNER,
            f"Attester {proof.tee_signer} is not the trusted TEE signer.",
        )
    return None


def _check_freshness(
    proof: ExecutionProof, trusted_identity: str, now: int, config: AgentConfig
) -> Optional[Tuple[RejectionReason, str]]:
    if is_expired(proof, now, config.max_proof_age_seconds):
        age = now - proof.timestamp
        return (
            RejectionReason.EXPIRED,
            f"Proof age {age}s exceeds {config.max_proof_age_seconds}s "
            f"or its expiry has passed.",
        )
    return None


def _check_signature_format(
    proof: ExecutionProof, trusted_identity: str, now: int, config: AgentConfig
) -> Optional[Tuple[RejectionReason, str]]:
    signature = _strip_hex_prefix(proof.tee_signature or "")
    if len(signature) < config.min_signature_length:
        return (
            RejectionReason.MALFORMED_SIGNATURE,
            f"TEE signature has {len(signature)} hex characters, "
            f"expected at least {config.min_signature_length}.",
        )
    if not _HEX_DIGITS.issuperset(signature):
        return (
            RejectionReason.MALFORMED_SIGNATURE,
            "TEE signature is not hex encoded.",
        )
    return None


def _check_amounts(
    proof: ExecutionProof, trusted_identity: str, now: int, config: AgentConfig
) -> Optional[Tuple[RejectionReason, str]]:
    if proof.amount_in <= 0 or proof.amount_out <= 0:
        return (
            RejectionReason.INVALID_AMOUNTS,
            f"Amounts must be positive (in={proof.amount_in}, out={proof.amount_out}).",
        )
    return None


Rule = Callable[
    [ExecutionProof, str, int, AgentConfig],
    Optional[Tuple[RejectionReason, str]],
]

# Order matters: the reported reason is the first failing rule.
RULES: List[Rule] = [
    _check_identity,
    _check_freshness,
    _check_signature_format,
    _check_amounts,
]


class ProofValidator:
    """Stateless checker. Only its configuration defines its behavior."""

    def __init__(self, config: Optional[AgentConfig] = None):
        self.config = config or AgentConfig()

    def validate(
        self,
        proof: ExecutionProof,
        trusted_identity: Optional[str] = None,
        now: Optional[int] = None,
    ) -> ValidationResult:
        """
        Validate a candidate proof.

        Returns an accepted result, or a rejection carrying the first failing rule.
        """
        if trusted_identity is None:
            trusted_identity = self.config.trusted_signer
        if now is None:
            now = int(time.time())

        for rule in RULES:
            failure = rule(proof, trusted_identity, now, self.config)
            if failure:
                reason, detail = failure
                return ValidationResult.reject(proof.proof_id, reason, detail)

        return ValidationResult.accept(proof.proof_id)
