"""Validation Result: the validator's ruling on a candidate proof."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class RejectionReason(str, Enum):
    UNTRUSTED_SIGNER = "untrusted_signer"
    EXPIRED = "expired"
    MALFORMED_SIGNATURE = "malformed_signature"
    INVALID_AMOUNTS = "invalid_amounts"


class ValidationResult(BaseModel):
    """Accept, or reject with the first failing rule. Rejections are final."""

    proof_id: str
    accepted: bool
    reason: Optional[RejectionReason] = None    # Machine-readable
    detail: Optional[str] = None                # Human-readable

    @classmethod
    def accept(cls, proof_id: str) -> "ValidationResult":
        return cls(proof_id=proof_id, accepted=True)

    @classmethod
    def reject(
        cls, proof_id: str, reason: RejectionReason, detail: str
    ) -> "ValidationResult":
        return cls(proof_id=proof_id, accepted=False, reason=reason, detail=detail)
