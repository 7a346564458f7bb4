"""Proof Record: what the Proof Store knows about one identifier."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ProofStatus(str, Enum):
    IN_FLIGHT = "in_flight"     # Provisional, removed on a failed attempt
    SETTLED = "settled"         # Permanent
    REJECTED = "rejected"       # Permanent, never re-validated


class ProofRecord(BaseModel):
    proof_id: str
    status: ProofStatus
    receipt_handle: Optional[str] = None
    confirmed_block: Optional[int] = None
    rejection_reason: Optional[str] = None
    updated_at: datetime
