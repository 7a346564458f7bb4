"""Execution Result: outcome of one submission attempt by the Execution Engine."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ExecutionStatus(str, Enum):
    SETTLED = "settled"
    ALREADY_SETTLED = "already_settled"         # Idempotent no-op
    IN_FLIGHT_ELSEWHERE = "in_flight_elsewhere"  # Another attempt holds the marking
    FAILED = "failed"
    UNCONFIRMED = "unconfirmed"                  # Sent or possibly sent, outcome unknown; marking kept


class ExecutionResult(BaseModel):
    """Outcome of executing a validated, timing-approved proof."""

    proof_id: str
    status: ExecutionStatus
    receipt_handle: Optional[str] = None
    confirmed_block: Optional[int] = None
    gas_budget: Optional[int] = None
    fee_price: Optional[int] = None
    fee_spent: int = 0
    benefit_captured: int = 0
    error: Optional[str] = None
    executed_at: datetime

    @property
    def success(self) -> bool:
        return self.status in (ExecutionStatus.SETTLED, ExecutionStatus.ALREADY_SETTLED)
