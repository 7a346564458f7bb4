"""Relayer agent configuration, cumulative stats and per-cycle reports."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_TRUSTED_SIGNER = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


class AgentConfig(BaseModel):
    """Configuration for the Relayer Agent. Every knob is overridable."""

    # Validation
    trusted_signer: str = DEFAULT_TRUSTED_SIGNER
    max_proof_age_seconds: int = Field(default=3600, ge=1)
    min_signature_length: int = Field(default=130, ge=1)   # Hex chars, 0x excluded

    # Timing
    max_fee_price: int = Field(default=50, ge=0)            # Native fee-price unit (gwei)
    large_trade_threshold: int = Field(default=10_000 * 10**6, ge=0)
    risk_gating_enabled: bool = True

    # Execution
    base_gas_estimate: int = Field(default=250_000, ge=1)
    fee_buffer_percent: int = Field(default=20, ge=0)
    submission_validity_seconds: int = Field(default=300, ge=1)
    submission_timeout_seconds: float = Field(default=60.0, gt=0)
    confirmation_timeout_seconds: float = Field(default=120.0, gt=0)
    max_concurrent_submissions: int = Field(default=4, ge=1)

    # Loop
    poll_interval_seconds: float = Field(default=3.0, gt=0)
    recheck_expiry_on_retry: bool = True
    requeue_failed_executions: bool = False


class AgentStats(BaseModel):
    """Cumulative counters. Never decrease."""

    candidates_seen: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    total_fee_spent: int = 0
    total_benefit_captured: int = 0
    rejected_proofs: int = 0
    deferred_evaluations: int = 0
    expired_while_pending: int = 0
    cycles_run: int = 0
    cycle_errors: int = 0


class CycleReport(BaseModel):
    """What one poll cycle did, by proof identifier."""

    cycle_id: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    fee_price: Optional[int] = None
    block_height: Optional[int] = None
    fetched: int = 0
    filtered: List[str] = []        # Already known, pending, or duplicated
    rejected: List[str] = []
    deferred: List[str] = []
    executed: List[str] = []
    failed: List[str] = []
    expired: List[str] = []         # Dropped from the pending queue
    skipped: List[str] = []         # Not started because a stop was requested
    errored: List[str] = []         # A per-proof step raised; the cycle went on
