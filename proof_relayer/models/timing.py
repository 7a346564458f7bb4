"""Timing models: network conditions and the advisor's execute/defer decision."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"       # Reserved; blocks execution when produced


class NetworkState(BaseModel):
    """Live chain conditions, read once per cycle."""

    fee_price: int = Field(ge=0)                # Same unit as the fee ceiling
    block_height: int = Field(ge=0)
    observed_at: datetime


class TimingDecision(BaseModel):
    """Whether a valid proof should be submitted now. A deferral is never a rejection."""

    proof_id: str
    execute: bool
    reason: Optional[str] = None                # Why execution was deferred
    fee_price: int
    block_height: int
    risk_tier: Optional[RiskTier] = None        # None when risk gating is disabled
