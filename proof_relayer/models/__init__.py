"""Proof Relayer data models."""

from proof_relayer.models.agent import AgentConfig, AgentStats, CycleReport
from proof_relayer.models.execution import ExecutionResult, ExecutionStatus
from proof_relayer.models.proof import ExecutionProof
from proof_relayer.models.record import ProofRecord, ProofStatus
from proof_relayer.models.timing import NetworkState, RiskTier, TimingDecision
from proof_relayer.models.validation import RejectionReason, ValidationResult

__all__ = [
    "AgentConfig",
    "AgentStats",
    "CycleReport",
    "ExecutionProof",
    "ExecutionResult",
    "ExecutionStatus",
    "NetworkState",
    "ProofRecord",
    "ProofStatus",
    "RejectionReason",
    "RiskTier",
    "TimingDecision",
    "ValidationResult",
]
