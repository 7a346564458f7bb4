"""Tests for core data models."""

from datetime import datetime

import pytest

from proof_relayer.models import (
    AgentConfig,
    AgentStats,
    ExecutionProof,
    ExecutionResult,
    ExecutionStatus,
    NetworkState,
    ValidationResult,
    RejectionReason,
)

TEE_SIGNER = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


def _tee_record() -> dict:
    """A proof exactly as the TEE writes it to execution_proofs.json."""
    return {
        "batchId": "0x" + "a" * 16,
        "timestamp": 1_700_000_000,
        "user": "0x742d35Cc6634C0532925a3b844Bc9e7595f8fE21",
        "tokenIn": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        "tokenOut": "0x4200000000000000000000000000000000000006",
        "amountIn": "1000000000",
        "amountOut": "385000000000000000",
        "clearingPrice": "2598420000",
        "intentHash": "0x" + "b" * 64,
        "userSignature": "0x" + "c" * 130,
        "teeSignature": "0x" + "d" * 130,
        "teeSigner": TEE_SIGNER,
        "merkleRoot": "0x" + "e" * 64,
        "mevSaved": "23470000",
    }


class TestExecutionProof:
    def test_parse_tee_record(self):
        proof = ExecutionProof.model_validate(_tee_record())
        assert proof.proof_id == "0x" + "b" * 64
        assert proof.amount_in == 1_000_000_000
        assert proof.amount_out == 385_000_000_000_000_000
        assert proof.mev_saved == 23_470_000
        assert proof.expires_at is None

    def test_snake_case_names_accepted(self):
        proof = ExecutionProof(
            proof_id="0x01",
            batch_id="0x02",
            user="0xuser",
            token_in="0xin",
            token_out="0xout",
            amount_in=1,
            amount_out=2,
            clearing_price=3,
            timestamp=10,
            tee_signer=TEE_SIGNER,
            merkle_root="0x03",
        )
        assert proof.mev_saved == 0
        assert proof.tee_signature == ""

    def test_negative_amount_rejected_at_boundary(self):
        record = _tee_record()
        record["amountIn"] = "-5"
        with pytest.raises(Exception):
            ExecutionProof.model_validate(record)

    def test_expiry_field_optional(self):
        assert ExecutionProof.model_validate(_tee_record()).expires_at is None
        record = _tee_record()
        record["expiresAt"] = 1_700_000_100
        assert ExecutionProof.model_validate(record).expires_at == 1_700_000_100

    def test_call_struct_pads_batch_id(self):
        proof = ExecutionProof.model_validate(_tee_record())
        call = proof.to_call_struct(deadline=1_700_000_300)
        assert len(call["batchId"]) == 66
        assert call["batchId"].startswith("0x" + "a" * 16)
        assert call["intentHash"] == proof.proof_id
        assert call["deadline"] == 1_700_000_300
        assert call["amountOut"] == 385_000_000_000_000_000


class TestAgentConfig:
    def test_defaults(self):
        config = AgentConfig()
        assert config.max_proof_age_seconds == 3600
        assert config.max_fee_price == 50
        assert config.fee_buffer_percent == 20
        assert config.large_trade_threshold == 10_000_000_000
        assert config.risk_gating_enabled is True
        assert config.submission_validity_seconds == 300
        assert config.recheck_expiry_on_retry is True

    def test_bounds(self):
        with pytest.raises(Exception):
            AgentConfig(poll_interval_seconds=0)
        with pytest.raises(Exception):
            AgentConfig(max_concurrent_submissions=0)


class TestResults:
    def test_validation_result_helpers(self):
        ok = ValidationResult.accept("p1")
        assert ok.accepted is True
        assert ok.reason is None

        bad = ValidationResult.reject("p1", RejectionReason.EXPIRED, "too old")
        assert bad.accepted is False
        assert bad.reason == RejectionReason.EXPIRED
        assert bad.model_dump(mode="json")["reason"] == "expired"

    def test_execution_result_success(self):
        for status, success in [
            (ExecutionStatus.SETTLED, True),
            (ExecutionStatus.ALREADY_SETTLED, True),
            (ExecutionStatus.IN_FLIGHT_ELSEWHERE, False),
            (ExecutionStatus.FAILED, False),
            (ExecutionStatus.UNCONFIRMED, False),
        ]:
            result = ExecutionResult(
                proof_id="p1", status=status, executed_at=datetime.utcnow()
            )
            assert result.success is success

    def test_network_state_rejects_negative_fee(self):
        with pytest.raises(Exception):
            NetworkState(fee_price=-1, block_height=1, observed_at=datetime.utcnow())

    def test_stats_start_at_zero(self):
        stats = AgentStats()
        assert stats.candidates_seen == 0
        assert stats.total_fee_spent == 0
