"""Tests for proof sources."""

import asyncio
import json

import pytest

from proof_relayer.sources.proof_source import (
    FileProofSource,
    ProofSourceError,
    StaticProofSource,
    parse_proofs,
    sample_proof,
)

TRUSTED = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


def _record(intent_hash: str = "0x" + "b" * 64) -> dict:
    return {
        "batchId": "0x" + "a" * 16,
        "timestamp": 1_700_000_000,
        "user": "0x742d35Cc6634C0532925a3b844Bc9e7595f8fE21",
        "tokenIn": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        "tokenOut": "0x4200000000000000000000000000000000000006",
        "amountIn": "1000000000",
        "amountOut": "385000000000000000",
        "clearingPrice": "2598420000",
        "intentHash": intent_hash,
        "userSignature": "0x" + "c" * 130,
        "teeSignature": "0x" + "d" * 130,
        "teeSigner": TRUSTED,
        "merkleRoot": "0x" + "e" * 64,
        "mevSaved": "23470000",
    }


class TestParseProofs:
    def test_task_envelope(self):
        proofs = parse_proofs({"success": True, "executionProofs": [_record()]})
        assert [p.proof_id for p in proofs] == ["0x" + "b" * 64]

    def test_bare_list(self):
        assert len(parse_proofs([_record("0x01"), _record("0x02")])) == 2

    def test_unsuccessful_envelope_is_empty(self):
        assert parse_proofs({"success": False, "executionProofs": [_record()]}) == []

    def test_invalid_records_skipped(self):
        broken = _record("0x02")
        del broken["teeSigner"]
        proofs = parse_proofs([_record("0x01"), broken])
        assert [p.proof_id for p in proofs] == ["0x01"]

    def test_duplicates_removed(self):
        proofs = parse_proofs([_record("0x01"), _record("0x01")])
        assert len(proofs) == 1

    def test_non_list_payload_rejected(self):
        with pytest.raises(ProofSourceError):
            parse_proofs({"success": True, "executionProofs": "nope"})


class TestFileProofSource:
    def test_missing_file_is_empty(self, tmp_path):
        source = FileProofSource(tmp_path / "execution_proofs.json")
        assert asyncio.run(source.fetch_candidates()) == []

    def test_reads_tee_output(self, tmp_path):
        path = tmp_path / "execution_proofs.json"
        path.write_text(json.dumps({"success": True, "executionProofs": [_record()]}))
        proofs = asyncio.run(FileProofSource(path).fetch_candidates())
        assert proofs[0].amount_in == 1_000_000_000

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "execution_proofs.json"
        path.write_text("{not json")
        with pytest.raises(ProofSourceError):
            asyncio.run(FileProofSource(path).fetch_candidates())


class TestStaticProofSource:
    def test_batches_then_repeat_last(self):
        a = sample_proof(TRUSTED, 1)
        source = StaticProofSource([[a], []])
        assert len(asyncio.run(source.fetch_candidates())) == 1
        assert asyncio.run(source.fetch_candidates()) == []
        assert asyncio.run(source.fetch_candidates()) == []
        assert source.fetch_count == 3

    def test_sample_proof_shape(self):
        proof = sample_proof(TRUSTED, 1_700_000_000)
        assert proof.tee_signer == TRUSTED
        assert proof.timestamp == 1_700_000_000
        assert proof.mev_saved == 23_470_000
