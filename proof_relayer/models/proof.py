"""Execution Proof: the signed settlement record produced by the TEE matcher."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ExecutionProof(BaseModel):
    """
    A matched trade, attested by the TEE, that the relayer settles on-chain
    on behalf of the user.

    At the boundary proofs are flat camelCase records (the TEE output file);
    snake_case field names are accepted as well.
    """

    model_config = ConfigDict(populate_by_name=True)

    proof_id: str = Field(alias="intentHash")     # Derived from the user's intent hash
    batch_id: str = Field(alias="batchId")
    user: str                                   # Party receiving the output asset
    token_in: str = Field(alias="tokenIn")
    token_out: str = Field(alias="tokenOut")
    amount_in: int = Field(alias="amountIn", ge=0)
    amount_out: int = Field(alias="amountOut", ge=0)
    clearing_price: int = Field(alias="clearingPrice", ge=0)
    timestamp: int                              # Issuance, unix seconds
    user_signature: str = Field(alias="userSignature", default="")
    tee_signature: str = Field(alias="teeSignature", default="")
    tee_signer: str = Field(alias="teeSigner")
    merkle_root: str = Field(alias="merkleRoot")
    expires_at: Optional[int] = Field(alias="expiresAt", default=None)
    mev_saved: int = Field(alias="mevSaved", default=0, ge=0)  # Advisory only

    def to_call_struct(self, deadline: int) -> dict:
        """Build the `executePrivateOrder` proof tuple for the hook contract."""
        return {
            "batchId": self.batch_id.ljust(66, "0")[:66],
            "user": self.user,
            "tokenIn": self.token_in,
            "tokenOut": self.token_out,
            "amountIn": self.amount_in,
            "amountOut": self.amount_out,
            "clearingPrice": self.clearing_price,
            "intentHash": self.proof_id,
            "userSignature": self.user_signature,
            "teeSignature": self.tee_signature,
            "merkleRoot": self.merkle_root,
            "deadline": deadline,
        }
