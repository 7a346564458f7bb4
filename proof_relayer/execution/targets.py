"""
Execution targets: the chain-facing side of the relayer.

`ExecutionTarget` is the narrow interface the Execution Engine and the agent
depend on. `Web3ExecutionTarget` settles proofs through the dark-pool hook
contract's `executePrivateOrder` over JSON-RPC.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

from web3 import Web3
from web3.exceptions import TimeExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExecutionTargetError(Exception):
    """Base class for failures reported by an execution target."""
    pass


class SubmissionError(ExecutionTargetError):
    """The proof call could not be submitted."""
    pass


class ConfirmationError(ExecutionTargetError):
    """A submitted call was not confirmed (reverted, dropped or timed out)."""
    pass


class ConfirmationTimeout(ConfirmationError):
    """The call was sent but no receipt arrived in time. It may still be mined."""
    pass


class ExecutionTarget(Protocol):
    """Accepts a signed proof call and reports success plus finality."""

    async def current_fee_price(self) -> int:
        ...

    async def current_block_height(self) -> int:
        ...

    async def submit(self, call_struct: Dict[str, Any], gas_budget: int) -> str:
        """Submit the call; returns a receipt handle. Raises SubmissionError."""
        ...

    async def await_confirmation(self, receipt_handle: str) -> int:
        """Wait for inclusion; returns the confirmed block height. Raises ConfirmationError."""
        ...


HOOK_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "batchId", "type": "bytes32"},
                    {"name": "user", "type": "address"},
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "amountOut", "type": "uint256"},
                    {"name": "clearingPrice", "type": "uint256"},
                    {"name": "intentHash", "type": "bytes32"},
                    {"name": "userSignature", "type": "bytes"},
                    {"name": "teeSignature", "type": "bytes"},
                    {"name": "merkleRoot", "type": "bytes32"},
                    {"name": "deadline", "type": "uint256"},
                ],
                "name": "proof",
                "type": "tuple",
            }
        ],
        "name": "executePrivateOrder",
        "outputs": [{"name": "success", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

_PROOF_COMPONENTS = [c["name"] for c in HOOK_ABI[0]["inputs"][0]["components"]]
_ADDRESS_COMPONENTS = {"user", "tokenIn", "tokenOut"}


def to_abi_tuple(call_struct: Dict[str, Any]) -> tuple:
    """Order a proof call struct by the ABI's tuple components."""
    values = []
    for name in _PROOF_COMPONENTS:
        value = call_struct[name]
        if name in _ADDRESS_COMPONENTS:
            value = Web3.to_checksum_address(value.lower())
        values.append(value)
    return tuple(values)


def wei_to_fee_units(wei: int, fee_unit_wei: int) -> int:
    """Round a wei fee price up to whole fee units (gwei by default)."""
    return -(-wei // fee_unit_wei)


class Web3ExecutionTarget:
    """
    Settles proofs through the hook contract. The relayer wallet pays gas.

    With a private key, transactions are signed locally and sent raw; without
    one, the node's unlocked `sender` account signs them.
    """

    def __init__(
        self,
        rpc_url: str,
        hook_address: str,
        sender: str,
        *,
        chain_id: Optional[int] = None,
        private_key: Optional[str] = None,
        fee_unit_wei: int = 10**9,
        request_timeout: float = 30.0,
        receipt_timeout: float = 120.0,
        poll_interval: float = 2.0,
        read_attempts: int = 3,
    ) -> None:
        self.web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self.contract = self.web3.eth.contract(
            address=Web3.to_checksum_address(hook_address), abi=HOOK_ABI
        )
        self.sender = Web3.to_checksum_address(sender)
        self.chain_id = chain_id
        self._private_key = private_key
        self.fee_unit_wei = fee_unit_wei
        self.receipt_timeout = receipt_timeout
        self.poll_interval = poll_interval
        self.read_attempts = max(1, read_attempts)
        logger.debug("web3 target initialized rpc=%s hook=%s", rpc_url, hook_address)

    async def _read(self, label: str, fn: Callable[[], T]) -> T:
        """Run a read-only RPC call off the event loop, retrying transient failures."""
        last_error: Optional[Exception] = None
        for attempt in range(1, self.read_attempts + 1):
            try:
                return await asyncio.to_thread(fn)
            except Exception as exc:
                last_error = exc
                logger.warning("rpc.read_failed call=%s attempt=%d error=%s", label, attempt, exc)
                if attempt < self.read_attempts:
                    await asyncio.sleep(self.poll_interval)
        raise ExecutionTargetError(f"{label} failed: {last_error}") from last_error

    async def current_fee_price(self) -> int:
        wei = await self._read("eth_gasPrice", lambda: self.web3.eth.gas_price)
        return wei_to_fee_units(int(wei), self.fee_unit_wei)

    async def current_block_height(self) -> int:
        return int(await self._read("eth_blockNumber", lambda: self.web3.eth.block_number))

    def _send(self, call_struct: Dict[str, Any], gas_budget: int) -> str:
        fn = self.contract.functions.executePrivateOrder(to_abi_tuple(call_struct))
        tx_params: Dict[str, Any] = {"from": self.sender, "gas": gas_budget}
        if self.chain_id is not None:
            tx_params["chainId"] = self.chain_id
        if self._private_key:
            tx_params["nonce"] = self.web3.eth.get_transaction_count(self.sender, "pending")
            tx = fn.build_transaction(tx_params)
            signed = self.web3.eth.account.sign_transaction(tx, self._private_key)
            tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        else:
            tx_hash = fn.transact(tx_params)
        return Web3.to_hex(tx_hash)

    async def submit(self, call_struct: Dict[str, Any], gas_budget: int) -> str:
        try:
            return await asyncio.to_thread(self._send, call_struct, gas_budget)
        except Exception as exc:
            raise SubmissionError(f"executePrivateOrder submission failed: {exc}") from exc

    async def await_confirmation(self, receipt_handle: str) -> int:
        try:
            receipt = await asyncio.to_thread(
                self.web3.eth.wait_for_transaction_receipt,
                receipt_handle,
                timeout=self.receipt_timeout,
                poll_latency=self.poll_interval,
            )
        except TimeExhausted as exc:
            raise ConfirmationTimeout(f"{receipt_handle} not mined within {self.receipt_timeout}s") from exc
        except Exception as exc:
            raise ConfirmationError(f"receipt lookup for {receipt_handle} failed: {exc}") from exc

        if receipt["status"] != 1:
            raise ConfirmationError(f"{receipt_handle} reverted in block {receipt['blockNumber']}")
        return int(receipt["blockNumber"])
