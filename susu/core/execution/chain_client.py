"""
Blockchain client used by the relay queue.

``ChainClient`` is the capability the submitter depends on; ``EvmChainClient``
implements it over JSON-RPC, signing locally with the relay worker key.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
from eth_account import Account
from eth_utils import to_checksum_address, to_hex

from .models import TransactionReceipt


logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """Base exception for execution errors."""
    pass


class RpcError(ExecutionError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, method: str, error: Any):
        super().__init__(f"RPC error from {method}: {error}")
        self.method = method
        self.error = error


class SignerNotConfiguredError(ExecutionError):
    """No signing key is available for the relay account."""
    pass


class NonceNotInitializedError(ExecutionError):
    """The local nonce has not been synced with the chain yet."""
    pass


class TransactionSubmitError(ExecutionError):
    """Transaction signing or broadcast failed."""
    pass


class TransactionRevertError(ExecutionError):
    """Transaction reverted on-chain."""

    def __init__(self, message: str, receipt: Optional[TransactionReceipt] = None):
        super().__init__(message)
        self.receipt = receipt


class TransactionTimeoutError(ExecutionError):
    """Transaction confirmation timed out."""
    pass


class PendingTransaction(ABC):
    """Handle to a broadcast transaction."""

    tx_hash: str

    @abstractmethod
    async def wait_for_confirmation(
        self,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        """Wait until the transaction is mined.

        Raises TransactionRevertError if it reverted and
        TransactionTimeoutError if ``timeout`` elapses first.
        """
        pass


class ChainClient(ABC):
    """Capability the submitter needs from the network."""

    address: Optional[str] = None

    @property
    def can_sign(self) -> bool:
        return self.address is not None

    @abstractmethod
    async def get_transaction_count(self, address: str) -> int:
        """Authoritative transaction count (next nonce) for ``address``."""
        pass

    @abstractmethod
    async def send_transaction(self, tx: Dict[str, Any]) -> PendingTransaction:
        """Sign and broadcast ``{to, data, value, nonce, gas}``."""
        pass

    async def close(self) -> None:
        return None


class EvmPendingTransaction(PendingTransaction):
    def __init__(
        self,
        client: "EvmChainClient",
        tx_hash: str,
        poll_interval: float = 2.0,
    ):
        self._client = client
        self.tx_hash = tx_hash
        self._poll_interval = poll_interval

    async def wait_for_confirmation(
        self,
        timeout: Optional[float] = None,
    ) -> TransactionReceipt:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None

        while True:
            try:
                receipt = await self._client.get_receipt(self.tx_hash)
            except (httpx.HTTPError, RpcError) as e:
                logger.warning(f"Error checking transaction status for {self.tx_hash}: {e}")
                receipt = None

            if receipt is not None:
                if not receipt.succeeded:
                    raise TransactionRevertError(
                        f"Transaction {self.tx_hash} reverted in block {receipt.block_number}",
                        receipt=receipt,
                    )
                return receipt

            if deadline is not None and loop.time() >= deadline:
                raise TransactionTimeoutError(
                    f"Confirmation timeout after {timeout}s for {self.tx_hash}"
                )
            await asyncio.sleep(self._poll_interval)


class EvmChainClient(ChainClient):
    """
    JSON-RPC client for an EVM network.

    Reads go straight to the node; writes are signed locally with
    ``eth_account`` and broadcast as raw EIP-1559 transactions.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: Optional[str] = None,
        *,
        chain_id: int,
        block_tag: str = "pending",
        timeout: float = 30.0,
        receipt_poll_interval: float = 2.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.block_tag = block_tag
        self._receipt_poll_interval = receipt_poll_interval
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

        self._account = Account.from_key(private_key) if private_key else None
        self.address = self._account.address if self._account else None

    async def _rpc_call(self, method: str, params: List[Any]) -> Any:
        """Make an RPC call to the node."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        response = await self._client.post(self.rpc_url, json=payload)
        response.raise_for_status()
        result = response.json()

        if "error" in result:
            raise RpcError(method, result["error"])

        return result.get("result")

    async def get_transaction_count(self, address: str) -> int:
        count_hex = await self._rpc_call(
            "eth_getTransactionCount",
            [address, self.block_tag],
        )
        return int(count_hex, 16)

    async def call(self, to: str, data: str, block_tag: str = "latest") -> str:
        """Read-only contract call; returns the raw hex return data."""
        result = await self._rpc_call("eth_call", [{"to": to, "data": data}, block_tag])
        return result or "0x"

    async def get_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
        if not receipt:
            return None
        return TransactionReceipt(
            tx_hash=receipt.get("transactionHash", tx_hash),
            block_number=int(receipt["blockNumber"], 16),
            status=int(receipt.get("status", "0x1"), 16),
            gas_used=int(receipt["gasUsed"], 16) if receipt.get("gasUsed") else None,
        )

    async def _fee_data(self) -> Dict[str, int]:
        fee_history = await self._rpc_call("eth_feeHistory", [1, "latest", [50]])

        base_fee = int(fee_history["baseFeePerGas"][-1], 16)
        rewards = fee_history.get("reward") or []
        priority_fee = int(rewards[0][0], 16) if rewards and rewards[0] else 1_000_000_000

        return {
            "maxFeePerGas": base_fee * 2 + priority_fee,
            "maxPriorityFeePerGas": priority_fee,
        }

    async def send_transaction(self, tx: Dict[str, Any]) -> PendingTransaction:
        if self._account is None:
            raise SignerNotConfiguredError("No worker key configured; cannot sign transactions")

        try:
            fees = await self._fee_data()
            unsigned = {
                "type": 2,
                "chainId": self.chain_id,
                "to": to_checksum_address(tx["to"]),
                "data": tx.get("data") or "0x",
                "value": int(tx.get("value") or 0),
                "nonce": int(tx["nonce"]),
                "gas": int(tx["gas"]),
                **fees,
            }
            signed = self._account.sign_transaction(unsigned)
            tx_hash = await self._rpc_call(
                "eth_sendRawTransaction",
                [to_hex(signed.raw_transaction)],
            )
        except (httpx.HTTPError, RpcError, ValueError, TypeError, KeyError) as e:
            raise TransactionSubmitError(f"Failed to submit transaction: {e}") from e

        logger.info(f"Transaction submitted: {tx_hash} (nonce={unsigned['nonce']})")
        return EvmPendingTransaction(self, tx_hash, poll_interval=self._receipt_poll_interval)

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()
