"""
Calldata builders and return-data decoders for the SusuGroupVault contract.
"""

from typing import Any, Dict, List

from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address

from .models import TransactionRequest


DISTRIBUTE_FUNDS_SIGNATURE = "distributeFunds(address,uint256)"
DISTRIBUTE_FUNDS_SELECTOR = "0x" + function_signature_to_4byte_selector(DISTRIBUTE_FUNDS_SIGNATURE).hex()

MAX_UINT256 = 2**256 - 1


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"uint256 out of range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    if not is_address(address):
        raise ValueError(f"Invalid address: {address}")
    addr = address.lower().replace("0x", "")
    return addr.zfill(64)


class TransactionBuilder:
    """Builds relay transactions for the vault contract."""

    @staticmethod
    def encode_distribute_funds(recipient: str, amount: int) -> str:
        """Calldata for ``distributeFunds(recipient, amount)``."""
        return (
            DISTRIBUTE_FUNDS_SELECTOR +
            _encode_address(recipient) +
            _encode_uint256(amount)
        )

    @staticmethod
    def build_distribute_funds(
        vault_address: str,
        recipient: str,
        amount: int,
    ) -> TransactionRequest:
        """
        Build a native-asset payout from the group vault.

        Args:
            vault_address: The deployed SusuGroupVault
            recipient: Member receiving the payout
            amount: Amount in wei

        Returns:
            TransactionRequest ready to be queued
        """
        if not is_address(vault_address):
            raise ValueError(f"Invalid vault address: {vault_address}")

        return TransactionRequest(
            target=vault_address,
            payload=TransactionBuilder.encode_distribute_funds(recipient, amount),
            value=0,
        )

    @staticmethod
    def to_client_transaction(request: TransactionRequest) -> Dict[str, Any]:
        """Shape returned to browsers that sign the call themselves."""
        return {
            "to": request.target,
            "data": request.payload,
            "value": str(request.value),
        }


# =============================================================================
# Read-only vault calls
# =============================================================================


def _selector(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


VAULT_TYPE_SELECTOR = _selector("vaultType()")
GET_MEMBERS_SELECTOR = _selector("getMembers()")
OWNER_SELECTOR = _selector("owner()")


def _words(result: str) -> List[str]:
    """Split an eth_call result into 32-byte hex words."""
    data = (result or "").lower()
    if data.startswith("0x"):
        data = data[2:]
    if not data or len(data) % 64:
        raise ValueError(f"Malformed ABI return data ({len(data)} hex chars)")
    return [data[i:i + 64] for i in range(0, len(data), 64)]


def _word_to_address(word: str) -> str:
    return to_checksum_address("0x" + word[-40:])


def _word_index(offset: int, words: List[str]) -> int:
    if offset % 32:
        raise ValueError(f"Unaligned ABI offset: {offset}")
    if offset // 32 >= len(words):
        raise ValueError(f"ABI offset {offset} past end of return data")
    return offset // 32


class VaultCallDecoder:
    """Decodes return data of the SusuGroupVault view functions."""

    @staticmethod
    def decode_address(result: str) -> str:
        return _word_to_address(_words(result)[0])

    @staticmethod
    def decode_string(result: str) -> str:
        words = _words(result)
        start = _word_index(int(words[0], 16), words)
        length = int(words[start], 16)
        body = "".join(words[start + 1:])
        if len(body) < length * 2:
            raise ValueError("ABI string shorter than its declared length")
        return bytes.fromhex(body[: length * 2]).decode("utf-8")

    @staticmethod
    def decode_address_array(result: str) -> List[str]:
        words = _words(result)
        start = _word_index(int(words[0], 16), words)
        count = int(words[start], 16)
        items = words[start + 1:start + 1 + count]
        if len(items) < count:
            raise ValueError("ABI array shorter than its declared length")
        return [_word_to_address(word) for word in items]
