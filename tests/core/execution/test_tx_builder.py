"""
Tests for SusuGroupVault calldata builders and view decoders.
"""

import pytest
from eth_utils import keccak

from susu.core.execution.tx_builder import (
    DISTRIBUTE_FUNDS_SELECTOR,
    GET_MEMBERS_SELECTOR,
    OWNER_SELECTOR,
    VAULT_TYPE_SELECTOR,
    TransactionBuilder,
    VaultCallDecoder,
)


VAULT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
MEMBER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def test_selector_matches_function_signature():
    assert DISTRIBUTE_FUNDS_SELECTOR == "0x" + keccak(text="distributeFunds(address,uint256)")[:4].hex()


def test_build_distribute_funds_encodes_args():
    tx = TransactionBuilder.build_distribute_funds(VAULT, MEMBER, 10**18)

    assert tx.target == VAULT
    assert tx.value == 0
    assert tx.payload.startswith(DISTRIBUTE_FUNDS_SELECTOR)
    # selector + two 32-byte words
    assert len(tx.payload) == len(DISTRIBUTE_FUNDS_SELECTOR) + 64 * 2
    assert tx.payload[10:74] == MEMBER.lower()[2:].zfill(64)
    assert int(tx.payload[74:], 16) == 10**18


@pytest.mark.parametrize(
    "vault, recipient, amount",
    [
        ("not-an-address", MEMBER, 1),
        (VAULT, "0x1234", 1),
        (VAULT, MEMBER, -1),
        (VAULT, MEMBER, 2**256),
    ],
)
def test_build_distribute_funds_rejects_bad_input(vault, recipient, amount):
    with pytest.raises(ValueError):
        TransactionBuilder.build_distribute_funds(vault, recipient, amount)


def test_client_transaction_shape():
    tx = TransactionBuilder.build_distribute_funds(VAULT, MEMBER, 1)
    assert TransactionBuilder.to_client_transaction(tx) == {
        "to": VAULT,
        "data": tx.payload,
        "value": "0",
    }


# =============================================================================
# View decoders
# =============================================================================


def word(value: int) -> str:
    return format(value, "064x")


def address_word(address: str) -> str:
    return address.lower()[2:].zfill(64)


def encode_string(text: str) -> str:
    raw = text.encode("utf-8").hex()
    padded = raw.ljust(((len(raw) + 63) // 64) * 64 or 64, "0")
    return "0x" + word(32) + word(len(text.encode("utf-8"))) + padded


def encode_address_array(addresses) -> str:
    return "0x" + word(32) + word(len(addresses)) + "".join(address_word(a) for a in addresses)


@pytest.mark.parametrize(
    "selector, signature",
    [
        (VAULT_TYPE_SELECTOR, "vaultType()"),
        (GET_MEMBERS_SELECTOR, "getMembers()"),
        (OWNER_SELECTOR, "owner()"),
    ],
)
def test_view_selectors(selector, signature):
    assert selector == "0x" + keccak(text=signature)[:4].hex()


def test_decode_address_checksums():
    assert VaultCallDecoder.decode_address("0x" + address_word(MEMBER)) == MEMBER


def test_decode_string():
    assert VaultCallDecoder.decode_string(encode_string("group")) == "group"


def test_decode_empty_string():
    assert VaultCallDecoder.decode_string("0x" + word(32) + word(0)) == ""


def test_decode_address_array():
    result = encode_address_array([MEMBER, VAULT])
    assert VaultCallDecoder.decode_address_array(result) == [MEMBER, VAULT]


def test_decode_empty_address_array():
    assert VaultCallDecoder.decode_address_array(encode_address_array([])) == []


@pytest.mark.parametrize(
    "result",
    [
        "0x",
        "0x1234",
        # offset points past the data
        "0x" + word(64) + word(1),
        # unaligned offset
        "0x" + word(33) + word(1),
        # declares two members, carries one
        "0x" + word(32) + word(2) + address_word(MEMBER),
    ],
)
def test_decode_address_array_rejects_malformed(result):
    with pytest.raises(ValueError):
        VaultCallDecoder.decode_address_array(result)


def test_decode_string_rejects_truncated_body():
    with pytest.raises(ValueError):
        VaultCallDecoder.decode_string("0x" + word(32) + word(40) + word(0))
