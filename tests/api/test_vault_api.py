"""
Vault read and AI split routes, with the node and Gemini behind httpx.MockTransport.
"""

import json
from typing import Any, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

from susu.api.ai import get_split_advisor
from susu.api.vault import get_vault_reader
from susu.config import settings
from susu.core.execution import EvmChainClient
from susu.core.execution.tx_builder import GET_MEMBERS_SELECTOR, OWNER_SELECTOR, VAULT_TYPE_SELECTOR
from susu.main import app
from susu.providers.gemini import GeminiSplitAdvisor
from susu.providers.vault import VaultReader

client = TestClient(app)

VAULT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
OWNER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
MEMBERS = [
    "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
    "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC",
]


# =============================================================================
# ABI-encoded node replies
# =============================================================================


def word(value: int) -> str:
    return format(value, "064x")


def address_word(address: str) -> str:
    return address.lower()[2:].zfill(64)


def vault_node(vault_type: str = "group", members: List[str] = MEMBERS, calls: List[Dict[str, Any]] = None):
    raw_type = vault_type.encode("utf-8").hex()
    replies = {
        VAULT_TYPE_SELECTOR: "0x" + word(32) + word(len(vault_type)) + raw_type.ljust(64, "0"),
        GET_MEMBERS_SELECTOR: "0x" + word(32) + word(len(members)) + "".join(address_word(m) for m in members),
        OWNER_SELECTOR: "0x" + address_word(OWNER),
    }

    def respond(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if calls is not None:
            calls.append(body)
        assert body["method"] == "eth_call"
        call = body["params"][0]
        assert call["to"] == VAULT
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": replies[call["data"]]}
        )

    return respond


def failing_node(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(
        200,
        json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32000, "message": "execution reverted"}},
    )


def make_reader(transport_handler) -> VaultReader:
    chain = EvmChainClient(
        "https://rpc.test",
        chain_id=80002,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport_handler)),
    )
    return VaultReader(chain, VAULT)


def make_advisor(handler) -> GeminiSplitAdvisor:
    return GeminiSplitAdvisor(
        "test-key",
        api_url="https://gemini.test/generate",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def reader_override():
    def install(transport_handler):
        app.dependency_overrides[get_vault_reader] = lambda: make_reader(transport_handler)

    yield install
    app.dependency_overrides.pop(get_vault_reader, None)


@pytest.fixture
def advisor_override():
    def install(advisor: GeminiSplitAdvisor):
        app.dependency_overrides[get_split_advisor] = lambda: advisor

    yield install
    app.dependency_overrides.pop(get_split_advisor, None)


@pytest.fixture
def no_vault(monkeypatch):
    monkeypatch.setattr(settings, "vault_address", "")


# =============================================================================
# GET /api/vault/details
# =============================================================================


class TestVaultDetails:
    def test_reads_type_members_and_owner(self, reader_override):
        calls: List[Dict[str, Any]] = []
        reader_override(vault_node(calls=calls))

        resp = client.get("/api/vault/details")

        assert resp.status_code == 200, resp.json()
        assert resp.json() == {
            "success": True,
            "address": VAULT,
            "vaultType": "group",
            "owner": OWNER,
            "members": MEMBERS,
        }
        assert sorted(c["params"][0]["data"] for c in calls) == sorted(
            [VAULT_TYPE_SELECTOR, GET_MEMBERS_SELECTOR, OWNER_SELECTOR]
        )
        assert all(c["params"][1] == "latest" for c in calls)

    def test_unconfigured_vault_is_503(self, no_vault):
        resp = client.get("/api/vault/details")
        assert resp.status_code == 503

    def test_rpc_error_is_500(self, reader_override):
        reader_override(failing_node)

        resp = client.get("/api/vault/details")

        assert resp.status_code == 500
        assert resp.json()["detail"].startswith("Failed to fetch vault details")

    def test_malformed_return_data_is_500(self, reader_override):
        def short_reply(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": "0x1234"})

        reader_override(short_reply)

        assert client.get("/api/vault/details").status_code == 500


# =============================================================================
# POST /api/ai/suggest-split
# =============================================================================


class TestSuggestSplit:
    def test_members_come_from_vault(self, reader_override, advisor_override):
        seen = {}

        def gemini(request: httpx.Request) -> httpx.Response:
            seen["prompt"] = json.loads(request.content)["contents"][0]["parts"][0]["text"]
            split = {"recipients": MEMBERS, "amounts": [6, 4]}
            return httpx.Response(
                200, json={"candidates": [{"content": {"parts": [{"text": json.dumps(split)}]}}]}
            )

        reader_override(vault_node())
        advisor_override(make_advisor(gemini))

        resp = client.post("/api/ai/suggest-split", json={"totalAmount": 10})

        assert resp.status_code == 200, resp.json()
        assert resp.json() == {
            "success": True,
            "suggestion": {"recipients": MEMBERS, "amounts": [6, 4]},
        }
        assert MEMBERS[0] in seen["prompt"] and MEMBERS[1] in seen["prompt"]

    def test_members_in_body_are_ignored(self, reader_override, advisor_override):
        seen = {}

        def gemini(request: httpx.Request) -> httpx.Response:
            seen["prompt"] = json.loads(request.content)["contents"][0]["parts"][0]["text"]
            return httpx.Response(
                200, json={"candidates": [{"content": {"parts": [{"text": "{}"}]}}]}
            )

        reader_override(vault_node())
        advisor_override(make_advisor(gemini))

        stranger = "0x" + "ee" * 20
        client.post("/api/ai/suggest-split", json={"totalAmount": 10, "members": [stranger]})

        assert stranger not in seen["prompt"]

    def test_empty_vault_is_500(self, reader_override, advisor_override):
        reader_override(vault_node(members=[]))
        advisor_override(make_advisor(lambda request: httpx.Response(500)))

        resp = client.post("/api/ai/suggest-split", json={"totalAmount": 10})

        assert resp.status_code == 500
        assert resp.json()["detail"] == "No members to split funds among."

    def test_member_read_failure_is_500(self, reader_override):
        reader_override(failing_node)

        resp = client.post("/api/ai/suggest-split", json={"totalAmount": 10})

        assert resp.status_code == 500
        assert resp.json()["detail"].startswith("Failed to read vault members")

    def test_unconfigured_vault_is_503(self, no_vault):
        resp = client.post("/api/ai/suggest-split", json={"totalAmount": 10})
        assert resp.status_code == 503

    def test_non_positive_amount_is_400(self, reader_override):
        reader_override(vault_node())
        resp = client.post("/api/ai/suggest-split", json={"totalAmount": 0})
        assert resp.status_code == 400

    @pytest.mark.parametrize("amount", ["5", "abc", None, True])
    def test_amount_must_be_a_json_number(self, reader_override, amount):
        reader_override(vault_node())
        resp = client.post("/api/ai/suggest-split", json={"totalAmount": amount})
        assert resp.status_code == 422

    def test_advisor_error_is_500(self, reader_override, advisor_override):
        reader_override(vault_node())
        advisor_override(GeminiSplitAdvisor(""))

        resp = client.post("/api/ai/suggest-split", json={"totalAmount": 10})

        assert resp.status_code == 500
        assert resp.json()["detail"] == "AI service is not configured."
