"""Read-only access to the deployed SusuGroupVault contract."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..config import settings
from ..core.execution import EvmChainClient, VaultCallDecoder
from ..core.execution.tx_builder import GET_MEMBERS_SELECTOR, OWNER_SELECTOR, VAULT_TYPE_SELECTOR


logger = logging.getLogger(__name__)


class VaultReader:
    """Calls the vault's view functions over JSON-RPC."""

    name = "susu_vault"

    def __init__(self, client: EvmChainClient, vault_address: str) -> None:
        self.client = client
        self.vault_address = vault_address

    async def get_vault_type(self) -> str:
        result = await self.client.call(self.vault_address, VAULT_TYPE_SELECTOR)
        return VaultCallDecoder.decode_string(result)

    async def get_members(self) -> List[str]:
        result = await self.client.call(self.vault_address, GET_MEMBERS_SELECTOR)
        return VaultCallDecoder.decode_address_array(result)

    async def get_owner(self) -> str:
        result = await self.client.call(self.vault_address, OWNER_SELECTOR)
        return VaultCallDecoder.decode_address(result)

    async def get_details(self) -> Dict[str, Any]:
        vault_type, members, owner = await asyncio.gather(
            self.get_vault_type(),
            self.get_members(),
            self.get_owner(),
        )
        return {
            "address": self.vault_address,
            "vaultType": vault_type,
            "owner": owner,
            "members": members,
        }

    async def close(self) -> None:
        await self.client.close()


def build_vault_reader() -> Optional[VaultReader]:
    """Reader for the configured vault, or None when vault or RPC URL is missing."""
    rpc_url = settings.resolve_rpc_url()
    if not settings.has_vault or not rpc_url:
        logger.warning("Vault reader unavailable: VAULT_ADDRESS and RPC_URL are both required")
        return None
    client = EvmChainClient(
        rpc_url,
        chain_id=settings.chain_id,
        timeout=settings.rpc_timeout_seconds,
    )
    return VaultReader(client, settings.vault_address)
