"""
Nonce management for the relay account.

The counter is only ever moved forward by one after a confirmed
transaction, and only ever reset from the chain's own transaction count.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from .chain_client import ChainClient, NonceNotInitializedError


logger = logging.getLogger(__name__)


@dataclass
class NonceState:
    """Tracks nonce state for the relay account."""
    address: str
    next_nonce: Optional[int] = None            # Next nonce to sign with
    last_synced: Optional[datetime] = None
    sync_count: int = 0


class NonceManager:
    """
    Owns the next-nonce counter for a single account.

    Not safe for concurrent use on its own: callers must hold the
    submitter's in-flight lock while reading or moving the counter.
    """

    def __init__(self, client: ChainClient, address: str):
        self._client = client
        self._state = NonceState(address=address)

    @property
    def address(self) -> str:
        return self._state.address

    @property
    def current(self) -> Optional[int]:
        return self._state.next_nonce

    @property
    def is_synced(self) -> bool:
        return self._state.next_nonce is not None

    @property
    def state(self) -> NonceState:
        return replace(self._state)

    async def sync(self) -> int:
        """
        Replace the local counter with the chain's transaction count.

        Returns:
            The freshly synced next nonce
        """
        on_chain_nonce = await self._client.get_transaction_count(self._state.address)
        previous = self._state.next_nonce

        self._state.next_nonce = on_chain_nonce
        self._state.last_synced = datetime.now(timezone.utc)
        self._state.sync_count += 1

        if previous is None:
            logger.info(f"Nonce initialised for {self.address}: {on_chain_nonce}")
        elif previous != on_chain_nonce:
            logger.warning(
                f"Nonce resynced for {self.address}: local={previous} chain={on_chain_nonce}"
            )
        else:
            logger.info(f"Nonce resynced for {self.address}: unchanged at {on_chain_nonce}")
        return on_chain_nonce

    def reserve(self) -> int:
        """Nonce to sign the next transaction with. Does not move the counter."""
        if self._state.next_nonce is None:
            raise NonceNotInitializedError(f"Nonce for {self.address} has not been synced")
        return self._state.next_nonce

    def advance(self, used_nonce: int) -> Optional[int]:
        """Move past ``used_nonce`` once its transaction is confirmed."""
        if self._state.next_nonce != used_nonce:
            logger.warning(
                f"Ignoring confirmation for nonce {used_nonce}; counter is at {self._state.next_nonce}"
            )
            return self._state.next_nonce
        self._state.next_nonce = used_nonce + 1
        return self._state.next_nonce

    def invalidate(self) -> None:
        """Forget the counter so it is re-read before the next transaction."""
        self._state.next_nonce = None
