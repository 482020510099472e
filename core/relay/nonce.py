"""Safe nonce lookup."""

import logging

from .relayer_client import RelayerClient

logger = logging.getLogger(__name__)


class NonceSource:
    """
    Fetch the next Safe nonce from the relayer.

    The relayer is the source of truth: a previous, still-unconfirmed
    submission may already hold the next value. Nothing is cached and nothing
    is incremented locally; every transaction gets a fresh lookup.
    """

    def __init__(self, relayer: RelayerClient):
        self.relayer = relayer

    async def next_nonce(self, owner_address: str) -> str:
        """Return the next unused nonce as a decimal string."""
        nonce = await self.relayer.get_nonce(owner_address)
        logger.debug(f"Next Safe nonce for {owner_address[:10]}...: {nonce}")
        return nonce
