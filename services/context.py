"""Shared relay context owned by the caller and passed to each coordinator."""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from typing import Optional

from config import Settings, settings as default_settings
from core.blockchain import ChainReader
from core.relay import RelayerClient, TransactionPoller

logger = logging.getLogger(__name__)


class WalletLocks:
    """
    One asyncio.Lock per Safe address.

    Deployment and approval both consume a relayer nonce, and the relayer
    cannot order concurrent submissions from one signer, so each wallet runs
    at most one operation at a time.

    Locks are held weakly; an entry lives only while some caller holds a
    reference to its lock.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def for_wallet(self, address: str) -> asyncio.Lock:
        key = address.lower()
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock


@dataclass
class RelayContext:
    """Collaborators and protocol constants shared by the coordinators."""
    relayer: RelayerClient
    chain: ChainReader
    poller: TransactionPoller
    chain_id: int
    factory_address: str
    init_code_hash: str
    multisend_address: str
    max_nonce_retries: int = 2
    locks: WalletLocks = field(default_factory=WalletLocks)

    @classmethod
    def from_settings(
        cls,
        config: Optional[Settings] = None,
        relayer: Optional[RelayerClient] = None,
        chain: Optional[ChainReader] = None,
        poller: Optional[TransactionPoller] = None,
    ) -> "RelayContext":
        """Build a context from application settings."""
        config = config or default_settings
        if not config.has_builder_credentials:
            logger.warning("Builder credentials not configured; relayer requests are unauthenticated")

        return cls(
            relayer=relayer or RelayerClient(
                host=config.relayer_host,
                api_key=config.poly_builder_api_key,
                api_secret=config.poly_builder_secret,
                api_passphrase=config.poly_builder_passphrase,
                timeout=config.relay_request_timeout,
                max_retries=config.relay_max_retries,
            ),
            chain=chain or ChainReader(config.polygon_rpc_url),
            poller=poller or TransactionPoller(
                interval=config.relay_poll_interval,
                max_polls=config.relay_max_polls,
            ),
            chain_id=config.chain_id,
            factory_address=config.safe_factory_address,
            init_code_hash=config.safe_init_code_hash,
            multisend_address=config.safe_multisend_address,
            max_nonce_retries=config.relay_max_nonce_retries,
        )

    async def close(self):
        await self.relayer.close()
