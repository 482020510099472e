"""Per-user entry point: one owner signer, one Safe."""

import logging
from typing import Dict, List, Optional

from core.relay import ApprovalRequirement, ApprovalResult
from core.wallet import WalletIdentity, WalletSigner
from services.approval_service import ApprovalService
from services.context import RelayContext
from services.deployment_service import DeploymentResult, DeploymentService

logger = logging.getLogger(__name__)


class WalletSession:
    """
    Ties a signer to its counterfactual Safe.

    Usage:
        session = await WalletSession.open(context, signer)
        await session.ensure_approved()
    """

    def __init__(self, context: RelayContext, signer: WalletSigner, owner_address: str):
        self.context = context
        self.signer = signer
        self.identity = WalletIdentity.create(
            owner_address,
            factory_address=context.factory_address,
            init_code_hash=context.init_code_hash,
        )
        self.deployment = DeploymentService(context, signer)
        self.approvals = ApprovalService(context, signer, self.deployment)

    @classmethod
    async def open(cls, context: RelayContext, signer: WalletSigner) -> "WalletSession":
        """Create a session for the signer's own address."""
        owner_address = await signer.get_address()
        session = cls(context, signer, owner_address)
        logger.info(
            f"Wallet session opened: owner {owner_address[:10]}... -> Safe {session.identity.short_address}"
        )
        return session

    def get_wallet_address(self) -> str:
        """The Safe address, whether or not it has been deployed."""
        return self.identity.counterfactual_address

    async def is_deployed(self) -> bool:
        return await self.deployment.check_deployed(self.identity)

    async def ensure_deployed(self) -> DeploymentResult:
        return await self.deployment.ensure_deployed(self.identity)

    async def ensure_approved(self) -> ApprovalResult:
        """Deploy if needed and grant every missing trading approval."""
        return await self.approvals.ensure_approved(self.identity)

    async def get_approval_status(self) -> List[ApprovalRequirement]:
        return await self.approvals.check_approvals(self.identity)

    async def get_balances(self, address: Optional[str] = None) -> Dict[str, float]:
        """USDC.e and POL balances of the Safe (or ``address``)."""
        address = address or self.identity.counterfactual_address
        return {
            "usdc": await self.context.chain.get_usdc_balance(address),
            "pol": await self.context.chain.get_native_balance(address),
        }
