"""Gasless Safe deployment via the Polymarket relayer."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from core.relay import (
    DeploymentError,
    RelayError,
    RelayUnavailableError,
    SafeTransactionSigner,
)
from core.wallet import WalletIdentity, WalletSigner
from services.context import RelayContext

logger = logging.getLogger(__name__)


class DeploymentState(Enum):
    """Deployment progress."""
    NOT_DEPLOYED = "NOT_DEPLOYED"
    CHECKING = "CHECKING"
    SIGNING = "SIGNING"
    SUBMITTING = "SUBMITTING"
    POLLING = "POLLING"
    DEPLOYED = "DEPLOYED"
    FAILED = "FAILED"


@dataclass
class DeploymentResult:
    """Result of a deployment run."""
    state: DeploymentState
    transaction_id: Optional[str] = None
    transitions: List[DeploymentState] = field(default_factory=list)

    @property
    def submitted(self) -> bool:
        return self.transaction_id is not None


class DeploymentService:
    """
    Deploys a user's Safe without the user paying gas.

    Flow: CHECKING -> SIGNING -> SUBMITTING -> POLLING -> DEPLOYED | FAILED.
    Already-deployed Safes short-circuit to DEPLOYED, so calling this more
    than once is safe.
    """

    def __init__(
        self,
        context: RelayContext,
        signer: WalletSigner,
        on_state_change: Optional[Callable[[DeploymentState], None]] = None,
    ):
        self.context = context
        self.tx_signer = SafeTransactionSigner(signer, context.chain_id)
        self.on_state_change = on_state_change

    def _enter(self, transitions: List[DeploymentState], state: DeploymentState) -> None:
        transitions.append(state)
        logger.debug(f"Deployment state -> {state.value}")
        if self.on_state_change:
            self.on_state_change(state)

    async def check_deployed(self, wallet: WalletIdentity) -> bool:
        """
        Ask the relayer whether the Safe exists; fall back to an on-chain
        code check if the relayer call fails.
        """
        address = wallet.counterfactual_address
        try:
            deployed = await self.context.relayer.is_deployed(address)
        except RelayError as e:
            logger.warning(
                f"Relayer deployment check failed for {address[:10]}... ({e.message}), "
                f"checking on-chain"
            )
            deployed = await self.context.chain.is_contract(address)

        wallet.deployed = deployed
        return deployed

    async def ensure_deployed(self, wallet: WalletIdentity) -> DeploymentResult:
        """Deploy the Safe if needed, holding the wallet lock."""
        async with self.context.locks.for_wallet(wallet.counterfactual_address):
            return await self.deploy_locked(wallet)

    async def deploy_locked(self, wallet: WalletIdentity) -> DeploymentResult:
        """
        Deploy the Safe if needed. The caller must hold the wallet lock.

        Raises:
            SigningDeclinedError: If the owner refuses to sign
            TransactionFailedError: If the relayer reports the deployment FAILED
            SubmissionUncertainError: If /deploy failed in a way that may have been accepted
            DeploymentError: If the Safe is still missing after a poll timeout or
                a relayer outage while polling
        """
        transitions = [DeploymentState.NOT_DEPLOYED]
        transaction_id = None

        try:
            self._enter(transitions, DeploymentState.CHECKING)
            if await self.check_deployed(wallet):
                logger.info(f"Safe {wallet.short_address} already deployed")
                self._enter(transitions, DeploymentState.DEPLOYED)
                return DeploymentResult(DeploymentState.DEPLOYED, transitions=transitions)

            logger.info(f"Safe {wallet.short_address} not deployed yet, deploying...")

            self._enter(transitions, DeploymentState.SIGNING)
            signature = await self.tx_signer.sign_create_proxy(wallet.factory_address)

            self._enter(transitions, DeploymentState.SUBMITTING)
            transaction_id = await self.context.relayer.deploy(
                owner_address=wallet.owner_address,
                signature=signature,
                safe_address=wallet.counterfactual_address,
                factory_address=wallet.factory_address,
            )

            self._enter(transitions, DeploymentState.POLLING)
            try:
                poll = await self.context.poller.poll(transaction_id, self.context.relayer.get_transaction)
            except RelayUnavailableError as e:
                logger.warning(f"Relayer status for deployment {transaction_id} unavailable: {e.message}")
                poll = None

            if poll is None or poll.timed_out:
                # The deployment may have landed without the relayer reporting it
                logger.warning(
                    f"Deployment {transaction_id} not confirmed by relayer, re-checking {wallet.short_address}"
                )
                self._enter(transitions, DeploymentState.CHECKING)
                if not await self.check_deployed(wallet):
                    raise DeploymentError(
                        "Safe deployment not confirmed by relayer or chain",
                        stage="polling",
                        transaction_id=transaction_id,
                    )
            else:
                proxy_address = poll.record.proxy_address
                if proxy_address and proxy_address.lower() != wallet.counterfactual_address.lower():
                    raise DeploymentError(
                        f"Relayer deployed {proxy_address}, expected {wallet.counterfactual_address}",
                        stage="polling",
                        transaction_id=transaction_id,
                    )

        except RelayError as e:
            if e.transaction_id is None:
                e.transaction_id = transaction_id
            logger.error(f"Safe deployment failed for {wallet.short_address}: {e}")
            self._enter(transitions, DeploymentState.FAILED)
            raise

        wallet.deployed = True
        self._enter(transitions, DeploymentState.DEPLOYED)
        logger.info(f"Safe {wallet.short_address} deployed (tx {transaction_id})")
        return DeploymentResult(
            DeploymentState.DEPLOYED,
            transaction_id=transaction_id,
            transitions=transitions,
        )
