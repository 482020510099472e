"""Batched, gasless token approvals for Safe wallets."""

import asyncio
import logging
from typing import List

from config.constants import (
    CTF_ADDRESS,
    CTF_OPERATORS,
    MAX_UINT256,
    USDC_E_ADDRESS,
    USDC_SPENDERS,
)
from core.relay import (
    ApprovalError,
    ApprovalRequirement,
    ApprovalResult,
    ApprovalTimeoutError,
    CallDescriptor,
    ERC20Approval,
    ERC1155Approval,
    NonceSource,
    RelayError,
    SafeTransactionSigner,
    StaleNonceError,
    WalletTransaction,
    batch_calls,
)
from core.relay.encoding import encode_erc20_approve, encode_set_approval_for_all
from core.wallet import WalletIdentity, WalletSigner
from services.context import RelayContext
from services.deployment_service import DeploymentService

logger = logging.getLogger(__name__)

APPROVALS_METADATA = "Set token approvals"


def required_approvals() -> List[ApprovalRequirement]:
    """
    All approvals Polymarket needs before a Safe can trade.

    USDC.e allowances for the CTF, both exchanges and the neg-risk adapter,
    plus CTF operator approval for both exchanges and the adapter.
    """
    approvals: List[ApprovalRequirement] = [
        ERC20Approval(name=name, token=USDC_E_ADDRESS, spender=spender)
        for name, spender in USDC_SPENDERS
    ]
    approvals.extend(
        ERC1155Approval(name=name, token=CTF_ADDRESS, operator=operator)
        for name, operator in CTF_OPERATORS
    )
    return approvals


def build_approval_call(requirement: ApprovalRequirement) -> CallDescriptor:
    """Build the call that satisfies one requirement."""
    if isinstance(requirement, ERC20Approval):
        return CallDescriptor(
            to=requirement.token,
            data=encode_erc20_approve(requirement.spender, MAX_UINT256),
        )
    if isinstance(requirement, ERC1155Approval):
        return CallDescriptor(
            to=requirement.token,
            data=encode_set_approval_for_all(requirement.operator, True),
        )
    raise TypeError(f"Unsupported approval requirement: {requirement!r}")


class ApprovalService:
    """
    Grants every missing approval in one relayer transaction.

    Missing approvals are batched through MultiSend when there is more than
    one, signed with a freshly fetched nonce, submitted, polled, and then
    verified on-chain rather than trusting the relayer's report.
    """

    def __init__(
        self,
        context: RelayContext,
        signer: WalletSigner,
        deployment: DeploymentService,
    ):
        self.context = context
        self.tx_signer = SafeTransactionSigner(signer, context.chain_id)
        self.nonce_source = NonceSource(context.relayer)
        self.deployment = deployment

    async def _check_one(self, wallet: WalletIdentity, requirement: ApprovalRequirement) -> ApprovalRequirement:
        owner = wallet.counterfactual_address
        if isinstance(requirement, ERC20Approval):
            allowance = await self.context.chain.get_allowance(requirement.token, owner, requirement.spender)
            return requirement.with_status(allowance > 0)
        approved = await self.context.chain.is_approved_for_all(requirement.token, owner, requirement.operator)
        return requirement.with_status(approved)

    async def check_approvals(self, wallet: WalletIdentity) -> List[ApprovalRequirement]:
        """Read the current on-chain status of every required approval."""
        approvals = await asyncio.gather(
            *(self._check_one(wallet, requirement) for requirement in required_approvals())
        )
        approved_count = sum(1 for a in approvals if a.satisfied)
        logger.info(f"Approvals for Safe {wallet.short_address}: {approved_count}/{len(approvals)}")
        return list(approvals)

    async def ensure_approved(self, wallet: WalletIdentity) -> ApprovalResult:
        """
        Make sure every required approval is set, deploying the Safe first if needed.

        Raises:
            SigningDeclinedError: If the owner refuses to sign
            SubmissionUncertainError: If /execute failed in a way that may have been accepted
            TransactionFailedError: If the relayer reports the transaction FAILED
            ApprovalError: If approvals are still missing after success
            ApprovalTimeoutError: If polling timed out and approvals are still missing
        """
        async with self.context.locks.for_wallet(wallet.counterfactual_address):
            approvals = await self.check_approvals(wallet)
            pending = [a for a in approvals if not a.satisfied]
            if not pending:
                logger.info(f"All approvals already set for Safe {wallet.short_address}")
                return ApprovalResult(submitted=False, approvals=approvals)

            await self.deployment.deploy_locked(wallet)

            calls = [build_approval_call(a) for a in pending]
            call = batch_calls(calls, self.context.multisend_address)
            logger.info(
                f"Approving {len(pending)} contracts for Safe {wallet.short_address} "
                f"({'multisend' if len(calls) > 1 else 'single call'})"
            )

            transaction_id = await self._submit(wallet, call)

            try:
                poll = await self.context.poller.poll(transaction_id, self.context.relayer.get_transaction)

                approvals = await self.check_approvals(wallet)
                missing = [a.name for a in approvals if not a.satisfied]
                if missing:
                    error_class = ApprovalTimeoutError if poll.timed_out else ApprovalError
                    raise error_class(
                        f"Approvals still missing: {', '.join(missing)}",
                        stage="verifying",
                        transaction_id=transaction_id,
                    )
            except RelayError as e:
                if e.transaction_id is None:
                    e.transaction_id = transaction_id
                logger.error(f"Approval transaction failed for Safe {wallet.short_address}: {e}")
                raise

            logger.info(f"All approvals set for Safe {wallet.short_address} (tx {transaction_id})")
            return ApprovalResult(
                submitted=True,
                approvals=approvals,
                transaction_id=transaction_id,
                timed_out=poll.timed_out,
            )

    async def _submit(self, wallet: WalletIdentity, call: CallDescriptor) -> str:
        """
        Sign and submit ``call`` with a fresh nonce.

        A stale-nonce rejection rebuilds and re-signs the whole transaction
        with a newly fetched nonce; a signed payload is never resubmitted.
        """
        max_attempts = self.context.max_nonce_retries + 1

        for attempt in range(1, max_attempts + 1):
            nonce = await self.nonce_source.next_nonce(wallet.owner_address)
            tx = WalletTransaction.from_call(call, nonce=int(nonce))
            signed = await self.tx_signer.sign_transaction(
                wallet.owner_address,
                wallet.counterfactual_address,
                tx,
            )
            try:
                return await self.context.relayer.execute(signed, metadata=APPROVALS_METADATA)
            except StaleNonceError as e:
                if attempt >= max_attempts:
                    logger.error(f"Nonce {nonce} rejected, giving up after {attempt} attempts")
                    raise
                logger.warning(
                    f"Nonce {nonce} rejected for Safe {wallet.short_address} ({e.message}), "
                    f"re-signing (attempt {attempt}/{max_attempts})"
                )
