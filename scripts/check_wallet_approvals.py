#!/usr/bin/env python3
"""
Diagnostic script to check deployment and approval status of an owner's Safe.

Usage:
    python scripts/check_wallet_approvals.py <owner_address>
    PRIVATE_KEY=0x... python scripts/check_wallet_approvals.py <owner_address> --setup

With --setup the Safe is deployed if needed and all missing approvals are
granted through the relayer. The private key must belong to the owner.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.relay import RelayError
from core.wallet import LocalAccountSigner, WalletIdentity
from services import ApprovalService, DeploymentService, RelayContext, WalletSession

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


async def show_status(context: RelayContext, owner_address: str) -> bool:
    """Print the Safe's status. Returns True if every approval is set."""
    wallet = WalletIdentity.create(owner_address, context.factory_address, context.init_code_hash)
    # Read-only: no signer needed for status checks
    deployment = DeploymentService(context, signer=None)
    approvals = ApprovalService(context, signer=None, deployment=deployment)

    print(f"\n{'='*60}")
    print(f"Owner: {wallet.owner_address}")
    print(f"Safe:  {wallet.counterfactual_address}")
    print(f"{'='*60}\n")

    is_deployed = await deployment.check_deployed(wallet)
    print(f"Safe Deployed: {'✅ YES' if is_deployed else '❌ NO'}")

    balance = await context.chain.get_usdc_balance(wallet.counterfactual_address)
    print(f"USDC Balance: ${balance:.2f}")
    print()

    print("Approvals:")
    print("-" * 40)
    status = await approvals.check_approvals(wallet)
    for approval in status:
        print(f"  {approval.name}: {'✅ APPROVED' if approval.satisfied else '❌ MISSING'}")
    print()

    passed = sum(1 for a in status if a.satisfied)
    print("=" * 60)
    if passed == len(status):
        print(f"✅ ALL {len(status)} APPROVALS SET - Ready for trading")
    else:
        print(f"❌ MISSING APPROVALS: {passed}/{len(status)} approved")
        print("\nRun again with --setup to grant them through the relayer.")
    print("=" * 60)
    return passed == len(status)


async def setup(context: RelayContext, private_key: str, owner_address: str):
    signer = LocalAccountSigner(private_key)
    if signer.address.lower() != owner_address.lower():
        print(f"Error: PRIVATE_KEY belongs to {signer.address}, not {owner_address}")
        sys.exit(1)

    session = await WalletSession.open(context, signer)
    result = await session.ensure_approved()
    if result.submitted:
        print(f"\nApprovals submitted (tx {result.transaction_id})")
    else:
        print("\nNothing to do, all approvals already set")


async def main():
    load_dotenv()

    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if not args:
        print(__doc__)
        sys.exit(1)
    owner_address = args[0]

    context = RelayContext.from_settings()
    try:
        if "--setup" in sys.argv:
            private_key = os.getenv("PRIVATE_KEY")
            if not private_key:
                print("Error: PRIVATE_KEY not set in environment")
                sys.exit(1)
            await setup(context, private_key, owner_address)
        await show_status(context, owner_address)
    except RelayError as e:
        logger.error(f"Relay error: {e}")
        sys.exit(1)
    finally:
        await context.close()


if __name__ == "__main__":
    asyncio.run(main())
