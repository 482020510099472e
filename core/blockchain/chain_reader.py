"""Read-only Polygon queries for Safe deployment, approvals and balances."""

import asyncio
import logging
from typing import Any, Callable, Optional

from web3 import Web3

from config import settings
from config.constants import USDC_DECIMALS, USDC_E_ADDRESS
from core.relay.exceptions import ChainReadError

logger = logging.getLogger(__name__)

# Retry settings for RPC calls
RPC_MAX_RETRIES = 3
RPC_INITIAL_DELAY = 2.0  # seconds

# Minimal ERC20 ABI for allowance and balanceOf
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "remaining", "type": "uint256"}],
        "type": "function"
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
]

# Minimal ERC1155 ABI for isApprovedForAll check
ERC1155_ABI = [
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_operator", "type": "address"}
        ],
        "name": "isApprovedForAll",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function"
    },
]


async def _rpc_call_with_retry(fn: Callable[[], Any], description: str = "RPC call") -> Any:
    """
    Execute an RPC call with exponential backoff retry for rate limits.

    Args:
        fn: Async or sync function to call
        description: Description for logging

    Returns:
        Result of the function call

    Raises:
        ChainReadError: If the call fails for any other reason or keeps being rate limited
    """
    delay = RPC_INITIAL_DELAY

    for attempt in range(RPC_MAX_RETRIES):
        try:
            # Handle both sync and async functions
            result = fn()
            if asyncio.iscoroutine(result):
                return await result
            return result
        except Exception as e:
            error_str = str(e).lower()
            if "rate limit" in error_str and attempt < RPC_MAX_RETRIES - 1:
                logger.warning(
                    f"{description} rate limited, retrying in {delay}s (attempt {attempt + 1}/{RPC_MAX_RETRIES})"
                )
                await asyncio.sleep(delay)
                delay *= 2  # Exponential backoff
            else:
                logger.error(f"{description} failed: {e}")
                raise ChainReadError(f"{description} failed: {e}") from e


class ChainReader:
    """Read-only access to Safe state on Polygon."""

    def __init__(self, rpc_url: Optional[str] = None, w3: Optional[Web3] = None):
        """
        Initialize chain reader.

        Args:
            rpc_url: Polygon RPC URL (defaults to settings)
            w3: Pre-built Web3 instance (overrides rpc_url)
        """
        self.rpc_url = rpc_url or settings.polygon_rpc_url
        self.w3 = w3 or Web3(Web3.HTTPProvider(self.rpc_url))

    def _erc20(self, token: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC20_ABI)

    def _erc1155(self, token: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token), abi=ERC1155_ABI)

    async def is_contract(self, address: str) -> bool:
        """Check whether an address has contract code deployed."""
        code = await _rpc_call_with_retry(
            lambda: self.w3.eth.get_code(Web3.to_checksum_address(address)),
            f"Check Safe deployment for {address[:10]}..."
        )
        is_deployed = len(code) > 0
        logger.debug(f"Safe {address[:10]}... deployed: {is_deployed} (code length: {len(code)})")
        return is_deployed

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        """ERC20 allowance granted by owner to spender."""
        contract = self._erc20(token)
        return await _rpc_call_with_retry(
            lambda: contract.functions.allowance(
                Web3.to_checksum_address(owner),
                Web3.to_checksum_address(spender),
            ).call(),
            f"Check allowance for {spender[:10]}..."
        )

    async def is_approved_for_all(self, token: str, owner: str, operator: str) -> bool:
        """ERC1155 operator approval (setApprovalForAll) status."""
        contract = self._erc1155(token)
        is_approved = await _rpc_call_with_retry(
            lambda: contract.functions.isApprovedForAll(
                Web3.to_checksum_address(owner),
                Web3.to_checksum_address(operator),
            ).call(),
            f"Check operator approval for {operator[:10]}..."
        )
        return bool(is_approved)

    async def get_usdc_balance(self, address: str) -> float:
        """USDC.e balance of an address, in USDC."""
        contract = self._erc20(USDC_E_ADDRESS)
        balance_raw = await _rpc_call_with_retry(
            lambda: contract.functions.balanceOf(Web3.to_checksum_address(address)).call(),
            f"Get USDC.e balance for {address[:10]}..."
        )
        return balance_raw / (10 ** USDC_DECIMALS)

    async def get_native_balance(self, address: str) -> float:
        """POL balance of an address, in POL."""
        balance_wei = await _rpc_call_with_retry(
            lambda: self.w3.eth.get_balance(Web3.to_checksum_address(address)),
            f"Get POL balance for {address[:10]}..."
        )
        return float(Web3.from_wei(balance_wei, "ether"))
