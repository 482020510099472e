"""Calldata encoders for token approval calls."""

from eth_abi import encode
from eth_utils import to_checksum_address

from config.constants import APPROVE_SELECTOR, SET_APPROVAL_FOR_ALL_SELECTOR


def encode_erc20_approve(spender: str, amount: int) -> str:
    """
    Encode ERC20 approve function call.

    Args:
        spender: Address to approve
        amount: Amount to approve (in smallest unit)

    Returns:
        Hex-encoded calldata
    """
    params = encode(
        ["address", "uint256"],
        [to_checksum_address(spender), amount]
    )
    return APPROVE_SELECTOR + params.hex()


def encode_set_approval_for_all(operator: str, approved: bool) -> str:
    """
    Encode ERC1155 setApprovalForAll function call.

    Used to grant operator approval for conditional tokens (CTF).

    Args:
        operator: Operator address to approve
        approved: True to approve, False to revoke

    Returns:
        Hex-encoded calldata
    """
    params = encode(
        ["address", "bool"],
        [to_checksum_address(operator), approved]
    )
    return SET_APPROVAL_FOR_ALL_SELECTOR + params.hex()


def hex_to_bytes(data: str) -> bytes:
    """Decode 0x-prefixed (or bare) hex calldata."""
    return bytes.fromhex(data[2:] if data.startswith("0x") else data)
