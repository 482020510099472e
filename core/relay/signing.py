"""
Safe transaction and proxy-deployment signing.

Safe transactions are hashed locally following the Gnosis Safe EIP-712
layout and then signed as an opaque 32-byte message (EIP-191 personal
sign), because the owner's signing environment does not sign SafeTx typed
data natively. The Safe accepts such signatures only when v is shifted
into 31/32; with v left at 27/28 the Safe runs plain ecrecover over the
unprefixed hash and rejects the signature without any other symptom.

Proxy deployment uses real EIP-712 typed-data signing under the factory's
own domain and needs no adjustment.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Tuple, Union

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from config.constants import SAFE_FACTORY_DOMAIN_NAME, ZERO_ADDRESS
from .encoding import hex_to_bytes
from .exceptions import SigningDeclinedError
from .models import SignedWalletTransaction, WalletTransaction

if TYPE_CHECKING:
    from core.wallet.signer import WalletSigner

logger = logging.getLogger(__name__)

# Domain type: EIP712Domain(uint256 chainId,address verifyingContract)
DOMAIN_SEPARATOR_TYPEHASH = keccak(
    b"EIP712Domain(uint256 chainId,address verifyingContract)"
)

SAFE_TX_TYPEHASH = keccak(
    b"SafeTx(address to,uint256 value,bytes data,uint8 operation,"
    b"uint256 safeTxGas,uint256 baseGas,uint256 gasPrice,"
    b"address gasToken,address refundReceiver,uint256 nonce)"
)

# EIP-712 types for CreateProxy (3 fields, no owner)
CREATE_PROXY_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "CreateProxy": [
        {"name": "paymentToken", "type": "address"},
        {"name": "payment", "type": "uint256"},
        {"name": "paymentReceiver", "type": "address"},
    ],
}

# Added to v so the Safe treats the signature as eth_sign over the hash
ETH_SIGN_V_OFFSET = 4


def compute_safe_tx_hash(
    safe_address: str,
    tx: WalletTransaction,
    chain_id: int,
) -> bytes:
    """
    Compute the EIP-712 hash of a SafeTx.

    keccak256("\\x19\\x01" || domainSeparator || structHash), where the domain
    is keyed by chain id and the Safe address.

    Returns:
        The 32-byte hash
    """
    domain_separator = keccak(
        encode(
            ["bytes32", "uint256", "address"],
            [
                DOMAIN_SEPARATOR_TYPEHASH,
                chain_id,
                to_checksum_address(safe_address),
            ],
        )
    )

    struct_hash = keccak(
        encode(
            [
                "bytes32",  # typehash
                "address",  # to
                "uint256",  # value
                "bytes32",  # keccak256(data)
                "uint8",    # operation
                "uint256",  # safeTxGas
                "uint256",  # baseGas
                "uint256",  # gasPrice
                "address",  # gasToken
                "address",  # refundReceiver
                "uint256",  # nonce
            ],
            [
                SAFE_TX_TYPEHASH,
                to_checksum_address(tx.to),
                tx.value,
                keccak(hex_to_bytes(tx.data)),
                int(tx.operation),
                tx.safe_tx_gas,
                tx.base_gas,
                tx.gas_price,
                to_checksum_address(tx.gas_token),
                to_checksum_address(tx.refund_receiver),
                tx.nonce,
            ],
        )
    )

    return keccak(b"\x19\x01" + domain_separator + struct_hash)


def split_signature(signature: Union[str, bytes, Tuple[int, int, int]]) -> Tuple[int, int, int]:
    """Split a 65-byte signature (hex or bytes) or pass an (r, s, v) tuple through."""
    if isinstance(signature, tuple):
        r, s, v = signature
        return int(r), int(s), int(v)

    raw = hex_to_bytes(signature) if isinstance(signature, str) else bytes(signature)
    if len(raw) != 65:
        raise ValueError(f"Signature must be 65 bytes, got {len(raw)}")

    r = int.from_bytes(raw[0:32], byteorder="big")
    s = int.from_bytes(raw[32:64], byteorder="big")
    v = raw[64]
    return r, s, v


def split_and_pack_signature(signature: Union[str, bytes, Tuple[int, int, int]]) -> str:
    """
    Split signature and pack in Gnosis Safe eth_sign format.

    - r and s are packed as uint256 (32 bytes each)
    - v is normalized: if v is 0-1, add 31; if v is 27-28, add 4
    - Final format is encodePacked(uint256 r, uint256 s, uint8 v) = 65 bytes

    Args:
        signature: Raw message-hash signature (hex, bytes, or (r, s, v))

    Returns:
        Packed signature in hex format with 0x prefix

    Raises:
        ValueError: If v is not a recovery id produced by message signing
    """
    r, s, v = split_signature(signature)

    if v in (0, 1):
        v = v + 27 + ETH_SIGN_V_OFFSET
    elif v in (27, 28):
        v = v + ETH_SIGN_V_OFFSET
    else:
        raise ValueError(f"Invalid v value in signature: {v}")

    packed = (
        r.to_bytes(32, byteorder="big")
        + s.to_bytes(32, byteorder="big")
        + v.to_bytes(1, byteorder="big")
    )
    return "0x" + packed.hex()


def build_create_proxy_typed_data(factory_address: str, chain_id: int) -> Dict[str, Any]:
    """
    Build the zero-payment CreateProxy message for gasless deployment.

    The domain belongs to the proxy factory, not to the Safe being created.
    """
    return {
        "types": CREATE_PROXY_TYPES,
        "primaryType": "CreateProxy",
        "domain": {
            "name": SAFE_FACTORY_DOMAIN_NAME,
            "chainId": chain_id,
            "verifyingContract": to_checksum_address(factory_address),
        },
        "message": {
            "paymentToken": ZERO_ADDRESS,
            "payment": 0,
            "paymentReceiver": ZERO_ADDRESS,
        },
    }


def _to_hex_signature(signature: Union[str, bytes, Tuple[int, int, int]]) -> str:
    """Pack a typed-data signature as 0x-hex with v in 27/28."""
    r, s, v = split_signature(signature)
    if v in (0, 1):
        v += 27
    elif v not in (27, 28):
        raise ValueError(f"Invalid v value in signature: {v}")
    packed = r.to_bytes(32, "big") + s.to_bytes(32, "big") + v.to_bytes(1, "big")
    return "0x" + packed.hex()


class SafeTransactionSigner:
    """Signs SafeTx structs and CreateProxy messages with the owner's signer."""

    def __init__(self, signer: "WalletSigner", chain_id: int):
        self.signer = signer
        self.chain_id = chain_id

    async def sign_transaction(
        self,
        owner_address: str,
        safe_address: str,
        tx: WalletTransaction,
    ) -> SignedWalletTransaction:
        """Hash, sign and pack a SafeTx."""
        tx_hash = compute_safe_tx_hash(safe_address, tx, self.chain_id)
        logger.debug(
            f"Signing SafeTx {tx_hash.hex()[:16]}... for Safe {safe_address[:10]}... nonce={tx.nonce}"
        )

        raw_signature = await self._call_signer(self.signer.sign_message_hash(tx_hash))

        return SignedWalletTransaction(
            transaction=tx,
            signature=split_and_pack_signature(raw_signature),
            owner_address=to_checksum_address(owner_address),
            wallet_address=to_checksum_address(safe_address),
        )

    async def sign_create_proxy(self, factory_address: str) -> str:
        """Sign the CreateProxy message and return a 0x-hex signature."""
        typed_data = build_create_proxy_typed_data(factory_address, self.chain_id)
        raw_signature = await self._call_signer(self.signer.sign_typed_data(typed_data))
        return _to_hex_signature(raw_signature)

    @staticmethod
    async def _call_signer(awaitable):
        try:
            return await awaitable
        except SigningDeclinedError as e:
            if e.stage is None:
                e.stage = "signing"
            raise
