"""Owner signing capability consumed by the relay client.

The session provider hands the relay client an already-unlocked signer. Two
modes are required:

- message-hash signing (EIP-191 personal sign over a 32-byte digest), used for
  Safe transactions
- EIP-712 typed-data signing, used for the proxy factory's CreateProxy message
"""

from typing import Any, Dict, Protocol, Tuple, Union

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data


# A signature as returned by a signer: hex string, raw 65 bytes, or (r, s, v)
RawSignature = Union[str, bytes, Tuple[int, int, int]]


class WalletSigner(Protocol):
    """Protocol for owner signers (local keys, browser wallets, MPC, ...)."""

    async def get_address(self) -> str:
        """Get the signer's address."""
        ...

    async def sign_message_hash(self, message_hash: bytes) -> RawSignature:
        """Sign a 32-byte hash with the EIP-191 personal-message prefix."""
        ...

    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> RawSignature:
        """
        Sign EIP-712 typed data.

        Args:
            typed_data: Dict with types, primaryType, domain and message
        """
        ...


class LocalAccountSigner:
    """WalletSigner backed by an in-process eth_account key."""

    def __init__(self, private_key: str):
        # Ensure private key has 0x prefix
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def get_address(self) -> str:
        return self._account.address

    async def sign_message_hash(self, message_hash: bytes) -> bytes:
        if len(message_hash) != 32:
            raise ValueError(f"Expected a 32-byte hash, got {len(message_hash)} bytes")
        signed = self._account.sign_message(encode_defunct(primitive=message_hash))
        return bytes(signed.signature)

    async def sign_typed_data(self, typed_data: Dict[str, Any]) -> bytes:
        signable = encode_typed_data(full_message=typed_data)
        signed = self._account.sign_message(signable)
        return bytes(signed.signature)
