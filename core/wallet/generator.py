"""Counterfactual Safe address derivation."""

from dataclasses import dataclass
from typing import Union

from eth_abi import encode
from eth_utils import is_address, keccak, to_checksum_address

from config.constants import SAFE_FACTORY_ADDRESS, SAFE_INIT_CODE_HASH


def compute_create2_address(deployer: str, salt: bytes, init_code_hash: Union[str, bytes]) -> str:
    """CREATE2 address: keccak256(0xff ++ deployer ++ salt ++ init_code_hash)[12:]."""
    if isinstance(init_code_hash, str):
        init_code_hash = bytes.fromhex(init_code_hash[2:] if init_code_hash.startswith("0x") else init_code_hash)
    if len(salt) != 32 or len(init_code_hash) != 32:
        raise ValueError("CREATE2 salt and init code hash must be 32 bytes")

    create2_input = b"\xff" + bytes.fromhex(to_checksum_address(deployer)[2:]) + salt + init_code_hash
    return to_checksum_address("0x" + keccak(create2_input)[12:].hex())


def derive_safe_address(
    owner_address: str,
    factory_address: str = SAFE_FACTORY_ADDRESS,
    init_code_hash: str = SAFE_INIT_CODE_HASH,
) -> str:
    """
    Derive Safe address from an owner EOA using CREATE2.

    Uses Polymarket's SafeProxyFactory contract on Polygon.
    The Safe address is deterministic - same owner always produces same Safe,
    so it can be shown and funded before the proxy exists on-chain.

    Args:
        owner_address: EOA (signer) address
        factory_address: Safe proxy factory address
        init_code_hash: keccak256 of the proxy creation code

    Returns:
        Checksummed Safe wallet address

    Raises:
        ValueError: If either address is invalid or the init code hash is not 32 bytes
    """
    if not is_address(owner_address):
        raise ValueError(f"Invalid owner address: {owner_address}")
    if not is_address(factory_address):
        raise ValueError(f"Invalid factory address: {factory_address}")

    # Salt = keccak256(abi.encode(owner)), the address left-padded to 32 bytes
    salt = keccak(encode(["address"], [to_checksum_address(owner_address)]))
    return compute_create2_address(factory_address, salt, init_code_hash)


@dataclass
class WalletIdentity:
    """
    Owner EOA and its counterfactual Safe.

    ``counterfactual_address`` is fixed by the owner and factory; ``deployed``
    is the only field that changes and is always refreshed from the relayer
    or the chain.
    """
    owner_address: str
    factory_address: str
    counterfactual_address: str
    deployed: bool = False

    @classmethod
    def create(
        cls,
        owner_address: str,
        factory_address: str = SAFE_FACTORY_ADDRESS,
        init_code_hash: str = SAFE_INIT_CODE_HASH,
    ) -> "WalletIdentity":
        return cls(
            owner_address=to_checksum_address(owner_address),
            factory_address=to_checksum_address(factory_address),
            counterfactual_address=derive_safe_address(
                owner_address, factory_address, init_code_hash
            ),
        )

    @property
    def short_address(self) -> str:
        return f"{self.counterfactual_address[:10]}..."
