from core.wallet.generator import WalletIdentity, compute_create2_address, derive_safe_address
from core.wallet.signer import LocalAccountSigner, RawSignature, WalletSigner

__all__ = [
    "WalletIdentity",
    "compute_create2_address",
    "derive_safe_address",
    "LocalAccountSigner",
    "RawSignature",
    "WalletSigner",
]
