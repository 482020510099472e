"""Gasless Safe relay client."""

from .exceptions import (
    RelayError,
    SigningDeclinedError,
    RelayUnavailableError,
    SubmissionUncertainError,
    RelayRequestError,
    StaleNonceError,
    RelayResponseError,
    ChainReadError,
    TransactionFailedError,
    DeploymentError,
    ApprovalError,
    ApprovalTimeoutError,
)
from .models import (
    OperationType,
    RelayTransactionState,
    CallDescriptor,
    WalletTransaction,
    SignedWalletTransaction,
    RelayTransactionRecord,
    PollResult,
    ERC20Approval,
    ERC1155Approval,
    ApprovalRequirement,
    ApprovalResult,
)
from .multisend import batch_calls, encode_multisend, decode_multisend
from .signing import (
    SafeTransactionSigner,
    compute_safe_tx_hash,
    split_and_pack_signature,
    build_create_proxy_typed_data,
)
from .relayer_client import RelayerClient
from .nonce import NonceSource
from .poller import TransactionPoller

__all__ = [
    "RelayError",
    "SigningDeclinedError",
    "RelayUnavailableError",
    "SubmissionUncertainError",
    "RelayRequestError",
    "StaleNonceError",
    "RelayResponseError",
    "ChainReadError",
    "TransactionFailedError",
    "DeploymentError",
    "ApprovalError",
    "ApprovalTimeoutError",
    "OperationType",
    "RelayTransactionState",
    "CallDescriptor",
    "WalletTransaction",
    "SignedWalletTransaction",
    "RelayTransactionRecord",
    "PollResult",
    "ERC20Approval",
    "ERC1155Approval",
    "ApprovalRequirement",
    "ApprovalResult",
    "batch_calls",
    "encode_multisend",
    "decode_multisend",
    "SafeTransactionSigner",
    "compute_safe_tx_hash",
    "split_and_pack_signature",
    "build_create_proxy_typed_data",
    "RelayerClient",
    "NonceSource",
    "TransactionPoller",
]
