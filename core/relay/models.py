"""Data models for Safe relay transactions."""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Union

from config.constants import ZERO_ADDRESS


class OperationType(IntEnum):
    """Safe operation kind."""
    CALL = 0
    DELEGATE_CALL = 1


class RelayTransactionState(Enum):
    """Lifecycle of a relayer transaction."""
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    MINED = "MINED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"

    @classmethod
    def from_relayer(cls, raw: Optional[str]) -> "RelayTransactionState":
        """
        Map a relayer state string to a RelayTransactionState.

        Accepts both the relayer's ``STATE_*`` names and bare names.
        Unknown values are treated as still pending.
        """
        if not raw:
            return cls.PENDING
        name = str(raw).upper()
        if name.startswith("STATE_"):
            name = name[len("STATE_"):]
        return _RELAYER_STATE_ALIASES.get(name, cls.PENDING)

    @property
    def is_success(self) -> bool:
        return self in (RelayTransactionState.MINED, RelayTransactionState.CONFIRMED)


_RELAYER_STATE_ALIASES = {
    "NEW": RelayTransactionState.PENDING,
    "PENDING": RelayTransactionState.PENDING,
    "EXECUTED": RelayTransactionState.SUBMITTED,
    "SUBMITTED": RelayTransactionState.SUBMITTED,
    "MINED": RelayTransactionState.MINED,
    "CONFIRMED": RelayTransactionState.CONFIRMED,
    "FAILED": RelayTransactionState.FAILED,
    "INVALID": RelayTransactionState.FAILED,
}


@dataclass(frozen=True)
class CallDescriptor:
    """A single call to be executed by the Safe."""
    to: str
    data: str
    value: int = 0
    operation: OperationType = OperationType.CALL


@dataclass(frozen=True)
class WalletTransaction:
    """
    SafeTx struct signed by the owner and submitted to the relayer.

    Gas fields stay at zero because the relayer pays; only ``to``, ``data``,
    ``operation`` and ``nonce`` vary between transactions.
    """
    to: str
    data: str
    nonce: int
    value: int = 0
    operation: OperationType = OperationType.CALL
    safe_tx_gas: int = 0
    base_gas: int = 0
    gas_price: int = 0
    gas_token: str = ZERO_ADDRESS
    refund_receiver: str = ZERO_ADDRESS

    @classmethod
    def from_call(cls, call: CallDescriptor, nonce: int) -> "WalletTransaction":
        return cls(
            to=call.to,
            data=call.data,
            value=call.value,
            operation=call.operation,
            nonce=nonce,
        )

    def signature_params(self) -> Dict[str, str]:
        """Signature parameters in the relayer's wire format."""
        return {
            "gasPrice": str(self.gas_price),
            "operation": str(int(self.operation)),
            "safeTxnGas": str(self.safe_tx_gas),
            "baseGas": str(self.base_gas),
            "gasToken": self.gas_token,
            "refundReceiver": self.refund_receiver,
        }


@dataclass(frozen=True)
class SignedWalletTransaction:
    """A WalletTransaction with its packed Safe signature."""
    transaction: WalletTransaction
    signature: str
    owner_address: str
    wallet_address: str


@dataclass
class RelayTransactionRecord:
    """Relayer view of a submitted transaction."""
    transaction_id: str
    state: RelayTransactionState = RelayTransactionState.PENDING
    transaction_hash: Optional[str] = None
    proxy_address: Optional[str] = None
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def from_api(cls, transaction_id: str, payload: Dict[str, Any]) -> "RelayTransactionRecord":
        """Build a record from a /transaction response object."""
        return cls(
            transaction_id=transaction_id,
            state=RelayTransactionState.from_relayer(payload.get("state")),
            transaction_hash=(
                payload.get("transactionHash")
                or payload.get("txHash")
                or payload.get("hash")
            ),
            proxy_address=payload.get("proxyAddress"),
            data=payload,
        )

    @property
    def is_terminal(self) -> bool:
        return self.state.is_success or self.state == RelayTransactionState.FAILED


@dataclass
class PollResult:
    """
    Outcome of polling a relayer transaction.

    ``timed_out`` means the poll budget ran out without a terminal state.
    It is not a failure: the transaction may still land.
    """
    record: RelayTransactionRecord
    attempts: int
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.timed_out and self.record.state.is_success


@dataclass
class ERC20Approval:
    """Collateral allowance granted to a spender."""
    name: str
    token: str
    spender: str
    satisfied: bool = False

    def with_status(self, satisfied: bool) -> "ERC20Approval":
        return replace(self, satisfied=satisfied)


@dataclass
class ERC1155Approval:
    """Outcome-token operator approval."""
    name: str
    token: str
    operator: str
    satisfied: bool = False

    def with_status(self, satisfied: bool) -> "ERC1155Approval":
        return replace(self, satisfied=satisfied)


ApprovalRequirement = Union[ERC20Approval, ERC1155Approval]


@dataclass
class ApprovalResult:
    """Result of an approval run."""
    submitted: bool
    approvals: List[ApprovalRequirement] = field(default_factory=list)
    transaction_id: Optional[str] = None
    timed_out: bool = False

    @property
    def all_approved(self) -> bool:
        return bool(self.approvals) and all(a.satisfied for a in self.approvals)
