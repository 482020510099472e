"""
Relay client exceptions.

Every error raised by the relay client derives from ``RelayError`` and carries
the stage that was reached and, once one exists, the relayer transaction id.
Callers use both to decide whether a retry is safe.

Exception Hierarchy:
    RelayError
    ├── SigningDeclinedError
    ├── RelayUnavailableError
    │   └── SubmissionUncertainError
    ├── RelayRequestError
    │   └── StaleNonceError
    ├── RelayResponseError
    ├── ChainReadError
    ├── TransactionFailedError
    ├── DeploymentError
    └── ApprovalError
        └── ApprovalTimeoutError
"""

from typing import Optional


class RelayError(Exception):
    """Root exception for the relay client."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.transaction_id = transaction_id

    def __str__(self) -> str:
        parts = [self.message]
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.transaction_id:
            parts.append(f"transaction_id={self.transaction_id}")
        return " | ".join(parts)


class SigningDeclinedError(RelayError):
    """
    Raised when the key holder refuses to sign.

    Never retried automatically; nothing has been submitted.
    """


class RelayUnavailableError(RelayError):
    """
    Raised when the relayer cannot be reached or answers with a 5xx.

    Reads (nonce, deployment status, transaction status) have no side effects
    and may be repeated. A failed submission raises SubmissionUncertainError
    instead.
    """


class SubmissionUncertainError(RelayUnavailableError):
    """
    Raised when a POST to /deploy or /execute fails in transport or with a 5xx.

    The relayer may still have accepted the payload, so the nonce may be
    consumed. Check deployment or approval state before submitting again.
    """


class RelayRequestError(RelayError):
    """Raised when the relayer rejects a request with a 4xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        stage: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ):
        super().__init__(message, stage=stage, transaction_id=transaction_id)
        self.status_code = status_code


class StaleNonceError(RelayRequestError):
    """
    Raised when the relayer rejects a submission because its nonce was
    already consumed.

    Recovery requires fetching a fresh nonce and re-signing the whole
    transaction, since the nonce is part of the signed hash.
    """


class RelayResponseError(RelayError):
    """Raised when a relayer response cannot be parsed."""


class ChainReadError(RelayError):
    """Raised when a read-only RPC call against the chain fails."""


class TransactionFailedError(RelayError):
    """
    Raised when the relayer reports a submitted transaction as FAILED.

    The signed payload must not be resubmitted; a retry needs a new nonce.
    """


class DeploymentError(RelayError):
    """Raised when the Safe could not be confirmed as deployed."""


class ApprovalError(RelayError):
    """Raised when approvals are still missing after a successful transaction."""


class ApprovalTimeoutError(ApprovalError):
    """
    Raised when polling timed out and a direct re-check still shows
    missing approvals. The transaction may land later.
    """
