from .context import RelayContext, WalletLocks
from .deployment_service import DeploymentResult, DeploymentService, DeploymentState
from .approval_service import ApprovalService, build_approval_call, required_approvals
from .wallet_session import WalletSession

__all__ = [
    "RelayContext",
    "WalletLocks",
    "DeploymentResult",
    "DeploymentService",
    "DeploymentState",
    "ApprovalService",
    "build_approval_call",
    "required_approvals",
    "WalletSession",
]
