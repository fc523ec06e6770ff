# Pydantic Data Transfer Objects

from exchange.schemas.transaction import (
    ApprovalRequest,
    DepositRequest,
    MessageResponse,
    RejectionRequest,
    TransactionRead,
    WithdrawalRequest,
    WithdrawalReviewRead,
)
from exchange.schemas.wallet import WalletBalance, WalletCreate, WalletList, WalletRead

__all__ = [
    "ApprovalRequest",
    "DepositRequest",
    "MessageResponse",
    "RejectionRequest",
    "TransactionRead",
    "WalletBalance",
    "WalletCreate",
    "WalletList",
    "WalletRead",
    "WithdrawalRequest",
    "WithdrawalReviewRead",
]
