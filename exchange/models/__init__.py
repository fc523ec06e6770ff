# SQLAlchemy ORM Models
"""Model package exports for Alembic discovery and application use.

All models must be imported here to ensure Alembic can discover them
for automatic migration generation.
"""

from exchange.models.user import User
from exchange.models.wallet import Currency, Wallet
from exchange.models.transaction import (
    ALLOWED_TRANSITIONS,
    Transaction,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Currency",
    "User",
    "Wallet",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
