"""Transaction SQLAlchemy ORM model."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exchange.db.base import Base, enum_values, utcnow
from exchange.models.wallet import Currency


class TransactionType(str, enum.Enum):
    """Direction of a transaction relative to the user's wallet."""

    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, enum.Enum):
    """Transaction status enum.

    Values:
        PENDING: Awaiting an admin decision
        APPROVED: Approved by an admin; the wallet balance was updated
        REJECTED: Rejected by an admin with a reason
        CANCELLED: Withdrawn by its owner while still pending

    Status only ever moves out of PENDING; the other three are terminal.
    """

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self]

    def can_transition_to(self, target: "TransactionStatus") -> bool:
        """Whether moving from this status to ``target`` is allowed."""
        return target in ALLOWED_TRANSITIONS[self]


ALLOWED_TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    TransactionStatus.PENDING: frozenset({
        TransactionStatus.APPROVED,
        TransactionStatus.REJECTED,
        TransactionStatus.CANCELLED,
    }),
    TransactionStatus.APPROVED: frozenset(),
    TransactionStatus.REJECTED: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
}


class Transaction(Base):
    """Deposit or withdrawal request against a single wallet.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Foreign key to the owning User
        wallet_id: Foreign key to the Wallet the request affects
        type: deposit or withdrawal
        currency: Currency of the wallet
        amount: Requested amount with DECIMAL(18,4) precision
        transaction_hash: On-chain hash (deposits); empty for withdrawals
            until an admin records the payout hash on approval
        status: pending, approved, rejected or cancelled
        wallet_address: Withdrawal destination or deposit source address
        file_key: Storage key of the deposit proof screenshot
        rejection_reason: Set only when an admin rejects the request
        created_at: Request timestamp
        updated_at: Last status change timestamp
    """

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False
    )
    wallet_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("wallets.id"),
        nullable=False
    )
    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, native_enum=False, length=20, values_callable=enum_values),
        nullable=False
    )
    currency: Mapped[Currency] = mapped_column(
        Enum(Currency, native_enum=False, length=10, values_callable=enum_values),
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(18, 4),
        nullable=False
    )
    transaction_hash: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        default=""
    )
    status: Mapped[TransactionStatus] = mapped_column(
        Enum(TransactionStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=TransactionStatus.PENDING
    )
    wallet_address: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True
    )
    file_key: Mapped[str | None] = mapped_column(
        String(512),
        nullable=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow
    )

    # Relationships
    wallet: Mapped["Wallet"] = relationship(
        "Wallet",
        backref="transactions"
    )

    # Composite indexes for query performance
    __table_args__ = (
        Index("ix_transactions_user_id", "user_id"),
        Index("ix_transactions_wallet_status", "wallet_id", "status"),
        Index("ix_transactions_type_status_created", "type", "status", "created_at"),
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )
