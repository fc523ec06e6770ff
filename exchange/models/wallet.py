"""Wallet SQLAlchemy ORM model."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exchange.db.base import Base, enum_values, utcnow


class Currency(str, enum.Enum):
    """Currencies a wallet can hold.

    Values:
        USDT: Tether on the TRC20 network
        JOD: Jordanian dinar
    """

    USDT = "USDT"
    JOD = "JOD"


class Wallet(Base):
    """Wallet model for storing user balance with financial precision.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Foreign key to User
        currency: Currency held (USDT or JOD), unique per user
        balance: Committed balance with DECIMAL(18,4) precision
        version: Incremented on every balance mutation
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
        user: Relationship to User model
    """

    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False,
        index=True
    )
    currency: Mapped[Currency] = mapped_column(
        Enum(Currency, native_enum=False, length=10, values_callable=enum_values),
        nullable=False
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(18, 4),
        nullable=False,
        default=Decimal("0.0000")
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1
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

    user: Mapped["User"] = relationship("User", back_populates="wallets")

    __table_args__ = (
        UniqueConstraint("user_id", "currency", name="uq_wallets_user_currency"),
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )
