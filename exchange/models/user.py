"""User SQLAlchemy ORM model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exchange.db.base import Base, utcnow


class User(Base):
    """User model for wallet ownership and admin checks.

    Credentials and sessions live in the upstream identity layer;
    this table only mirrors what the exchange needs.

    Attributes:
        id: Unique identifier (UUID)
        email: User email address (unique)
        full_name: User's display name
        is_active: Account status
        is_admin: Whether the user may review deposits and withdrawals
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True
    )
    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False
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

    # One wallet per currency
    wallets: Mapped[list["Wallet"]] = relationship(
        "Wallet",
        back_populates="user"
    )
