"""Wallet Pydantic schemas for request/response validation."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_serializer

from exchange.models.wallet import Currency


class WalletBase(BaseModel):
    """Base schema with common Wallet fields."""

    currency: Currency


class WalletCreate(WalletBase):
    """Schema for creating a new Wallet."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"currency": "USDT"}}
    )


class WalletRead(WalletBase):
    """Schema for reading Wallet data.

    Balance is serialized as a decimal string for precision.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    balance: Decimal
    version: int
    created_at: datetime
    updated_at: datetime

    @field_serializer("balance")
    def serialize_balance(self, balance: Decimal) -> str:
        """Serialize balance as decimal string to preserve precision."""
        return str(balance)


class WalletList(BaseModel):
    """Response schema wrapping a user's wallets."""

    wallets: list[WalletRead]


class WalletBalance(BaseModel):
    """Committed balance of one wallet."""

    currency: Currency
    balance: Decimal

    @field_serializer("balance")
    def serialize_balance(self, balance: Decimal) -> str:
        return str(balance)
