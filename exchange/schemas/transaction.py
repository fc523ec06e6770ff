"""Transaction Pydantic schemas for request/response validation."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from exchange.models.transaction import TransactionStatus, TransactionType
from exchange.models.wallet import Currency

# Base58 without 0, O, I and l; TRON addresses are 34 characters starting with T
TRC20_ADDRESS_PATTERN = r"^T[1-9A-HJ-NP-Za-km-z]{33}$"
TRC20_TX_HASH_PATTERN = r"^(0x)?[0-9a-fA-F]{64}$"


class TransactionRead(BaseModel):
    """Schema for reading Transaction data.

    Amount is serialized as a decimal string for precision.
    Status and type are serialized as their string enum values.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    wallet_id: uuid.UUID
    type: TransactionType
    currency: Currency
    amount: Decimal
    transaction_hash: str
    status: TransactionStatus
    wallet_address: Optional[str] = None
    file_key: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_serializer("amount")
    def serialize_amount(self, amount: Decimal) -> str:
        """Serialize amount as decimal string to preserve precision."""
        return str(amount)


class TransactionList(BaseModel):
    """Response schema wrapping a list of transactions."""

    transactions: list[TransactionRead]


class TransactionCreated(BaseModel):
    """Response for a newly submitted deposit or withdrawal request."""

    message: str
    transaction: TransactionRead


class MessageResponse(BaseModel):
    """Plain acknowledgement returned by admin actions."""

    message: str


class DepositRequest(BaseModel):
    """Request schema for submitting a USDT deposit for approval."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "amount": "250.0000",
                "transaction_hash": "a" * 64,
                "file_key": "deposits/2f1c/receipt.png",
                "wallet_address": "TJRabPrwbZy45sbavfcjinPJC18kjpRTv8",
            }
        }
    )

    amount: Decimal = Field(
        ..., gt=0, max_digits=18, decimal_places=4, description="Deposited amount"
    )
    transaction_hash: str = Field(
        ..., pattern=TRC20_TX_HASH_PATTERN, description="On-chain TRC20 transaction hash"
    )
    file_key: str = Field(
        ..., min_length=1, max_length=512, description="Storage key of the proof screenshot"
    )
    wallet_address: Optional[str] = Field(
        default=None, pattern=TRC20_ADDRESS_PATTERN, description="Sending TRC20 address"
    )


class WithdrawalRequest(BaseModel):
    """Request schema for withdrawing USDT to an external address."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "amount": "100.0000",
                "wallet_address": "TJRabPrwbZy45sbavfcjinPJC18kjpRTv8",
            }
        }
    )

    amount: Decimal = Field(
        ..., gt=0, max_digits=18, decimal_places=4, description="Amount to withdraw"
    )
    wallet_address: str = Field(
        ..., pattern=TRC20_ADDRESS_PATTERN, description="Destination TRC20 address"
    )


class ApprovalRequest(BaseModel):
    """Optional body of an approve action."""

    transaction_hash: Optional[str] = Field(
        default=None,
        pattern=TRC20_TX_HASH_PATTERN,
        description="Payout hash recorded on withdrawal approval",
    )


class RejectionRequest(BaseModel):
    """Body of a reject action. The reason is required by the service."""

    rejection_reason: Optional[str] = Field(default=None, max_length=1000)


class ReviewedWithdrawalRead(TransactionRead):
    """A pending withdrawal with its advisory approval hint."""

    available_balance: Decimal
    can_approve: bool

    @field_serializer("available_balance")
    def serialize_available_balance(self, available_balance: Decimal) -> str:
        return str(available_balance)


class WithdrawalReviewRead(BaseModel):
    """Pending withdrawals of one wallet, ordered oldest first.

    ``available_balance`` is what remains once every approvable
    withdrawal in the group is paid out.
    """

    user_id: uuid.UUID
    wallet_id: uuid.UUID
    currency: Currency
    current_balance: Decimal
    available_balance: Decimal
    withdrawals: list[ReviewedWithdrawalRead]

    @field_serializer("current_balance", "available_balance")
    def serialize_balances(self, value: Decimal) -> str:
        return str(value)


class WithdrawalReviewList(BaseModel):
    """Response schema for the admin withdrawal review."""

    reviews: list[WithdrawalReviewRead]
