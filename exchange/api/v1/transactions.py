"""Transaction API endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter

from exchange.api.deps import CurrentUser, DBSession, Relay
from exchange.api.v1.events import announce_status_change
from exchange.models.transaction import TransactionStatus, TransactionType
from exchange.schemas.transaction import TransactionList, TransactionRead
from exchange.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=TransactionList)
async def list_transactions(
    session: DBSession,
    user: CurrentUser,
    type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
):
    """Return the caller's transactions, newest first, optionally filtered."""
    service = TransactionService()
    transactions = await service.list_transactions(
        session, user.id, type=type, status=status
    )
    return TransactionList(
        transactions=[TransactionRead.model_validate(t) for t in transactions]
    )


@router.get("/{transaction_id}", response_model=TransactionRead)
async def get_transaction(transaction_id: uuid.UUID, session: DBSession, user: CurrentUser):
    service = TransactionService()
    return await service.get_transaction(session, user.id, transaction_id)


@router.post("/{transaction_id}/cancel", response_model=TransactionRead)
async def cancel_transaction(
    transaction_id: uuid.UUID,
    session: DBSession,
    user: CurrentUser,
    relay: Relay,
):
    """
    Cancel one of the caller's pending deposits or withdrawals.

    Only pending requests can be cancelled; decided ones are immutable.
    """
    service = TransactionService()

    async with session.begin():
        transaction = await service.cancel_transaction(session, user.id, transaction_id)

    announce_status_change(relay, transaction)
    return transaction
