"""Withdrawal API endpoints."""

from fastapi import APIRouter

from exchange.api.deps import CurrentUser, DBSession, Relay
from exchange.api.v1.events import announce_new_pending
from exchange.models.transaction import TransactionType
from exchange.models.wallet import Currency
from exchange.schemas.transaction import (
    TransactionCreated,
    TransactionList,
    TransactionRead,
    WithdrawalRequest,
)
from exchange.services.transaction_service import TransactionService

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])


@router.post("/usdt", response_model=TransactionCreated, status_code=201)
async def request_usdt_withdrawal(
    request: WithdrawalRequest,
    session: DBSession,
    user: CurrentUser,
    relay: Relay,
):
    """
    Request a USDT withdrawal to an external TRC20 address.

    - **amount**: Amount to withdraw; must not exceed the current balance
    - **wallet_address**: Destination TRC20 address

    The wallet is debited only when an admin approves.
    """
    service = TransactionService()

    async with session.begin():
        transaction = await service.request_withdrawal(
            session=session,
            user_id=user.id,
            currency=Currency.USDT,
            amount=request.amount,
            wallet_address=request.wallet_address,
        )

    announce_new_pending(relay, transaction)
    return TransactionCreated(
        message="Withdrawal request submitted for approval",
        transaction=TransactionRead.model_validate(transaction),
    )


@router.get("", response_model=TransactionList)
async def list_withdrawals(session: DBSession, user: CurrentUser):
    """Return the caller's withdrawals, newest first."""
    service = TransactionService()
    transactions = await service.list_transactions(
        session, user.id, type=TransactionType.WITHDRAWAL
    )
    return TransactionList(
        transactions=[TransactionRead.model_validate(t) for t in transactions]
    )
