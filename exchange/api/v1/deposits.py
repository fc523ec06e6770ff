"""Deposit API endpoints."""

from fastapi import APIRouter

from exchange.api.deps import CurrentUser, DBSession, Relay
from exchange.api.v1.events import announce_new_pending
from exchange.models.transaction import TransactionType
from exchange.models.wallet import Currency
from exchange.schemas.transaction import (
    DepositRequest,
    TransactionCreated,
    TransactionList,
    TransactionRead,
)
from exchange.services.transaction_service import TransactionService

router = APIRouter(prefix="/deposits", tags=["deposits"])


@router.post("/usdt", response_model=TransactionCreated, status_code=201)
async def submit_usdt_deposit(
    request: DepositRequest,
    session: DBSession,
    user: CurrentUser,
    relay: Relay,
):
    """
    Submit a USDT (TRC20) deposit for admin approval.

    - **amount**: Deposited amount (positive, max 4 decimal places)
    - **transaction_hash**: On-chain transaction hash
    - **file_key**: Storage key of the uploaded transfer screenshot
    - **wallet_address**: Optional sending address

    The wallet balance is credited only when an admin approves.
    """
    service = TransactionService()

    async with session.begin():
        transaction = await service.submit_deposit(
            session=session,
            user_id=user.id,
            currency=Currency.USDT,
            amount=request.amount,
            transaction_hash=request.transaction_hash,
            file_key=request.file_key,
            wallet_address=request.wallet_address,
        )

    announce_new_pending(relay, transaction)
    return TransactionCreated(
        message="Deposit request submitted for approval",
        transaction=TransactionRead.model_validate(transaction),
    )


@router.get("", response_model=TransactionList)
async def list_deposits(session: DBSession, user: CurrentUser):
    """Return the caller's deposits, newest first."""
    service = TransactionService()
    transactions = await service.list_transactions(
        session, user.id, type=TransactionType.DEPOSIT
    )
    return TransactionList(
        transactions=[TransactionRead.model_validate(t) for t in transactions]
    )
