"""Admin review API endpoints for pending deposits and withdrawals."""

import uuid
from typing import Optional

from fastapi import APIRouter
from sqlalchemy.ext.asyncio import AsyncSession

from exchange.api.deps import AdminUser, DBSession, Relay
from exchange.api.v1.events import announce_status_change
from exchange.models.transaction import TransactionStatus, TransactionType
from exchange.schemas.transaction import (
    ApprovalRequest,
    MessageResponse,
    RejectionRequest,
    ReviewedWithdrawalRead,
    TransactionList,
    TransactionRead,
    WithdrawalReviewList,
    WithdrawalReviewRead,
)
from exchange.services.notifications import NotificationRelay
from exchange.services.transaction_service import TransactionService, WithdrawalReview

router = APIRouter(prefix="/admin", tags=["admin"])


async def _decide(
    session: AsyncSession,
    relay: NotificationRelay,
    transaction_id: uuid.UUID,
    expected_type: TransactionType,
    outcome: TransactionStatus,
    rejection_reason: Optional[str] = None,
    transaction_hash: Optional[str] = None,
) -> None:
    service = TransactionService()

    # Balance re-check, mutation and status change commit together or not at all
    async with session.begin():
        transaction = await service.commit_approval(
            session=session,
            transaction_id=transaction_id,
            outcome=outcome,
            rejection_reason=rejection_reason,
            transaction_hash=transaction_hash,
            expected_type=expected_type,
        )

    announce_status_change(relay, transaction)


@router.get("/deposits", response_model=TransactionList)
async def list_pending_deposits(session: DBSession, admin: AdminUser):
    """Return every pending deposit, oldest first."""
    service = TransactionService()
    deposits = await service.list_pending(session, TransactionType.DEPOSIT)
    return TransactionList(
        transactions=[TransactionRead.model_validate(t) for t in deposits]
    )


@router.post("/deposits/{transaction_id}/approve", response_model=MessageResponse)
async def approve_deposit(
    transaction_id: uuid.UUID,
    session: DBSession,
    admin: AdminUser,
    relay: Relay,
):
    """Approve a pending deposit and credit the user's wallet."""
    await _decide(
        session, relay, transaction_id,
        TransactionType.DEPOSIT, TransactionStatus.APPROVED,
    )
    return MessageResponse(message="Deposit approved")


@router.post("/deposits/{transaction_id}/reject", response_model=MessageResponse)
async def reject_deposit(
    transaction_id: uuid.UUID,
    request: RejectionRequest,
    session: DBSession,
    admin: AdminUser,
    relay: Relay,
):
    """Reject a pending deposit. A rejection reason is required."""
    await _decide(
        session, relay, transaction_id,
        TransactionType.DEPOSIT, TransactionStatus.REJECTED,
        rejection_reason=request.rejection_reason,
    )
    return MessageResponse(message="Deposit rejected")


@router.get("/withdrawals", response_model=WithdrawalReviewList)
async def review_pending_withdrawals(session: DBSession, admin: AdminUser):
    """
    Return pending withdrawals grouped per wallet, oldest first.

    Each withdrawal carries the balance left after the earlier approvable
    withdrawals of its wallet (**available_balance**) and whether it still
    fits (**can_approve**). These flags are advisory; approval re-checks
    the balance.
    """
    service = TransactionService()
    reviews = await service.review_pending_withdrawals(session)
    return WithdrawalReviewList(reviews=[_review_read(review) for review in reviews])


@router.post("/withdrawals/{transaction_id}/approve", response_model=MessageResponse)
async def approve_withdrawal(
    transaction_id: uuid.UUID,
    session: DBSession,
    admin: AdminUser,
    relay: Relay,
    request: Optional[ApprovalRequest] = None,
):
    """
    Approve a pending withdrawal and debit the user's wallet.

    - **transaction_hash**: Optional payout hash to record

    Fails with 409 and leaves the withdrawal pending if the balance no
    longer covers it.
    """
    await _decide(
        session, relay, transaction_id,
        TransactionType.WITHDRAWAL, TransactionStatus.APPROVED,
        transaction_hash=request.transaction_hash if request else None,
    )
    return MessageResponse(message="Withdrawal approved")


@router.post("/withdrawals/{transaction_id}/reject", response_model=MessageResponse)
async def reject_withdrawal(
    transaction_id: uuid.UUID,
    request: RejectionRequest,
    session: DBSession,
    admin: AdminUser,
    relay: Relay,
):
    """Reject a pending withdrawal. The wallet balance is not changed."""
    await _decide(
        session, relay, transaction_id,
        TransactionType.WITHDRAWAL, TransactionStatus.REJECTED,
        rejection_reason=request.rejection_reason,
    )
    return MessageResponse(message="Withdrawal rejected")


def _review_read(review: WithdrawalReview) -> WithdrawalReviewRead:
    hints = {row.id: row for row in review.reconciliation.withdrawals}
    withdrawals = [
        ReviewedWithdrawalRead(
            **TransactionRead.model_validate(transaction).model_dump(),
            available_balance=hints[transaction.id].available_balance,
            can_approve=hints[transaction.id].can_approve,
        )
        for transaction in review.transactions
    ]
    return WithdrawalReviewRead(
        user_id=review.wallet.user_id,
        wallet_id=review.wallet.id,
        currency=review.wallet.currency,
        current_balance=review.reconciliation.current_balance,
        available_balance=review.reconciliation.available_after_pending,
        withdrawals=withdrawals,
    )
