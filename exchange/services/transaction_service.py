"""Transaction service for deposit and withdrawal requests.

APPROVAL CONCURRENCY CONTROL
============================

Admins approve requests one at a time while users keep submitting new
ones, so two views of a wallet exist:

1. ADVISORY: ``review_pending_withdrawals`` runs the reconciler over each
   wallet's pending withdrawal queue without taking any locks. Its
   ``can_approve`` flags guide the admin and may be stale by the time the
   admin clicks.

2. AUTHORITATIVE: ``commit_approval`` locks the transaction row and then
   the wallet row (``SELECT ... FOR UPDATE``), re-checks the committed
   balance and applies the balance change and status transition in the
   caller's database transaction. A second approval on the same wallet
   blocks on the wallet lock until the first commits, then sees the
   reduced balance.

Locks are always taken in the order transaction -> wallet.

EXAMPLE:
    async with session.begin():
        service = TransactionService()
        transaction = await service.commit_approval(
            session, transaction_id, TransactionStatus.APPROVED
        )
    # Committed: safe to notify and queue background tasks here
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from itertools import groupby
from typing import Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exchange.core.exceptions import (
    InsufficientBalanceError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from exchange.models.transaction import Transaction, TransactionStatus, TransactionType
from exchange.models.wallet import Currency, Wallet
from exchange.services.reconciler import (
    PendingWithdrawal,
    ReconciliationResult,
    reconcile_withdrawals,
)
from exchange.services.wallet_service import WalletService

DECISION_STATUSES = frozenset({TransactionStatus.APPROVED, TransactionStatus.REJECTED})


@dataclass(frozen=True)
class WithdrawalReview:
    """Reconciled pending withdrawals of one wallet."""

    wallet: Wallet
    transactions: list[Transaction]
    reconciliation: ReconciliationResult


def queue_order(transaction: Transaction) -> tuple:
    """Chronological queue position; the id breaks ``created_at`` ties."""
    return (transaction.created_at, transaction.id)


class TransactionService:
    """Service for deposit/withdrawal requests and their admin review.

    Methods take an active session and never commit; the caller owns the
    transaction boundary (``async with session.begin():``).
    """

    def __init__(self, wallet_service: WalletService | None = None) -> None:
        self.wallets = wallet_service or WalletService()

    async def submit_deposit(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        currency: Currency,
        amount: Decimal,
        transaction_hash: str,
        file_key: str,
        wallet_address: Optional[str] = None,
    ) -> Transaction:
        """Record a deposit awaiting admin approval.

        The wallet balance is not touched until an admin approves.

        Raises:
            ValidationError: If amount <= 0 or proof fields are missing
            WalletNotFoundError: If the user has no wallet in ``currency``
        """
        if amount <= Decimal("0"):
            raise ValidationError("Deposit amount must be greater than zero")
        if not transaction_hash:
            raise ValidationError("Transaction hash is required")
        if not file_key:
            raise ValidationError("File key is required")

        wallet = await self.wallets.get_wallet(session, user_id, currency)

        transaction = Transaction(
            user_id=user_id,
            wallet_id=wallet.id,
            type=TransactionType.DEPOSIT,
            currency=currency,
            amount=amount,
            transaction_hash=transaction_hash,
            status=TransactionStatus.PENDING,
            wallet_address=wallet_address,
            file_key=file_key,
        )
        session.add(transaction)
        await session.flush()

        logger.info(
            f"Deposit {transaction.id} of {amount} {currency.value} submitted by user {user_id}"
        )
        return transaction

    async def request_withdrawal(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        currency: Currency,
        amount: Decimal,
        wallet_address: str,
    ) -> Transaction:
        """Record a withdrawal to ``wallet_address`` awaiting admin approval.

        The request must fit in the committed balance at submission time;
        whether it still fits alongside other pending withdrawals is
        decided at review and approval time.

        Raises:
            ValidationError: If amount <= 0 or the address is missing
            WalletNotFoundError: If the user has no wallet in ``currency``
            InsufficientBalanceError: If amount exceeds the committed balance
        """
        if amount <= Decimal("0"):
            raise ValidationError("Withdrawal amount must be greater than zero")
        if not wallet_address:
            raise ValidationError("Wallet address is required")

        wallet = await self.wallets.get_wallet(session, user_id, currency)
        if wallet.balance < amount:
            raise InsufficientBalanceError(str(wallet.id), amount, wallet.balance)

        transaction = Transaction(
            user_id=user_id,
            wallet_id=wallet.id,
            type=TransactionType.WITHDRAWAL,
            currency=currency,
            amount=amount,
            transaction_hash="",
            status=TransactionStatus.PENDING,
            wallet_address=wallet_address,
        )
        session.add(transaction)
        await session.flush()

        logger.info(
            f"Withdrawal {transaction.id} of {amount} {currency.value} "
            f"to {wallet_address} requested by user {user_id}"
        )
        return transaction

    async def cancel_transaction(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        transaction_id: uuid.UUID,
    ) -> Transaction:
        """Cancel the user's own pending request.

        Raises:
            NotFoundError: If the transaction does not exist or belongs
                to another user
            InvalidStateTransitionError: If the transaction is not pending
        """
        transaction = await self._lock_transaction(session, transaction_id)
        if transaction is None or transaction.user_id != user_id:
            raise NotFoundError("Transaction", str(transaction_id))

        self._check_transition(transaction, TransactionStatus.CANCELLED)
        transaction.status = TransactionStatus.CANCELLED
        await session.flush()

        logger.info(f"Transaction {transaction_id} cancelled by user {user_id}")
        return transaction

    async def get_transaction(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        transaction_id: uuid.UUID,
    ) -> Transaction:
        result = await session.execute(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.user_id == user_id,
            )
        )
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise NotFoundError("Transaction", str(transaction_id))
        return transaction

    async def list_transactions(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
    ) -> list[Transaction]:
        """The user's transactions, newest first, optionally filtered."""
        query = select(Transaction).where(Transaction.user_id == user_id)
        if type is not None:
            query = query.where(Transaction.type == type)
        if status is not None:
            query = query.where(Transaction.status == status)
        query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())
        result = await session.execute(query)
        return list(result.scalars().all())

    async def list_pending(
        self,
        session: AsyncSession,
        type: TransactionType,
    ) -> list[Transaction]:
        """All pending transactions of ``type``, oldest first."""
        result = await session.execute(
            select(Transaction)
            .where(
                Transaction.type == type,
                Transaction.status == TransactionStatus.PENDING,
            )
            .order_by(Transaction.created_at, Transaction.id)
        )
        return list(result.scalars().all())

    async def list_pending_withdrawals(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        currency: Currency = Currency.USDT,
    ) -> list[PendingWithdrawal]:
        """The pending withdrawal queue of one wallet, in reconciler order."""
        result = await session.execute(
            select(Transaction).where(
                Transaction.user_id == user_id,
                Transaction.currency == currency,
                Transaction.type == TransactionType.WITHDRAWAL,
                Transaction.status == TransactionStatus.PENDING,
            )
        )
        transactions = sorted(result.scalars().all(), key=queue_order)
        return [_as_pending(transaction) for transaction in transactions]

    async def review_pending_withdrawals(self, session: AsyncSession) -> list[WithdrawalReview]:
        """Reconcile every wallet that has pending withdrawals.

        Reads without locks; the output is advisory. Groups are ordered by
        their oldest pending withdrawal.
        """
        pending = await self.list_pending(session, TransactionType.WITHDRAWAL)
        if not pending:
            return []

        wallet_ids = {transaction.wallet_id for transaction in pending}
        result = await session.execute(select(Wallet).where(Wallet.id.in_(wallet_ids)))
        wallets = {wallet.id: wallet for wallet in result.scalars().all()}

        reviews: list[WithdrawalReview] = []
        by_wallet = sorted(pending, key=lambda t: (str(t.wallet_id), queue_order(t)))
        for wallet_id, group in groupby(by_wallet, key=lambda t: t.wallet_id):
            transactions = list(group)
            wallet = wallets[wallet_id]
            reconciliation = reconcile_withdrawals(
                wallet.balance,
                [_as_pending(transaction) for transaction in transactions],
            )
            reviews.append(WithdrawalReview(wallet, transactions, reconciliation))

        reviews.sort(key=lambda review: queue_order(review.transactions[0]))
        return reviews

    async def commit_approval(
        self,
        session: AsyncSession,
        transaction_id: uuid.UUID,
        outcome: TransactionStatus,
        rejection_reason: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        expected_type: Optional[TransactionType] = None,
    ) -> Transaction:
        """Approve or reject a pending request (the authoritative check).

        Approval of a withdrawal re-validates the committed balance under
        the wallet row lock instead of trusting the reviewer's advisory
        ``can_approve``. Any raised error leaves the transaction pending
        and the balance untouched once the caller rolls back.

        Args:
            session: Active async database session (transaction managed by caller)
            transaction_id: Transaction to decide on
            outcome: APPROVED or REJECTED
            rejection_reason: Required when rejecting
            transaction_hash: Payout hash recorded when approving a withdrawal
            expected_type: Treat transactions of another type as missing

        Returns:
            Transaction: The updated transaction

        Raises:
            ValidationError: If outcome is not a decision or a rejection
                has no reason
            NotFoundError: If the transaction (of ``expected_type``) or its
                wallet does not exist
            InvalidStateTransitionError: If the transaction is not pending
            InsufficientBalanceError: If a withdrawal exceeds the balance
                at commit time
        """
        if outcome not in DECISION_STATUSES:
            raise ValidationError(f"Outcome must be approved or rejected, got {outcome.value}")

        transaction = await self._lock_transaction(session, transaction_id)
        if transaction is None or (
            expected_type is not None and transaction.type != expected_type
        ):
            resource = expected_type.value.capitalize() if expected_type else "Transaction"
            raise NotFoundError(resource, str(transaction_id))

        self._check_transition(transaction, outcome)

        if outcome == TransactionStatus.REJECTED:
            reason = (rejection_reason or "").strip()
            if not reason:
                raise ValidationError("Rejection reason is required")
            transaction.status = TransactionStatus.REJECTED
            transaction.rejection_reason = reason
            await session.flush()
            logger.info(f"{transaction.type.value.capitalize()} {transaction_id} rejected: {reason}")
            return transaction

        wallet_result = await session.execute(
            select(Wallet)
            .where(Wallet.id == transaction.wallet_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        wallet = wallet_result.scalar_one_or_none()
        if wallet is None:
            raise NotFoundError("Wallet", str(transaction.wallet_id))

        if transaction.type == TransactionType.WITHDRAWAL:
            if wallet.balance < transaction.amount:
                logger.warning(
                    f"Refusing withdrawal {transaction_id}: amount {transaction.amount} "
                    f"exceeds balance {wallet.balance} of wallet {wallet.id}"
                )
                raise InsufficientBalanceError(str(wallet.id), transaction.amount, wallet.balance)
            wallet.balance -= transaction.amount
            if transaction_hash:
                transaction.transaction_hash = transaction_hash
        else:
            wallet.balance += transaction.amount

        wallet.version += 1
        transaction.status = TransactionStatus.APPROVED
        await session.flush()

        logger.info(
            f"{transaction.type.value.capitalize()} {transaction_id} approved; "
            f"wallet {wallet.id} balance now {wallet.balance}"
        )
        return transaction

    async def _lock_transaction(
        self,
        session: AsyncSession,
        transaction_id: uuid.UUID,
    ) -> Transaction | None:
        result = await session.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _check_transition(transaction: Transaction, target: TransactionStatus) -> None:
        current = TransactionStatus(transaction.status)
        if not current.can_transition_to(target):
            raise InvalidStateTransitionError(str(transaction.id), current.value, target.value)


def _as_pending(transaction: Transaction) -> PendingWithdrawal:
    return PendingWithdrawal(
        id=transaction.id,
        amount=transaction.amount,
        created_at=transaction.created_at,
    )
