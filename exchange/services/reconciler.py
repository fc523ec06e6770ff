"""Balance-aware ordering of pending withdrawals for admin review.

Withdrawals are approved one at a time and asynchronously, so the admin
view has to show which requests can still be honoured once the earlier
requests in the same wallet's queue are paid out. Funds are reserved in
chronological order: an approvable request reserves its amount for every
later request, an unapprovable one reserves nothing and does not block
the requests behind it.

The result is advisory. ``TransactionService.commit_approval`` re-checks
the committed balance under a row lock before any money moves.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from exchange.core.exceptions import InvalidInputError


@dataclass(frozen=True)
class PendingWithdrawal:
    """One entry of a wallet's pending withdrawal queue."""

    id: uuid.UUID
    amount: Decimal
    created_at: datetime


@dataclass(frozen=True)
class ReconciledWithdrawal:
    """A pending withdrawal annotated with its approval hint.

    Attributes:
        available_balance: Balance left after every earlier approvable
            withdrawal in the queue is hypothetically paid out
        can_approve: Whether ``amount`` fits in ``available_balance``
    """

    id: uuid.UUID
    amount: Decimal
    created_at: datetime
    available_balance: Decimal
    can_approve: bool


@dataclass(frozen=True)
class ReconciliationResult:
    """Reconciler output for one wallet.

    Attributes:
        current_balance: Committed wallet balance the queue was checked against
        available_after_pending: Balance left once every approvable
            withdrawal is paid out
        withdrawals: Annotated queue in input order
    """

    current_balance: Decimal
    available_after_pending: Decimal
    withdrawals: tuple[ReconciledWithdrawal, ...]

    @property
    def approvable_total(self) -> Decimal:
        return sum(
            (w.amount for w in self.withdrawals if w.can_approve),
            Decimal("0"),
        )


def reconcile_withdrawals(
    current_balance: Decimal,
    pending_withdrawals: Sequence[PendingWithdrawal],
) -> ReconciliationResult:
    """Compute ``available_balance``/``can_approve`` for a withdrawal queue.

    Args:
        current_balance: The wallet's committed balance
        pending_withdrawals: Pending withdrawals ordered by ``created_at``
            ascending, ties already broken by the caller

    Returns:
        ReconciliationResult: One annotated row per input withdrawal

    Raises:
        InvalidInputError: If an amount is not positive or the queue is
            not ordered by creation time
    """
    _validate(pending_withdrawals)

    running_available = current_balance
    reconciled: list[ReconciledWithdrawal] = []

    for withdrawal in pending_withdrawals:
        # A non-positive running balance can never satisfy a positive amount
        can_approve = withdrawal.amount <= running_available
        reconciled.append(
            ReconciledWithdrawal(
                id=withdrawal.id,
                amount=withdrawal.amount,
                created_at=withdrawal.created_at,
                available_balance=running_available,
                can_approve=can_approve,
            )
        )
        if can_approve:
            running_available -= withdrawal.amount

    return ReconciliationResult(
        current_balance=current_balance,
        available_after_pending=running_available,
        withdrawals=tuple(reconciled),
    )


def _validate(pending_withdrawals: Sequence[PendingWithdrawal]) -> None:
    previous: PendingWithdrawal | None = None
    for withdrawal in pending_withdrawals:
        if not withdrawal.amount.is_finite() or withdrawal.amount <= Decimal("0"):
            raise InvalidInputError(
                f"Withdrawal {withdrawal.id} has non-positive amount {withdrawal.amount}"
            )
        if previous is not None and withdrawal.created_at < previous.created_at:
            raise InvalidInputError(
                f"Withdrawal {withdrawal.id} is out of order: created "
                f"{withdrawal.created_at.isoformat()}, before the preceding "
                f"withdrawal created {previous.created_at.isoformat()}"
            )
        previous = withdrawal
