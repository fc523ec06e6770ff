"""Integration tests for request submission and the locked approval commit.

Runs ``TransactionService`` against a file-backed SQLite database whose
transactions take the write lock on ``BEGIN``, so concurrent approvals
are serialized the way row locks serialize them on PostgreSQL.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from exchange.core.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
    WalletNotFoundError,
)
from exchange.models import Currency, Transaction, TransactionStatus, TransactionType, Wallet
from exchange.services.transaction_service import TransactionService
from exchange.services.wallet_service import WalletService

ADDRESS = "TJRabPrwbZy45sbavfcjinPJC18kjpRTv8"
SAME_TIME = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


async def load(session_maker, model, id):
    async with session_maker() as session:
        return await session.get(model, id)


async def decide(session_maker, transaction_id, outcome, **kwargs) -> Transaction:
    async with session_maker() as session:
        async with session.begin():
            return await TransactionService().commit_approval(
                session, transaction_id, outcome, **kwargs
            )


class TestApproveDeposit:

    @pytest.mark.asyncio
    async def test_credits_wallet(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="10")
        deposit = await seed.transaction(wallet, "25.5", type=TransactionType.DEPOSIT)

        result = await decide(session_maker, deposit.id, TransactionStatus.APPROVED)

        assert result.status == TransactionStatus.APPROVED
        stored = await load(session_maker, Wallet, wallet.id)
        assert stored.balance == Decimal("35.5")
        assert stored.version == 2

    @pytest.mark.asyncio
    async def test_wrong_type_is_not_found(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        withdrawal = await seed.transaction(wallet, "10")

        with pytest.raises(NotFoundError) as exc_info:
            await decide(
                session_maker, withdrawal.id, TransactionStatus.APPROVED,
                expected_type=TransactionType.DEPOSIT,
            )

        assert exc_info.value.resource == "Deposit"
        stored = await load(session_maker, Transaction, withdrawal.id)
        assert stored.status == TransactionStatus.PENDING


class TestApproveWithdrawal:

    @pytest.mark.asyncio
    async def test_debits_wallet_and_records_hash(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        withdrawal = await seed.transaction(wallet, "60")

        await decide(
            session_maker, withdrawal.id, TransactionStatus.APPROVED,
            transaction_hash="c" * 64,
        )

        stored_wallet = await load(session_maker, Wallet, wallet.id)
        stored = await load(session_maker, Transaction, withdrawal.id)
        assert stored_wallet.balance == Decimal("40")
        assert stored.status == TransactionStatus.APPROVED
        assert stored.transaction_hash == "c" * 64

    @pytest.mark.asyncio
    async def test_exact_balance_is_approved(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100.0000")
        withdrawal = await seed.transaction(wallet, "100.0000")

        await decide(session_maker, withdrawal.id, TransactionStatus.APPROVED)

        stored_wallet = await load(session_maker, Wallet, wallet.id)
        assert stored_wallet.balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_insufficient_balance_leaves_everything_unchanged(
        self, seed, session_maker
    ) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="40")
        withdrawal = await seed.transaction(wallet, "50")

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await decide(session_maker, withdrawal.id, TransactionStatus.APPROVED)

        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 409
        stored_wallet = await load(session_maker, Wallet, wallet.id)
        stored = await load(session_maker, Transaction, withdrawal.id)
        assert stored_wallet.balance == Decimal("40")
        assert stored_wallet.version == 1
        assert stored.status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_stale_review_flag_is_rechecked(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        first = await seed.transaction(wallet, "60")
        second = await seed.transaction(wallet, "50")

        async with session_maker() as session:
            reviews = await TransactionService().review_pending_withdrawals(session)
        hints = {row.id: row.can_approve for row in reviews[0].reconciliation.withdrawals}
        assert hints == {first.id: True, second.id: False}

        # The admin approves out of order: the second fits the committed balance
        await decide(session_maker, second.id, TransactionStatus.APPROVED)
        with pytest.raises(InsufficientBalanceError):
            await decide(session_maker, first.id, TransactionStatus.APPROVED)

        stored_wallet = await load(session_maker, Wallet, wallet.id)
        assert stored_wallet.balance == Decimal("50")

    @pytest.mark.asyncio
    async def test_concurrent_approvals_never_overdraw(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        first = await seed.transaction(wallet, "60")
        second = await seed.transaction(wallet, "50")

        results = await asyncio.gather(
            decide(session_maker, first.id, TransactionStatus.APPROVED),
            decide(session_maker, second.id, TransactionStatus.APPROVED),
            return_exceptions=True,
        )

        succeeded = [r for r in results if isinstance(r, Transaction)]
        refused = [r for r in results if isinstance(r, InsufficientBalanceError)]
        assert len(succeeded) == 1
        assert len(refused) == 1

        stored_wallet = await load(session_maker, Wallet, wallet.id)
        assert stored_wallet.balance == Decimal("100") - succeeded[0].amount
        assert stored_wallet.balance >= 0
        assert stored_wallet.version == 2


class TestReject:

    @pytest.mark.asyncio
    async def test_reject_with_reason_keeps_balance(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        withdrawal = await seed.transaction(wallet, "30")

        result = await decide(
            session_maker, withdrawal.id, TransactionStatus.REJECTED,
            rejection_reason="Invalid transaction",
        )

        assert result.status == TransactionStatus.REJECTED
        assert result.rejection_reason == "Invalid transaction"
        stored_wallet = await load(session_maker, Wallet, wallet.id)
        assert stored_wallet.balance == Decimal("100")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "", "   "])
    async def test_reject_requires_reason(self, seed, session_maker, reason) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        withdrawal = await seed.transaction(wallet, "30")

        with pytest.raises(ValidationError):
            await decide(
                session_maker, withdrawal.id, TransactionStatus.REJECTED,
                rejection_reason=reason,
            )

        stored = await load(session_maker, Transaction, withdrawal.id)
        assert stored.status == TransactionStatus.PENDING


class TestDecisionGuards:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "current",
        [TransactionStatus.APPROVED, TransactionStatus.REJECTED, TransactionStatus.CANCELLED],
    )
    async def test_decided_transaction_is_immutable(self, seed, session_maker, current) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        withdrawal = await seed.transaction(wallet, "10", status=current)

        with pytest.raises(InvalidStateTransitionError):
            await decide(session_maker, withdrawal.id, TransactionStatus.APPROVED)

        stored_wallet = await load(session_maker, Wallet, wallet.id)
        assert stored_wallet.balance == Decimal("100")

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, session_maker) -> None:
        with pytest.raises(NotFoundError):
            await decide(session_maker, uuid.uuid4(), TransactionStatus.APPROVED)

    @pytest.mark.asyncio
    async def test_outcome_must_be_a_decision(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        withdrawal = await seed.transaction(wallet, "10")

        with pytest.raises(ValidationError):
            await decide(session_maker, withdrawal.id, TransactionStatus.CANCELLED)


class TestRequests:

    @pytest.mark.asyncio
    async def test_withdrawal_request_checks_committed_balance(
        self, seed, session_maker
    ) -> None:
        user = await seed.user()
        await seed.wallet(user, balance="50")
        service = TransactionService()

        async with session_maker() as session:
            async with session.begin():
                pending = await service.request_withdrawal(
                    session, user.id, Currency.USDT, Decimal("50"), ADDRESS
                )
            assert pending.status == TransactionStatus.PENDING
            assert pending.transaction_hash == ""

            with pytest.raises(InsufficientBalanceError):
                async with session.begin():
                    await service.request_withdrawal(
                        session, user.id, Currency.USDT, Decimal("50.0001"), ADDRESS
                    )

    @pytest.mark.asyncio
    async def test_deposit_does_not_touch_balance(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="5")

        async with session_maker() as session:
            async with session.begin():
                deposit = await TransactionService().submit_deposit(
                    session, user.id, Currency.USDT, Decimal("20"),
                    transaction_hash="ab" * 32, file_key="deposits/proof.png",
                )

        assert deposit.type == TransactionType.DEPOSIT
        assert deposit.status == TransactionStatus.PENDING
        stored_wallet = await load(session_maker, Wallet, wallet.id)
        assert stored_wallet.balance == Decimal("5")

    @pytest.mark.asyncio
    async def test_request_without_wallet(self, seed, session_maker) -> None:
        user = await seed.user()

        async with session_maker() as session:
            with pytest.raises(WalletNotFoundError):
                await TransactionService().request_withdrawal(
                    session, user.id, Currency.USDT, Decimal("1"), ADDRESS
                )

    @pytest.mark.asyncio
    async def test_owner_can_cancel_pending(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        withdrawal = await seed.transaction(wallet, "10")
        service = TransactionService()

        async with session_maker() as session:
            async with session.begin():
                cancelled = await service.cancel_transaction(session, user.id, withdrawal.id)
            assert cancelled.status == TransactionStatus.CANCELLED

            with pytest.raises(InvalidStateTransitionError):
                async with session.begin():
                    await service.cancel_transaction(session, user.id, withdrawal.id)

    @pytest.mark.asyncio
    async def test_other_user_cannot_cancel(self, seed, session_maker) -> None:
        owner = await seed.user()
        intruder = await seed.user()
        wallet = await seed.wallet(owner, balance="100")
        withdrawal = await seed.transaction(wallet, "10")

        async with session_maker() as session:
            with pytest.raises(NotFoundError):
                async with session.begin():
                    await TransactionService().cancel_transaction(
                        session, intruder.id, withdrawal.id
                    )

        stored = await load(session_maker, Transaction, withdrawal.id)
        assert stored.status == TransactionStatus.PENDING


class TestReview:

    @pytest.mark.asyncio
    async def test_groups_by_wallet_in_queue_order(self, seed, session_maker) -> None:
        alice, bob = await seed.user(), await seed.user()
        alice_wallet = await seed.wallet(alice, balance="100")
        bob_wallet = await seed.wallet(bob, balance="100")
        bob_first = await seed.transaction(bob_wallet, "40")
        alice_first = await seed.transaction(alice_wallet, "60")
        await seed.transaction(bob_wallet, "40")
        await seed.transaction(alice_wallet, "50")
        await seed.transaction(bob_wallet, "40")
        await seed.transaction(alice_wallet, "5", type=TransactionType.DEPOSIT)
        await seed.transaction(alice_wallet, "1", status=TransactionStatus.REJECTED)

        async with session_maker() as session:
            reviews = await TransactionService().review_pending_withdrawals(session)

        assert [review.wallet.id for review in reviews] == [bob_wallet.id, alice_wallet.id]
        bob_review, alice_review = reviews
        assert bob_review.transactions[0].id == bob_first.id
        assert [w.can_approve for w in bob_review.reconciliation.withdrawals] == [
            True, True, False,
        ]
        assert alice_review.transactions[0].id == alice_first.id
        assert [
            (w.available_balance, w.can_approve)
            for w in alice_review.reconciliation.withdrawals
        ] == [(Decimal("100"), True), (Decimal("40"), False)]

    @pytest.mark.asyncio
    async def test_nothing_pending(self, seed, session_maker) -> None:
        user = await seed.user()
        await seed.wallet(user, balance="50")

        async with session_maker() as session:
            assert await TransactionService().review_pending_withdrawals(session) == []

    @pytest.mark.asyncio
    async def test_list_pending_withdrawals_for_one_wallet(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="50")
        first = await seed.transaction(wallet, "10")
        second = await seed.transaction(wallet, "20")
        await seed.transaction(wallet, "30", status=TransactionStatus.CANCELLED)

        async with session_maker() as session:
            pending = await TransactionService().list_pending_withdrawals(session, user.id)

        assert [p.id for p in pending] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_identical_timestamps_are_ordered_by_id(self, seed, session_maker) -> None:
        user = await seed.user()
        wallet = await seed.wallet(user, balance="100")
        seeded = [
            await seed.transaction(wallet, amount, created_at=SAME_TIME)
            for amount in ("60", "50", "40")
        ]
        by_id = sorted(t.id for t in seeded)
        service = TransactionService()

        async with session_maker() as session:
            first_review = await service.review_pending_withdrawals(session)
        async with session_maker() as session:
            second_review = await service.review_pending_withdrawals(session)
            pending = await service.list_pending_withdrawals(session, user.id)
            listed = await service.list_pending(session, TransactionType.WITHDRAWAL)

        assert [p.id for p in pending] == by_id
        assert [t.id for t in listed] == by_id
        [first], [second] = first_review, second_review
        assert [t.id for t in first.transactions] == by_id
        assert [t.id for t in second.transactions] == by_id
        assert first.reconciliation == second.reconciliation
        assert first.reconciliation.approvable_total <= Decimal("100")


class TestWallets:

    @pytest.mark.asyncio
    async def test_one_wallet_per_currency(self, seed, session_maker) -> None:
        user = await seed.user()
        service = WalletService()

        async with session_maker() as session:
            async with session.begin():
                usdt = await service.create_wallet(session, user.id, Currency.USDT)
            assert usdt.balance == Decimal("0")
            async with session.begin():
                await service.create_wallet(session, user.id, Currency.JOD)
            with pytest.raises(ConflictError):
                async with session.begin():
                    await service.create_wallet(session, user.id, Currency.USDT)

            wallets = await service.list_wallets(session, user.id)
            balance = await service.get_wallet_balance(session, user.id, Currency.USDT)

        assert {w.currency for w in wallets} == {Currency.USDT, Currency.JOD}
        assert balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_missing_wallet_balance(self, seed, session_maker) -> None:
        user = await seed.user()

        async with session_maker() as session:
            with pytest.raises(WalletNotFoundError):
                await WalletService().get_wallet_balance(session, user.id, Currency.JOD)
