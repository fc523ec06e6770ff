"""Wallet service: per-currency wallet creation and balance reads."""

import uuid
from decimal import Decimal

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from exchange.core.exceptions import ConflictError, WalletNotFoundError
from exchange.models.wallet import Currency, Wallet


class WalletService:
    """Read and create wallets.

    Balances are never written here; they change only through
    ``TransactionService.commit_approval``.
    """

    async def create_wallet(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        currency: Currency,
    ) -> Wallet:
        """Create the user's wallet for ``currency`` with a zero balance.

        Raises:
            ConflictError: If the user already holds a wallet in this currency
        """
        existing = await self.find_wallet(session, user_id, currency)
        if existing is not None:
            raise ConflictError("Wallet already exists for this currency")

        wallet = Wallet(user_id=user_id, currency=currency, balance=Decimal("0.0000"))
        session.add(wallet)
        try:
            await session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent request for the same currency
            raise ConflictError("Wallet already exists for this currency") from exc

        logger.info(f"Created {currency.value} wallet {wallet.id} for user {user_id}")
        return wallet

    async def list_wallets(self, session: AsyncSession, user_id: uuid.UUID) -> list[Wallet]:
        result = await session.execute(
            select(Wallet).where(Wallet.user_id == user_id).order_by(Wallet.created_at)
        )
        return list(result.scalars().all())

    async def find_wallet(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        currency: Currency,
    ) -> Wallet | None:
        result = await session.execute(
            select(Wallet).where(Wallet.user_id == user_id, Wallet.currency == currency)
        )
        return result.scalar_one_or_none()

    async def get_wallet(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        currency: Currency,
    ) -> Wallet:
        wallet = await self.find_wallet(session, user_id, currency)
        if wallet is None:
            raise WalletNotFoundError(str(user_id), currency.value)
        return wallet

    async def get_wallet_balance(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        currency: Currency,
    ) -> Decimal:
        """Committed balance of the user's wallet in ``currency``."""
        wallet = await self.get_wallet(session, user_id, currency)
        return wallet.balance
