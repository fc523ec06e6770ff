"""Shared fixtures: environment defaults and a file-backed SQLite database.

SQLite has no row-level locking, so ``SELECT ... FOR UPDATE`` is a no-op
there. Every transaction is started with ``BEGIN IMMEDIATE`` instead,
which takes the database write lock up front and makes a second writer
wait until the first commits, the same ordering PostgreSQL gives per row.
"""

import os

# Settings are required at import time of the Celery app and the API
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_USER", "testuser")
os.environ.setdefault("POSTGRES_PASSWORD", "testpass")
os.environ.setdefault("POSTGRES_DB", "testdb")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncIterator, Optional

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from exchange.db.base import Base
from exchange.models import (
    Currency,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    Wallet,
)

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def create_test_engine() -> tuple[AsyncEngine, str]:
    """Create a temporary file-based aiosqlite engine.

    A file is used rather than ``:memory:`` so that separate connections
    (one per concurrent session) see the same database.
    """
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        # Let SQLAlchemy, not pysqlite, emit BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine, db_path


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine, db_path = create_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()
        os.unlink(db_path)


@pytest.fixture
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Seeder:
    """Inserts rows in their own committed transactions."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker
        self._clock = 0

    async def _add(self, obj):
        async with self.session_maker() as session:
            async with session.begin():
                session.add(obj)
        return obj

    async def user(self, is_admin: bool = False, is_active: bool = True) -> User:
        user_id = uuid.uuid4()
        return await self._add(
            User(
                id=user_id,
                email=f"user_{user_id.hex}@example.com",
                full_name="Test User",
                is_active=is_active,
                is_admin=is_admin,
            )
        )

    async def wallet(
        self,
        user: User,
        balance: str = "0",
        currency: Currency = Currency.USDT,
    ) -> Wallet:
        return await self._add(
            Wallet(
                id=uuid.uuid4(),
                user_id=user.id,
                currency=currency,
                balance=Decimal(balance),
                version=1,
            )
        )

    async def transaction(
        self,
        wallet: Wallet,
        amount: str,
        type: TransactionType = TransactionType.WITHDRAWAL,
        status: TransactionStatus = TransactionStatus.PENDING,
        created_at: Optional[datetime] = None,
    ) -> Transaction:
        # Strictly increasing timestamps keep queue order deterministic
        self._clock += 1
        created_at = created_at or BASE_TIME + timedelta(minutes=self._clock)
        return await self._add(
            Transaction(
                id=uuid.uuid4(),
                user_id=wallet.user_id,
                wallet_id=wallet.id,
                type=type,
                currency=wallet.currency,
                amount=Decimal(amount),
                transaction_hash="ab" * 32 if type == TransactionType.DEPOSIT else "",
                status=status,
                wallet_address="TJRabPrwbZy45sbavfcjinPJC18kjpRTv8",
                file_key="deposits/proof.png" if type == TransactionType.DEPOSIT else None,
                created_at=created_at,
                updated_at=created_at,
            )
        )


@pytest.fixture
def seed(session_maker: async_sessionmaker[AsyncSession]) -> Seeder:
    return Seeder(session_maker)
