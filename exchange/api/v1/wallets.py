"""Wallet API endpoints."""

from fastapi import APIRouter

from exchange.api.deps import CurrentUser, DBSession
from exchange.models.wallet import Currency
from exchange.schemas.wallet import WalletBalance, WalletCreate, WalletList, WalletRead
from exchange.services.wallet_service import WalletService

router = APIRouter(prefix="/wallets", tags=["wallets"])


@router.get("", response_model=WalletList)
async def list_wallets(session: DBSession, user: CurrentUser):
    """Return every wallet of the calling user."""
    service = WalletService()
    wallets = await service.list_wallets(session, user.id)
    return WalletList(wallets=[WalletRead.model_validate(wallet) for wallet in wallets])


@router.post("", response_model=WalletRead, status_code=201)
async def create_wallet(request: WalletCreate, session: DBSession, user: CurrentUser):
    """
    Create a wallet for one currency.

    - **currency**: USDT or JOD; each user holds at most one wallet per currency

    New wallets start with a zero balance.
    """
    service = WalletService()
    async with session.begin():
        wallet = await service.create_wallet(session, user.id, request.currency)
    return wallet


@router.get("/{currency}/balance", response_model=WalletBalance)
async def get_wallet_balance(currency: Currency, session: DBSession, user: CurrentUser):
    """Return the committed balance of the caller's wallet in ``currency``."""
    service = WalletService()
    balance = await service.get_wallet_balance(session, user.id, currency)
    return WalletBalance(currency=currency, balance=balance)
