"""API v1 router aggregation."""

from fastapi import APIRouter

from exchange.api.v1 import admin, deposits, notifications, transactions, wallets, withdrawals

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(wallets.router)
api_router.include_router(deposits.router)
api_router.include_router(withdrawals.router)
api_router.include_router(transactions.router)
api_router.include_router(admin.router)
api_router.include_router(notifications.router)
