# Database Connection and Base Models

from exchange.db.base import Base
from exchange.db.session import (
    dispose_engine,
    get_async_engine,
    get_async_session,
    get_async_session_maker,
)

__all__ = [
    "Base",
    "dispose_engine",
    "get_async_engine",
    "get_async_session",
    "get_async_session_maker",
]
