"""API dependency injection.

Provides FastAPI dependencies for database sessions, the caller's
identity and the notification relay used across API endpoints.
"""

import uuid
from collections.abc import AsyncGenerator
from typing import Annotated, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from exchange.core.exceptions import AuthenticationError, AuthorizationError
from exchange.db.session import get_async_session
from exchange.models.user import User
from exchange.services.notifications import NotificationRelay


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides an async database session.

    This wraps the session management from exchange.db.session
    for use as a FastAPI dependency.

    Usage:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            ...
    """
    async for session in get_async_session():
        yield session


# Type alias for cleaner dependency injection syntax
DBSession = Annotated[AsyncSession, Depends(get_db)]


async def load_active_user(session: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
    """Look up an active user and end the read transaction.

    Endpoints open their own ``session.begin()`` block afterwards, which
    requires that no transaction is in progress on the shared session.
    """
    user = await session.get(User, user_id)
    await session.commit()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    session: DBSession,
    x_user_id: Annotated[Optional[uuid.UUID], Header()] = None,
) -> User:
    """Resolve the caller from the ``X-User-Id`` header.

    The header is set by the upstream session layer after it has
    authenticated the request.
    """
    if x_user_id is None:
        raise AuthenticationError()
    user = await load_active_user(session, x_user_id)
    if user is None:
        raise AuthenticationError("Unknown or inactive user")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_admin_user(user: CurrentUser) -> User:
    """Require the caller to be an administrator."""
    if not user.is_admin:
        raise AuthorizationError()
    return user


AdminUser = Annotated[User, Depends(get_admin_user)]


def get_relay(request: Request) -> NotificationRelay:
    """The notification relay owned by the running application."""
    return request.app.state.relay


Relay = Annotated[NotificationRelay, Depends(get_relay)]
