"""
FastAPI dependencies for authentication.

Provides ``db_session`` and ``get_current_identity`` dependencies that
are used across all protected routes.
"""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth.jwt import SessionIdentity, verify_token
from database.session import get_db_session

_bearer_scheme = HTTPBearer()


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> SessionIdentity:
    """
    Extract and verify the Bearer session credential, returning the
    authenticated identity (``user_id`` + ``email``).
    """
    return verify_token(credentials.credentials)
