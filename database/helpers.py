"""
Database helper functions — ensure parent records exist.

"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User

logger = logging.getLogger(__name__)



def to_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return uuid.UUID(value) if isinstance(value, str) else value



async def get_user(session: AsyncSession, user_id: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.user_id == to_uuid(user_id)))
    return result.scalar_one_or_none()


async def ensure_user_exists(session: AsyncSession, user_id: str, email: str) -> User:
    """Return the ``User`` row for *user_id*, creating it if missing (idempotent).

    The stored email follows the verified session email.
    """
    user = await get_user(session, user_id)
    if user is not None:
        if email and user.email != email:
            logger.info("Updating email of user %s from the session credential", user_id)
            user.email = email
            await session.flush()
        return user

    user = User(
        user_id=to_uuid(user_id),
        email=email or f"{user_id}@workspace-connect.local",
        display_name=(email.split("@", 1)[0] if email else f"User {str(user_id)[:8]}"),
    )
    session.add(user)
    await session.flush()
    logger.info("Created user row for %s", user_id)
    return user
