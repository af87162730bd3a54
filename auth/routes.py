"""
Auth API routes — identity resolution for an authenticated session.

Route prefix: /api/v1/auth
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_identity
from auth.jwt import SessionIdentity
from database.helpers import get_user
from utils.schemas import UserInfoResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/me", response_model=UserInfoResponse)
async def who_am_i(
    identity: SessionIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Return the full identity behind the bearer session credential."""
    user = await get_user(session, identity.user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    return {
        "user_id": str(user.user_id),
        "email": identity.email or user.email,
        "display_name": user.display_name,
    }
