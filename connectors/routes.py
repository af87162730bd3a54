"""
Connect API routes — authorize URL, code exchange, status, disconnect.

Route prefix: /api/v1/connect
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_identity
from auth.jwt import SessionIdentity
from config.settings import config
from connectors.base import BaseConnector
from connectors.errors import ProviderExchangeError
from connectors.registry import ConnectorRegistry
from connectors.token_manager import (
    claim_authorization_code,
    disconnect,
    get_connection_status,
    hash_code,
    store_connection,
)
from database.helpers import ensure_user_exists
from utils.schemas import (
    AuthUrlResponse,
    ConnectionStatusResponse,
    DisconnectResponse,
    TokenExchangeRequest,
    TokenExchangeResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connect"])

REPLAYED_CODE_ERROR = "invalid_grant"
REPLAYED_CODE_DESCRIPTION = "Authorization code has already been used"
IDENTITY_MISMATCH_ERROR = "Identity does not match the authenticated session"


def _require_connector(provider: str) -> BaseConnector:
    connector = ConnectorRegistry().get(provider)
    if not connector:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Provider '{provider}' not available or not configured",
        )
    return connector


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/providers")
async def list_providers() -> list[dict]:
    """List known workspace providers and whether each is configured."""
    return ConnectorRegistry().list_providers()


@router.get("/auth-url", response_model=AuthUrlResponse)
async def get_auth_url(
    state: Optional[str] = Query(None),
    identity: SessionIdentity = Depends(get_current_identity),
) -> Dict[str, str]:
    """Consent URL the view sends the user to when they click "connect"."""
    provider = config.workspace_provider
    connector = _require_connector(provider)
    return {"auth_url": connector.get_auth_url(state), "provider": provider}


@router.post(
    "/token",
    response_model=TokenExchangeResponse,
    response_model_exclude_none=True,
)
async def exchange_token(
    req: TokenExchangeRequest,
    identity: SessionIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """
    Exchange a one-time authorization code and persist the connection.

    The code is claimed in the exchanged-code ledger before the provider is
    contacted; a second submission of the same code fails with
    ``invalid_grant``.  Provider rejections are returned verbatim.
    ``ProviderUnavailableError`` propagates to the 502 handler, which also
    rolls the claim back.
    """
    provider = config.workspace_provider
    connector = _require_connector(provider)

    await ensure_user_exists(session, identity.user_id, identity.email)
    if not await claim_authorization_code(session, req.code, identity.user_id, provider):
        return {
            "success": False,
            "error": REPLAYED_CODE_ERROR,
            "error_description": REPLAYED_CODE_DESCRIPTION,
        }

    try:
        token_data = await connector.handle_callback(req.code, req.redirect_uri)
    except ProviderExchangeError as exc:
        logger.warning(
            "%s rejected code %s… for user %s: %s",
            provider,
            hash_code(req.code)[:8],
            identity.user_id,
            exc.error,
        )
        return exc.to_payload()

    conn = await store_connection(session, identity.user_id, provider, token_data)
    logger.info(
        "Workspace connected: user=%s provider=%s workspace=%s",
        identity.user_id,
        provider,
        conn.workspace_id,
    )
    return {
        "success": True,
        "workspace_reference": conn.workspace_id,
        "workspace_name": conn.workspace_name or None,
    }


@router.get(
    "/status",
    response_model=ConnectionStatusResponse,
    response_model_exclude_none=True,
)
async def connection_status(
    identity: SessionIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Whether the authenticated identity has a live workspace connection."""
    result = await get_connection_status(
        identity.user_id, config.workspace_provider, db_session=session
    )
    return {
        "success": True,
        "connected": result["connected"],
        "workspace_reference": result["workspace_id"],
    }


@router.api_route(
    "/disconnect",
    methods=["GET", "POST"],
    response_model=DisconnectResponse,
    response_model_exclude_none=True,
)
async def disconnect_workspace(
    email: Optional[str] = Query(None),
    identity: SessionIdentity = Depends(get_current_identity),
    session: AsyncSession = Depends(db_session),
) -> Any:
    """
    Clear the workspace connection of the authenticated identity.

    ``email`` is accepted for compatibility but only as a cross-check: the
    record touched is always the session's own.
    """
    if email and email.strip().lower() != identity.email.strip().lower():
        logger.warning(
            "Disconnect refused: user %s asked to disconnect a different identity",
            identity.user_id,
        )
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"success": False, "error": IDENTITY_MISMATCH_ERROR},
        )

    await disconnect(identity.user_id, config.workspace_provider, db_session=session)
    return {"success": True}
