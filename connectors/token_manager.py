"""
Token manager — claim codes, store / read / clear per-user workspace connections.

This is the single interface the HTTP layer and downstream consumers use to
touch connection records.  Every function is keyed by the *authenticated*
user_id; callers never pass a client-supplied identity here.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from connectors.encryption import decrypt_token, encrypt_token
from connectors.errors import ProviderExchangeError, ProviderUnavailableError
from connectors.models import ExchangedCode, WorkspaceConnection
from connectors.registry import ConnectorRegistry
from database.helpers import to_uuid
from database.session import async_session_factory

logger = logging.getLogger(__name__)

_REFRESH_GRACE = timedelta(seconds=120)


def hash_code(code: str) -> str:
    """sha256 of an authorization code; the raw code is never persisted or logged."""
    return hashlib.sha256(code.encode()).hexdigest()


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def claim_authorization_code(
    session: AsyncSession,
    code: str,
    user_id: str,
    provider: str,
) -> bool:
    """
    Record *code* as exchanged.  Returns False if it was claimed before (replay).

    The claim lives in a savepoint so a duplicate does not poison the
    surrounding transaction.
    """
    code_hash = hash_code(code)
    existing = await session.get(ExchangedCode, code_hash)
    if existing is not None:
        logger.warning("Replayed authorization code %s… for user %s", code_hash[:8], user_id)
        return False

    try:
        async with session.begin_nested():
            session.add(
                ExchangedCode(
                    code_hash=code_hash,
                    user_id=to_uuid(user_id),
                    provider=provider,
                )
            )
    except IntegrityError:
        logger.warning("Concurrent claim of authorization code %s… for user %s", code_hash[:8], user_id)
        return False
    return True


async def get_connection(
    session: AsyncSession,
    user_id: str,
    provider: str,
) -> Optional[WorkspaceConnection]:
    result = await session.execute(
        select(WorkspaceConnection).where(
            WorkspaceConnection.user_id == to_uuid(user_id),
            WorkspaceConnection.provider == provider,
        )
    )
    return result.scalar_one_or_none()


async def store_connection(
    session: AsyncSession,
    user_id: str,
    provider: str,
    token_data: Dict[str, Any],
) -> WorkspaceConnection:
    """
    Create or overwrite the connection record for user + provider.

    Parameters
    ----------
    token_data : dict
        Output from connector.handle_callback(): access_token, refresh_token,
        expires_in, workspace_id, workspace_name, bot_id, provider_meta
    """
    now = datetime.now(timezone.utc)
    expires_in = token_data.get("expires_in")
    expires_at = now + timedelta(seconds=int(expires_in)) if expires_in else None

    conn = await get_connection(session, user_id, provider)
    if conn is None:
        conn = WorkspaceConnection(user_id=to_uuid(user_id), provider=provider)
        session.add(conn)
        logger.info("Created %s connection for user %s", provider, user_id)
    else:
        logger.info("Updated %s connection for user %s", provider, user_id)

    conn.access_token = encrypt_token(token_data["access_token"])
    conn.refresh_token = encrypt_token(token_data.get("refresh_token"))
    conn.expires_at = expires_at
    conn.workspace_id = token_data.get("workspace_id") or ""
    conn.workspace_name = token_data.get("workspace_name") or ""
    conn.bot_id = token_data.get("bot_id") or ""
    conn.provider_meta = token_data.get("provider_meta") or {}
    conn.connected = True
    conn.status = "active"
    conn.error_message = None
    conn.connected_at = now
    conn.disconnected_at = None

    await session.flush()
    return conn


async def get_connection_status(
    user_id: str,
    provider: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> Dict[str, Any]:
    """Pure read of the connection record (no tokens exposed)."""
    own_session = db_session is None
    session = db_session or async_session_factory()
    try:
        conn = await get_connection(session, user_id, provider)
        if conn is None or not conn.connected:
            return {"connected": False, "workspace_id": None, "workspace_name": None}
        return {
            "connected": True,
            "workspace_id": conn.workspace_id,
            "workspace_name": conn.workspace_name,
        }
    finally:
        if own_session:
            await session.close()


async def disconnect(
    user_id: str,
    provider: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> bool:
    """
    Clear the connection for user + provider.

    Returns True if a live connection was cleared, False if there was nothing
    to clear.  Both outcomes are a successful disconnect.
    """
    own_session = db_session is None
    session = db_session or async_session_factory()
    try:
        conn = await get_connection(session, user_id, provider)
        if conn is None or not conn.connected:
            logger.info("Disconnect %s for user %s: already disconnected", provider, user_id)
            return False

        connector = ConnectorRegistry().get(provider)
        if connector and conn.access_token:
            try:
                revoked = await connector.revoke_token(decrypt_token(conn.access_token))
                logger.debug("Provider revocation for %s/%s: %s", provider, user_id, revoked)
            except (ProviderExchangeError, ProviderUnavailableError) as exc:
                logger.warning("Token revocation failed for %s/%s: %s", provider, user_id, exc)

        conn.connected = False
        conn.status = "disconnected"
        conn.access_token = None
        conn.refresh_token = None
        conn.expires_at = None
        conn.disconnected_at = datetime.now(timezone.utc)

        if own_session:
            await session.commit()
        else:
            await session.flush()

        logger.info("Disconnected %s for user %s", provider, user_id)
        return True

    except Exception:
        if own_session:
            await session.rollback()
        raise
    finally:
        if own_session:
            await session.close()


async def get_active_token(
    user_id: str,
    provider: str,
    *,
    db_session: Optional[AsyncSession] = None,
) -> Optional[str]:
    """
    Get a usable access token for the user + provider.

    1. Look up the connected record.
    2. If the token expires within the grace window, refresh it.
    3. Update ``last_used_at``.
    4. Return the access token, or None if not connected.
    """
    own_session = db_session is None
    session = db_session or async_session_factory()
    try:
        conn = await get_connection(session, user_id, provider)
        if conn is None or not conn.connected or not conn.access_token:
            return None

        now = datetime.now(timezone.utc)
        expires_at = _aware(conn.expires_at)
        if expires_at and expires_at < now + _REFRESH_GRACE:
            if not conn.refresh_token:
                conn.status = "expired"
                conn.error_message = "Token expired and no refresh token available"
                if own_session:
                    await session.commit()
                return None

            connector = ConnectorRegistry().get(provider)
            if not connector:
                logger.error("No connector for provider %s", provider)
                return None

            try:
                refreshed = await connector.refresh_access_token(decrypt_token(conn.refresh_token))
            except (ProviderExchangeError, ProviderUnavailableError, NotImplementedError) as exc:
                conn.status = "error"
                conn.error_message = f"Refresh failed: {exc}"
                logger.warning("Token refresh failed for %s/%s: %s", provider, user_id, exc)
                if own_session:
                    await session.commit()
                return None

            conn.access_token = encrypt_token(refreshed["access_token"])
            if refreshed.get("expires_in"):
                conn.expires_at = now + timedelta(seconds=int(refreshed["expires_in"]))
            else:
                conn.expires_at = None
            # Some providers rotate refresh tokens
            if refreshed.get("refresh_token"):
                conn.refresh_token = encrypt_token(refreshed["refresh_token"])
            conn.last_refreshed = now
            conn.status = "active"
            conn.error_message = None
            logger.info("Refreshed %s token for user %s", provider, user_id)

        conn.last_used_at = now
        if own_session:
            await session.commit()
        else:
            await session.flush()

        return decrypt_token(conn.access_token)

    finally:
        if own_session:
            await session.close()
