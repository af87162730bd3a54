"""
BaseConnector — abstract interface for workspace OAuth2 connectors.

Every provider subclasses this and implements the core methods.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class BaseConnector(ABC):
    """Abstract base for all OAuth2 workspace connectors."""

    # ── Identity ────────────────────────────────────────────────────────
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Unique slug: 'notion'."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable: 'Notion'."""
        ...

    # ── OAuth flow ──────────────────────────────────────────────────────

    @abstractmethod
    def get_auth_url(self, state: Optional[str] = None) -> str:
        """
        Build the provider's OAuth2 authorization URL.

        Parameters
        ----------
        state : str, optional
            Opaque value echoed back by the provider on redirect.

        Returns
        -------
        The full URL to send the user to.
        """
        ...

    @abstractmethod
    async def handle_callback(self, code: str, redirect_uri: Optional[str] = None) -> Dict[str, Any]:
        """
        Exchange the authorization code for tokens.

        Parameters
        ----------
        code : str
            Authorization code from the OAuth redirect.
        redirect_uri : str, optional
            Redirect target the code was issued for; defaults to the
            configured one.

        Returns
        -------
        dict with keys:
            access_token, refresh_token, expires_in, workspace_id,
            workspace_name, bot_id, provider_meta

        Raises
        ------
        ProviderExchangeError
            The provider rejected the code.
        ProviderUnavailableError
            The provider could not be reached.
        """
        ...

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Refresh an expired access token.

        Returns
        -------
        dict with keys: access_token, expires_in, (optional) refresh_token
        """
        raise NotImplementedError(f"{self.provider_name} does not support token refresh")

    async def revoke_token(self, access_token: str) -> bool:
        """
        Revoke the token at the provider (optional).
        Returns True on success, False if provider doesn't support revocation.
        """
        return False

    # ── Helpers ─────────────────────────────────────────────────────────

    def is_configured(self) -> bool:
        """
        Return True if this connector has all required config
        (client ID, secret, redirect URI).
        """
        return True
