"""
NotionConnector — OAuth2 for a Notion workspace.

Public Notion integrations exchange the authorization code with HTTP Basic
client authentication and return a workspace-scoped bot token.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from config.settings import config
from connectors.base import BaseConnector
from connectors.errors import ProviderExchangeError, ProviderUnavailableError

logger = logging.getLogger(__name__)


class NotionConnector(BaseConnector):
    """OAuth2 connector for Notion."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "notion"

    @property
    def display_name(self) -> str:
        return "Notion"

    def is_configured(self) -> bool:
        return bool(config.notion_client_id and config.notion_client_secret)

    def get_auth_url(self, state: Optional[str] = None) -> str:
        params = {
            "client_id": config.notion_client_id,
            "response_type": "code",
            "owner": "user",
            "redirect_uri": config.notion_redirect_uri,
        }
        if state:
            params["state"] = state
        return f"{config.notion_authorize_url}?{urlencode(params)}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=config.provider_timeout_seconds,
            auth=(config.notion_client_id, config.notion_client_secret),
            headers={
                "Accept": "application/json",
                "Notion-Version": config.notion_api_version,
            },
        )

    async def _token_request(self, body: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                resp = await client.post(config.notion_token_url, json=body)
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(f"Notion token endpoint unreachable: {exc}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code >= 500:
            raise ProviderUnavailableError(
                f"Notion token endpoint returned {resp.status_code}"
            )
        if resp.is_error or "error" in data:
            raise ProviderExchangeError(
                data.get("error") or f"http_{resp.status_code}",
                description=data.get("error_description") or data.get("message"),
                status_code=resp.status_code,
            )
        if not data.get("access_token"):
            raise ProviderUnavailableError("Notion token response missing access_token")
        return data

    async def handle_callback(self, code: str, redirect_uri: Optional[str] = None) -> Dict[str, Any]:
        """Exchange auth code for a workspace bot token."""
        data = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri or config.notion_redirect_uri,
            }
        )

        owner = data.get("owner") or {}
        owner_user = owner.get("user") or {}
        return {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            "expires_in": data.get("expires_in"),
            "workspace_id": data.get("workspace_id", ""),
            "workspace_name": data.get("workspace_name", ""),
            "bot_id": data.get("bot_id", ""),
            "provider_meta": {
                "workspace_icon": data.get("workspace_icon"),
                "duplicated_template_id": data.get("duplicated_template_id"),
                "owner_type": owner.get("type"),
                "owner_user_id": owner_user.get("id"),
                "owner_email": (owner_user.get("person") or {}).get("email"),
            },
        }

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Refresh the access token for integrations issued refresh tokens."""
        data = await self._token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        return {
            "access_token": data["access_token"],
            "refresh_token": data.get("refresh_token"),
            "expires_in": data.get("expires_in"),
        }
