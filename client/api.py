"""
ConnectApiClient — httpx caller for the connect API.

Every method performs exactly one request, with no retries.  Failures of any
kind surface as ``ConnectApiError``; the caller decides what to show.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from client.errors import ConnectApiError
from config.settings import config
from utils.schemas import (
    AuthUrlResponse,
    ConnectionStatusResponse,
    DisconnectResponse,
    TokenExchangeResponse,
    UserInfoResponse,
)

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)


def _json_body(resp: httpx.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_from_response(resp: httpx.Response) -> ConnectApiError:
    body = _json_body(resp)
    detail = body.get("detail")
    return ConnectApiError(
        error=body.get("error"),
        description=(
            body.get("errorDescription")
            or body.get("error_description")
            or (detail if isinstance(detail, str) else None)
        ),
        status_code=resp.status_code,
        transport_message=f"Request failed with status code {resp.status_code}",
    )


class ConnectApiClient:
    """Async client for ``/connect/*`` and ``/auth/me``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url or config.connect_api_base,
            timeout=timeout if timeout is not None else config.client_timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "ConnectApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── plumbing ───────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        credential: str,
        model: Type[_M],
        **kwargs: Any,
    ) -> _M:
        try:
            resp = await self._client.request(
                method,
                path,
                headers={"Authorization": f"Bearer {credential}"},
                **kwargs,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ConnectApiError(transport_message=str(exc) or exc.__class__.__name__) from exc

        if resp.is_error:
            raise _error_from_response(resp)

        try:
            return model.model_validate(_json_body(resp))
        except ValidationError as exc:
            raise ConnectApiError(
                status_code=resp.status_code,
                transport_message=f"Malformed response from {path}",
            ) from exc

    # ── endpoints ──────────────────────────────────────────────────────

    async def exchange_code(
        self,
        code: str,
        credential: str,
        redirect_uri: Optional[str] = None,
    ) -> TokenExchangeResponse:
        body: Dict[str, str] = {"code": code}
        if redirect_uri:
            body["redirectUri"] = redirect_uri
        return await self._request("POST", "/connect/token", credential, TokenExchangeResponse, json=body)

    async def check_status(self, credential: str) -> ConnectionStatusResponse:
        return await self._request("GET", "/connect/status", credential, ConnectionStatusResponse)

    async def disconnect(self, credential: str, email: Optional[str] = None) -> DisconnectResponse:
        params = {"email": email} if email else None
        return await self._request("POST", "/connect/disconnect", credential, DisconnectResponse, params=params)

    async def fetch_identity(self, credential: str) -> UserInfoResponse:
        return await self._request("GET", "/auth/me", credential, UserInfoResponse)

    async def authorize_url(self, credential: str, state: Optional[str] = None) -> str:
        """Provider consent URL; the view navigates there to (re)connect."""
        params = {"state": state} if state else None
        result = await self._request("GET", "/connect/auth-url", credential, AuthUrlResponse, params=params)
        return result.auth_url
