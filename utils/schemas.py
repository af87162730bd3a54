"""
Pydantic schemas shared by the connect API and its client.

Wire names are camelCase (``workspaceReference``); Python attributes are
snake_case.  Every model accepts either form on input.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════════
# Token exchange
# ═══════════════════════════════════════════════════════════════════════════════


class TokenExchangeRequest(_WireModel):
    code: str = Field(..., min_length=1)
    redirect_uri: Optional[str] = Field(None, alias="redirectUri")


class TokenExchangeResponse(_WireModel):
    success: bool
    workspace_reference: Optional[str] = Field(None, alias="workspaceReference")
    workspace_name: Optional[str] = Field(None, alias="workspaceName")
    error: Optional[str] = None
    error_description: Optional[str] = Field(None, alias="errorDescription")


# ═══════════════════════════════════════════════════════════════════════════════
# Status / disconnect
# ═══════════════════════════════════════════════════════════════════════════════


class ConnectionStatusResponse(_WireModel):
    success: bool
    connected: bool = False
    workspace_reference: Optional[str] = Field(None, alias="workspaceReference")
    error: Optional[str] = None


class DisconnectResponse(_WireModel):
    success: bool
    error: Optional[str] = None


class AuthUrlResponse(_WireModel):
    auth_url: str
    provider: str


# ═══════════════════════════════════════════════════════════════════════════════
# Identity
# ═══════════════════════════════════════════════════════════════════════════════


class UserInfoResponse(_WireModel):
    user_id: Optional[str] = None
    email: str
    display_name: Optional[str] = None
