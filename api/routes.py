"""
REST API routes that are not tied to a feature module.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter

from config.settings import config
from connectors.encryption import is_encryption_enabled
from connectors.registry import ConnectorRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health() -> Dict[str, Any]:
    """Liveness probe plus a summary of the connect configuration."""
    registry = ConnectorRegistry()
    return {
        "status": "ok",
        "provider": config.workspace_provider,
        "provider_configured": registry.get(config.workspace_provider) is not None,
        "token_encryption": is_encryption_enabled(),
    }
