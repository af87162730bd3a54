"""
ConnectorRegistry — discovers and provides access to workspace connectors.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from connectors.base import BaseConnector
from connectors.notion import NotionConnector

logger = logging.getLogger(__name__)

# ── All known connectors — add new ones here ─────────────────────────────

_ALL_CONNECTORS: List[BaseConnector] = [
    NotionConnector(),
]


class ConnectorRegistry:
    """Singleton registry for all OAuth connectors."""

    _instance: Optional["ConnectorRegistry"] = None

    def __new__(cls) -> "ConnectorRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {}
            cls._instance._discovered = False
        return cls._instance

    def discover(self) -> None:
        """Register all configured connectors."""
        if self._discovered:
            return
        for conn in _ALL_CONNECTORS:
            self.register(conn)
        self._discovered = True

    def register(self, connector: BaseConnector) -> None:
        if connector.is_configured():
            self._connectors[connector.provider_name] = connector
            logger.info(
                "Connector registered: %s (%s)",
                connector.display_name,
                connector.provider_name,
            )
        else:
            logger.warning(
                "Connector %s skipped — not configured (missing client_id/secret)",
                connector.provider_name,
            )

    def get(self, provider: str) -> Optional[BaseConnector]:
        """Get a connector by provider name."""
        self.discover()
        return self._connectors.get(provider)

    def list_providers(self) -> List[Dict[str, object]]:
        """Return info about all known connectors."""
        return [
            {
                "provider": c.provider_name,
                "display_name": c.display_name,
                "configured": c.is_configured(),
            }
            for c in _ALL_CONNECTORS
        ]

    # ── reset (for tests) ──────────────────────────────────────────────

    @classmethod
    def reset(cls) -> None:
        """Destroy singleton — only useful in test teardown."""
        cls._instance = None
