"""
Exception types raised by workspace connectors.

Only lightweight, data-carrying exceptions live here so that the HTTP layer
can turn them into the connect API's JSON contract.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ProviderExchangeError(RuntimeError):
    """The provider answered and rejected the request (bad, expired or replayed code)."""

    def __init__(
        self,
        error: str,
        *,
        description: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(description or error)
        self.error = error
        self.description = description
        self.status_code = status_code

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.error,
            "errorDescription": self.description,
        }


class ProviderUnavailableError(RuntimeError):
    """The provider could not be reached or returned an unusable response."""
