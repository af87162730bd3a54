"""
Exception raised by the connect API client.
"""

from __future__ import annotations

from typing import Optional


class ConnectApiError(RuntimeError):
    """A connect API call failed at the transport level or with an error status.

    ``error`` / ``description`` carry the server's (or provider's) own
    strings when the server answered; ``transport_message`` describes the
    failure of the request itself.
    """

    def __init__(
        self,
        *,
        error: Optional[str] = None,
        description: Optional[str] = None,
        status_code: Optional[int] = None,
        transport_message: Optional[str] = None,
    ) -> None:
        super().__init__(description or error or transport_message or "connect API request failed")
        self.error = error
        self.description = description
        self.status_code = status_code
        self.transport_message = transport_message

    @property
    def has_response(self) -> bool:
        return self.status_code is not None
