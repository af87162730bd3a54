"""
Session identity resolver.

Reads the host application's session credential from local storage and
decodes its identity claim without a network round trip.  Decoding is
best-effort: a malformed credential yields ``None``, never an exception.
"""

from __future__ import annotations

import json
import logging
from base64 import urlsafe_b64decode
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Where the session credential lives between page loads."""

    def load(self) -> Optional[str]: ...


class MemoryCredentialStore:
    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token

    def load(self) -> Optional[str]:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileCredentialStore:
    """Credential persisted in a single file (a desktop app's local storage)."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.is_file():
            return None
        token = self.path.read_text(encoding="utf-8").strip()
        return token or None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token, encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def _payload_segment(token: str) -> str:
    parts = token.split(".")
    # header.payload.signature (JWT) or payload.signature (host session token)
    if len(parts) == 3:
        return parts[1]
    if len(parts) == 2:
        return parts[0]
    raise ValueError("unexpected credential format")


def decode_identity(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the credential's claims, or ``None`` if they cannot be read.

    The signature is NOT verified; the result is only fit for display until
    the server confirms the identity.
    """
    if not token:
        return None
    try:
        segment = _payload_segment(token)
        raw = urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        claims = json.loads(raw)
    except ValueError as exc:
        logger.warning("Could not decode session credential: %s", exc)
        return None
    if not isinstance(claims, dict):
        logger.warning("Session credential payload is not an object")
        return None
    return claims

