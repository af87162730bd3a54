"""
JWT-style session credential creation and verification.

Tokens are ``<base64url JSON payload>.<hex HMAC-SHA256 signature>``.  The
payload carries ``user_id``, ``email`` and ``exp`` so a client can read the
identity claim without a network call; only the server can verify it.
Secret key is loaded from ``config.jwt_secret`` (env var: ``JWT_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status

from config.settings import config


@dataclass(frozen=True)
class SessionIdentity:
    user_id: str
    email: str


def _sign(raw: bytes) -> str:
    return hmac.new(config.jwt_secret.encode(), raw, hashlib.sha256).hexdigest()


def encode_segment(raw: bytes) -> str:
    return urlsafe_b64encode(raw).decode().rstrip("=")


def decode_segment(segment: str) -> bytes:
    return urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


def create_token(user_id: str, email: str, expires_in: Optional[int] = None) -> str:
    """Create a signed token containing ``user_id``, ``email`` and expiry."""
    ttl = config.jwt_expiry_seconds if expires_in is None else expires_in
    payload = {
        "user_id": user_id,
        "email": email,
        "exp": int(time.time()) + ttl,
    }
    raw = json.dumps(payload, separators=(",", ":")).encode()
    return encode_segment(raw) + "." + _sign(raw)


def verify_token(token: str) -> SessionIdentity:
    """
    Verify token and return the caller's ``SessionIdentity``.

    Raises ``HTTPException(401)`` on invalid or expired tokens.
    """
    try:
        parts = token.split(".", 1)
        if len(parts) != 2:
            raise ValueError("bad format")
        raw = decode_segment(parts[0])
        if not hmac.compare_digest(parts[1], _sign(raw)):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if payload.get("exp", 0) < time.time():
            raise ValueError("token expired")
        return SessionIdentity(user_id=payload["user_id"], email=payload.get("email", ""))
    except (ValueError, KeyError, TypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
        ) from exc
