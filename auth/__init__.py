"""
auth — session credential handling for the host application.

Provides:
  • Session credential creation & verification (HMAC-signed, JWT-style)
  • ``get_current_identity`` FastAPI dependency
  • Identity resolution route (``GET /auth/me``)
"""
