"""
connectors — OAuth integration with the external workspace provider.

Provides a connector framework that handles:
  • OAuth2 auth-URL generation
  • Code → token exchange with replay protection
  • Per-user connection records & on-demand refresh
  • Fernet encryption of tokens at rest
  • Disconnect

Each provider (Notion, …) is a subclass of BaseConnector.
"""
