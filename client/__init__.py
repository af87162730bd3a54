"""
client — the consuming side of the workspace connection.

Provides:
  • Session identity resolution from the locally stored credential
  • ``ConnectApiClient`` — httpx caller for the connect API
  • ``ConnectionController`` — per-activation state machine that exchanges
    an authorization code exactly once and reconciles connection status
"""
