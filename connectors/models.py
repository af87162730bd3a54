"""
This module re-exports the connection models from the database package for use in connector-related code.
"""

from database.models import ExchangedCode, WorkspaceConnection  # noqa: F401

__all__ = ["ExchangedCode", "WorkspaceConnection"]
