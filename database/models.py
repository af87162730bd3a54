"""
SQLAlchemy ORM models for users, workspace connections and the exchanged-code ledger.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(128))
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    connections = relationship("WorkspaceConnection", back_populates="user", cascade="all, delete-orphan")


class WorkspaceConnection(Base):
    """The connection record: one row per (user, provider), source of truth for status."""

    __tablename__ = "workspace_connections"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="uq_workspace_connection_user_provider"),)

    connection_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(32), nullable=False)
    workspace_id = Column(String(256))
    workspace_name = Column(String(256))
    bot_id = Column(String(256))
    access_token = Column(Text)
    refresh_token = Column(Text)
    expires_at = Column(DateTime(timezone=True))
    provider_meta = Column(JSON, default=dict)
    connected = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default="active")
    connected_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    disconnected_at = Column(DateTime(timezone=True))
    last_refreshed = Column(DateTime(timezone=True))
    last_used_at = Column(DateTime(timezone=True))
    error_message = Column(Text)

    user = relationship("User", back_populates="connections")


class ExchangedCode(Base):
    """Ledger of authorization codes already submitted to a provider (sha256 only)."""

    __tablename__ = "exchanged_codes"

    code_hash = Column(String(64), primary_key=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(32), nullable=False)
    exchanged_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
