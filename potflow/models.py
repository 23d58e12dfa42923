"""
SQLAlchemy models for linked Monzo accounts, their pots, and pending connection approvals.
"""

import uuid

from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Integer, String,
                        UniqueConstraint, func)
from sqlalchemy.orm import relationship

from potflow.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class LinkedAccount(Base):
    """
    A Monzo account connected by a user.

    Attributes:
        id (str): Internal identifier.
        user_id (str): Owner of the connection.
        account_id (str): Monzo account ID.
        account_name (str): Monzo description or a generated name.
        account_type (str): 'current', 'flex', 'rewards' or 'other'.
        balance (int): Cached balance in minor units (pennies).
        access_token (str): OAuth access token (sensitive, server-side only).
        refresh_token (str): OAuth refresh token (sensitive, server-side only).
        token_expiry (datetime): When the access token expires.
        reconnect_by (datetime): Consent deadline after which the user must reconnect.
        is_active (bool): Whether the connection is in use.
        last_synced (datetime): Last successful account/pot sync.
    """

    __tablename__ = "linked_accounts"
    __table_args__ = (
        UniqueConstraint("user_id", "account_id", name="uq_linked_accounts_user_account"),
    )

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    account_id = Column(String, nullable=False, doc="Monzo account ID")
    account_name = Column(String, nullable=False)
    account_type = Column(String, nullable=False, default="other")
    balance = Column(Integer, nullable=False, default=0)
    access_token = Column(String, nullable=False)
    refresh_token = Column(String, nullable=True)
    token_expiry = Column(DateTime(timezone=True), nullable=True)
    reconnect_by = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_synced = Column(DateTime(timezone=True), nullable=True)
    connected_at = Column(DateTime(timezone=True), server_default=func.now())

    pots = relationship("Pot", back_populates="linked_account", cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        """Public representation. Tokens are never included."""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "balance": self.balance,
            "is_active": self.is_active,
            "reconnect_by": self.reconnect_by.isoformat() if self.reconnect_by else None,
            "last_synced": self.last_synced.isoformat() if self.last_synced else None,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
        }

    def __repr__(self) -> str:
        return f"<LinkedAccount id={self.id} account_id={self.account_id} type={self.account_type}>"


class Pot(Base):
    """
    A Monzo savings pot under a linked account, keyed by the Monzo pot ID for upserts.
    """

    __tablename__ = "pots"

    id = Column(String, primary_key=True, default=_uuid)
    linked_account_id = Column(
        String, ForeignKey("linked_accounts.id"), nullable=False, index=True
    )
    pot_id = Column(String, nullable=False, unique=True, doc="Monzo pot ID")
    pot_name = Column(String, nullable=False)
    balance = Column(Integer, nullable=False, default=0)
    last_synced = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    linked_account = relationship("LinkedAccount", back_populates="pots")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pot_id": self.pot_id,
            "pot_name": self.pot_name,
            "balance": self.balance,
            "last_synced": self.last_synced.isoformat() if self.last_synced else None,
        }

    def __repr__(self) -> str:
        return f"<Pot id={self.id} pot_id={self.pot_id} name={self.pot_name} balance={self.balance}>"


class PendingApproval(Base):
    """
    Tokens issued by Monzo that are still waiting for in-app approval by the user.

    The row is deleted once the connection is verified (and promoted into
    LinkedAccount rows) or once its token has expired.
    """

    __tablename__ = "pending_approvals"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=False, index=True)
    access_token = Column(String, nullable=False)
    refresh_token = Column(String, nullable=False)
    token_expiry = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<PendingApproval id={self.id} user_id={self.user_id}>"
