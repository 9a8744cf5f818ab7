"""
PatchSync Server - User Database Model

Binds a username to the public key that registered it.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime

from patchsync.server.models.database.base import Base


class User(Base):
    """
    Users table - one row per registered username
    The first public key presented for a username is kept (trust on first use)
    """
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False)
    public_key = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    last_seen = Column(DateTime, nullable=True)
