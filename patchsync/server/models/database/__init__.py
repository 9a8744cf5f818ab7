"""
PatchSync Server - Database Models Package

This package contains all SQLAlchemy database model definitions.
"""

# Import Base first
from patchsync.server.models.database.base import Base

from patchsync.server.models.database.user import User

__all__ = [
    'Base',
    'User',
]
