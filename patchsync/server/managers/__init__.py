"""
PatchSync Server - Managers Package

Contains manager classes for server-side resources.
"""

from patchsync.server.managers.database_manager import DatabaseManager

__all__ = ['DatabaseManager']
