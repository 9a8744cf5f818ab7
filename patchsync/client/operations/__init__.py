"""
PatchSync Client - Operations Package

Contains the synchronization operations.

Author: PatchSync Project
"""

from .sync_operations import SyncOperations

__all__ = ['SyncOperations']
