"""
PatchSync Client - Models Package

Contains data models and enumerations used by the client.

Author: PatchSync Project
"""

from .sync_state import SyncState, SyncClientState

__all__ = [
    'SyncState',
    'SyncClientState'
]
