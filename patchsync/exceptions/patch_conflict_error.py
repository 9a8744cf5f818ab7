"""
PatchSync - Patch Conflict Exception

Raised by the server store when an upload's base hash is not the newest
version it holds.

Author: PatchSync Project
"""

from .base_error import PatchSyncError


class PatchConflictError(PatchSyncError):
    """Upload was computed against a different version than the store holds."""
    pass
