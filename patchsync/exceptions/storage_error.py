"""
PatchSync - Storage Error Exception

Raised when the patch folder cannot be read or written.

Author: PatchSync Project
"""

from .base_error import PatchSyncError


class StorageError(PatchSyncError):
    """Exception for patch storage failures."""
    pass
