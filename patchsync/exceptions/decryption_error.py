"""
PatchSync - Decryption Error Exception

Raised when an encrypted payload fails authentication.

Author: PatchSync Project
"""

from .base_error import PatchSyncError


class DecryptionError(PatchSyncError):
    """Exception for failed decryption."""
    pass
