"""
PatchSync - Integrity Error Exception

Raised when a rebuilt text does not match its recorded content hash.

Author: PatchSync Project
"""

from .base_error import PatchSyncError


class IntegrityError(PatchSyncError):
    """Exception for content hash mismatches."""
    pass
