"""
PatchSync - Codec Error Exception

Raised when an encoded delta cannot be decoded.

Author: PatchSync Project
"""

from .base_error import PatchSyncError


class CodecError(PatchSyncError):
    """Exception for malformed encoded deltas."""
    pass
