"""
PatchSync - Patch Apply Error Exception

Raised when a delta cannot be applied to its base text.

Author: PatchSync Project
"""

from .base_error import PatchSyncError


class PatchApplyError(PatchSyncError):
    """Exception for deltas that do not fit the base text."""
    pass
