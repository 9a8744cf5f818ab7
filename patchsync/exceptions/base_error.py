"""
PatchSync - Base Exception

Root of the PatchSync exception hierarchy.

Author: PatchSync Project
"""


class PatchSyncError(Exception):
    """Base exception for all PatchSync errors."""
    pass
