"""
PatchSync - Network Error Exceptions

Raised for transport failures and for responses where the server reported
success=false.

Author: PatchSync Project
"""

from .base_error import PatchSyncError


class NetworkError(PatchSyncError):
    """Exception for transport failures talking to the server."""
    pass


class ServerRejectedError(NetworkError):
    """Server answered but refused the request."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class ConflictError(ServerRejectedError):
    """Server's current content hash no longer matches the upload's base."""
    pass
