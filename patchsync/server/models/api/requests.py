"""
PatchSync Server - Request API Models

Pydantic models for the JSON request bodies of the patch endpoints.
"""

from typing import Optional
from pydantic import BaseModel


class FileRequest(BaseModel):
    """Request naming a user's logical file (used by /hash)"""
    username: str
    filename: str


class AuthenticatedRequest(BaseModel):
    """Fields proving the caller owns the username's key pair"""
    username: str
    public_key: str
    signature: str


class RegisterRequest(AuthenticatedRequest):
    pass


class AuthenticatedFileRequest(AuthenticatedRequest):
    """Request for /patches (logical name) and /patch/download (record name)"""
    filename: str


class PatchUploadRequest(AuthenticatedRequest):
    """Request model for /patch"""
    filename: str  # '<logical name>.<new content hash>.<timestamp ms>'
    patch: str  # Encoded delta
    base_hash: Optional[str] = None  # Hash the delta was computed against ('' for an empty log)
