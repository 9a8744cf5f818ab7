"""
PatchSync Server - API Models Package

This package contains Pydantic models for all API endpoints.
"""

from patchsync.server.models.api.requests import (
    FileRequest,
    AuthenticatedRequest,
    RegisterRequest,
    AuthenticatedFileRequest,
    PatchUploadRequest
)
from patchsync.server.models.api.responses import ServerResponse, PatchListResponse

__all__ = [
    'FileRequest',
    'AuthenticatedRequest',
    'RegisterRequest',
    'AuthenticatedFileRequest',
    'PatchUploadRequest',
    'ServerResponse',
    'PatchListResponse',
]
