"""
PatchSync Client - API Package

This package contains the API communication class.
"""

from .patchsync_api import PatchSyncAPI

__all__ = ['PatchSyncAPI']
