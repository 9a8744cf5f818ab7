"""
PatchSync Server - Infrastructure Models Package

Contains dataclasses for in-memory server state.
"""

from patchsync.server.models.infrastructure.file_lock import FileLock

__all__ = [
    'FileLock',
]
