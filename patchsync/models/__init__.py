"""
PatchSync - Models Package

Contains data models shared by the client and the server.
"""

from patchsync.models.patch_record import PatchRecord, BuildRecordName, ParseRecordName

__all__ = [
    'PatchRecord',
    'BuildRecordName',
    'ParseRecordName',
]
