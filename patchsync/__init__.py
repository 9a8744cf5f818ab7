"""
PatchSync - Incremental Text File Synchronization

Shares text files between machines by exchanging line-oriented patches with
a remote store. Each version of a file is kept as an immutable patch record
named '<file>.<content hash>.<timestamp>', next to a '<file>.last' snapshot.

Packages:
- patchsync.client   command line client and sync state machine
- patchsync.server   FastAPI remote store

Author: PatchSync Project
"""

__version__ = "1.0.0"
