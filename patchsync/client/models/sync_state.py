"""
PatchSync Client - Sync State Model

Contains the SyncState enum and the per-invocation SyncClientState record.

Author: PatchSync Project
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class SyncState(Enum):
    """
    Enum representing the steps of one patch upload.

    States:
    - IDLE: Nothing read yet
    - LOCAL_SNAPSHOT_READ: Local file and cached snapshot loaded
    - DIFFED: Delta against the snapshot computed
    - ENCODED: Delta encoded for transport
    - UPLOADING: Patch sent, waiting for the server
    - SYNCED: Server stored the patch and the cache was updated
    - FAILED: Operation stopped; the cache was not changed
    """
    IDLE = "idle"
    LOCAL_SNAPSHOT_READ = "local_snapshot_read"
    DIFFED = "diffed"
    ENCODED = "encoded"
    UPLOADING = "uploading"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass
class SyncClientState:
    """
    Session data of one sync invocation for a (user, file) pair.

    Created once per invocation and discarded at process end.
    """
    username: str
    server_address: str
    filename: str
    cache_folder: Path
    hash_local: Optional[str] = None
    state: SyncState = SyncState.IDLE
    history: List[SyncState] = field(default_factory=list)
    error: Optional[str] = None

    def transition(self, new_state: SyncState):
        """Move to new_state, remembering the previous one."""
        self.history.append(self.state)
        self.state = new_state

    def fail(self, error: Exception):
        self.error = str(error)
        self.transition(SyncState.FAILED)
