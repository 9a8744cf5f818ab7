"""
PatchSync Server - File Lock Model

Dataclass describing who holds the write lock of one (user, file) patch log.
"""

from datetime import datetime, timezone
from dataclasses import dataclass


@dataclass
class FileLock:
    """Holder information for a per-file write lock"""
    username: str
    filename: str
    locked_at_utc: datetime

    def ElapsedSeconds(self) -> int:
        """Get elapsed time since lock was acquired"""
        now = datetime.now(timezone.utc)
        return int((now - self.locked_at_utc).total_seconds())
