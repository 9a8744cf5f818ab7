"""
PatchSync Server - Per-File Write Locks

Serializes writes to each (user, file) patch log. Writers to different files
never contend. Locks live in memory only, and a file's entry is dropped once
no request holds or waits for it.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from patchsync.server.models.infrastructure import FileLock

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 10

_registry_lock = threading.Lock()
_file_locks: Dict[Tuple[str, str], threading.Lock] = {}
_lock_users: Dict[Tuple[str, str], int] = {}  # holders + waiters per key
_lock_holders: Dict[Tuple[str, str], FileLock] = {}


def _CheckoutLock(key: Tuple[str, str]) -> threading.Lock:
    with _registry_lock:
        if key not in _file_locks:
            _file_locks[key] = threading.Lock()
            _lock_users[key] = 0
        _lock_users[key] += 1
        return _file_locks[key]


def _ReturnLock(key: Tuple[str, str]) -> None:
    # Caller holds _registry_lock
    _lock_users[key] -= 1
    if _lock_users[key] == 0:
        del _lock_users[key]
        del _file_locks[key]


def AcquireFileLock(username: str, filename: str,
                    timeout_seconds: Optional[float] = None) -> Tuple[bool, Optional[str]]:
    """
    Attempt to acquire the write lock of one patch log

    Args:
        username: Owner of the patch log
        filename: Logical file name
        timeout_seconds: How long to wait for a concurrent writer
                         (default DEFAULT_LOCK_TIMEOUT_SECONDS)

    Returns:
        (success: bool, error_message: Optional[str])
    """
    if timeout_seconds is None:
        timeout_seconds = DEFAULT_LOCK_TIMEOUT_SECONDS

    key = (username, filename)
    lock = _CheckoutLock(key)

    if not lock.acquire(timeout=timeout_seconds):
        with _registry_lock:
            holder = _lock_holders.get(key)
            _ReturnLock(key)
        elapsed = holder.ElapsedSeconds() if holder else 0
        error_msg = (
            f"Server is busy - '{filename}' of {username} is being written "
            f"(started {elapsed} seconds ago)"
        )
        logger.warning(error_msg)
        return False, error_msg

    with _registry_lock:
        _lock_holders[key] = FileLock(
            username=username,
            filename=filename,
            locked_at_utc=datetime.now(timezone.utc)
        )

    logger.debug(f"Lock acquired for '{filename}' of {username}")
    return True, None


def ReleaseFileLock(username: str, filename: str) -> None:
    """Release the write lock of one patch log (no-op if it is not held)"""
    key = (username, filename)
    with _registry_lock:
        if _lock_holders.pop(key, None) is None:
            return
        _file_locks[key].release()
        _ReturnLock(key)

    logger.debug(f"Lock released for '{filename}' of {username}")


def GetLockInfo(username: str, filename: str) -> Optional[FileLock]:
    with _registry_lock:
        return _lock_holders.get((username, filename))


def ActiveLockCount() -> int:
    """Number of files that currently have a holder or waiter"""
    with _registry_lock:
        return len(_file_locks)
