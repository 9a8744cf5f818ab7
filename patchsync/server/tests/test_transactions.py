"""
Tests for the PatchSync Server per-file write locks

Tests that writers of one file wait for each other, that other files never
contend, and that released locks leave nothing behind.
"""

import threading

from patchsync.server import transactions


def acquire_in_thread(username, filename, timeout_seconds):
    """Run AcquireFileLock on another request thread and return its result"""
    result = {}

    def worker():
        result["value"] = transactions.AcquireFileLock(username, filename, timeout_seconds=timeout_seconds)

    thread = threading.Thread(target=worker)
    thread.start()
    thread.join(timeout=5)
    assert not thread.is_alive()
    return result["value"]


def test_busy_file_times_out():
    """Test a second writer of the same file gets the busy message"""
    acquired, error_message = transactions.AcquireFileLock("alice", "notes.txt")
    assert acquired and error_message is None
    assert transactions.GetLockInfo("alice", "notes.txt").username == "alice"

    try:
        acquired, error_message = acquire_in_thread("alice", "notes.txt", 0.1)
        assert acquired is False
        assert error_message.startswith("Server is busy")
        assert "notes.txt" in error_message

        # Other files and other users never contend
        assert acquire_in_thread("alice", "todo.txt", 0.1) == (True, None)
        assert acquire_in_thread("bob", "notes.txt", 0.1) == (True, None)
    finally:
        transactions.ReleaseFileLock("alice", "notes.txt")
        transactions.ReleaseFileLock("alice", "todo.txt")
        transactions.ReleaseFileLock("bob", "notes.txt")

    assert transactions.GetLockInfo("alice", "notes.txt") is None

    print("Busy file tests passed")


def test_waiter_gets_lock_after_release():
    """Test a waiting writer proceeds once the holder releases"""
    transactions.AcquireFileLock("alice", "notes.txt")
    releaser = threading.Timer(0.1, transactions.ReleaseFileLock, args=("alice", "notes.txt"))
    releaser.start()

    try:
        assert acquire_in_thread("alice", "notes.txt", 3) == (True, None)
    finally:
        releaser.join()
        transactions.ReleaseFileLock("alice", "notes.txt")

    print("Waiting writer tests passed")


def test_released_locks_are_pruned():
    """Test the registry holds only files that are locked or awaited"""
    before = transactions.ActiveLockCount()

    for index in range(20):
        filename = f"file-{index}.txt"
        assert transactions.AcquireFileLock("carol", filename) == (True, None)
        transactions.ReleaseFileLock("carol", filename)

    transactions.AcquireFileLock("carol", "kept.txt")
    assert acquire_in_thread("carol", "kept.txt", 0.05)[0] is False
    assert transactions.ActiveLockCount() == before + 1

    transactions.ReleaseFileLock("carol", "kept.txt")
    # Releasing twice is harmless
    transactions.ReleaseFileLock("carol", "kept.txt")
    assert transactions.ActiveLockCount() == before

    print("Lock pruning tests passed")
