"""
Tests for the PatchSync Server user registry

Tests trust on first use, including two first registrations of one name
arriving at the same time.
"""

import pytest

from patchsync.server.managers.database_manager import DatabaseManager


class LateLookupDatabaseManager(DatabaseManager):
    """Registry whose first lookup misses, as if another request registered in between"""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.missed_lookups = 0

    def _FindUser(self, session, username):
        if self.missed_lookups == 0:
            self.missed_lookups += 1
            return None
        return super()._FindUser(session, username)


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "patchsync.db")
    db_manager = DatabaseManager(path)
    db_manager.InitializeDatabase()
    db_manager.RegisterUser("alice", "key-a")
    db_manager.Dispose()
    return path


def test_register_and_lookup(tmp_path):
    """Test first registration wins and the key is looked up"""
    db_manager = DatabaseManager(str(tmp_path / "users.db"))
    db_manager.InitializeDatabase()

    assert db_manager.GetUserPublicKey("alice") is None
    assert db_manager.RegisterUser("alice", "key-a") is True
    assert db_manager.RegisterUser("alice", "key-a") is False
    assert db_manager.GetUserPublicKey("alice") == "key-a"

    with pytest.raises(ValueError):
        db_manager.RegisterUser("alice", "key-b")

    db_manager.Dispose()

    print("Register and lookup tests passed")


def test_concurrent_registration_same_key(db_path):
    """Test losing the insert race with the same key is an existing registration"""
    db_manager = LateLookupDatabaseManager(db_path)

    assert db_manager.RegisterUser("alice", "key-a") is False
    assert db_manager.missed_lookups == 1
    assert db_manager.GetUserPublicKey("alice") == "key-a"

    db_manager.Dispose()

    print("Concurrent same key tests passed")


def test_concurrent_registration_other_key(db_path):
    """Test losing the insert race with another key is refused like any mismatch"""
    db_manager = LateLookupDatabaseManager(db_path)

    with pytest.raises(ValueError):
        db_manager.RegisterUser("alice", "key-b")
    assert db_manager.GetUserPublicKey("alice") == "key-a"

    db_manager.Dispose()

    print("Concurrent other key tests passed")
