"""
Tests for PatchSync Client sync operations

Runs the patch up, sync and rebuild operations against an in-process server
store and checks that the local cache only changes after acknowledgment.
"""

import pytest

from patchsync.client.models import SyncState
from patchsync.client.operations import SyncOperations
from patchsync.exceptions import ConflictError, NetworkError, PatchConflictError, ServerRejectedError
from patchsync.keypair import DeriveKeyPair
from patchsync.patch_codec import HashText
from patchsync.patch_log import PatchLog
from patchsync.server import patch_storage


class StoreBackedAPI:
    """Stand-in for PatchSyncAPI that talks to server storage functions directly"""

    def __init__(self, storage_root):
        self.base_url = "http://test-server"
        self.storage_root = storage_root
        self.username = None
        self.key_pair = None
        self.fail_uploads = False
        self.uploads = []
        self.extra_names = []

    def set_identity(self, username, key_pair):
        self.username = username
        self.key_pair = key_pair

    def register(self):
        return f"registered '{self.username}'"

    def get_latest_hash(self, filename):
        return patch_storage.GetLatestHash(self.storage_root, self.username, filename)

    def upload_patch(self, record_name, encoded_patch, base_hash):
        if self.fail_uploads:
            raise NetworkError("Request POST /patch timed out after 10s")
        try:
            record = patch_storage.StorePatch(self.storage_root, self.username, record_name, encoded_patch, base_hash)
        except PatchConflictError as e:
            raise ConflictError(f"conflict: {e}", 409)
        self.uploads.append(record_name)
        return record.RecordName()

    def list_patches(self, filename):
        return patch_storage.ListPatchNames(self.storage_root, self.username, filename) + self.extra_names

    def download_patch(self, record_name):
        try:
            return patch_storage.ReadPatch(self.storage_root, self.username, record_name)
        except FileNotFoundError as e:
            raise ServerRejectedError(str(e), 404)


@pytest.fixture
def key_pair():
    return DeriveKeyPair("client test passphrase")


@pytest.fixture
def api(tmp_path):
    return StoreBackedAPI(tmp_path / "server-storage")


def make_ops(api, key_pair, cache_folder):
    return SyncOperations(api, key_pair, "alice", cache_folder)


def cache_names(cache_folder):
    if not cache_folder.exists():
        return []
    return sorted(p.name for p in cache_folder.iterdir())


def test_patch_up_new_file(tmp_path, api, key_pair):
    """Test the first upload of a file walks the whole state machine"""
    local_file = tmp_path / "notes.txt"
    local_file.write_bytes(b"hello\r\nworld\r\n")
    cache_folder = tmp_path / "cache" / "alice"

    state = make_ops(api, key_pair, cache_folder).patch_up(local_file)

    assert state.state == SyncState.SYNCED
    assert state.history == [
        SyncState.IDLE, SyncState.LOCAL_SNAPSHOT_READ, SyncState.DIFFED,
        SyncState.ENCODED, SyncState.UPLOADING
    ]
    assert state.hash_local == HashText("hello\nworld\n")
    assert api.get_latest_hash("notes.txt") == state.hash_local

    patch_log = PatchLog(cache_folder, "notes.txt")
    assert patch_log.ReadSnapshot() == "hello\nworld\n"
    assert [record.RecordName() for record in patch_log.List()] == api.uploads

    print("New file patch up tests passed")


def test_patch_up_sends_only_changes(tmp_path, api, key_pair):
    """Test later uploads are deltas against the last synced content"""
    local_file = tmp_path / "notes.txt"
    cache_folder = tmp_path / "cache" / "alice"
    ops = make_ops(api, key_pair, cache_folder)

    local_file.write_text("line 1\nline 2\n")
    ops.patch_up(local_file)
    local_file.write_text("line 1\nline 2\nline 3\n")
    ops.patch_up(local_file)

    assert len(api.uploads) == 2
    assert ops.rebuild("notes.txt").text == "line 1\nline 2\nline 3\n"
    assert patch_storage.GetPatchLog(api.storage_root, "alice", "notes.txt").ReadSnapshot() == "line 1\nline 2\nline 3\n"

    print("Incremental patch up tests passed")


def test_patch_up_skips_when_server_is_current(tmp_path, api, key_pair):
    """Test nothing is uploaded when the server already has the content"""
    local_file = tmp_path / "notes.txt"
    local_file.write_text("same\n")
    ops = make_ops(api, key_pair, tmp_path / "cache" / "alice")
    ops.patch_up(local_file)

    state = ops.patch_up(local_file)

    assert state.state == SyncState.SYNCED
    assert SyncState.UPLOADING not in state.history
    assert len(api.uploads) == 1

    print("Up to date patch up tests passed")


def test_failed_upload_leaves_cache_untouched(tmp_path, api, key_pair):
    """Test a transport failure does not change the cache"""
    local_file = tmp_path / "notes.txt"
    cache_folder = tmp_path / "cache" / "alice"
    ops = make_ops(api, key_pair, cache_folder)

    local_file.write_text("v1\n")
    ops.patch_up(local_file)
    before = cache_names(cache_folder)

    local_file.write_text("v2\n")
    api.fail_uploads = True
    with pytest.raises(NetworkError):
        ops.patch_up(local_file)

    assert cache_names(cache_folder) == before
    assert PatchLog(cache_folder, "notes.txt").ReadSnapshot() == "v1\n"

    # Retry succeeds once the server is reachable
    api.fail_uploads = False
    assert ops.patch_up(local_file).state == SyncState.SYNCED

    print("Failed upload tests passed")


def test_conflict_then_sync(tmp_path, api, key_pair):
    """Test a second machine must pull before it can upload"""
    laptop_file = tmp_path / "laptop" / "notes.txt"
    desktop_file = tmp_path / "desktop" / "notes.txt"
    laptop_file.parent.mkdir()
    desktop_file.parent.mkdir()
    laptop = make_ops(api, key_pair, tmp_path / "laptop-cache")
    desktop = make_ops(api, key_pair, tmp_path / "desktop-cache")

    laptop_file.write_text("shared\n")
    laptop.patch_up(laptop_file)

    desktop_file.write_text("shared\ndesktop edit\n")
    with pytest.raises(ConflictError):
        desktop.patch_up(desktop_file)
    assert cache_names(tmp_path / "desktop-cache") == []

    pulled = desktop.sync("notes.txt")
    assert len(pulled) == 1
    assert desktop.rebuild("notes.txt").text == "shared\n"
    assert desktop.sync("notes.txt") == []

    state = desktop.patch_up(desktop_file)
    assert state.state == SyncState.SYNCED
    assert api.get_latest_hash("notes.txt") == HashText("shared\ndesktop edit\n")

    print("Conflict and sync tests passed")


def test_sync_rejects_malformed_server_names(tmp_path, api, key_pair):
    """Test sync refuses record names that do not belong to the file"""
    ops = make_ops(api, key_pair, tmp_path / "cache" / "alice")
    api.extra_names = ["notes.txt.last"]

    with pytest.raises(NetworkError):
        ops.sync("notes.txt")

    assert cache_names(tmp_path / "cache" / "alice") == []

    print("Malformed server name tests passed")


def test_missing_local_file(tmp_path, api, key_pair):
    """Test a missing local file fails before anything is sent"""
    from patchsync.exceptions import StorageError

    ops = make_ops(api, key_pair, tmp_path / "cache" / "alice")

    with pytest.raises(StorageError):
        ops.patch_up(tmp_path / "missing.txt")

    assert api.uploads == []

    print("Missing local file tests passed")
