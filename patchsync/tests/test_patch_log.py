"""
Tests for the PatchSync patch log

Tests record naming, folder scanning, ordering, appends and snapshots.
"""

import pytest

from patchsync.exceptions import StorageError
from patchsync.models import PatchRecord, BuildRecordName, ParseRecordName
from patchsync.patch_log import PatchLog, ValidateLogicalName, ValidateUsername


def make_record(filename, content_hash, timestamp, patch="", path=None):
    return PatchRecord(filename=filename, content_hash=content_hash, timestamp=timestamp,
                       encoded_patch=patch, path=path)


def test_record_names():
    """Test building and parsing record identifiers"""
    assert BuildRecordName("notes.txt", "abc123", 17) == "notes.txt.abc123.17"
    assert ParseRecordName("notes.txt", "notes.txt.abc123.17") == ("abc123", 17)

    # Other files, snapshots and malformed names
    assert ParseRecordName("notes.txt", "other.txt.abc123.17") is None
    assert ParseRecordName("notes.txt", "notes.txt.last") is None
    assert ParseRecordName("notes", "notes.txt.abc123.17") is None
    assert ParseRecordName("notes.txt", "notes.txt.abc123.17x") is None
    assert ParseRecordName("notes.txt", "notes.txt.abc123.-17") is None
    assert ParseRecordName("notes.txt", "notes.txt.abc123.1_7") is None
    assert ParseRecordName("notes.txt", "notes.txt..17") is None

    print("Record name tests passed")


def test_name_validation():
    """Test logical file names and usernames"""
    assert ValidateLogicalName("notes.txt") == "notes.txt"
    assert ValidateUsername("alice") == "alice"

    for bad_name in ["", ".", "..", "dir/notes.txt", "dir\\notes.txt"]:
        with pytest.raises(ValueError):
            ValidateLogicalName(bad_name)

    for bad_user in ["", "..", "a/b", "-alice", "a" * 65]:
        with pytest.raises(ValueError):
            ValidateUsername(bad_user)

    print("Name validation tests passed")


def test_list_orders_and_skips(tmp_path):
    """Test listing sorts by timestamp and skips unrelated or malformed names"""
    (tmp_path / "notes.txt.hash3.30").write_text("c")
    (tmp_path / "notes.txt.hash1.5").write_text("a")
    (tmp_path / "notes.txt.hash2.20").write_text("b")
    (tmp_path / "notes.txt.hashx.12abc").write_text("bad timestamp")
    (tmp_path / "notes.txt.last").write_text("snapshot")
    (tmp_path / "other.txt.hash9.1").write_text("other file")
    (tmp_path / "README").write_text("unrelated")
    (tmp_path / "notes.txt.hash4.40").mkdir()  # directories are not records

    records = PatchLog(tmp_path, "notes.txt").List()

    assert [record.timestamp for record in records] == [5, 20, 30]
    assert [record.content_hash for record in records] == ["hash1", "hash2", "hash3"]
    assert records[0].path == tmp_path / "notes.txt.hash1.5"

    print("List ordering tests passed")


def test_missing_folder_is_empty_log(tmp_path):
    """Test a folder that does not exist yet"""
    patch_log = PatchLog(tmp_path / "missing", "notes.txt")

    assert patch_log.List() == []
    assert patch_log.Latest() is None
    assert patch_log.ReadSnapshot() is None

    print("Missing folder tests passed")


def test_append_and_read(tmp_path):
    """Test appending records and reading their patches"""
    patch_log = PatchLog(tmp_path / "cache", "notes.txt")

    stored = patch_log.Append(make_record("notes.txt", "h1", 100, "patch-one"))
    patch_log.Append(make_record("notes.txt", "h2", 200, "patch-two"))

    assert stored.path == tmp_path / "cache" / "notes.txt.h1.100"
    assert patch_log.Latest().content_hash == "h2"
    assert patch_log.HasRecord("notes.txt.h1.100")
    assert not patch_log.HasRecord("notes.txt.h1.101")

    listed = patch_log.List()
    assert [patch_log.ReadPatch(record) for record in listed] == ["patch-one", "patch-two"]

    print("Append and read tests passed")


def test_append_never_reuses_timestamps(tmp_path):
    """Test appends must be strictly newer and never overwrite"""
    patch_log = PatchLog(tmp_path, "notes.txt")
    patch_log.Append(make_record("notes.txt", "h1", 100, "one"))

    with pytest.raises(StorageError):
        patch_log.Append(make_record("notes.txt", "h2", 100, "same timestamp"))

    with pytest.raises(StorageError):
        patch_log.Append(make_record("notes.txt", "h2", 50, "older"))

    with pytest.raises(ValueError):
        patch_log.Append(make_record("other.txt", "h2", 300, "wrong file"))

    with pytest.raises(ValueError):
        patch_log.Append(PatchRecord(filename="notes.txt", content_hash="h2", timestamp=300))

    # The first record is unchanged
    assert (tmp_path / "notes.txt.h1.100").read_text() == "one"

    print("Timestamp uniqueness tests passed")


def test_next_timestamp_is_monotonic(tmp_path):
    """Test timestamps move past the latest record even if the clock lags"""
    patch_log = PatchLog(tmp_path, "notes.txt")
    far_future = 10 ** 15
    patch_log.Append(make_record("notes.txt", "h1", far_future, "one"))

    assert patch_log.NextTimestamp() == far_future + 1

    print("Monotonic timestamp tests passed")


def test_snapshot_round_trip(tmp_path):
    """Test the '.last' snapshot keeps the text exactly"""
    patch_log = PatchLog(tmp_path, "notes.txt")

    patch_log.WriteSnapshot("first\r\nversion\n")
    assert patch_log.ReadSnapshot() == "first\r\nversion\n"

    patch_log.WriteSnapshot("second")
    assert patch_log.ReadSnapshot() == "second"
    assert patch_log.snapshot_path == tmp_path / "notes.txt.last"

    # No temp files left behind
    assert sorted(p.name for p in tmp_path.iterdir()) == ["notes.txt.last"]

    print("Snapshot tests passed")


def test_append_is_all_or_nothing(tmp_path, monkeypatch):
    """Test a failed append leaves neither a record nor a temp file behind"""
    import os

    patch_log = PatchLog(tmp_path, "notes.txt")
    patch_log.Append(make_record("notes.txt", "h1", 100, "one"))
    assert sorted(p.name for p in tmp_path.iterdir()) == ["notes.txt.h1.100"]

    def failing_link(source, target):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "link", failing_link)
    with pytest.raises(StorageError):
        patch_log.Append(make_record("notes.txt", "h2", 200, "two"))

    assert sorted(p.name for p in tmp_path.iterdir()) == ["notes.txt.h1.100"]
    assert patch_log.Latest().content_hash == "h1"

    print("All-or-nothing append tests passed")
