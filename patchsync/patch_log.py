"""
PatchSync - Patch Log Management

This module manages the ordered, append-only collection of patch records for
one logical file inside a folder. It is used both for the client cache and
for the server's per-user storage.

Folder layout:
    <folder>/
      notes.txt.<content_hash>.<timestamp>   one file per patch record
      notes.txt.last                         last fully synced raw content
"""

import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from patchsync.exceptions import PatchApplyError, StorageError
from patchsync.models import PatchRecord, ParseRecordName

logger = logging.getLogger(__name__)

SNAPSHOT_SUFFIX = ".last"
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.@-]{0,63}$")


def ValidateLogicalName(filename: str) -> str:
    """
    Check that a logical file name can be used as a record name prefix

    Args:
        filename: Logical file name (no directory part)

    Returns:
        str: The same name

    Raises:
        ValueError: If the name is empty, a path, or a dot name
    """
    if not filename or filename in (".", ".."):
        raise ValueError(f"Invalid file name: '{filename}'")
    if "/" in filename or "\\" in filename or "\x00" in filename:
        raise ValueError(f"File name must not contain a path: '{filename}'")
    return filename


def ValidateUsername(username: str) -> str:
    """
    Check that a username can be used as a folder name

    Raises:
        ValueError: If username is empty or contains path characters
    """
    if not username or not USERNAME_PATTERN.match(username) or username.strip(".") == "":
        raise ValueError(f"Invalid username: '{username}'")
    return username


def CurrentTimeMillis() -> int:
    return time.time_ns() // 1_000_000


class PatchLog:
    """
    Patch log of one logical file

    Responsibilities:
    - Scan the folder for records of the file and order them by timestamp
    - Append new records without ever overwriting an existing one
    - Hand out strictly increasing timestamps
    - Read and atomically replace the '.last' snapshot
    """

    def __init__(self, folder: Path, filename: str):
        """
        Initialize patch log

        Args:
            folder: Folder holding the record files
            filename: Logical file name the records belong to
        """
        self.folder = Path(folder)
        self.filename = ValidateLogicalName(filename)

    def EnsureFolder(self) -> None:
        """Create the record folder if it does not exist"""
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create patch folder {self.folder}: {e}")

    # ==================== Enumeration ====================

    def List(self) -> List[PatchRecord]:
        """
        List all records of the file sorted ascending by timestamp

        Unrelated or malformed file names in the folder are skipped silently.
        A missing folder is an empty log.

        Returns:
            List[PatchRecord]: Records without their patch contents loaded

        Raises:
            StorageError: If the folder exists but cannot be read
        """
        try:
            names = sorted(entry.name for entry in self.folder.iterdir() if entry.is_file())
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageError(f"Cannot read patch folder {self.folder}: {e}")

        records = {}
        for name in names:
            parsed = ParseRecordName(self.filename, name)
            if parsed is None:
                continue

            content_hash, timestamp = parsed
            if timestamp in records:
                logger.warning(
                    f"Duplicate timestamp {timestamp} for '{self.filename}': "
                    f"keeping {records[timestamp].RecordName()}, ignoring {name}"
                )
                continue

            records[timestamp] = PatchRecord(
                filename=self.filename,
                content_hash=content_hash,
                timestamp=timestamp,
                path=self.folder / name
            )

        return [records[timestamp] for timestamp in sorted(records)]

    def Latest(self) -> Optional[PatchRecord]:
        """Get the newest record, or None for an empty log"""
        records = self.List()
        return records[-1] if records else None

    def HasRecord(self, record_name: str) -> bool:
        return any(record.RecordName() == record_name for record in self.List())

    def NextTimestamp(self) -> int:
        """
        Get a timestamp usable for the next append

        Wall clock milliseconds, bumped to latest + 1 when the clock has not
        advanced past the newest record.
        """
        now = CurrentTimeMillis()
        latest = self.Latest()
        if latest is not None and now <= latest.timestamp:
            return latest.timestamp + 1
        return now

    # ==================== Record I/O ====================

    def Append(self, record: PatchRecord) -> PatchRecord:
        """
        Store a new record

        Args:
            record: Record with encoded_patch set

        Returns:
            PatchRecord: The record with its path filled in

        Raises:
            ValueError: If the record belongs to another file or has no patch
            StorageError: If the timestamp is not newer than the latest record,
                          the record already exists, or the write fails
        """
        if record.filename != self.filename:
            raise ValueError(f"Record for '{record.filename}' appended to log of '{self.filename}'")
        if record.encoded_patch is None:
            raise ValueError("Record has no encoded patch")

        latest = self.Latest()
        if latest is not None and record.timestamp <= latest.timestamp:
            raise StorageError(
                f"Timestamp {record.timestamp} for '{self.filename}' is not newer than "
                f"latest record {latest.timestamp}"
            )

        self.EnsureFolder()
        record_path = self.folder / record.RecordName()

        # Temp file + hard link: the record appears complete or not at all,
        # and os.link never replaces an existing record
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.folder,
                prefix=".record-", suffix=".tmp", delete=False
            ) as f:
                temp_path = f.name
                f.write(record.encoded_patch)
                f.flush()
                os.fsync(f.fileno())
            os.link(temp_path, record_path)
        except FileExistsError:
            raise StorageError(f"Patch record already exists: {record_path.name}")
        except OSError as e:
            raise StorageError(f"Failed to write patch record {record_path.name}: {e}")
        finally:
            if temp_path and os.path.exists(temp_path):
                os.unlink(temp_path)

        record.path = record_path
        logger.debug(f"Appended patch record {record_path.name} ({len(record.encoded_patch)} bytes)")
        return record

    def ReadPatch(self, record: PatchRecord) -> str:
        """
        Load the encoded patch of a record

        Raises:
            PatchApplyError: If the record file does not hold UTF-8 text
            StorageError: If the record file cannot be read
        """
        if record.encoded_patch is not None:
            return record.encoded_patch

        record_path = record.path or self.folder / record.RecordName()
        try:
            with open(record_path, "r", encoding="utf-8") as f:
                record.encoded_patch = f.read()
        except UnicodeDecodeError as e:
            raise PatchApplyError(f"Patch record {record_path.name} is corrupt (not UTF-8): {e}")
        except OSError as e:
            raise StorageError(f"Failed to read patch record {record_path.name}: {e}")

        return record.encoded_patch

    # ==================== Snapshot ====================

    @property
    def snapshot_path(self) -> Path:
        return self.folder / (self.filename + SNAPSHOT_SUFFIX)

    def ReadSnapshot(self) -> Optional[str]:
        """
        Read the last fully synced content

        Returns:
            str: Snapshot text, or None if no snapshot exists yet

        Raises:
            StorageError: If the snapshot exists but cannot be read or decoded
        """
        try:
            with open(self.snapshot_path, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise StorageError(f"Snapshot {self.snapshot_path.name} is not valid UTF-8: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read snapshot {self.snapshot_path.name}: {e}")

    def WriteSnapshot(self, text: str) -> None:
        """
        Replace the snapshot atomically (temp file + rename)

        Raises:
            StorageError: If the snapshot cannot be written
        """
        self.EnsureFolder()
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", newline="", dir=self.folder,
                prefix=".snapshot-", suffix=".tmp", delete=False
            ) as f:
                temp_path = f.name
                f.write(text)
            os.replace(temp_path, self.snapshot_path)
        except OSError as e:
            if temp_path and os.path.exists(temp_path):
                os.unlink(temp_path)
            raise StorageError(f"Failed to write snapshot {self.snapshot_path.name}: {e}")

        logger.debug(f"Snapshot updated: {self.snapshot_path.name}")
