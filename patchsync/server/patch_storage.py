"""
PatchSync Server - Patch Storage Management

This module handles the server side patch store:
- Storage directory structure creation
- Per-user folder resolution and name validation
- Latest content hash lookup
- Verified append of uploaded patches (apply to snapshot, check hash, store)

Storage layout:
/storage_root/
  <username>/
    notes.txt.<content_hash>.<timestamp>
    notes.txt.last
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from patchsync.exceptions import PatchConflictError
from patchsync.models import PatchRecord, ParseRecordName
from patchsync.patch_log import PatchLog, ValidateUsername
from patchsync.rebuild import ApplyEncodedPatch, LoadCurrentText, VerifyContentHash

logger = logging.getLogger(__name__)


# ==================== Storage Configuration ====================

DEFAULT_STORAGE_ROOT = "storage"


# ==================== Storage Directory Management ====================

def InitializeStorage(storage_root: Path) -> None:
    """
    Initialize the patch storage root directory

    Args:
        storage_root: Root directory for per-user patch folders
    """
    storage_path = Path(storage_root)

    try:
        storage_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Storage root directory ready: {storage_path.absolute()}")
    except Exception as e:
        logger.error(f"Failed to initialize storage: {str(e)}")
        raise


def GetUserFolder(storage_root: Path, username: str) -> Path:
    """
    Get the patch folder of a user

    Args:
        storage_root: Root directory for patch storage
        username: Username (validated)

    Returns:
        Path: Absolute path to the user's folder
    """
    return (Path(storage_root) / ValidateUsername(username)).absolute()


def GetPatchLog(storage_root: Path, username: str, filename: str) -> PatchLog:
    """
    Get the patch log of one user's logical file

    Raises:
        ValueError: If username or filename is invalid
    """
    return PatchLog(GetUserFolder(storage_root, username), filename)


def SplitRecordName(record_name: str) -> Tuple[str, str, int]:
    """
    Split '<logical name>.<content hash>.<timestamp>' into its three parts

    Returns:
        (filename, content_hash, timestamp)

    Raises:
        ValueError: If the record name is malformed
    """
    parts = record_name.rsplit(".", 2)
    if len(parts) != 3:
        raise ValueError(f"Malformed patch name: '{record_name}'")

    filename = parts[0]
    parsed = ParseRecordName(filename, record_name) if filename else None
    if parsed is None:
        raise ValueError(f"Malformed patch name: '{record_name}'")

    content_hash, timestamp = parsed
    return filename, content_hash, timestamp


# ==================== Queries ====================

def GetLatestHash(storage_root: Path, username: str, filename: str) -> str:
    """
    Get the content hash of the newest patch of a file

    Returns:
        str: Content hash, or empty string if the file has no patches
    """
    latest = GetPatchLog(storage_root, username, filename).Latest()
    return latest.content_hash if latest else ""


def ListPatchNames(storage_root: Path, username: str, filename: str) -> List[str]:
    """List record names of a file in ascending timestamp order"""
    return [record.RecordName() for record in GetPatchLog(storage_root, username, filename).List()]


def ReadPatch(storage_root: Path, username: str, record_name: str) -> str:
    """
    Read the encoded patch of one record

    Raises:
        ValueError: If the record name is malformed
        FileNotFoundError: If the record does not exist
        StorageError: If the record cannot be read
        PatchApplyError: If the stored record is not UTF-8 text
    """
    filename, content_hash, timestamp = SplitRecordName(record_name)
    patch_log = GetPatchLog(storage_root, username, filename)

    record_path = patch_log.folder / record_name
    if not record_path.is_file():
        raise FileNotFoundError(f"Patch not found: {record_name}")

    record = PatchRecord(filename=filename, content_hash=content_hash, timestamp=timestamp, path=record_path)
    return patch_log.ReadPatch(record)


# ==================== Patch Upload ====================

def StorePatch(storage_root: Path, username: str, record_name: str, encoded_patch: str,
               base_hash: Optional[str] = None) -> PatchRecord:
    """
    Verify and store an uploaded patch

    The caller must hold the file lock (transactions.AcquireFileLock).

    Process:
    1. Parse the record name
    2. Load the current text (snapshot or rebuild)
    3. Reject if base_hash is given and differs from the current hash
    4. Apply the patch and check the result against the claimed hash
    5. Append the record and replace the snapshot

    Args:
        storage_root: Root directory for patch storage
        username: Owner of the file
        record_name: '<logical name>.<new content hash>.<timestamp>'
        encoded_patch: Encoded delta from the current text to the new text
        base_hash: Hash the client computed the delta against (None skips the check)

    Returns:
        PatchRecord: Stored record

    Raises:
        ValueError: Malformed username or record name
        PatchConflictError: base_hash does not match the current hash
        PatchApplyError: Patch cannot be decoded or applied
        IntegrityError: Patched text does not match the claimed hash
        StorageError: Timestamp not newer than the latest record, or write failure
    """
    filename, content_hash, timestamp = SplitRecordName(record_name)
    patch_log = GetPatchLog(storage_root, username, filename)

    current_text, current_hash = LoadCurrentText(patch_log)

    if base_hash is not None and base_hash != current_hash:
        raise PatchConflictError(
            f"'{filename}' has changed on the server (server hash {current_hash[:16] or 'none'}, "
            f"patch base {base_hash[:16] or 'none'})"
        )

    record = PatchRecord(
        filename=filename,
        content_hash=content_hash,
        timestamp=timestamp,
        encoded_patch=encoded_patch
    )

    new_text = ApplyEncodedPatch(current_text, encoded_patch, record_name)
    VerifyContentHash(new_text, record)

    patch_log.Append(record)
    patch_log.WriteSnapshot(new_text)

    logger.info(f"Stored patch {record_name} for user '{username}' ({len(encoded_patch)} bytes)")
    return record
