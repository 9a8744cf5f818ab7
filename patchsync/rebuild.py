"""
PatchSync - Rebuild Engine

Reconstructs the current text of a file by replaying its patch log from an
empty text in ascending timestamp order, checking the content hash recorded
with every patch.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

from patchsync.exceptions import CodecError, IntegrityError, PatchApplyError, StorageError
from patchsync.models import PatchRecord
from patchsync.patch_codec import ApplyDelta, DecodeDelta, HashText
from patchsync.patch_log import PatchLog

logger = logging.getLogger(__name__)


@dataclass
class RebuildResult:
    """Outcome of a rebuild"""
    text: str
    content_hash: str
    records: int
    mismatches: List[str] = field(default_factory=list)  # only filled when strict=False


def ApplyEncodedPatch(current_text: str, encoded_patch: str, record_name: str = "") -> str:
    """
    Decode an encoded patch and apply it to the running text

    Args:
        current_text: Text the patch was computed against
        encoded_patch: Output of EncodeDelta
        record_name: Record identifier used in error messages

    Returns:
        str: Next running text

    Raises:
        PatchApplyError: If the patch cannot be decoded or applied
    """
    try:
        delta = DecodeDelta(encoded_patch)
    except CodecError as e:
        raise PatchApplyError(f"Cannot decode patch {record_name}: {e}") from e

    try:
        return ApplyDelta(current_text, delta)
    except PatchApplyError as e:
        raise PatchApplyError(f"Cannot apply patch {record_name}: {e}") from e


def VerifyContentHash(text: str, record: PatchRecord) -> str:
    """
    Compare the hash of a rebuilt text with the hash stored in its record

    Returns:
        str: Hash of text

    Raises:
        IntegrityError: On mismatch
    """
    rebuilt_hash = HashText(text)
    if rebuilt_hash != record.content_hash:
        raise IntegrityError(
            f"Rebuilt hash {rebuilt_hash} does not match {record.content_hash} recorded in "
            f"{record.RecordName()} (missing, corrupt or out-of-order patch)"
        )
    return rebuilt_hash


def Rebuild(patch_log: PatchLog, strict: bool = True) -> RebuildResult:
    """
    Rebuild the current text of a file from its patch log

    Process:
    1. List the records in ascending timestamp order
    2. Start from an empty text
    3. For each record, read, decode and apply its patch
    4. Check the hash of the running text against the record's content hash

    Args:
        patch_log: Patch log to replay
        strict: Raise IntegrityError on a hash mismatch (otherwise log a warning and continue)

    Returns:
        RebuildResult: Reconstructed text, its hash, and the number of records replayed

    Raises:
        StorageError: If the log cannot be listed or a record cannot be read
        PatchApplyError: If a patch cannot be decoded or applied
        IntegrityError: If strict and a rebuilt hash does not match
    """
    records = patch_log.List()
    logger.debug(f"Rebuilding '{patch_log.filename}' from {len(records)} patch records")

    current_text = ""
    mismatches = []

    for record in records:
        record_name = record.RecordName()
        logger.debug(f"Applying {record.content_hash[:16]} from {record.timestamp}")

        encoded_patch = patch_log.ReadPatch(record)
        current_text = ApplyEncodedPatch(current_text, encoded_patch, record_name)

        try:
            VerifyContentHash(current_text, record)
        except IntegrityError as e:
            if strict:
                logger.error(f"Rebuild of '{patch_log.filename}' aborted: {e}")
                raise
            logger.warning(f"Rebuild of '{patch_log.filename}': {e}")
            mismatches.append(record_name)

    content_hash = HashText(current_text)
    logger.info(f"Rebuilt '{patch_log.filename}' from {len(records)} patches (hash {content_hash[:16]})")

    return RebuildResult(
        text=current_text,
        content_hash=content_hash,
        records=len(records),
        mismatches=mismatches
    )


def LoadCurrentText(patch_log: PatchLog, strict: bool = True) -> Tuple[str, str]:
    """
    Get the current text of a file and its hash

    Uses the '.last' snapshot when its hash matches the newest record,
    otherwise rebuilds from the patch log. An unreadable snapshot counts as
    stale.

    Returns:
        (text, content_hash) - ('', '') for a file without patches
    """
    latest = patch_log.Latest()
    if latest is None:
        return "", ""

    try:
        snapshot = patch_log.ReadSnapshot()
    except StorageError as e:
        logger.warning(f"Ignoring snapshot of '{patch_log.filename}': {e}")
        snapshot = None

    if snapshot is not None and HashText(snapshot) == latest.content_hash:
        return snapshot, latest.content_hash

    logger.warning(f"Snapshot of '{patch_log.filename}' is missing or stale, rebuilding from patches")
    result = Rebuild(patch_log, strict=strict)
    return result.text, result.content_hash
