"""
PatchSync - Patch Record Model

Dataclass for one stored patch of a file's patch log, plus the helpers that
build and parse the record identifier '<filename>.<content_hash>.<timestamp>'.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple


@dataclass
class PatchRecord:
    """
    One unit of a patch log

    content_hash is the hash of the full text after this patch is applied.
    timestamp (milliseconds) is the only ordering key and is unique per file.
    encoded_patch is loaded lazily when the record comes from a folder scan.
    """
    filename: str
    content_hash: str
    timestamp: int
    encoded_patch: Optional[str] = None
    path: Optional[Path] = None

    def RecordName(self) -> str:
        """Identifier used as the stored file name and on the wire"""
        return BuildRecordName(self.filename, self.content_hash, self.timestamp)


def BuildRecordName(filename: str, content_hash: str, timestamp: int) -> str:
    return f"{filename}.{content_hash}.{timestamp}"


def ParseRecordName(filename: str, record_name: str) -> Optional[Tuple[str, int]]:
    """
    Split a record identifier into its content hash and timestamp

    Args:
        filename: Logical file name the record must belong to
        record_name: Identifier such as 'notes.txt.<hash>.1700000000000'

    Returns:
        (content_hash, timestamp) or None if the name belongs to another file
        or is malformed
    """
    prefix = filename + "."
    if not record_name.startswith(prefix):
        return None

    parts = record_name[len(prefix):].split(".")
    if len(parts) != 2:
        return None

    content_hash, timestamp_text = parts
    if not content_hash or not content_hash.isalnum():
        return None

    # int() would also accept signs, whitespace and underscores
    if not (timestamp_text.isascii() and timestamp_text.isdigit()):
        return None

    return content_hash, int(timestamp_text)
