"""
PatchSync Client - Cache Manager

Handles the local patch cache of a user and reading the files to sync.

Cache layout:
    <data_folder>/<username>/
      notes.txt.<content_hash>.<timestamp>
      notes.txt.last

Author: PatchSync Project
"""

import logging
from pathlib import Path

from patchsync.exceptions import StorageError
from patchsync.patch_codec import NormalizeLineEndings
from patchsync.patch_log import ValidateLogicalName, ValidateUsername

# Configure logging
logger = logging.getLogger(__name__)


class CacheManager:
    """
    Manages the client's patch cache.

    Responsibilities:
    - Resolve the per-user cache folder (patch logs inside it are opened by
      SyncOperations and create the folder on first append)
    """

    def __init__(self, data_folder: Path, username: str):
        """
        Initialize cache manager.

        Args:
            data_folder: Folder holding the per-user caches
            username: User whose cache to use

        Raises:
            ValueError: If username cannot be used as a folder name
        """
        self.cache_folder = Path(data_folder) / ValidateUsername(username)
        logger.debug(f"Using patch cache {self.cache_folder}")


def logical_name(path: Path) -> str:
    """
    Get the logical file name of a local path (its final component).

    Raises:
        ValueError: If the path has no usable file name
    """
    return ValidateLogicalName(Path(path).name)


def read_local_file(path: Path) -> str:
    """
    Read a local text file as UTF-8 with LF line endings.

    Args:
        path: File to read

    Returns:
        File content with CRLF/CR converted to LF

    Raises:
        StorageError: If the file is missing, unreadable or not UTF-8
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            content = f.read()
    except FileNotFoundError:
        raise StorageError(f"File not found: {path}")
    except UnicodeDecodeError as e:
        raise StorageError(f"File is not UTF-8 text: {path} ({e})")
    except OSError as e:
        raise StorageError(f"Cannot read {path}: {e}")

    return NormalizeLineEndings(content)
