"""
PatchSync Client - Sync Operations Module

Implements the Patch Up, Sync and Rebuild operations.
The local cache is only changed after the server has acknowledged an upload
or after downloaded patches have been verified, so a failed or interrupted
operation can always be retried from scratch.

Author: PatchSync Project
"""

import logging
from pathlib import Path
from typing import Optional, Callable, List, Tuple

from patchsync.exceptions import NetworkError, PatchSyncError
from patchsync.keypair import KeyPair, Fingerprint
from patchsync.models import PatchRecord, ParseRecordName
from patchsync.patch_codec import ComputeDelta, EncodeDelta, DeltaSize, HashText
from patchsync.patch_log import PatchLog
from patchsync.rebuild import (
    RebuildResult, Rebuild, LoadCurrentText, ApplyEncodedPatch, VerifyContentHash
)
from patchsync.client.managers.cache_manager import logical_name, read_local_file
from patchsync.client.models import SyncState, SyncClientState

# Configure logging
logger = logging.getLogger(__name__)


class SyncOperations:
    """
    Handles patch synchronization of single files with the server.

    Responsibilities:
    - Execute Patch Up (diff local file against last synced content, upload)
    - Execute Sync (download records missing from the local cache)
    - Execute Rebuild (replay the local cache)
    - Register the identity with the server
    - Report progress via callbacks
    """

    def __init__(self, api_client, key_pair: KeyPair, username: str, cache_folder: Path,
                 strict_rebuild: bool = True, progress_callback: Optional[Callable] = None):
        """
        Initialize sync operations handler.

        Args:
            api_client: PatchSyncAPI instance for server communication
            key_pair: Identity used to sign requests
            username: Username on the server
            cache_folder: This user's local patch cache folder
            strict_rebuild: Treat hash mismatches during rebuild as fatal
            progress_callback: Optional callback called with (message: str)
        """
        self.api = api_client
        self.key_pair = key_pair
        self.username = username
        self.cache_folder = Path(cache_folder)
        self.strict_rebuild = strict_rebuild
        self.progress_callback = progress_callback
        self.api.set_identity(username, key_pair)

    def _progress(self, message: str):
        logger.debug(message)
        if self.progress_callback:
            self.progress_callback(message)

    def _patch_log(self, filename: str) -> PatchLog:
        return PatchLog(self.cache_folder, filename)

    # ==================== Register ====================

    def register(self) -> str:
        """
        Announce username and public key to the server.

        Returns:
            Server message
        """
        logger.info(f"Registering '{self.username}' with key {Fingerprint(self.key_pair.PublicOnly())}")
        return self.api.register()

    # ==================== Patch Up ====================

    def patch_up(self, path: Path) -> SyncClientState:
        """
        Upload the local changes of a file as one patch.

        Process:
        1. Read the local file and the cached last-synced content
        2. Ask the server for its latest hash; stop if it already has this content
        3. Compute and encode the delta against the cached content
        4. Upload it with the hash of the cached content as base
        5. After the server acknowledges, append the record to the cache and
           replace the cached content

        Args:
            path: Local file to synchronize

        Returns:
            SyncClientState in state SYNCED

        Raises:
            StorageError: Local file or cache unreadable
            NetworkError: Transport failure or server refusal (ConflictError
                          when the server changed since the last sync)
            PatchSyncError: Any other failure; the cache is left unchanged
        """
        path = Path(path)
        filename = logical_name(path)
        state = SyncClientState(
            username=self.username,
            server_address=self.api.base_url,
            filename=filename,
            cache_folder=self.cache_folder
        )
        patch_log = self._patch_log(filename)

        try:
            # Step 1: Read local file and cached snapshot
            self._progress(f"Reading {path}...")
            local_text = read_local_file(path)
            state.hash_local = HashText(local_text)
            base_text, base_hash = LoadCurrentText(patch_log, strict=self.strict_rebuild)
            state.transition(SyncState.LOCAL_SNAPSHOT_READ)

            # Step 2: Compare with the server
            hash_remote = self.api.get_latest_hash(filename)
            if hash_remote == state.hash_local:
                logger.info(f"'{filename}' is already up to date on the server (hash {hash_remote[:16]})")
                state.transition(SyncState.SYNCED)
                return state

            # Step 3: Diff and encode
            delta = ComputeDelta(base_text, local_text)
            state.transition(SyncState.DIFFED)

            encoded_patch = EncodeDelta(delta)
            state.transition(SyncState.ENCODED)

            record = PatchRecord(
                filename=filename,
                content_hash=state.hash_local,
                timestamp=patch_log.NextTimestamp(),
                encoded_patch=encoded_patch
            )

            # Step 4: Upload
            self._progress(f"Uploading {record.RecordName()} ({DeltaSize(encoded_patch)} characters changed)...")
            state.transition(SyncState.UPLOADING)
            self.api.upload_patch(record.RecordName(), encoded_patch, base_hash)

            # Step 5: Update the cache only after acknowledgment
            patch_log.Append(record)
            patch_log.WriteSnapshot(local_text)
            state.transition(SyncState.SYNCED)

            logger.info(f"Patched '{filename}' up to {self.api.base_url} as {record.RecordName()}")
            return state

        except PatchSyncError as e:
            logger.error(f"Patch up of '{filename}' failed in state {state.state.name}: {e}")
            state.fail(e)
            raise

    # ==================== Sync ====================

    def sync(self, filename: str) -> List[PatchRecord]:
        """
        Download the records of a file missing from the local cache.

        Every downloaded patch is applied and its hash checked before any of
        them is written to the cache.

        Args:
            filename: Logical file name

        Returns:
            Records added to the cache (ascending timestamp)

        Raises:
            NetworkError: Transport failure, refusal, or malformed record names
            StorageError: Local cache holds records the server does not have
            PatchApplyError / IntegrityError: Downloaded patches do not replay
        """
        patch_log = self._patch_log(filename)
        self._progress(f"Fetching patch list of '{filename}'...")
        remote_names = self.api.list_patches(filename)

        local_records = patch_log.List()
        local_names = {record.RecordName() for record in local_records}
        latest_timestamp = local_records[-1].timestamp if local_records else None

        missing: List[Tuple[str, str, int]] = []
        for record_name in remote_names:
            parsed = ParseRecordName(filename, record_name)
            if parsed is None:
                raise NetworkError(f"Server sent malformed record name '{record_name}'")
            if record_name in local_names:
                continue
            content_hash, timestamp = parsed
            if latest_timestamp is not None and timestamp <= latest_timestamp:
                raise NetworkError(
                    f"Server record {record_name} is older than the local cache of '{filename}'; "
                    f"the cache in {self.cache_folder} has diverged from the server"
                )
            missing.append((record_name, content_hash, timestamp))

        if not missing:
            logger.info(f"Local cache of '{filename}' is up to date ({len(local_records)} patches)")
            return []

        missing.sort(key=lambda item: item[2])
        current_text, _ = LoadCurrentText(patch_log, strict=self.strict_rebuild)

        downloaded: List[PatchRecord] = []
        for index, (record_name, content_hash, timestamp) in enumerate(missing, start=1):
            self._progress(f"Downloading patch {index}/{len(missing)}: {record_name}")
            record = PatchRecord(
                filename=filename,
                content_hash=content_hash,
                timestamp=timestamp,
                encoded_patch=self.api.download_patch(record_name)
            )
            current_text = ApplyEncodedPatch(current_text, record.encoded_patch, record_name)
            VerifyContentHash(current_text, record)
            downloaded.append(record)

        for record in downloaded:
            patch_log.Append(record)
        patch_log.WriteSnapshot(current_text)

        logger.info(f"Pulled {len(downloaded)} patches of '{filename}' into the local cache")
        return downloaded

    # ==================== Rebuild ====================

    def rebuild(self, filename: str, strict: Optional[bool] = None) -> RebuildResult:
        """
        Reconstruct a file from the local cache.

        Args:
            filename: Logical file name
            strict: Override the configured strictness

        Returns:
            RebuildResult with the reconstructed text
        """
        strict = self.strict_rebuild if strict is None else strict
        result = Rebuild(self._patch_log(filename), strict=strict)
        if result.mismatches:
            logger.warning(f"Rebuild of '{filename}' had {len(result.mismatches)} hash mismatches")
        return result
