"""
PatchSync Server - Patch Endpoints

This module contains the endpoints of the patch protocol: latest hash lookup,
patch upload, and listing/downloading stored patches for rebuilds.

Handlers are plain functions so FastAPI runs them in its thread pool; file
I/O and per-file locks never block the event loop.
"""

import logging
from pathlib import Path
from fastapi import APIRouter, Depends, HTTPException, status

from patchsync.exceptions import IntegrityError, PatchApplyError, PatchConflictError, StorageError
from patchsync.keypair import KeyPair
from patchsync.server.auth import AuthenticateUser
from patchsync.server.database import GetDatabaseManager, GetRegionKey, GetStorageRoot
from patchsync.server.managers.database_manager import DatabaseManager
from patchsync.server.models.api import (
    FileRequest, AuthenticatedFileRequest, PatchUploadRequest,
    ServerResponse, PatchListResponse
)
from patchsync.server.patch_storage import (
    SplitRecordName, GetLatestHash, ListPatchNames,
    ReadPatch, StorePatch
)
from patchsync.server.transactions import AcquireFileLock, ReleaseFileLock
from patchsync.patch_log import ValidateLogicalName, ValidateUsername


# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


def _BadRequest(error: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


# ==================== Patch Endpoints ====================

@router.post("/hash", response_model=ServerResponse, tags=["Patches"])
def get_latest_hash(
    request: FileRequest,
    storage_root: Path = Depends(GetStorageRoot)
):
    """
    Get the content hash of the newest version of a file

    Args:
        request: Username and logical file name

    Returns:
        ServerResponse: message holds the hash, empty if the file is unknown
    """
    try:
        hash_remote = GetLatestHash(storage_root, request.username, request.filename)
    except ValueError as e:
        raise _BadRequest(e)
    except StorageError as e:
        logger.error(f"Error reading hash of '{request.filename}' for {request.username}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return ServerResponse(success=True, message=hash_remote)


@router.post("/patch", response_model=ServerResponse, tags=["Patches"])
def upload_patch(
    request: PatchUploadRequest,
    storage_root: Path = Depends(GetStorageRoot),
    db_manager: DatabaseManager = Depends(GetDatabaseManager),
    region_key: KeyPair = Depends(GetRegionKey)
):
    """
    Append a patch to a user's file

    The patch is applied to the server's current copy and the result must hash
    to the value named in the record name before it is stored.

    Args:
        request: Record name '<name>.<hash>.<timestamp>', encoded patch, base hash and identity

    Returns:
        ServerResponse: Stored record name

    Raises:
        HTTPException: 400 malformed or inapplicable patch, 401/403 identity
                       failures, 409 conflicting base hash, busy file, or
                       reused timestamp
    """
    try:
        ValidateUsername(request.username)
        filename, _, _ = SplitRecordName(request.filename)
        ValidateLogicalName(filename)
    except ValueError as e:
        raise _BadRequest(e)

    AuthenticateUser(request.username, request.public_key, request.signature, region_key, db_manager)

    acquired, error_message = AcquireFileLock(request.username, filename)
    if not acquired:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error_message)

    try:
        record = StorePatch(storage_root, request.username, request.filename, request.patch, request.base_hash)

    except PatchConflictError as e:
        logger.warning(f"Conflicting upload from {request.username}: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"conflict: {e}")
    except (PatchApplyError, IntegrityError) as e:
        logger.warning(f"Rejected patch {request.filename} from {request.username}: {e}")
        raise _BadRequest(e)
    except StorageError as e:
        logger.error(f"Failed to store patch {request.filename} for {request.username}: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    finally:
        ReleaseFileLock(request.username, filename)

    return ServerResponse(success=True, message=record.RecordName())


@router.post("/patches", response_model=PatchListResponse, tags=["Patches"])
def list_patches(
    request: AuthenticatedFileRequest,
    storage_root: Path = Depends(GetStorageRoot),
    db_manager: DatabaseManager = Depends(GetDatabaseManager),
    region_key: KeyPair = Depends(GetRegionKey)
):
    """
    List the stored patch records of a file in timestamp order

    Args:
        request: Logical file name and identity

    Returns:
        PatchListResponse: Record names
    """
    try:
        ValidateUsername(request.username)
        ValidateLogicalName(request.filename)
    except ValueError as e:
        raise _BadRequest(e)

    AuthenticateUser(request.username, request.public_key, request.signature, region_key, db_manager)

    try:
        names = ListPatchNames(storage_root, request.username, request.filename)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    logger.info(f"User '{request.username}' listed {len(names)} patches of '{request.filename}'")
    return PatchListResponse(success=True, message=f"{len(names)} patches", patches=names)


@router.post("/patch/download", response_model=ServerResponse, tags=["Patches"])
def download_patch(
    request: AuthenticatedFileRequest,
    storage_root: Path = Depends(GetStorageRoot),
    db_manager: DatabaseManager = Depends(GetDatabaseManager),
    region_key: KeyPair = Depends(GetRegionKey)
):
    """
    Download one stored patch

    Args:
        request: Record name and identity

    Returns:
        ServerResponse: message holds the encoded patch
    """
    try:
        ValidateUsername(request.username)
        filename, _, _ = SplitRecordName(request.filename)
        ValidateLogicalName(filename)
    except ValueError as e:
        raise _BadRequest(e)

    AuthenticateUser(request.username, request.public_key, request.signature, region_key, db_manager)

    try:
        encoded_patch = ReadPatch(storage_root, request.username, request.filename)
    except FileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (StorageError, PatchApplyError) as e:
        logger.error(f"Cannot serve {request.filename} to {request.username}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return ServerResponse(success=True, message=encoded_patch)
