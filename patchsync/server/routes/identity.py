"""
PatchSync Server - Identity Endpoints

Publishes the region public key and registers usernames with public keys.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from patchsync.keypair import KeyPair
from patchsync.server.auth import CheckSignature
from patchsync.server.database import GetDatabaseManager, GetRegionKey
from patchsync.server.managers.database_manager import DatabaseManager
from patchsync.server.models.api import RegisterRequest, ServerResponse
from patchsync.patch_log import ValidateUsername


# Create logger
logger = logging.getLogger(__name__)

# Create router instance
router = APIRouter()


# ==================== Identity Endpoints ====================

@router.get("/region", response_model=ServerResponse, tags=["Identity"])
async def get_region_key(region_key: KeyPair = Depends(GetRegionKey)):
    """
    Get the region public key clients sign their identity for

    Returns:
        ServerResponse: message holds the region public key
    """
    return ServerResponse(success=True, message=region_key.public)


@router.post("/register", response_model=ServerResponse, tags=["Identity"])
def register(
    request: RegisterRequest,
    db_manager: DatabaseManager = Depends(GetDatabaseManager),
    region_key: KeyPair = Depends(GetRegionKey)
):
    """
    Register a username with the caller's public key

    The first key registered for a username is kept. Registering again with
    the same key succeeds; with a different key it is refused.

    Args:
        request: Username, public key and signature

    Returns:
        ServerResponse: Registration result

    Raises:
        HTTPException: 400 invalid username, 401 bad signature, 403 username taken
    """
    try:
        ValidateUsername(request.username)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    CheckSignature(request.signature, request.public_key, region_key)

    try:
        created = db_manager.RegisterUser(request.username, request.public_key)
    except ValueError as e:
        logger.warning(f"Registration refused: {e}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    if created:
        return ServerResponse(success=True, message=f"registered '{request.username}'")
    return ServerResponse(success=True, message=f"'{request.username}' already registered")
