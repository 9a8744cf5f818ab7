"""
PatchSync Server - Authentication Utilities

This module provides identity checking for the patch endpoints:
- Region key pair creation and loading (the verifier key clients sign for)
- Signature validation of the caller's public key
- Username to public key binding (trust on first use, via DatabaseManager)

Clients prove possession of their private key by sending their public key
encrypted to the region public key (keypair.Sign). Only this server holds
the region private key, so only it can check the proof.
"""

import json
import logging
import os
from pathlib import Path

from fastapi import HTTPException, status

from patchsync.exceptions import SignatureError
from patchsync.keypair import KeyPair, PublicKey, GenerateKeyPair, KeyFromDict, Validate, Fingerprint
from patchsync.server.managers.database_manager import DatabaseManager

logger = logging.getLogger(__name__)

REGION_KEY_FILE = "region.json"


# ==================== Region Key ====================

def LoadOrCreateRegionKey(data_folder: Path) -> KeyPair:
    """
    Load the server's region key pair, creating it on first run

    Args:
        data_folder: Server data folder holding region.json

    Returns:
        KeyPair: Region key pair

    Raises:
        ValueError: If region.json exists but holds no private key
    """
    key_path = Path(data_folder) / REGION_KEY_FILE

    if key_path.exists():
        with open(key_path, 'r', encoding='utf-8') as f:
            region_key = KeyFromDict(json.load(f))
        if not isinstance(region_key, KeyPair):
            raise ValueError(f"{key_path} holds no private key")
        logger.info(f"Loaded region key '{Fingerprint(region_key)}' from {key_path}")
        return region_key

    region_key = GenerateKeyPair()
    key_path.parent.mkdir(parents=True, exist_ok=True)
    with open(key_path, 'w', encoding='utf-8') as f:
        json.dump(region_key.ToDict(), f, indent=2)

    # Restrict permissions (not supported on every platform)
    try:
        os.chmod(key_path, 0o600)
    except OSError as e:
        logger.warning(f"Could not restrict permissions of {key_path}: {e}")

    logger.warning("=" * 60)
    logger.warning("NEW REGION KEY CREATED")
    logger.warning(f"Fingerprint: {Fingerprint(region_key)}")
    logger.warning(f"Stored in: {key_path}")
    logger.warning("=" * 60)
    return region_key


# ==================== Identity Checks ====================

def CheckSignature(signature: str, public_key: str, region_key: KeyPair) -> None:
    """
    Validate that the caller holds the private key of public_key

    Raises:
        HTTPException: 401 with the specific validation failure
    """
    try:
        Validate(signature, PublicKey(public_key), region_key)
    except SignatureError as e:
        logger.warning(f"Signature rejected ({type(e).__name__}): {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid signature: {e}"
        )


def AuthenticateUser(username: str, public_key: str, signature: str,
                     region_key: KeyPair, db_manager: DatabaseManager) -> None:
    """
    Check the signature and that public_key is the one registered for username

    Args:
        username: Claimed username
        public_key: Caller's public key string
        signature: keypair.Sign output for the region key
        region_key: Server region key pair
        db_manager: DatabaseManager instance

    Raises:
        HTTPException: 401 on a bad signature, 403 if the user is unknown or
                       registered with another key
    """
    CheckSignature(signature, public_key, region_key)

    registered_key = db_manager.GetUserPublicKey(username)
    if registered_key is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User '{username}' is not registered"
        )
    if registered_key != public_key:
        logger.warning(f"Public key mismatch for user '{username}'")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Public key does not match the key registered for '{username}'"
        )

    db_manager.TouchUser(username)
