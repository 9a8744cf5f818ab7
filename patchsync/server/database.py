"""
PatchSync Server - Application State Accessors

FastAPI dependencies returning the resources created by the lifespan handler
in server.py. Everything is read from app.state, so several apps (for
example in tests) can run side by side with separate data folders.
"""

from pathlib import Path

from fastapi import Request

from patchsync.keypair import KeyPair
from patchsync.server.managers.database_manager import DatabaseManager


def GetDatabaseManager(request: Request) -> DatabaseManager:
    return request.app.state.db_manager


def GetStorageRoot(request: Request) -> Path:
    return request.app.state.storage_root


def GetRegionKey(request: Request) -> KeyPair:
    return request.app.state.region_key
