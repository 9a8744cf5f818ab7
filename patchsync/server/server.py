"""
PatchSync Server - Main FastAPI Application

This module builds the FastAPI application of the PatchSync remote store.
It stores patch logs per user and file, checks client identities against the
region key, and serves the patch protocol endpoints.

Data folder layout:
    <data_folder>/
      patchsync.db     user registry (SQLite)
      region.json      region key pair
      storage/         per-user patch folders
      logs/            rotating server logs
"""

import logging
from logging.handlers import RotatingFileHandler
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from patchsync import __version__
from patchsync.server.auth import LoadOrCreateRegionKey
from patchsync.server.managers.database_manager import DatabaseManager
from patchsync.server.patch_storage import InitializeStorage, DEFAULT_STORAGE_ROOT
from patchsync.server.routes import status, identity, patches

logger = logging.getLogger(__name__)

DEFAULT_DATA_FOLDER = Path.home() / ".patchsync" / "server"
DEFAULT_PORT = 8002


# ==================== Logging ====================

def ConfigureLogging(data_folder: Path, level: int = logging.INFO) -> Path:
    """
    Configure logging to write to both console and a rotating file

    Args:
        data_folder: Server data folder (logs go to <data_folder>/logs)
        level: Root log level

    Returns:
        Path: Log file path
    """
    logs_dir = Path(data_folder) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    # Create log filename with timestamp
    log_filename = logs_dir / f"patchsync-server-{datetime.now().strftime('%Y-%m-%d')}.log"

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            # Console handler
            logging.StreamHandler(),
            # File handler with rotation (max 10MB per file, keep 10 backup files)
            RotatingFileHandler(
                log_filename,
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=10,
                encoding='utf-8'
            )
        ],
        force=True
    )
    return log_filename


# ==================== Lifespan Events ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan event handler for startup and shutdown
    Creates the database, storage root and region key in the data folder
    """
    # Startup
    data_folder: Path = app.state.data_folder
    logger.info(f"PatchSync Server starting up (data folder: {data_folder})...")

    data_folder.mkdir(parents=True, exist_ok=True)

    app.state.db_manager = DatabaseManager(str(data_folder / "patchsync.db"))
    app.state.db_manager.InitializeDatabase()
    logger.info("Database initialized successfully")

    app.state.storage_root = data_folder / DEFAULT_STORAGE_ROOT
    InitializeStorage(app.state.storage_root)
    logger.info("Patch storage initialized successfully")

    app.state.region_key = LoadOrCreateRegionKey(data_folder)

    logger.info("Server startup complete")

    yield

    # Shutdown
    logger.info("PatchSync Server shutting down...")
    app.state.db_manager.Dispose()
    logger.info("Shutdown complete")


# ==================== Error Responses ====================

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Answer errors with the protocol's {success, message} shape"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(part) for part in error.get("loc", ())) for error in exc.errors())
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": f"Invalid request fields: {fields}"}
    )


# ==================== FastAPI Application ====================

def CreateApp(data_folder: Optional[Path] = None) -> FastAPI:
    """
    Create the FastAPI application

    Args:
        data_folder: Folder for database, region key, storage and logs
                     (default ~/.patchsync/server)

    Returns:
        FastAPI: Configured application
    """
    app = FastAPI(
        title="PatchSync Server",
        description="Incremental text file synchronization via patches",
        version=__version__,
        lifespan=lifespan
    )
    app.state.data_folder = Path(data_folder) if data_folder else DEFAULT_DATA_FOLDER

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Include all route modules
    app.include_router(status.router)
    app.include_router(identity.router)
    app.include_router(patches.router)

    return app


# ==================== Main Entry Point ====================

def RunServer(port: int = DEFAULT_PORT, data_folder: Optional[Path] = None, debug: bool = False) -> None:
    """
    Run the server using uvicorn

    Args:
        port: TCP port to listen on
        data_folder: Server data folder
        debug: Enable debug logging
    """
    data_folder = Path(data_folder) if data_folder else DEFAULT_DATA_FOLDER
    log_file = ConfigureLogging(data_folder, logging.DEBUG if debug else logging.INFO)
    logger.info(f"Starting PatchSync Server on port {port} (log file: {log_file})")

    # host="0.0.0.0" allows connections from other machines on the network
    uvicorn.run(
        CreateApp(data_folder),
        host="0.0.0.0",
        port=port,
        log_level="debug" if debug else "info"
    )


if __name__ == "__main__":
    RunServer()
