"""
PatchSync Server - Status Endpoints

Health check endpoint.
"""

from datetime import datetime, timezone
from fastapi import APIRouter

from patchsync import __version__


# Create router instance
router = APIRouter()


# ==================== Health Check Endpoint ====================

@router.get("/health", tags=["Status"])
async def health_check():
    """
    Health check endpoint to verify server is running

    Returns:
        dict: Server status information
    """
    return {
        "success": True,
        "message": "healthy",
        "service": "PatchSync Server",
        "version": __version__,
        "timestamp_utc": datetime.now(timezone.utc).isoformat()
    }
