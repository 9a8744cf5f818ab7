"""
PatchSync Server - Response API Models

Every endpoint answers with success and message, on errors too.
"""

from typing import List
from pydantic import BaseModel


class ServerResponse(BaseModel):
    success: bool
    message: str = ""


class PatchListResponse(ServerResponse):
    patches: List[str] = []
