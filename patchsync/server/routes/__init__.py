"""
PatchSync Server - Routes Package

Each module defines an APIRouter included by server.CreateApp.
"""
