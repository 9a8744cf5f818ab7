"""
PatchSync Client - Managers Package

Contains manager classes for configuration and the local patch cache.

Author: PatchSync Project
"""

from .config_manager import ConfigManager, DEFAULT_CONFIG
from .cache_manager import CacheManager, logical_name, read_local_file

__all__ = [
    'ConfigManager',
    'DEFAULT_CONFIG',
    'CacheManager',
    'logical_name',
    'read_local_file'
]
