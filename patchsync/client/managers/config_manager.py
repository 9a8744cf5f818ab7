"""
PatchSync Client - Configuration Manager

Reads and writes the client settings file (config.json) and keeps the
passphrase in the OS credential store through keyring.

Author: PatchSync Project
"""

import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


KEYRING_SERVICE = "PatchSync"

DEFAULT_BASE_DIR = Path.home() / ".patchsync" / "client"

DEFAULT_CONFIG = {
    "server_url": "http://localhost:8002",
    "username": None,  # passphrase lives in the credential store, never here
    "data_folder": None,  # None: caches sit next to config.json
    "log_level": "INFO",
    "log_retention_days": 30,
    "request_timeout": 10,
    "remember_passphrase": False,
    "strict_rebuild": True
}

# Expected value types, None is accepted wherever the default is None
CONFIG_TYPES = {
    "server_url": str,
    "username": str,
    "data_folder": str,
    "log_level": str,
    "log_retention_days": int,
    "request_timeout": (int, float),
    "remember_passphrase": bool,
    "strict_rebuild": bool
}


def _CheckValue(key: str, value: Any) -> None:
    expected = CONFIG_TYPES.get(key)
    if expected is None:
        return
    if value is None and DEFAULT_CONFIG[key] is None:
        return
    # bool is an int subclass, keep numbers and flags apart
    if isinstance(value, bool) and expected is not bool:
        raise ValueError(f"Setting '{key}' must not be true/false")
    if not isinstance(value, expected):
        raise ValueError(f"Setting '{key}' has wrong type {type(value).__name__}")


class ConfigManager:
    """
    Client settings backed by <base_dir>/config.json

    Unknown keys in the file are kept untouched so newer settings survive
    a round trip through an older client.
    """

    def __init__(self, base_dir: Optional[Path] = None):
        """
        Args:
            base_dir: Folder holding config.json, logs and (by default) the patch cache
        """
        self.base_dir = Path(base_dir) if base_dir else DEFAULT_BASE_DIR
        self.config_file = self.base_dir / "config.json"
        self.config: Dict[str, Any] = {}

    def load_config(self) -> Dict[str, Any]:
        """
        Read config.json, writing a fresh one from DEFAULT_CONFIG on first use

        Returns:
            Dict[str, Any]: Settings with every DEFAULT_CONFIG key present

        Raises:
            ValueError: If config.json is not a JSON object or a setting has the wrong type
        """
        if not self.config_file.exists():
            logger.info(f"No settings at {self.config_file}, writing defaults")
            self.config = dict(DEFAULT_CONFIG)
            self.save_config()
            return self.config

        try:
            stored = json.loads(self.config_file.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid configuration file {self.config_file}: {e}")
        if not isinstance(stored, dict):
            raise ValueError(f"Invalid configuration file {self.config_file}: expected a JSON object")

        for key, value in stored.items():
            _CheckValue(key, value)

        self.config = {**DEFAULT_CONFIG, **stored}
        logger.debug(f"Loaded {len(stored)} settings from {self.config_file}")
        return self.config

    def save_config(self):
        """Write the current settings to config.json."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(json.dumps(self.config, indent=2), encoding='utf-8')
        logger.debug(f"Settings written to {self.config_file}")

    def get(self, key: str, default=None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any):
        """
        Change one setting and persist it immediately.

        Raises:
            ValueError: If value has the wrong type for key
        """
        _CheckValue(key, value)
        self.config[key] = value
        self.save_config()

    def get_data_folder(self) -> Path:
        """Get the folder holding the per-user patch caches."""
        data_folder = self.get("data_folder")
        return Path(data_folder).expanduser() if data_folder else self.base_dir

    def get_logs_folder(self) -> Path:
        return self.base_dir / "logs"

    def store_passphrase(self, username: str, passphrase: str) -> bool:
        """
        Store a passphrase in OS credential store.

        Args:
            username: Username the passphrase belongs to
            passphrase: Passphrase to store (securely in OS credential store)

        Returns:
            True if stored, False if no credential store is available
        """
        import keyring
        from keyring.errors import KeyringError

        logger.info(f"Storing passphrase for user: {username}")

        # Remember who the stored passphrase belongs to
        self.set("username", username)

        try:
            keyring.set_password(KEYRING_SERVICE, username, passphrase)
        except KeyringError as e:
            logger.warning(f"Could not store passphrase in credential store: {e}")
            return False

        logger.debug("Passphrase stored successfully")
        return True

    def get_passphrase(self, username: Optional[str] = None) -> Optional[str]:
        """
        Retrieve a passphrase from OS credential store.

        Args:
            username: Username to look up (default: configured username)

        Returns:
            Passphrase or None if not found
        """
        import keyring
        from keyring.errors import KeyringError

        logger.debug("Retrieving passphrase from OS credential store")

        username = username or self.get("username")
        if not username:
            logger.warning("No username to look up in the credential store")
            return None

        try:
            passphrase = keyring.get_password(KEYRING_SERVICE, username)
        except KeyringError as e:
            logger.warning(f"Credential store unavailable: {e}")
            return None

        if not passphrase:
            logger.debug(f"No passphrase found in credential store for user: {username}")
            return None

        logger.debug(f"Passphrase retrieved successfully for user: {username}")
        return passphrase
