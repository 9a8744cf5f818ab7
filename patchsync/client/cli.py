"""
PatchSync Client - CLI Mode Module

Implements the command-line operations: patch up a file and rebuild a file.
Uses the configured (or given) identity, executes the operation, and logs to
a timestamped file.

Author: PatchSync Project
"""

import sys
import getpass
import logging
from pathlib import Path
from datetime import datetime, timedelta
from typing import Optional

from patchsync.client.managers import ConfigManager, CacheManager, logical_name
from patchsync.client.api import PatchSyncAPI
from patchsync.client.operations import SyncOperations
from patchsync.exceptions import (
    PatchSyncError,
    NetworkError,
    ServerRejectedError,
    ConflictError,
    SignatureError,
    DecryptionError
)
from patchsync.keypair import DeriveKeyPair, Fingerprint


# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_NETWORK_ERROR = 4

OPERATIONS = ("patch-up", "rebuild")

logger = logging.getLogger(__name__)


def setup_cli_logging(config_manager: ConfigManager, debug: bool = False) -> Path:
    """
    Send log records to a per-run file under the client logs folder.

    The file is named patchsync-<local time>.log and receives the configured
    level. The console (stderr, so rebuilt text on stdout stays clean) only
    shows warnings and errors unless debug is set.

    Returns:
        Path of this run's log file
    """
    level_name = "DEBUG" if debug else str(config_manager.get("log_level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    log_dir = config_manager.get_logs_folder()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"patchsync-{datetime.now():%Y-%m-%d-%H-%M-%S}.log"

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.WARNING)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file, encoding='utf-8'), console],
        force=True
    )

    logger.info(f"PatchSync CLI started at level {level_name}, logging to {log_file}")
    return log_file


def cleanup_old_logs(config_manager: ConfigManager, current_log: Path):
    """Remove this client's log files past log_retention_days (0 keeps everything)."""
    retention_days = config_manager.get("log_retention_days", 30)
    if retention_days <= 0:
        return

    cutoff = (datetime.now() - timedelta(days=retention_days)).timestamp()
    expired = [
        path for path in current_log.parent.glob("patchsync-*.log")
        if path != current_log and path.stat().st_mtime < cutoff
    ]

    for path in expired:
        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Could not remove expired log {path.name}: {e}")

    if expired:
        logger.debug(f"Removed up to {len(expired)} log file(s) older than {retention_days} days")


def normalize_server_url(address: str) -> str:
    """
    Turn a server address into a base URL.

    Accepts "host:port" as well as full URLs.

    Args:
        address: Server address from -s or config

    Returns:
        Base URL without trailing slash
    """
    address = address.strip()
    if "://" not in address:
        address = f"http://{address}"
    return address.rstrip("/")


def resolve_passphrase(config_manager: ConfigManager, username: str,
                       passphrase: Optional[str] = None) -> str:
    """
    Determine the passphrase to derive the identity from.

    Priority: command-line argument > OS credential store > interactive prompt

    Args:
        config_manager: ConfigManager instance
        username: User the passphrase belongs to
        passphrase: Optional passphrase from -p argument

    Returns:
        Passphrase (stripped of surrounding whitespace)
    """
    remember = config_manager.get("remember_passphrase", False)

    if passphrase:
        source = "command line"
    else:
        passphrase = config_manager.get_passphrase(username) if remember else None
        source = "credential store"
        if not passphrase:
            passphrase = getpass.getpass("Passphrase: ")
            source = "prompt"

    passphrase = passphrase.strip()
    logger.debug(f"Using passphrase from {source}")

    if remember and passphrase and source != "credential store":
        config_manager.store_passphrase(username, passphrase)

    return passphrase


def exit_code_for(error: Exception) -> int:
    """
    Map an exception to the CLI exit code.

    Args:
        error: Exception raised by an operation

    Returns:
        Exit code
    """
    if isinstance(error, (SignatureError, DecryptionError)):
        return EXIT_AUTH_ERROR
    if isinstance(error, ConflictError):
        return EXIT_FAILURE
    if isinstance(error, ServerRejectedError):
        if error.status_code in (401, 403):
            return EXIT_AUTH_ERROR
        return EXIT_FAILURE
    if isinstance(error, NetworkError):
        return EXIT_NETWORK_ERROR
    if isinstance(error, ValueError):
        return EXIT_CONFIG_ERROR
    return EXIT_FAILURE


def run_cli_operation(operation: str, path: Optional[str], username: Optional[str] = None,
                      passphrase: Optional[str] = None, server: Optional[str] = None,
                      data_folder: Optional[str] = None, debug: bool = False) -> int:
    """
    Execute a CLI operation.

    Process:
    1. Setup logging to timestamped file
    2. Load configuration (command-line values override it)
    3. Check the server answers /health
    4. Derive the identity from the passphrase
    5. Execute requested operation
       - patch-up: register, then upload the local changes of the file
       - rebuild: pull missing patches, rebuild the file and print it
    6. Return appropriate exit code

    Args:
        operation: "patch-up" or "rebuild"
        path: File to operate on
        username: Username override (-u)
        passphrase: Passphrase (-p)
        server: Server address override (-s)
        data_folder: Client folder override (--data)
        debug: Enable debug logging

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    logging_ready = False
    api_client = None

    try:
        # Setup logging
        config_mgr = ConfigManager(Path(data_folder).expanduser() if data_folder else None)
        config_mgr.load_config()
        log_file = setup_cli_logging(config_mgr, debug)
        logging_ready = True

        # Cleanup old logs
        cleanup_old_logs(config_mgr, log_file)

        logger.info("=" * 60)
        logger.info(f"Starting PatchSync CLI: {operation.upper()}")
        logger.info("=" * 60)

        if operation not in OPERATIONS:
            logger.error(f"Unknown operation: {operation}")
            return EXIT_FAILURE

        if not path:
            logger.error("No file given. Use -f to name the file to synchronize.")
            return EXIT_CONFIG_ERROR

        username = username or config_mgr.get("username")
        if not username:
            logger.error("No username given. Use -u or set username in config.json.")
            return EXIT_CONFIG_ERROR

        server_url = normalize_server_url(server or config_mgr.get("server_url"))
        filename = logical_name(Path(path))
        cache_mgr = CacheManager(config_mgr.get_data_folder(), username)

        # Reach the server before asking for the passphrase
        api_client = PatchSyncAPI(server_url, config_mgr.get("request_timeout", 10))
        health = api_client.health_check()
        logger.info(f"Connected to {server_url} (server version {health.get('version', 'unknown')})")

        # Derive identity
        key_pair = DeriveKeyPair(resolve_passphrase(config_mgr, username, passphrase))
        logger.info(f"Identity for '{username}': {Fingerprint(key_pair.PublicOnly())}")

        sync_ops = SyncOperations(
            api_client,
            key_pair,
            username,
            cache_mgr.cache_folder,
            strict_rebuild=config_mgr.get("strict_rebuild", True),
            progress_callback=logger.info
        )

        # Execute requested operation
        if operation == "patch-up":
            sync_ops.register()
            state = sync_ops.patch_up(Path(path))
            logger.info(f"'{filename}' {state.state.value} (hash {state.hash_local[:16]})")
        else:
            sync_ops.sync(filename)
            result = sync_ops.rebuild(filename)
            print(result.text, end="")
            logger.info(f"Rebuilt '{filename}' from {result.records} patches (hash {result.content_hash[:16]})")

        logger.info("=" * 60)
        logger.info(f"{operation.upper()} COMPLETED SUCCESSFULLY")
        logger.info("=" * 60)
        return EXIT_SUCCESS

    except ConflictError as e:
        if logging_ready:
            logger.error(f"Conflict: {e}")
            logger.error("The server has changes this machine has not seen. Run with --rebuild to pull them first.")
        else:
            print(f"Conflict: {e}", file=sys.stderr)
        return exit_code_for(e)

    except (PatchSyncError, ValueError) as e:
        if logging_ready:
            logger.error(f"{type(e).__name__}: {e}")
            logger.error(f"{operation.upper()} FAILED")
        else:
            print(f"Error: {e}", file=sys.stderr)
        return exit_code_for(e)

    except KeyboardInterrupt:
        if logging_ready:
            logger.warning("Operation cancelled by user (Ctrl+C)")
        else:
            print("\nOperation cancelled by user", file=sys.stderr)
        return EXIT_FAILURE

    except Exception as e:
        if logging_ready:
            logger.exception(f"Unexpected error: {e}")
        else:
            print(f"Unexpected error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    finally:
        if api_client:
            api_client.close()
