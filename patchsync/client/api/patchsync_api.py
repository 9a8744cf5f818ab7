"""
PatchSync Client - API Communication Module

Handles all communication with the PatchSync server via REST API.
Manages the client identity proof and maps server answers to exceptions.

Author: PatchSync Project
"""

import json
import logging
import requests
from typing import Optional, Dict, Any, List

from patchsync.exceptions import NetworkError, ServerRejectedError, ConflictError
from patchsync.keypair import KeyPair, PublicKey, PublicKeyFromString, Sign

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class PatchSyncAPI:
    """
    API client for communicating with PatchSync server.

    Responsibilities:
    - Fetch the region key and sign the client identity for it
    - Make JSON requests with a bounded timeout
    - Turn transport failures and success=false answers into exceptions
    """

    def __init__(self, server_url: str, timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize API client.

        Args:
            server_url: Base URL of server (e.g., "http://localhost:8002")
            timeout: Seconds to wait for each request
        """
        self.base_url = server_url.rstrip("/")
        self.timeout = timeout
        self.username: Optional[str] = None
        self.key_pair: Optional[KeyPair] = None
        self.region_key: Optional[PublicKey] = None
        # Use session for connection pooling to avoid TCP handshake overhead on each request
        self.session = requests.Session()
        logger.debug(f"Initialized API client for {self.base_url} (timeout: {self.timeout}s)")

    def close(self):
        """
        Close the session and release resources.

        Should be called when done using the API client.
        """
        if hasattr(self, 'session') and self.session:
            self.session.close()
            logger.debug("API client session closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def set_identity(self, username: str, key_pair: KeyPair):
        """
        Set the identity used for authenticated requests.

        Args:
            username: Username registered on the server
            key_pair: Key pair whose public key is bound to the username
        """
        self.username = username
        self.key_pair = key_pair

    def _request(self, method: str, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Make an API request and return the parsed answer.

        Args:
            method: HTTP method (GET or POST)
            endpoint: API endpoint (e.g., "/hash")
            payload: JSON body

        Returns:
            Parsed JSON answer with success=true

        Raises:
            NetworkError: Server unreachable, timed out, or answered without JSON
            ConflictError: Upload base no longer matches the server (409 "conflict")
            ServerRejectedError: Any other success=false answer
        """
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"API request: {method} {endpoint}")

        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Cannot connect to server at {self.base_url}: {e}")
            raise NetworkError(f"Cannot connect to server at {self.base_url}")
        except requests.exceptions.Timeout:
            logger.error(f"Request {method} {endpoint} timed out")
            raise NetworkError(f"Request {method} {endpoint} timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {str(e)}")
            raise NetworkError(f"Request error: {str(e)}")

        try:
            data = response.json()
        except json.JSONDecodeError:
            logger.error(f"Non-JSON answer from {endpoint} (status {response.status_code}): {response.text[:200]}")
            raise NetworkError(f"{endpoint} answered with status {response.status_code} and no JSON body")

        if not isinstance(data, dict):
            raise NetworkError(f"{endpoint} answered with unexpected JSON: {data!r}")

        if response.status_code >= 400 or not data.get("success", False):
            message = data.get("message") or f"status {response.status_code}"
            if response.status_code == 409 and message.startswith("conflict"):
                logger.warning(f"Conflict on {endpoint}: {message}")
                raise ConflictError(message, response.status_code)
            logger.error(f"Request {endpoint} failed with status {response.status_code}: {message}")
            raise ServerRejectedError(f"{endpoint} failed: {message}", response.status_code)

        return data

    def _identity(self) -> Dict[str, str]:
        """
        Build the identity fields of an authenticated request.

        Raises:
            ValueError: If set_identity() was not called
        """
        if not self.username or self.key_pair is None:
            raise ValueError("No identity set - call set_identity() first")

        if self.region_key is None:
            self.region_key = self.get_region_key()

        return {
            "username": self.username,
            "public_key": self.key_pair.public,
            "signature": Sign(self.key_pair, self.region_key)
        }

    # ==================== Identity Endpoints ====================

    def health_check(self) -> Dict[str, Any]:
        """Get the server's health status."""
        return self._request("GET", "/health")

    def get_region_key(self) -> PublicKey:
        """
        Fetch the region public key clients sign for.

        Raises:
            NetworkError: If the server sends a malformed key
        """
        data = self._request("GET", "/region")
        try:
            return PublicKeyFromString(data.get("message", ""))
        except ValueError as e:
            raise NetworkError(f"Server sent an invalid region key: {e}")

    def register(self) -> str:
        """
        Register the current identity with the server.

        Returns:
            Server message
        """
        data = self._request("POST", "/register", self._identity())
        logger.info(f"Registration: {data.get('message')}")
        return data.get("message", "")

    # ==================== Patch Endpoints ====================

    def get_latest_hash(self, filename: str) -> str:
        """
        Get the content hash of the server's newest version of a file.

        Returns:
            Hash string, empty if the server has no patches for the file
        """
        data = self._request("POST", "/hash", {"username": self.username, "filename": filename})
        return data.get("message", "")

    def upload_patch(self, record_name: str, encoded_patch: str, base_hash: Optional[str]) -> str:
        """
        Upload one patch record.

        Args:
            record_name: '<file>.<new content hash>.<timestamp>'
            encoded_patch: Encoded delta from the base version
            base_hash: Hash of the version the delta was computed against

        Returns:
            Stored record name

        Raises:
            ConflictError: Server's current version is not base_hash
        """
        payload = self._identity()
        payload.update({
            "filename": record_name,
            "patch": encoded_patch,
            "base_hash": base_hash
        })
        data = self._request("POST", "/patch", payload)
        return data.get("message", record_name)

    def list_patches(self, filename: str) -> List[str]:
        """List the server's record names of a file in timestamp order."""
        payload = self._identity()
        payload["filename"] = filename
        data = self._request("POST", "/patches", payload)
        return list(data.get("patches", []))

    def download_patch(self, record_name: str) -> str:
        """Download the encoded patch of one record."""
        payload = self._identity()
        payload["filename"] = record_name
        data = self._request("POST", "/patch/download", payload)
        return data.get("message", "")
