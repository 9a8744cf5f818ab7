"""
PatchSync - Exceptions Package

Contains all exception classes shared by the client and the server.

Author: PatchSync Project
"""

from .base_error import PatchSyncError
from .codec_error import CodecError
from .patch_apply_error import PatchApplyError
from .integrity_error import IntegrityError
from .storage_error import StorageError
from .patch_conflict_error import PatchConflictError
from .decryption_error import DecryptionError
from .signature_error import (
    SignatureError,
    EmptySignatureError,
    EmptyPublicKeyError,
    SignatureEncodingError,
    SignatureDecryptionError,
    SignatureMismatchError
)
from .network_error import NetworkError, ServerRejectedError, ConflictError

__all__ = [
    'PatchSyncError',
    'CodecError',
    'PatchApplyError',
    'IntegrityError',
    'StorageError',
    'PatchConflictError',
    'DecryptionError',
    'SignatureError',
    'EmptySignatureError',
    'EmptyPublicKeyError',
    'SignatureEncodingError',
    'SignatureDecryptionError',
    'SignatureMismatchError',
    'NetworkError',
    'ServerRejectedError',
    'ConflictError'
]
