"""
PatchSync - Signature Error Exceptions

Raised when an identity proof does not validate. Each failure cause has its
own subclass so callers can tell them apart in logs and responses.

Author: PatchSync Project
"""

from .base_error import PatchSyncError


class SignatureError(PatchSyncError):
    """Base exception for invalid identity proofs."""
    pass


class EmptySignatureError(SignatureError):
    """No signature was supplied."""
    pass


class EmptyPublicKeyError(SignatureError):
    """No public key was supplied for the claimed sender."""
    pass


class SignatureEncodingError(SignatureError):
    """Signature is not valid base64 text."""
    pass


class SignatureDecryptionError(SignatureError):
    """Signature could not be decrypted with the verifier and sender keys."""
    pass


class SignatureMismatchError(SignatureError):
    """Signature decrypted but does not contain the sender's public key."""
    pass
