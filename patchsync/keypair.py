"""
PatchSync - Key Pairs and Identity Proofs

This module provides the cryptographic identity layer:
- X25519 key pair generation (random or derived from a passphrase)
- Authenticated public-key encryption (X25519 + HKDF-SHA256 + AES-GCM)
- Signatures proving possession of a private key to a verifier ("region") key
- Short word-based fingerprints for display

Key strings are URL-safe base64 of the raw 32-byte keys.

A PublicKey is a reference to someone else's identity and can only be used
as an encryption recipient or a claimed sender. Decrypting and signing
require a KeyPair, which also carries the private key.
"""

import base64
import binascii
import hashlib
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import x25519
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from mnemonic import Mnemonic

from patchsync.exceptions import (
    DecryptionError,
    EmptySignatureError,
    EmptyPublicKeyError,
    SignatureEncodingError,
    SignatureDecryptionError,
    SignatureMismatchError
)

logger = logging.getLogger(__name__)


# ==================== Constants ====================

KEY_SIZE = 32
NONCE_SIZE = 12  # AES-GCM nonce, prepended to every ciphertext
TAG_SIZE = 16

_BOX_INFO = b"patchsync/box/v1"
# Fixed salt: the same passphrase must give the same key pair on every machine
_DERIVATION_SALT = b"patchsync/identity/v1"
_SCRYPT_N = 2 ** 14
_SCRYPT_R = 8
_SCRYPT_P = 1


# ==================== Key Encoding ====================

def EncodeKey(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


def DecodeKey(text: str) -> bytes:
    """
    Decode a key string into its raw 32 bytes

    Raises:
        ValueError: If the string is not base64 or not a 32-byte key
    """
    try:
        raw = base64.b64decode(text.encode("ascii"), altchars=b"-_", validate=True)
    except (UnicodeEncodeError, binascii.Error) as e:
        raise ValueError(f"Key is not valid base64: {e}")
    if len(raw) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(raw)}")
    return raw


# ==================== Key Models ====================

@dataclass(frozen=True)
class PublicKey:
    """
    Public half of an identity
    Usable as an encryption recipient and as the claimed sender of a signature
    """
    public: str

    def PublicBytes(self) -> bytes:
        return DecodeKey(self.public)

    def ToDict(self) -> Dict[str, str]:
        return {"public": self.public}


@dataclass(frozen=True)
class KeyPair(PublicKey):
    """
    Full identity holding both the public and the private key
    Required for decrypting and signing
    """
    private: str

    def PrivateBytes(self) -> bytes:
        return DecodeKey(self.private)

    def PublicOnly(self) -> PublicKey:
        """Get a public-only reference to this identity"""
        return PublicKey(self.public)

    def ToDict(self) -> Dict[str, str]:
        return {"public": self.public, "private": self.private}

    def __repr__(self) -> str:
        return f"KeyPair(public='{self.public}', private=<hidden>)"


def _FromPrivateKey(private_key: x25519.X25519PrivateKey) -> KeyPair:
    private_raw = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_raw = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return KeyPair(public=EncodeKey(public_raw), private=EncodeKey(private_raw))


def GenerateKeyPair() -> KeyPair:
    """Generate a new random key pair from the OS random source"""
    return _FromPrivateKey(x25519.X25519PrivateKey.generate())


def DeriveKeyPair(passphrase: str) -> KeyPair:
    """
    Derive a key pair deterministically from a passphrase

    The passphrase is stretched with scrypt into a 32-byte seed which is used
    directly as the X25519 private key, so the same passphrase always yields
    the same key pair and no private key needs to be stored.

    Args:
        passphrase: User passphrase (must not be empty)

    Returns:
        KeyPair: Derived key pair

    Raises:
        ValueError: If the passphrase is empty
    """
    if not passphrase:
        raise ValueError("Passphrase must not be empty")

    kdf = Scrypt(salt=_DERIVATION_SALT, length=KEY_SIZE, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P)
    seed = kdf.derive(passphrase.encode("utf-8"))
    return _FromPrivateKey(x25519.X25519PrivateKey.from_private_bytes(seed))


def KeyPairFromStrings(public: str, private: str) -> KeyPair:
    """
    Rebuild a key pair from stored key strings

    Raises:
        ValueError: If a key is malformed or the public key does not belong to the private key
    """
    key_pair = _FromPrivateKey(x25519.X25519PrivateKey.from_private_bytes(DecodeKey(private)))
    if DecodeKey(public) != key_pair.PublicBytes():
        raise ValueError("Public key does not match private key")
    return key_pair


def PublicKeyFromString(public: str) -> PublicKey:
    """
    Build a public-only reference from a key string

    Raises:
        ValueError: If the key is malformed
    """
    DecodeKey(public)
    return PublicKey(public)


def KeyFromDict(data: Dict[str, str]) -> PublicKey:
    """Load a KeyPair (or a PublicKey when 'private' is absent) from ToDict output"""
    if data.get("private"):
        return KeyPairFromStrings(data.get("public", ""), data["private"])
    return PublicKeyFromString(data.get("public", ""))


# ==================== Encryption ====================

def _BoxCipher(own: KeyPair, peer: PublicKey) -> AESGCM:
    """Derive the symmetric cipher shared by own and peer (same key in both directions)"""
    private_key = x25519.X25519PrivateKey.from_private_bytes(own.PrivateBytes())
    shared = private_key.exchange(x25519.X25519PublicKey.from_public_bytes(peer.PublicBytes()))
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=_BOX_INFO,
    )
    return AESGCM(hkdf.derive(shared))


def Encrypt(sender: KeyPair, recipient: PublicKey, plaintext: bytes) -> bytes:
    """
    Encrypt and authenticate a message from sender to recipient

    A fresh random nonce is generated for every call and prepended to the
    ciphertext. Sender and recipient public keys are bound as associated data,
    so a message cannot be replayed in the other direction.

    Args:
        sender: Sender's full key pair
        recipient: Recipient's public key
        plaintext: Message bytes

    Returns:
        bytes: nonce || ciphertext || tag
    """
    if not isinstance(sender, KeyPair):
        raise TypeError("Encryption requires the sender's full key pair")

    nonce = os.urandom(NONCE_SIZE)
    associated_data = sender.PublicBytes() + recipient.PublicBytes()
    return nonce + _BoxCipher(sender, recipient).encrypt(nonce, plaintext, associated_data)


def Decrypt(sender: PublicKey, recipient: KeyPair, ciphertext: bytes) -> bytes:
    """
    Decrypt a message produced by Encrypt

    Args:
        sender: Sender's public key
        recipient: Recipient's full key pair
        ciphertext: nonce || ciphertext || tag

    Returns:
        bytes: Plaintext

    Raises:
        DecryptionError: If the message is truncated, tampered with, or was
                         encrypted for a different pair of keys
    """
    if not isinstance(recipient, KeyPair):
        raise TypeError("Decryption requires the recipient's full key pair")

    if len(ciphertext) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionError(f"Ciphertext too short ({len(ciphertext)} bytes)")

    nonce, sealed = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
    associated_data = sender.PublicBytes() + recipient.PublicBytes()

    try:
        return _BoxCipher(recipient, sender).decrypt(nonce, sealed, associated_data)
    except InvalidTag:
        raise DecryptionError("Key pair decryption failed")
    except ValueError as e:
        # Raised by X25519 for degenerate peer keys
        raise DecryptionError(f"Key pair decryption failed: {e}")


# ==================== Identity Proofs ====================

def Sign(key_pair: KeyPair, region: PublicKey) -> str:
    """
    Prove possession of key_pair's private key to the holder of the region key

    The key pair's own public key string is encrypted to the region key.
    Anyone holding the region's private key can decrypt it and check that it
    matches the public key that made it.

    Args:
        key_pair: Identity to prove
        region: Verifier's public key

    Returns:
        str: URL-safe base64 signature
    """
    encrypted = Encrypt(key_pair, region, key_pair.public.encode("utf-8"))
    return base64.urlsafe_b64encode(encrypted).decode("ascii")


def Validate(signature: str, sender: PublicKey, verifier: KeyPair) -> None:
    """
    Check a signature made by Sign

    Args:
        signature: Signature text
        sender: Public key the signature claims to come from
        verifier: Region key pair the signature was made for

    Raises:
        EmptySignatureError: No signature given
        EmptyPublicKeyError: No sender public key given
        SignatureEncodingError: Signature is not base64, or the sender key is malformed
        SignatureDecryptionError: Signature does not decrypt with these keys
        SignatureMismatchError: Decrypted content is not the sender's public key
    """
    if not signature:
        raise EmptySignatureError("No signature to validate")
    if sender is None or not sender.public:
        raise EmptyPublicKeyError("No public key to validate")

    try:
        encrypted = base64.b64decode(signature.encode("ascii"), altchars=b"-_", validate=True)
    except (UnicodeEncodeError, binascii.Error) as e:
        raise SignatureEncodingError(f"Signature is not base64: {e}")

    try:
        decrypted = Decrypt(sender, verifier, encrypted)
    except ValueError as e:
        raise SignatureEncodingError(f"Sender public key is malformed: {e}")
    except DecryptionError as e:
        raise SignatureDecryptionError(f"Signature not decryptable: {e}")

    if decrypted != sender.public.encode("utf-8"):
        raise SignatureMismatchError("Signature corrupted: content does not match sender public key")


# ==================== Fingerprints ====================

@lru_cache(maxsize=1)
def _Wordlist() -> List[str]:
    return Mnemonic("english").wordlist


def Fingerprint(key: PublicKey) -> str:
    """
    Render a short memorable fingerprint of a key

    Three words from the BIP-39 English wordlist, taken from a SHA-256 digest
    over the raw key bytes (public, plus private for a full key pair).
    For display only, never for security decisions.

    Returns:
        str: e.g. 'brisk-olive-canyon'
    """
    digest = hashlib.sha256(key.PublicBytes())
    if isinstance(key, KeyPair):
        digest.update(key.PrivateBytes())

    # 33 bits -> three 11-bit word indices
    bits = int.from_bytes(digest.digest()[:5], "big") >> 7
    words = _Wordlist()
    indices = [(bits >> shift) & 0x7FF for shift in (22, 11, 0)]
    return "-".join(words[index] for index in indices)
