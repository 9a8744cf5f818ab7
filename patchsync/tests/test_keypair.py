"""
Tests for PatchSync key pairs

Tests key generation and derivation, encryption, identity proofs and fingerprints.
"""

import base64

import pytest

from patchsync.exceptions import (
    DecryptionError,
    SignatureError,
    EmptySignatureError,
    EmptyPublicKeyError,
    SignatureEncodingError,
    SignatureDecryptionError,
    SignatureMismatchError
)
from patchsync.keypair import (
    KeyPair, PublicKey, GenerateKeyPair, DeriveKeyPair, KeyPairFromStrings,
    PublicKeyFromString, KeyFromDict, Encrypt, Decrypt, Sign, Validate, Fingerprint,
    EncodeKey, DecodeKey
)


def test_generate_key_pair():
    """Test random key pairs are distinct and well formed"""
    first = GenerateKeyPair()
    second = GenerateKeyPair()

    assert first != second
    assert len(DecodeKey(first.public)) == 32
    assert len(DecodeKey(first.private)) == 32
    assert "private=<hidden>" in repr(first)
    assert first.private not in repr(first)

    print("Key generation tests passed")


def test_derive_key_pair_is_deterministic():
    """Test the same passphrase gives the same key pair"""
    assert DeriveKeyPair("correct horse battery staple") == DeriveKeyPair("correct horse battery staple")
    assert DeriveKeyPair("passphrase one") != DeriveKeyPair("passphrase two")

    with pytest.raises(ValueError):
        DeriveKeyPair("")

    print("Key derivation tests passed")


def test_key_serialization():
    """Test loading keys from strings and dicts"""
    key_pair = GenerateKeyPair()

    assert KeyPairFromStrings(key_pair.public, key_pair.private) == key_pair
    assert KeyFromDict(key_pair.ToDict()) == key_pair

    public_only = KeyFromDict(key_pair.PublicOnly().ToDict())
    assert isinstance(public_only, PublicKey)
    assert not isinstance(public_only, KeyPair)
    assert public_only == PublicKeyFromString(key_pair.public)

    with pytest.raises(ValueError):
        KeyPairFromStrings(GenerateKeyPair().public, key_pair.private)

    with pytest.raises(ValueError):
        PublicKeyFromString(EncodeKey(b"short"))

    with pytest.raises(ValueError):
        PublicKeyFromString("not base64 at all!")

    print("Key serialization tests passed")


def test_encrypt_decrypt_round_trip():
    """Test messages decrypt for the intended pair of keys only"""
    sender = GenerateKeyPair()
    recipient = GenerateKeyPair()
    message = b"patch\x00bytes\n" * 10

    ciphertext = Encrypt(sender, recipient.PublicOnly(), message)

    assert Decrypt(sender.PublicOnly(), recipient, ciphertext) == message

    # Fresh nonce every call
    assert Encrypt(sender, recipient, message) != Encrypt(sender, recipient, message)

    # Any other key pair fails
    with pytest.raises(DecryptionError):
        Decrypt(sender.PublicOnly(), GenerateKeyPair(), ciphertext)

    with pytest.raises(DecryptionError):
        Decrypt(GenerateKeyPair().PublicOnly(), recipient, ciphertext)

    print("Encryption round trip tests passed")


def test_tampered_ciphertext_fails():
    """Test changing any byte or truncating fails instead of returning wrong plaintext"""
    sender = GenerateKeyPair()
    recipient = GenerateKeyPair()
    ciphertext = Encrypt(sender, recipient, b"hello")

    for position in (0, 12, len(ciphertext) - 1):
        tampered = bytearray(ciphertext)
        tampered[position] ^= 0x01
        with pytest.raises(DecryptionError):
            Decrypt(sender, recipient, bytes(tampered))

    with pytest.raises(DecryptionError):
        Decrypt(sender, recipient, ciphertext[:20])

    print("Tamper detection tests passed")


def test_private_key_required():
    """Test public-only keys cannot encrypt as sender or decrypt as recipient"""
    key_pair = GenerateKeyPair()

    with pytest.raises(TypeError):
        Encrypt(key_pair.PublicOnly(), key_pair, b"x")

    with pytest.raises(TypeError):
        Decrypt(key_pair, key_pair.PublicOnly(), b"x" * 40)

    print("Private key requirement tests passed")


def test_sign_and_validate():
    """Test identity proofs validate for the signer only"""
    region = GenerateKeyPair()
    user = DeriveKeyPair("user passphrase")

    signature = Sign(user, region.PublicOnly())

    Validate(signature, user.PublicOnly(), region)

    with pytest.raises(SignatureError):
        Validate(signature, GenerateKeyPair().PublicOnly(), region)

    print("Sign and validate tests passed")


def test_validate_failures_are_distinct():
    """Test each way a signature can fail raises its own error"""
    region = GenerateKeyPair()
    user = GenerateKeyPair()
    signature = Sign(user, region)

    with pytest.raises(EmptySignatureError):
        Validate("", user.PublicOnly(), region)

    with pytest.raises(EmptyPublicKeyError):
        Validate(signature, PublicKey(""), region)

    with pytest.raises(SignatureEncodingError):
        Validate("***not base64***", user.PublicOnly(), region)

    with pytest.raises(SignatureEncodingError):
        Validate(signature, PublicKey("bad key"), region)

    with pytest.raises(SignatureDecryptionError):
        Validate(signature, user.PublicOnly(), GenerateKeyPair())

    # Valid encryption of the wrong content
    other_content = Encrypt(user, region, b"someone else's key")
    forged = base64.urlsafe_b64encode(other_content).decode("ascii")
    with pytest.raises(SignatureMismatchError):
        Validate(forged, user.PublicOnly(), region)

    print("Distinct validation failure tests passed")


def test_fingerprint():
    """Test fingerprints are three stable words"""
    key_pair = DeriveKeyPair("fingerprint test")

    fingerprint = Fingerprint(key_pair)

    assert fingerprint == Fingerprint(DeriveKeyPair("fingerprint test"))
    assert len(fingerprint.split("-")) == 3
    assert fingerprint != Fingerprint(key_pair.PublicOnly())

    print("Fingerprint tests passed")
