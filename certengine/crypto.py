"""
Cryptographic primitives.

- SHA-256 hashing (certificate signatures, document content hashes)
- Ed25519 issuer key pair for signing external announcements (RFC 8032)

The issuer key only authenticates announcements sent to public log
endpoints. Certificate records themselves are sealed with a plain SHA-256
digest, see :mod:`certengine.signer`.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from .canonicalize import canonicalize


# ---------------------------------------------------------------------------
# SHA-256 utilities
# ---------------------------------------------------------------------------

def sha256_hex(data: str | bytes) -> str:
    """Return the SHA-256 hex digest of *data*."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def is_sha256_hex(value: str) -> bool:
    """True if *value* looks like a lower-case SHA-256 hex digest."""
    return len(value) == 64 and all(c in "0123456789abcdef" for c in value)


# ---------------------------------------------------------------------------
# Ed25519 issuer key
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KeyPair:
    private_key: Ed25519PrivateKey
    public_key: Ed25519PublicKey

    @property
    def public_hex(self) -> str:
        return public_key_hex(self.public_key)


def generate_keypair() -> KeyPair:
    """Generate a fresh Ed25519 key pair."""
    sk = Ed25519PrivateKey.generate()
    return KeyPair(private_key=sk, public_key=sk.public_key())


def keypair_from_hex(seed_hex: str) -> KeyPair:
    """Load a key pair from a 32-byte hex-encoded private seed."""
    try:
        raw = bytes.fromhex(seed_hex.strip())
    except ValueError as e:
        raise ValueError(f"issuer key is not valid hex: {e}") from e
    if len(raw) != 32:
        raise ValueError(f"issuer key must be 32 bytes, got {len(raw)}")
    sk = Ed25519PrivateKey.from_private_bytes(raw)
    return KeyPair(private_key=sk, public_key=sk.public_key())


def private_key_hex(sk: Ed25519PrivateKey) -> str:
    return sk.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption()).hex()


def public_key_hex(pk: Ed25519PublicKey) -> str:
    return pk.public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def load_public_key_hex(value: str) -> Ed25519PublicKey:
    return Ed25519PublicKey.from_public_bytes(bytes.fromhex(value))


# ---------------------------------------------------------------------------
# Signing & verification
# ---------------------------------------------------------------------------

def sign_json(obj: dict, sk: Ed25519PrivateKey) -> str:
    """Canonicalize a JSON-compatible dict via JCS, sign it, return base64 sig."""
    sig = sk.sign(canonicalize(obj))
    return base64.b64encode(sig).decode()


def verify_json(obj: dict, signature_b64: str, pk: Ed25519PublicKey) -> bool:
    """Verify that base64 signature matches JCS-canonical form of obj."""
    try:
        pk.verify(base64.b64decode(signature_b64), canonicalize(obj))
        return True
    except (InvalidSignature, ValueError):
        return False
