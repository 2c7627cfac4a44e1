"""Bearer secret generation and hashing.

Hash format: ``pbkdf2_sha256${iterations}${salt_hex}${digest_hex}``.
Each hash carries its own salt and work factor, so changing the configured
iteration count only affects hashes written afterwards.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

_ALGORITHM = "pbkdf2_sha256"
_SALT_BYTES = 16
_SECRET_BYTES = 16  # 128 bits -> 32 hex chars
DEFAULT_ITERATIONS = 260_000


def generate_secret() -> str:
    """Generate a random opaque bearer secret (hex, no separators)."""
    return secrets.token_hex(_SECRET_BYTES)


def _derive(secret: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode(), salt, iterations)


def hash_secret(secret: str, *, iterations: int = DEFAULT_ITERATIONS) -> str:
    """Hash a plaintext secret with a fresh random salt.

    Args:
        secret: The plaintext bearer secret
        iterations: PBKDF2 work factor

    Returns:
        Encoded hash string safe to store
    """
    salt = secrets.token_bytes(_SALT_BYTES)
    digest = _derive(secret, salt, iterations)
    return f"{_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Verify a plaintext secret against a stored hash.

    Malformed hashes never match. The digest comparison is constant-time.

    Args:
        secret: The plaintext secret to verify
        secret_hash: The stored encoded hash

    Returns:
        True if the secret matches
    """
    try:
        algorithm, iterations, salt_hex, digest_hex = secret_hash.split("$")
        if algorithm != _ALGORITHM:
            return False
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    if rounds < 1:
        return False
    return hmac.compare_digest(_derive(secret, salt, rounds), expected)
