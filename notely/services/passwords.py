"""PBKDF2 password hashing stored as hex(salt || derived key)."""
import hashlib
import hmac
import os

_ITERATIONS = 100_000
_SALT_BYTES = 16


def hash_password(password: str) -> str:
    salt = os.urandom(_SALT_BYTES)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _ITERATIONS)
    return (salt + dk).hex()


def check_password(stored: str, password: str) -> bool:
    """Timing-safe comparison against a value produced by hash_password."""
    try:
        raw = bytes.fromhex(stored)
    except ValueError:
        return False
    salt, expected_dk = raw[:_SALT_BYTES], raw[_SALT_BYTES:]
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, _ITERATIONS)
    return hmac.compare_digest(dk, expected_dk)
