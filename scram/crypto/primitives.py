"""
SHA-1 hash, HMAC-SHA-1, PBKDF2-HMAC-SHA-1 and fixed-length XOR with cryptography.
"""
from cryptography.hazmat.primitives import constant_time, hashes, hmac as crypto_hmac
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from scram.common.errors import LengthMismatch

DIGEST_SIZE = hashes.SHA1.digest_size  # 20 bytes


def _to_bytes(data) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


def hash_(data: bytes) -> bytes:
    digest = hashes.Hash(hashes.SHA1())
    digest.update(data)
    return digest.finalize()


def hmac(key: bytes, message) -> bytes:
    """HMAC-SHA-1 over message (str is UTF-8 encoded) keyed with raw bytes."""
    h = crypto_hmac.HMAC(key, hashes.SHA1())
    h.update(_to_bytes(message))
    return h.finalize()


def pbkdf2(password, salt: bytes, rounds: int) -> bytes:
    """Hi(password, salt, i) from RFC 5802: PBKDF2 with a digest-length output."""
    if not isinstance(rounds, int) or not 1 <= rounds <= 2 ** 32 - 1:
        raise ValueError(f"iteration count must be a 32-bit positive integer, got {rounds!r}")
    kdf = PBKDF2HMAC(algorithm=hashes.SHA1(), length=DIGEST_SIZE, salt=salt, iterations=rounds)
    return kdf.derive(_to_bytes(password))


def xor(a: bytes, b: bytes) -> bytes:
    """
    Byte-wise XOR of two equal-length values.
    xor(k, xor(k, d)) == d
    """
    if len(a) != len(b):
        raise LengthMismatch(f"cannot XOR {len(a)} bytes with {len(b)} bytes")
    return bytes(x ^ y for x, y in zip(a, b))


def bytes_eq(a: bytes, b: bytes) -> bool:
    """Constant-time comparison of two digests."""
    return constant_time.bytes_eq(a, b)
