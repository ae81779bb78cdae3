"""Helper signatures: b64e, b64d."""

import base64
import binascii

from scram.common.errors import DecodingError


def b64e(b: bytes) -> str:
    """Base64-encode bytes → ASCII string."""
    return base64.b64encode(b).decode("ascii")


def b64d(s: str) -> bytes:
    """Strict base64 decode; anything outside the alphabet is a DecodingError."""
    try:
        return base64.b64decode(s.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise DecodingError(f"invalid base64 value {s!r} ({e})") from e
