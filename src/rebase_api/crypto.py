from __future__ import annotations
import base64
import hashlib
import re
from typing import Callable

import rfc8785

from .errors import HashComputationError, PreconditionError

HASH_SIZE = 32
NOTE_SIZE = 32

Hasher = Callable[[bytes], bytes]

_B64URL = re.compile(rb"[A-Za-z0-9_-]*")


def B64U(b: bytes) -> str:
    """Base64url-encode bytes without padding."""
    return base64.urlsafe_b64encode(b).rstrip(b"=").decode("ascii")


def B64UD(s: str) -> bytes:
    """Decode unpadded (or padded) base64url with strict alphabet checks."""
    try:
        raw = s.encode("ascii")
    except UnicodeEncodeError as e:
        raise ValueError("invalid base64url") from e
    raw = raw.rstrip(b"=")
    if not _B64URL.fullmatch(raw):
        raise ValueError("invalid base64url")
    if len(raw) % 4 == 1:
        raise ValueError("invalid base64url")
    return base64.urlsafe_b64decode(raw + b"=" * (-len(raw) % 4))


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def digest(hasher: Hasher, data: bytes) -> bytes:
    """Run the hash provider once and check the digest it hands back."""
    try:
        out = hasher(data)
    except Exception as e:
        raise HashComputationError(f"hash provider failed: {e}") from e
    if not isinstance(out, (bytes, bytearray)) or len(out) != HASH_SIZE:
        raise HashComputationError(
            f"hash provider returned {type(out).__name__} of unexpected size"
        )
    return bytes(out)


def int_to_note(n: int) -> bytes:
    """Fixed-width big-endian integer as embedded in proofs and roots."""
    if n < 0:
        raise PreconditionError(f"cannot encode negative integer {n}")
    try:
        return n.to_bytes(NOTE_SIZE, "big")
    except OverflowError as e:
        raise PreconditionError(f"integer {n} does not fit in {NOTE_SIZE} bytes") from e


def note_to_int(b: bytes) -> int:
    if len(b) != NOTE_SIZE:
        raise ValueError(f"note must be {NOTE_SIZE} bytes")
    return int.from_bytes(b, "big")


def jcs_dumps(obj) -> bytes:
    """Deterministic canonical JSON bytes per RFC8785."""
    return rfc8785.dumps(obj)
