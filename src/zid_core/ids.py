"""ZID generation and text helpers."""
from __future__ import annotations

import nacl.utils

from .protocol import IDENTIFIER_LEN


def new_zid() -> bytes:
    """Return a fresh random ZID from the libsodium CSPRNG."""
    return nacl.utils.random(IDENTIFIER_LEN)


def check_zid(zid: bytes) -> bytes:
    """Validate ZID type and length, returning it as immutable bytes."""
    if not isinstance(zid, (bytes, bytearray, memoryview)):
        raise TypeError(f"ZID must be bytes, not {type(zid).__name__}")
    zid = bytes(zid)
    if len(zid) != IDENTIFIER_LEN:
        raise ValueError(f"ZID must be {IDENTIFIER_LEN} bytes, got {len(zid)}")
    return zid


def zid_hex(zid: bytes) -> str:
    return bytes(zid).hex()


def parse_zid(text: str) -> bytes:
    """Parse a hex ZID as printed by the CLI."""
    return check_zid(bytes.fromhex(text.strip()))
