"""Record codecs for the current and legacy cache layouts.

Pure encode/decode between typed fields and fixed-length buffers; no I/O.
The two layouts are decoded independently and never alias each other.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass

from .protocol import (
    FORMAT_VERSION,
    IDENTIFIER_LEN,
    LEGACY_MARKER,
    LEGACY_RECORD_FMT,
    LEGACY_RECORD_LEN,
    LEGACY_RS1_VALID,
    LEGACY_RS2_VALID,
    LEGACY_SAS_VERIFIED,
    OWN_ZID_RECORD,
    RECORD_FMT,
    RECORD_LEN,
    RS_LENGTH,
    SAS_VERIFIED,
    VALID,
)

if struct.calcsize(RECORD_FMT) != RECORD_LEN or struct.calcsize(LEGACY_RECORD_FMT) != LEGACY_RECORD_LEN:
    raise RuntimeError("record formats do not match their declared lengths")

_ZERO_ID = bytes(IDENTIFIER_LEN)
_ZERO_RS = bytes(RS_LENGTH)


@dataclass(frozen=True)
class RecordFields:
    """Typed fields of one current-format record."""

    identifier: bytes = _ZERO_ID
    flags: int = 0
    rs1_interval: int = 0
    rs1: bytes = _ZERO_RS
    rs2_interval: int = 0
    rs2: bytes = _ZERO_RS
    mitm_key: bytes = _ZERO_RS
    version: int = FORMAT_VERSION

    @property
    def is_own(self) -> bool:
        return bool(self.flags & OWN_ZID_RECORD)

    @property
    def is_valid(self) -> bool:
        return bool(self.flags & VALID)

    @property
    def is_verified(self) -> bool:
        return bool(self.flags & SAS_VERIFIED)


@dataclass(frozen=True)
class LegacyRecordFields:
    """Typed fields of one legacy-format record (read side of migration)."""

    identifier: bytes = _ZERO_ID
    rec_valid: int = 0
    own_zid: int = 0
    secret_flags: int = 0
    rs1: bytes = _ZERO_RS
    rs2: bytes = _ZERO_RS

    @property
    def is_own(self) -> bool:
        return self.own_zid == 1

    @property
    def is_valid(self) -> bool:
        return self.rec_valid != 0

    @property
    def is_verified(self) -> bool:
        return bool(self.secret_flags & LEGACY_SAS_VERIFIED)

    @property
    def rs1_valid(self) -> bool:
        return bool(self.secret_flags & LEGACY_RS1_VALID)

    @property
    def rs2_valid(self) -> bool:
        return bool(self.secret_flags & LEGACY_RS2_VALID)


def _check_len(name: str, value: bytes, size: int) -> bytes:
    if len(value) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(value)}")
    return bytes(value)


def encode_record(fields: RecordFields) -> bytes:
    return struct.pack(
        RECORD_FMT,
        fields.version,
        fields.flags,
        _check_len("identifier", fields.identifier, IDENTIFIER_LEN),
        fields.rs1_interval,
        _check_len("rs1", fields.rs1, RS_LENGTH),
        fields.rs2_interval,
        _check_len("rs2", fields.rs2, RS_LENGTH),
        _check_len("mitm_key", fields.mitm_key, RS_LENGTH),
    )


def decode_record(buf: bytes) -> RecordFields:
    if len(buf) != RECORD_LEN:
        raise ValueError(f"Record must be {RECORD_LEN} bytes, got {len(buf)}")
    ver, flags, zid, rs1_int, rs1, rs2_int, rs2, mitm = struct.unpack(RECORD_FMT, bytes(buf))
    return RecordFields(
        identifier=zid,
        flags=flags,
        rs1_interval=rs1_int,
        rs1=rs1,
        rs2_interval=rs2_int,
        rs2=rs2,
        mitm_key=mitm,
        version=ver,
    )


def encode_legacy(fields: LegacyRecordFields) -> bytes:
    return struct.pack(
        LEGACY_RECORD_FMT,
        fields.rec_valid,
        fields.own_zid,
        fields.secret_flags,
        _check_len("identifier", fields.identifier, IDENTIFIER_LEN),
        _check_len("rs1", fields.rs1, RS_LENGTH),
        _check_len("rs2", fields.rs2, RS_LENGTH),
    )


def decode_legacy(buf: bytes) -> LegacyRecordFields:
    if len(buf) != LEGACY_RECORD_LEN:
        raise ValueError(f"Legacy record must be {LEGACY_RECORD_LEN} bytes, got {len(buf)}")
    rec_valid, own, sflags, zid, rs1, rs2 = struct.unpack(LEGACY_RECORD_FMT, bytes(buf))
    return LegacyRecordFields(
        identifier=zid,
        rec_valid=rec_valid,
        own_zid=own,
        secret_flags=sflags,
        rs1=rs1,
        rs2=rs2,
    )


def format_marker(head: bytes) -> str:
    """Classify a file from its leading bytes: current, legacy, unknown or empty."""
    if not head:
        return "empty"
    if head[0] == FORMAT_VERSION:
        return "current"
    if head[0] == LEGACY_MARKER:
        return "legacy"
    return "unknown"
