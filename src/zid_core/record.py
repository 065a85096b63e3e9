"""In-memory view over one encoded current-format cache record."""
from __future__ import annotations

import struct
import time

from .codec import RecordFields, decode_record, encode_record
from .ids import check_zid
from .protocol import (
    EXPIRE_NEVER,
    EXPIRED,
    IDENTIFIER_LEN,
    MITM_KEY_AVAILABLE,
    OFF_FLAGS,
    OFF_IDENTIFIER,
    OFF_MITM,
    OFF_RS1,
    OFF_RS1_INTERVAL,
    OFF_RS2,
    OFF_RS2_INTERVAL,
    OWN_ZID_RECORD,
    RECORD_LEN,
    RS1_VALID,
    RS2_VALID,
    RS_LENGTH,
    SAS_VERIFIED,
    SLOT_PRIMARY,
    SLOT_SECONDARY,
    VALID,
)

_INTERVAL_FMT = "<q"

# slot -> (data offset, interval offset, validity flag)
_SLOTS = {
    SLOT_PRIMARY: (OFF_RS1, OFF_RS1_INTERVAL, RS1_VALID),
    SLOT_SECONDARY: (OFF_RS2, OFF_RS2_INTERVAL, RS2_VALID),
}


def _slot(slot: str) -> tuple[int, int, int]:
    try:
        return _SLOTS[slot]
    except KeyError:
        raise ValueError(f"Unknown secret slot {slot!r}") from None


def _secret(data: bytes) -> bytes:
    if len(data) != RS_LENGTH:
        raise ValueError(f"Secret must be {RS_LENGTH} bytes, got {len(data)}")
    return bytes(data)


class ZidRecord:
    """One cache entry backed by its raw buffer.

    The file offset is transient: it remembers where the record was read or
    appended so the engine can rewrite the same slot later.
    """

    def __init__(self, data: bytes | None = None, file_offset: int | None = None):
        if data is None:
            data = encode_record(RecordFields())
        if len(data) != RECORD_LEN:
            raise ValueError(f"Record must be {RECORD_LEN} bytes, got {len(data)}")
        self._data = bytearray(data)
        self._offset = file_offset

    def __repr__(self) -> str:
        return (
            f"ZidRecord(zid={self.get_identifier().hex()}, offset={self._offset}, "
            f"flags=0x{self._flags:02x})"
        )

    # --- flags ---

    @property
    def _flags(self) -> int:
        return self._data[OFF_FLAGS]

    def _set_flag(self, bit: int) -> None:
        self._data[OFF_FLAGS] |= bit

    def _clear_flag(self, bit: int) -> None:
        self._data[OFF_FLAGS] &= ~bit & 0xFF

    def mark_own(self) -> None:
        self._set_flag(OWN_ZID_RECORD)

    def is_own_record(self) -> bool:
        return bool(self._flags & OWN_ZID_RECORD)

    def mark_valid(self) -> None:
        self._set_flag(VALID)

    def is_valid(self) -> bool:
        return bool(self._flags & VALID)

    def mark_verified(self) -> None:
        self._set_flag(SAS_VERIFIED)

    def reset_verified(self) -> None:
        self._clear_flag(SAS_VERIFIED)

    def is_verified(self) -> bool:
        return bool(self._flags & SAS_VERIFIED)

    # --- identifier ---

    def set_identifier(self, zid: bytes) -> None:
        self._data[OFF_IDENTIFIER:OFF_IDENTIFIER + IDENTIFIER_LEN] = check_zid(zid)

    def get_identifier(self) -> bytes:
        return bytes(self._data[OFF_IDENTIFIER:OFF_IDENTIFIER + IDENTIFIER_LEN])

    # --- retained secrets ---

    def set_continuity_secret(self, slot: str, data: bytes) -> None:
        """Overwrite one secret field; flags and expiry are left untouched."""
        off, _, _ = _slot(slot)
        self._data[off:off + RS_LENGTH] = _secret(data)

    def get_continuity_secret(self, slot: str) -> bytes:
        off, _, _ = _slot(slot)
        return bytes(self._data[off:off + RS_LENGTH])

    def _interval(self, slot: str) -> int:
        _, int_off, _ = _slot(slot)
        return struct.unpack_from(_INTERVAL_FMT, self._data, int_off)[0]

    def _set_interval(self, slot: str, valid_thru: int) -> None:
        _, int_off, _ = _slot(slot)
        struct.pack_into(_INTERVAL_FMT, self._data, int_off, valid_thru)

    def mark_secret_valid(self, slot: str, valid_thru: int = EXPIRE_NEVER) -> None:
        _, _, bit = _slot(slot)
        self._set_interval(slot, valid_thru)
        self._set_flag(bit)

    def set_new_rs1(self, data: bytes, expire: int = EXPIRE_NEVER) -> None:
        """Rotate RS1 into RS2 and store a new RS1.

        ``expire`` is seconds from now; -1 keeps the secret forever and values
        <= 0 store it already expired.
        """
        data = _secret(data)
        self._data[OFF_RS2:OFF_RS2 + RS_LENGTH] = self._data[OFF_RS1:OFF_RS1 + RS_LENGTH]
        self._set_interval(SLOT_SECONDARY, self._interval(SLOT_PRIMARY))
        if self.is_rs1_valid():
            self._set_flag(RS2_VALID)

        if expire == EXPIRE_NEVER:
            valid_thru = EXPIRE_NEVER
        elif expire <= 0:
            valid_thru = EXPIRED
        else:
            valid_thru = int(time.time()) + expire
        self.set_continuity_secret(SLOT_PRIMARY, data)
        self.mark_secret_valid(SLOT_PRIMARY, valid_thru)

    def is_rs1_valid(self) -> bool:
        return bool(self._flags & RS1_VALID)

    def is_rs2_valid(self) -> bool:
        return bool(self._flags & RS2_VALID)

    def _not_expired(self, slot: str) -> bool:
        valid_thru = self._interval(slot)
        if valid_thru == EXPIRE_NEVER:
            return True
        if valid_thru == EXPIRED:
            return False
        return time.time() <= valid_thru

    def is_rs1_not_expired(self) -> bool:
        return self._not_expired(SLOT_PRIMARY)

    def is_rs2_not_expired(self) -> bool:
        return self._not_expired(SLOT_SECONDARY)

    # --- trusted MiTM key ---

    def set_mitm_data(self, key: bytes) -> None:
        self._data[OFF_MITM:OFF_MITM + RS_LENGTH] = _secret(key)
        self._set_flag(MITM_KEY_AVAILABLE)

    def get_mitm_data(self) -> bytes:
        return bytes(self._data[OFF_MITM:OFF_MITM + RS_LENGTH])

    def is_mitm_key_available(self) -> bool:
        return bool(self._flags & MITM_KEY_AVAILABLE)

    # --- raw access for the engine ---

    def raw_bytes(self) -> bytes:
        return bytes(self._data)

    def raw_length(self) -> int:
        return RECORD_LEN

    def fields(self) -> RecordFields:
        return decode_record(self._data)

    def set_file_offset(self, offset: int) -> None:
        self._offset = int(offset)

    def get_file_offset(self) -> int | None:
        return self._offset
