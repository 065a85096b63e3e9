"""Low-level cache file helpers shared by the engine and the migration.

Cache files are opened unbuffered: a record write either reaches the OS in
full or raises at once, never later at flush or close time.
"""
from __future__ import annotations

import errno
from pathlib import Path
from typing import BinaryIO

from zid_core.ids import check_zid, new_zid
from zid_core.protocol import RECORD_LEN
from zid_core.record import ZidRecord

from .errors import CacheIOError


def own_record(zid: bytes) -> ZidRecord:
    rec = ZidRecord()
    rec.set_identifier(zid)
    rec.mark_own()
    return rec


def open_cache_file(path: Path, mode: str) -> BinaryIO:
    return open(path, mode, buffering=0)


def create_cache_file(path: Path, zid: bytes | None = None) -> tuple[BinaryIO, bytes]:
    """Create (truncate) a cache file and write its own-identity record at offset 0.

    A fresh random ZID is generated unless one is given. Returns the open
    read/write handle and the own ZID.
    """
    zid = new_zid() if zid is None else check_zid(zid)
    try:
        f = open_cache_file(path, "w+b")
    except OSError as e:
        raise CacheIOError(f"cannot create {path}: {e}") from e

    try:
        write_record_at(f, 0, own_record(zid))
    except OSError as e:
        f.close()
        raise CacheIOError(f"cannot write own record to {path}: {e}") from e
    return f, zid


def _write_all(f: BinaryIO, data: bytes) -> None:
    n = f.write(data)
    if n is not None and n != len(data):
        raise OSError(errno.ENOSPC, f"short write: {n} of {len(data)} bytes")
    f.flush()


def write_record_at(f: BinaryIO, offset: int, rec: ZidRecord) -> None:
    """Write one record at ``offset``. OSError propagates."""
    f.seek(offset)
    _write_all(f, rec.raw_bytes())


def aligned_end(f: BinaryIO) -> int:
    """First record-aligned offset past the last complete record."""
    size = f.seek(0, 2)
    return max(RECORD_LEN, size - size % RECORD_LEN)


def append_record(f: BinaryIO, rec: ZidRecord) -> int:
    """Append one record at the aligned end of file; returns the offset written.

    A failed write is cut back to that offset, so the file never keeps a
    torn record. OSError propagates.
    """
    offset = aligned_end(f)
    f.seek(offset)
    try:
        _write_all(f, rec.raw_bytes())
    except OSError:
        f.truncate(offset)
        raise
    return offset
