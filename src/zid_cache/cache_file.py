"""File-backed ZID cache engine.

Disk is truth: no records are cached in memory between calls, every lookup
rescans the file and every write is flushed immediately. Not thread-safe;
callers serialize access.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import BinaryIO, Iterator
from warnings import warn

from zid_core.codec import format_marker
from zid_core.ids import check_zid
from zid_core.protocol import RECORD_LEN
from zid_core.record import ZidRecord

from .errors import CacheIOError, InvalidFormatError
from .files import append_record, create_cache_file, open_cache_file, write_record_at
from .migrate import MigrationReport, migrate_legacy


class ZidCacheFile:
    """ZID cache stored as a sequence of fixed-length records.

    Record 0 is the own-identity record; peer records follow in append order.
    """

    def __init__(self) -> None:
        self._f: BinaryIO | None = None
        self.path: Path | None = None
        self.associated_zid: bytes | None = None
        self.last_migration: MigrationReport | None = None

    def __enter__(self) -> "ZidCacheFile":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._f is not None

    def _handle(self) -> BinaryIO:
        if self._f is None:
            raise CacheIOError(code="E_NOT_OPEN")
        return self._f

    # --- lifecycle ---

    def create(self, path: str | os.PathLike) -> None:
        """Create a new cache file with a random own ZID, truncating any old content."""
        path = Path(path)
        self.close()
        self._f, self.associated_zid = create_cache_file(path)
        self.path = path

    def open(self, path: str | os.PathLike) -> bool:
        """Open (creating or migrating as needed) the cache file at ``path``.

        Returns False without touching anything if a file is already open.
        """
        if self._f is not None:
            return False

        path = Path(path)
        try:
            f = open_cache_file(path, "r+b")
        except FileNotFoundError:
            self.create(path)
            return True
        except OSError as e:
            raise CacheIOError(f"cannot open {path}: {e}") from e

        try:
            marker = format_marker(f.read(1))
        except OSError as e:
            f.close()
            raise CacheIOError(f"cannot read {path}: {e}") from e

        if marker == "empty":
            f.close()
            self.create(path)
            return True

        if marker == "legacy":
            f.close()
            f, _, self.last_migration = migrate_legacy(path)
        elif marker == "unknown":
            f.close()
            raise InvalidFormatError(f"{path} has an unknown format marker")

        self._f = f
        self.path = path
        try:
            self.associated_zid = self._read_own_zid()
        except (InvalidFormatError, CacheIOError):
            self.close()
            raise
        return True

    def _read_own_zid(self) -> bytes:
        f = self._handle()
        try:
            f.seek(0)
            buf = f.read(RECORD_LEN)
        except OSError as e:
            raise CacheIOError(f"cannot read own record of {self.path}: {e}") from e
        if len(buf) != RECORD_LEN:
            raise InvalidFormatError(f"{self.path} has no complete own record")
        rec = ZidRecord(buf, file_offset=0)
        if not rec.is_own_record():
            raise InvalidFormatError(f"first record of {self.path} is not the own ZID")
        return rec.get_identifier()

    def close(self) -> None:
        if self._f is not None:
            self._f.close()
            self._f = None

    # --- records ---

    def _scan(self) -> Iterator[ZidRecord]:
        """Yield every complete record behind the own record, with its offset.

        Stops at the first short read; a torn tail fragment is never yielded.
        """
        f = self._handle()
        offset = RECORD_LEN
        while True:
            f.seek(offset)
            buf = f.read(RECORD_LEN)
            if len(buf) < RECORD_LEN:
                if buf:
                    warn(f"Truncated cache record at offset {offset} in {self.path}")
                return
            yield ZidRecord(buf, file_offset=offset)
            offset += RECORD_LEN

    def iter_records(self) -> Iterator[ZidRecord]:
        """Yield all peer records (valid or not) in file order."""
        try:
            yield from self._scan()
        except OSError as e:
            raise CacheIOError(f"cannot read {self.path}: {e}") from e

    def get_record(self, zid: bytes) -> ZidRecord:
        """Return the record for ``zid``, appending a new valid one if absent.

        The own record is never returned. The record carries the offset at
        which it lives in the file so ``save_record`` can update it in place.
        """
        zid = check_zid(zid)
        for rec in self.iter_records():
            # skip own ZID record and invalid records
            if rec.is_own_record() or not rec.is_valid():
                continue
            if rec.get_identifier() == zid:
                return rec

        rec = ZidRecord()
        rec.set_identifier(zid)
        rec.mark_valid()
        try:
            offset = append_record(self._handle(), rec)
        except OSError as e:
            raise CacheIOError(f"cannot append record to {self.path}: {e}") from e
        rec.set_file_offset(offset)
        return rec

    def save_record(self, rec: ZidRecord) -> bool:
        """Rewrite ``rec`` in place at the offset it was read from."""
        f = self._handle()
        offset = rec.get_file_offset()
        if offset is None:
            raise ValueError("record has no file offset; obtain it with get_record()")
        if offset < RECORD_LEN or offset % RECORD_LEN:
            raise ValueError(f"offset {offset} is not a peer record slot")
        try:
            size = f.seek(0, 2)
            if offset + RECORD_LEN > size:
                raise ValueError(f"offset {offset} is past the end of {self.path}")
            write_record_at(f, offset, rec)
        except OSError as e:
            raise CacheIOError(f"cannot save record at offset {offset}: {e}") from e
        return True

    # --- peer names (not stored by the file backend) ---

    def get_peer_name(self, zid: bytes) -> str | None:
        return None

    def put_peer_name(self, zid: bytes, name: str) -> None:
        return None
