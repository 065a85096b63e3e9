"""One-time migration of a legacy cache file into the current format.

The legacy file is renamed aside (``<name>.save``), its records are read
sequentially and every valid peer record is rewritten in the current layout
at the original path. The own ZID is carried over, never regenerated, so
peers keep recognizing this side.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO
from warnings import warn

from zid_core.codec import LegacyRecordFields, decode_legacy
from zid_core.protocol import (
    EXPIRE_NEVER,
    LEGACY_RECORD_LEN,
    LEGACY_SAVE_SUFFIX,
    SLOT_PRIMARY,
    SLOT_SECONDARY,
)
from zid_core.record import ZidRecord

from .errors import MigrationAbortedError
from .files import append_record, create_cache_file


@dataclass
class MigrationReport:
    legacy_path: Path
    migrated: int = 0
    skipped: int = 0
    write_errors: int = 0
    fell_back: bool = False

    def as_dict(self) -> dict:
        return {
            "legacy_path": str(self.legacy_path),
            "migrated": self.migrated,
            "skipped": self.skipped,
            "write_errors": self.write_errors,
            "fell_back": self.fell_back,
        }


def legacy_save_path(path: Path) -> Path:
    return path.with_name(path.name + LEGACY_SAVE_SUFFIX)


def translate_record(old: LegacyRecordFields) -> ZidRecord:
    """Build the current-format record for one valid legacy peer record.

    Legacy rs1 is the newest secret and becomes primary; rs2 becomes
    secondary. Legacy secrets carry no expiry, so valid ones never expire.
    """
    rec = ZidRecord()
    rec.set_identifier(old.identifier)
    rec.mark_valid()
    if old.is_verified:
        rec.mark_verified()
    rec.set_continuity_secret(SLOT_PRIMARY, old.rs1)
    rec.set_continuity_secret(SLOT_SECONDARY, old.rs2)
    if old.rs1_valid:
        rec.mark_secret_valid(SLOT_PRIMARY, EXPIRE_NEVER)
    if old.rs2_valid:
        rec.mark_secret_valid(SLOT_SECONDARY, EXPIRE_NEVER)
    return rec


def _copy_peers(src: BinaryIO, dst: BinaryIO, report: MigrationReport) -> None:
    while True:
        start_off = src.tell()
        buf = src.read(LEGACY_RECORD_LEN)

        # Clean EOF
        if len(buf) == 0:
            break

        if len(buf) < LEGACY_RECORD_LEN:
            warn(f"Truncated legacy record at offset {start_off}. Ignoring tail.")
            break

        old = decode_legacy(buf)
        if old.is_own or not old.is_valid:
            report.skipped += 1
            continue

        try:
            append_record(dst, translate_record(old))
        except OSError as e:
            # Keep going: records already written must not be lost.
            report.write_errors += 1
            warn(f"Failed to migrate legacy record at offset {start_off}: {e}")
            continue
        report.migrated += 1


def migrate_legacy(path: Path) -> tuple[BinaryIO, bytes, MigrationReport]:
    """Migrate the legacy cache file at ``path`` in place.

    The caller must have closed its handle on ``path``. Returns the open
    handle of the new current-format file, its own ZID and a report.

    If the legacy file cannot be renamed aside it is discarded and a fresh
    cache is created; peers are then re-verified as on first contact.
    If reading the legacy records fails midway, the legacy file is moved back
    to ``path`` so the next open retries the migration.
    """
    path = Path(path)
    save_path = legacy_save_path(path)
    report = MigrationReport(legacy_path=save_path)

    try:
        os.rename(path, save_path)
    except OSError as e:
        warn(f"Cannot rename legacy cache {path} ({e}). Discarding legacy trust data.")
        try:
            path.unlink()
        except OSError as e2:
            warn(f"Cannot remove legacy cache {path}: {e2}")
        f, zid = create_cache_file(path)
        report.fell_back = True
        return f, zid, report

    try:
        src = open(save_path, "rb")
    except OSError as e:
        raise MigrationAbortedError(f"cannot reopen {save_path}: {e}") from e

    with src:
        try:
            head = src.read(LEGACY_RECORD_LEN)
        except OSError as e:
            raise MigrationAbortedError(f"cannot read {save_path}: {e}") from e
        if len(head) != LEGACY_RECORD_LEN:
            raise MigrationAbortedError(f"{save_path} has no complete first record")
        own = decode_legacy(head)
        if not own.is_own:
            raise MigrationAbortedError(f"first record of {save_path} is not the own ZID")

        dst, zid = create_cache_file(path, own.identifier)
        try:
            _copy_peers(src, dst, report)
        except OSError as e:
            failure = e
        else:
            return dst, zid, report

    _restore_legacy(dst, path, save_path)
    raise MigrationAbortedError(f"copy from {save_path} failed: {failure}") from failure


def _restore_legacy(dst: BinaryIO, path: Path, save_path: Path) -> None:
    """Drop a partial new file and put the legacy file back for a later retry."""
    try:
        dst.close()
        os.replace(save_path, path)
    except OSError as e:
        warn(f"Cannot restore legacy cache {save_path} to {path}: {e}")
