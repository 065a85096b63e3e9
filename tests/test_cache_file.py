import pytest

from zid_cache import CacheIOError, InvalidFormatError, ZidCacheFile
from zid_core.protocol import OFF_FLAGS, RECORD_LEN

ZID_B = bytes.fromhex("b2" * 16)
ZID_C = bytes.fromhex("c3" * 16)
S1 = bytes(range(32))


def read_slots(path):
    b = path.read_bytes()
    return [b[i:i + RECORD_LEN] for i in range(0, len(b), RECORD_LEN)]


def test_create_writes_own_record(tmp_path):
    path = tmp_path / "cache.bin"
    cache = ZidCacheFile()
    assert cache.open(path) is True
    assert cache.is_open
    assert len(cache.associated_zid) == 16
    cache.close()

    assert path.stat().st_size == RECORD_LEN
    b = path.read_bytes()
    assert b[4:20] == cache.associated_zid

    # Reopen keeps the identity.
    again = ZidCacheFile()
    again.open(path)
    assert again.associated_zid == cache.associated_zid
    assert again.last_migration is None
    again.close()


def test_two_files_get_different_identities(tmp_path):
    with ZidCacheFile() as a, ZidCacheFile() as b:
        a.open(tmp_path / "a.bin")
        b.open(tmp_path / "b.bin")
        assert a.associated_zid != b.associated_zid


def test_open_twice_is_noop(tmp_path):
    with ZidCacheFile() as cache:
        assert cache.open(tmp_path / "cache.bin") is True
        zid = cache.associated_zid
        assert cache.open(tmp_path / "other.bin") is False
        assert cache.associated_zid == zid
        assert not (tmp_path / "other.bin").exists()


def test_close_is_idempotent_and_blocks_operations(tmp_path):
    cache = ZidCacheFile()
    cache.open(tmp_path / "cache.bin")
    cache.close()
    cache.close()
    assert not cache.is_open
    with pytest.raises(CacheIOError) as exc:
        cache.get_record(ZID_B)
    assert exc.value.code == "E_NOT_OPEN"


def test_create_truncates_existing(tmp_path):
    path = tmp_path / "cache.bin"
    cache = ZidCacheFile()
    cache.create(path)
    first = cache.associated_zid
    cache.get_record(ZID_B)
    cache.create(path)
    assert cache.associated_zid != first
    cache.close()
    assert path.stat().st_size == RECORD_LEN


def test_create_in_missing_directory_fails(tmp_path):
    cache = ZidCacheFile()
    with pytest.raises(CacheIOError):
        cache.create(tmp_path / "nope" / "cache.bin")
    assert not cache.is_open


def test_empty_file_is_created_fresh(tmp_path):
    path = tmp_path / "cache.bin"
    path.write_bytes(b"")
    with ZidCacheFile() as cache:
        assert cache.open(path)
    assert path.stat().st_size == RECORD_LEN


def test_unknown_marker_rejected(tmp_path):
    path = tmp_path / "cache.bin"
    path.write_bytes(b"\x07" * RECORD_LEN)
    cache = ZidCacheFile()
    with pytest.raises(InvalidFormatError):
        cache.open(path)
    assert not cache.is_open


def test_missing_own_flag_rejected(tmp_path):
    path = tmp_path / "cache.bin"
    with ZidCacheFile() as cache:
        cache.open(path)
    b = bytearray(path.read_bytes())
    b[OFF_FLAGS] = 0
    path.write_bytes(bytes(b))

    cache = ZidCacheFile()
    with pytest.raises(InvalidFormatError) as exc:
        cache.open(path)
    assert exc.value.code == "E_INVALID_FORMAT"
    assert not cache.is_open


def test_truncated_own_record_rejected(tmp_path):
    path = tmp_path / "cache.bin"
    path.write_bytes(b"\x02" + b"\x00" * 10)
    cache = ZidCacheFile()
    with pytest.raises(InvalidFormatError):
        cache.open(path)
    assert not cache.is_open


def test_lookup_creates_on_miss(tmp_path):
    path = tmp_path / "cache.bin"
    with ZidCacheFile() as cache:
        cache.open(path)
        rec = cache.get_record(ZID_B)
        assert rec.get_file_offset() == RECORD_LEN
        assert rec.get_identifier() == ZID_B
        assert rec.is_valid()
        assert not rec.is_verified()
        assert not rec.is_own_record()
        assert rec.get_continuity_secret("primary") == bytes(32)
    assert path.stat().st_size == 2 * RECORD_LEN


def test_at_most_one_record_per_identifier(tmp_path):
    path = tmp_path / "cache.bin"
    with ZidCacheFile() as cache:
        cache.open(path)
        for zid in (ZID_B, ZID_C, ZID_B, ZID_B, ZID_C):
            rec = cache.get_record(zid)
            rec.mark_verified()
            cache.save_record(rec)
        offsets = {z: cache.get_record(z).get_file_offset() for z in (ZID_B, ZID_C)}
        ids = [r.get_identifier() for r in cache.iter_records()]

    assert sorted(ids) == sorted([ZID_B, ZID_C])
    assert offsets == {ZID_B: RECORD_LEN, ZID_C: 2 * RECORD_LEN}
    assert path.stat().st_size == 3 * RECORD_LEN


def test_own_zid_is_never_returned(tmp_path):
    with ZidCacheFile() as cache:
        cache.open(tmp_path / "cache.bin")
        rec = cache.get_record(cache.associated_zid)
        assert rec.get_file_offset() == RECORD_LEN
        assert not rec.is_own_record()


def test_save_changes_only_that_record(tmp_path):
    path = tmp_path / "cache.bin"
    with ZidCacheFile() as cache:
        cache.open(path)
        cache.get_record(ZID_B)
        cache.get_record(ZID_C)
        before = read_slots(path)

        rec = cache.get_record(ZID_B)
        rec.mark_verified()
        rec.set_new_rs1(S1)
        assert cache.save_record(rec) is True
    after = read_slots(path)

    assert len(after) == len(before) == 3
    assert after[0] == before[0]
    assert after[1] != before[1]
    assert after[2] == before[2]


def test_save_rejects_bad_offsets(tmp_path):
    with ZidCacheFile() as cache:
        cache.open(tmp_path / "cache.bin")
        rec = cache.get_record(ZID_B)

        rec.set_file_offset(0)
        with pytest.raises(ValueError):
            cache.save_record(rec)
        rec.set_file_offset(RECORD_LEN + 1)
        with pytest.raises(ValueError):
            cache.save_record(rec)
        rec.set_file_offset(5 * RECORD_LEN)
        with pytest.raises(ValueError):
            cache.save_record(rec)


def test_invalid_records_are_skipped_not_matched(tmp_path):
    path = tmp_path / "cache.bin"
    with ZidCacheFile() as cache:
        cache.open(path)
        cache.get_record(ZID_B)
    # Clear the valid bit of the peer record by hand.
    b = bytearray(path.read_bytes())
    b[RECORD_LEN + OFF_FLAGS] = 0
    path.write_bytes(bytes(b))

    with ZidCacheFile() as cache:
        cache.open(path)
        rec = cache.get_record(ZID_B)
        assert rec.get_file_offset() == 2 * RECORD_LEN
        rec2 = cache.get_record(ZID_C)
        assert rec2.get_file_offset() == 3 * RECORD_LEN


def test_torn_tail_is_overwritten_on_append(tmp_path):
    path = tmp_path / "cache.bin"
    with ZidCacheFile() as cache:
        cache.open(path)
        cache.get_record(ZID_B)
    with open(path, "ab") as f:
        f.write(b"\x02" * 50)

    with ZidCacheFile() as cache:
        cache.open(path)
        with pytest.warns(UserWarning, match="Truncated cache record"):
            rec = cache.get_record(ZID_C)
        assert rec.get_file_offset() == 2 * RECORD_LEN
    assert path.stat().st_size == 3 * RECORD_LEN


def test_peer_name_stubs(tmp_path):
    with ZidCacheFile() as cache:
        cache.open(tmp_path / "cache.bin")
        cache.put_peer_name(ZID_B, "alice")
        assert cache.get_peer_name(ZID_B) is None


def test_verified_secret_survives_reopen(tmp_path):
    path = tmp_path / "cache.bin"
    cache = ZidCacheFile()
    cache.open(path)
    own = cache.associated_zid

    rec = cache.get_record(ZID_B)
    assert rec.get_file_offset() == RECORD_LEN
    rec.mark_verified()
    rec.set_continuity_secret("primary", S1)
    cache.save_record(rec)
    cache.close()

    cache = ZidCacheFile()
    cache.open(path)
    assert cache.associated_zid == own
    rec = cache.get_record(ZID_B)
    assert rec.get_file_offset() == RECORD_LEN
    assert rec.is_verified()
    assert rec.get_continuity_secret("primary") == S1
    cache.close()
    assert path.stat().st_size == 2 * RECORD_LEN


def test_failed_append_leaves_no_torn_record(tmp_path, torn_writer):
    path = tmp_path / "cache.bin"
    with ZidCacheFile() as cache:
        cache.open(path)
        cache.get_record(ZID_B)
        real = cache._f
        cache._f = torn_writer(real, fail_on=1)
        with pytest.raises(CacheIOError):
            cache.get_record(ZID_C)
        assert path.stat().st_size == 2 * RECORD_LEN

        cache._f = real
        rec = cache.get_record(ZID_C)
        assert rec.get_file_offset() == 2 * RECORD_LEN
    assert path.stat().st_size == 3 * RECORD_LEN
