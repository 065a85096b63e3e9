"""ZID Core - cache record layouts, codecs and identity helpers."""
from .codec import (
    LegacyRecordFields,
    RecordFields,
    decode_legacy,
    decode_record,
    encode_legacy,
    encode_record,
    format_marker,
)
from .ids import new_zid, parse_zid, zid_hex
from .record import ZidRecord

__all__ = [
    "LegacyRecordFields",
    "RecordFields",
    "ZidRecord",
    "decode_legacy",
    "decode_record",
    "encode_legacy",
    "encode_record",
    "format_marker",
    "new_zid",
    "parse_zid",
    "zid_hex",
]
