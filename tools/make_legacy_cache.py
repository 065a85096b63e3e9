import random
import sys
from pathlib import Path

import nacl.utils

from zid_core.codec import LegacyRecordFields, encode_legacy
from zid_core.ids import new_zid
from zid_core.protocol import (
    LEGACY_RS1_VALID,
    LEGACY_RS2_VALID,
    LEGACY_SAS_VERIFIED,
    RS_LENGTH,
)


def legacy_peer(valid: bool = True) -> LegacyRecordFields:
    flags = LEGACY_RS1_VALID
    if random.random() < 0.5:
        flags |= LEGACY_RS2_VALID
    if random.random() < 0.5:
        flags |= LEGACY_SAS_VERIFIED
    return LegacyRecordFields(
        identifier=new_zid(),
        rec_valid=1 if valid else 0,
        own_zid=0,
        secret_flags=flags,
        rs1=nacl.utils.random(RS_LENGTH),
        rs2=nacl.utils.random(RS_LENGTH),
    )


def generate_legacy_cache(out_file: str, peers: int, invalid: int = 0) -> Path:
    own = LegacyRecordFields(identifier=new_zid(), own_zid=1)
    records = [legacy_peer(True) for _ in range(peers)]
    records += [legacy_peer(False) for _ in range(invalid)]
    random.shuffle(records)

    out = Path(out_file)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "wb") as f:
        f.write(encode_legacy(own))
        for rec in records:
            f.write(encode_legacy(rec))

    print(f"GENERATED: {out} own={own.identifier.hex()} peers={peers} invalid={invalid}")
    return out


if __name__ == "__main__":
    # Usage:
    #   python tools/make_legacy_cache.py OUT_FILE [--peers N] [--invalid M]

    args = [a for a in sys.argv[1:] if a]

    def pop_int(arg_list: list[str], flag: str, default: int) -> tuple[int, list[str]]:
        """Remove an integer option from an argv-style list."""
        if flag not in arg_list:
            return default, arg_list
        i = arg_list.index(flag)
        if i + 1 >= len(arg_list):
            raise SystemExit(f"{flag} requires a value")
        return int(arg_list[i + 1]), arg_list[:i] + arg_list[i + 2:]

    peers, args = pop_int(args, "--peers", 3)
    invalid, args = pop_int(args, "--invalid", 0)

    out = args[0] if len(args) > 0 else "legacy_zid.cache"
    generate_legacy_cache(out, peers, invalid)
