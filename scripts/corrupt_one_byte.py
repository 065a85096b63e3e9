import sys
from pathlib import Path

from zid_core.protocol import OFF_FLAGS, OWN_ZID_RECORD, RECORD_LEN


def main():
    if len(sys.argv) != 2:
        print("Usage: corrupt_one_byte.py <cache file>")
        raise SystemExit(2)

    p = Path(sys.argv[1])
    b = bytearray(p.read_bytes())
    if len(b) < RECORD_LEN:
        print("File too small to corrupt safely.")
        raise SystemExit(2)

    # Clear the own-ZID bit in the flags byte of record 0.
    # The next open must refuse the file.
    b[OFF_FLAGS] &= ~OWN_ZID_RECORD & 0xFF
    p.write_bytes(bytes(b))
    print(f"Cleared own-ZID flag at offset {OFF_FLAGS} in {p}")

if __name__ == "__main__":
    main()
