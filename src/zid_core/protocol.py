"""ZID cache on-disk constants.

Single source of truth for record layouts, flag bits and format markers.
Keep this file stable. Writers and the migration reader must remain synchronized.
"""

IDENTIFIER_LEN = 16  # ZID length
RS_LENGTH = 32       # retained secret length
TIME_LENGTH = 8      # signed valid-thru timestamp

# Current record: [Ver(1) | Flags(1) | Pad(2) | ZID(16) | RS1Int(8) | RS1(32)
#                  | RS2Int(8) | RS2(32) | MiTM(32)] = 132 bytes
FORMAT_VERSION = 2
RECORD_FMT = "<BB2x16sq32sq32s32s"
RECORD_LEN = 132

OFF_VERSION = 0
OFF_FLAGS = 1
OFF_IDENTIFIER = 4
OFF_RS1_INTERVAL = 20
OFF_RS1 = 28
OFF_RS2_INTERVAL = 60
OFF_RS2 = 68
OFF_MITM = 100

# Current flag bits
VALID = 0x01
SAS_VERIFIED = 0x02
RS1_VALID = 0x04
RS2_VALID = 0x08
MITM_KEY_AVAILABLE = 0x10
OWN_ZID_RECORD = 0x20

# Retained secret expiry
EXPIRE_NEVER = -1
EXPIRED = 0

# Legacy record: [RecValid(1) | OwnZid(1) | SecretFlags(1) | Pad(1) | ZID(16)
#                 | RS1(32) | RS2(32)] = 84 bytes
# The legacy own record never has RecValid set, so a legacy file starts with 0.
LEGACY_MARKER = 0
LEGACY_RECORD_FMT = "<BBBx16s32s32s"
LEGACY_RECORD_LEN = 84

# Legacy secret_flags bits
LEGACY_RS1_VALID = 0x01
LEGACY_SAS_VERIFIED = 0x02
LEGACY_RS2_VALID = 0x04

# Legacy file is renamed aside under this suffix during migration
LEGACY_SAVE_SUFFIX = ".save"

# Continuity secret slots
SLOT_PRIMARY = "primary"
SLOT_SECONDARY = "secondary"
