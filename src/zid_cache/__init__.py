"""ZID Cache - file-backed identity continuity cache."""
from .cache_file import ZidCacheFile
from .errors import CacheError, CacheIOError, InvalidFormatError, MigrationAbortedError
from .migrate import MigrationReport, migrate_legacy

__all__ = [
    "CacheError",
    "CacheIOError",
    "InvalidFormatError",
    "MigrationAbortedError",
    "MigrationReport",
    "ZidCacheFile",
    "migrate_legacy",
]
