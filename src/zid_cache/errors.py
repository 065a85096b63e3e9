"""Error kinds raised by the cache file engine."""
from __future__ import annotations

from .const import ERRORS


class CacheError(Exception):
    """Base class; ``code`` is a stable key into ``ERRORS``."""

    default_code = "E_IO"

    def __init__(self, detail: str = "", code: str | None = None):
        self.code = code or self.default_code
        self.detail = detail
        msg = ERRORS[self.code]
        super().__init__(f"{msg}: {detail}" if detail else msg)

    def as_dict(self) -> dict:
        out = {"code": self.code, "message": ERRORS[self.code]}
        if self.detail:
            out["detail"] = self.detail
        return out


class CacheIOError(CacheError):
    default_code = "E_IO"


class InvalidFormatError(CacheError):
    default_code = "E_INVALID_FORMAT"


class MigrationAbortedError(CacheError):
    default_code = "E_MIGRATION_ABORTED"
