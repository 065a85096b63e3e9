ERRORS = {
  "E_IO": "Cache file I/O failed",
  "E_NOT_OPEN": "Cache file is not open",
  "E_INVALID_FORMAT": "Cache file does not start with a valid own-identity record",
  "E_MIGRATION_ABORTED": "Legacy cache file has no valid own-identity record",
}
