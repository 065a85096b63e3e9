import errno

import pytest


class TornWriter:
    """File wrapper whose Nth write stores only a prefix of the data, then fails."""

    def __init__(self, f, fail_on, keep=40):
        self._f = f
        self.fail_on = fail_on
        self.keep = keep
        self.writes = 0

    def write(self, data):
        self.writes += 1
        if self.writes == self.fail_on:
            self._f.write(data[:self.keep])
            raise OSError(errno.ENOSPC, "No space left on device")
        return self._f.write(data)

    def __getattr__(self, name):
        return getattr(self._f, name)


@pytest.fixture
def torn_writer():
    return TornWriter
