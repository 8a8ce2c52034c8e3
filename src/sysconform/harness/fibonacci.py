"""Sequential-state validator — a Fibonacci recurrence carried through two files.

Two files are the only state.  ``fileA`` holds the previous term and
``fileB`` the current one, each as a fixed-width ASCII record.  Every
round reopens both files to read ``a`` and ``b``, closes them, then
reopens them to write ``b`` back into ``fileA`` and ``a + b`` into
``fileB``.  Nothing survives a round except what the file system
persisted, so a torn write or a lost update changes the final value.

Arithmetic wraps at 32 bits signed, so after 100 rounds the last term is
F(101) mod 2**32 read as a signed integer.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sysconform.facade import FAILURE
from sysconform.harness.assertion import assertx, fail

if TYPE_CHECKING:
    from collections.abc import Callable

    from sysconform.facade import SyscallFacade

INT_WIDTH = 32
RECORD_WIDTH = 20
ROUNDS = 100
EXPECTED_AFTER_100_ROUNDS = -1869596475
VALIDATION_FAILED_EXIT = -1


def wrap(value: int, width: int = INT_WIDTH) -> int:
    """Reduce *value* to a signed integer of *width* bits."""
    value &= (1 << width) - 1
    if value >= 1 << (width - 1):
        value -= 1 << width
    return value


def encode_record(value: int) -> bytes:
    """Render *value* as a NUL-padded ASCII record of ``RECORD_WIDTH`` bytes."""
    return str(value).encode("ascii").ljust(RECORD_WIDTH, b"\x00")


def decode_record(data: bytes) -> int:
    """Parse a record written by ``encode_record``.

    Raises:
        ValueError: If the record is not a decimal integer.

    """
    text = data.split(b"\x00", 1)[0].decode("ascii")
    return int(text)


def expected_term(rounds: int, width: int = INT_WIDTH) -> int:
    """Return the value the validator must end with after *rounds* rounds."""
    a, b = 0, 1
    c = b
    for _ in range(rounds):
        c = wrap(a + b, width)
        a, b = b, c
    return c


def file_pair(instance: int) -> tuple[str, str]:
    """Return the ``(fileA, fileB)`` names for a validator instance."""
    return f"fb_temp_a_{instance}", f"fb_temp_b_{instance}"


class FibonacciValidator:
    """Run the recurrence for one instance over its own file pair."""

    def __init__(self, sys: SyscallFacade, *, instance: int, rounds: int = ROUNDS) -> None:
        """Create a validator for *instance*, using its file pair."""
        self._sys = sys
        self._instance = instance
        self._rounds = rounds
        self._file_a, self._file_b = file_pair(instance)

    def run(self) -> int:
        """Seed the files, run every round, remove the files, and return the last term."""
        self._store(self._sys.create_file, self._file_a, 0)
        self._store(self._sys.create_file, self._file_b, 1)
        c = 1
        for _ in range(self._rounds):
            b = self._load(self._file_b)
            a = self._load(self._file_a)
            c = wrap(a + b)
            self._store(self._sys.open_file, self._file_a, b)
            self._store(self._sys.open_file, self._file_b, c)
        self._sys.remove_file(self._file_a)
        self._sys.remove_file(self._file_b)
        return c

    def _open(self, opener: Callable[[str], int], name: str) -> int:
        fd = opener(name)
        assertx(self._sys, fd != FAILURE, VALIDATION_FAILED_EXIT, f"fibonacci: cannot open {name}")
        return fd

    def _load(self, name: str) -> int:
        fd = self._open(self._sys.open_file, name)
        data = self._sys.read_file(fd, RECORD_WIDTH)
        self._sys.close_file(fd)
        try:
            return decode_record(data or b"")
        except ValueError:
            fail(self._sys, VALIDATION_FAILED_EXIT, f"fibonacci: torn record in {name}: {data!r}")

    def _store(self, opener: Callable[[str], int], name: str, value: int) -> None:
        fd = self._open(opener, name)
        written = self._sys.write_file(fd, encode_record(value))
        self._sys.close_file(fd)
        assertx(
            self._sys,
            written == RECORD_WIDTH,
            VALIDATION_FAILED_EXIT,
            f"fibonacci: short write to {name}: {written}",
        )
