"""Resource-exhaustion prober — drive an fd table to its declared capacity.

The prober holds a growing set of descriptors on one backing file.  In
round ``i`` it holds ``i`` of them; it checks every one is valid and is
not the reserved console descriptor, shuffles the slot order, releases
them in that order, and reopens every free slot plus one new one.  The
kernel must hand back descriptors that are pairwise distinct.

After round ``M - 1`` the table of capacity ``M`` is full (the console
holds the last slot), so in single-process mode one more open must fail:
the table is exactly saturated, not merely large.

In the multi-process variant slot 0 is never released.  It models a
descriptor the process keeps for its whole life while its siblings churn
the same backing file.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, Protocol

from sysconform.facade import FAILURE
from sysconform.fs.fd import CONSOLE_FD
from sysconform.harness.assertion import Diagnostics, fail

if TYPE_CHECKING:
    from random import Random

PROBE_FAILED_EXIT = 1


class FileControl(Diagnostics, Protocol):
    """The slice of the syscall facade the prober drives."""

    def open_file(self, name: str) -> int:
        """Open an existing file."""
        ...  # pragma: no cover

    def close_file(self, fd: int) -> int:
        """Close a descriptor."""
        ...  # pragma: no cover

    def remove_file(self, name: str) -> int:
        """Unlink a file."""
        ...  # pragma: no cover


def permutation(rng: Random, n: int) -> list[int]:
    """Return a uniformly random permutation of ``range(n)``.

    Inside-out Fisher–Yates: element ``j`` is placed at a random index
    ``x <= j`` and whatever was there moves to ``j``.
    """
    p = [0] * n
    for j in range(1, n):
        x = rng.randrange(j + 1)
        p[j] = p[x]
        p[x] = j
    return p


class FdProber:
    """Allocate, shuffle, release, and reacquire descriptors round by round."""

    def __init__(
        self,
        sys: FileControl,
        *,
        backing_file: str,
        capacity: int,
        rng: Random,
        first_fd: int,
        keep_first: bool = False,
        verbose: bool = False,
    ) -> None:
        """Create a prober.

        Args:
            sys: The calling process's syscalls.
            backing_file: File every descriptor is opened against.
            capacity: Declared fd table capacity ``M``.
            rng: Generator driving the shuffles.
            first_fd: Descriptor already held for slot 0 (from creat).
            keep_first: Never release slot 0 (multi-process mode).
            verbose: Print the held descriptors each round.

        """
        self._sys = sys
        self._backing_file = backing_file
        self._capacity = capacity
        self._rng = rng
        self._keep_first = keep_first
        self._verbose = verbose
        self._fds = [FAILURE] * capacity
        self._fds[0] = first_fd

    @property
    def held(self) -> list[int]:
        """Return the descriptors currently held, by slot."""
        return [fd for fd in self._fds if fd != FAILURE]

    def fail(self, message: str) -> NoReturn:
        """Remove the backing file, then report *message* and terminate."""
        self._sys.remove_file(self._backing_file)
        fail(self._sys, PROBE_FAILED_EXIT, message)

    def run(self) -> list[int]:
        """Run every round and return the descriptors held at the end."""
        for i in range(1, self._capacity):
            self._check_round(i)
            order = permutation(self._rng, i)
            if i == self._capacity - 1:
                break
            self._release(order)
            self._reacquire(i)
        return self.held

    def check_saturated(self) -> None:
        """Fail unless one more open is refused."""
        fd = self._sys.open_file(self._backing_file)
        if fd != FAILURE:
            self.fail("test_fd: available fds exceed.")

    def _check_round(self, i: int) -> None:
        for j in range(i):
            if self._fds[j] == FAILURE:
                self.fail(f"test_fd: round {i} fd[{j}] fails")
        for j in range(i):
            if self._fds[j] == CONSOLE_FD:
                self.fail(f"test_fd: round {i} fd[{j}] reuses reserved fd {CONSOLE_FD}")
        live = self._fds[:i]
        if len(set(live)) != len(live):
            self.fail(f"test_fd: round {i} aliased fds {live}")
        if self._verbose:
            self._sys.print(f"round {i} fds: " + " ".join(str(fd) for fd in live))

    def _release(self, order: list[int]) -> None:
        for slot in order:
            if self._keep_first and slot == 0:
                continue
            self._sys.close_file(self._fds[slot])
            self._fds[slot] = FAILURE

    def _reacquire(self, i: int) -> None:
        for slot in range(i + 1):
            if self._fds[slot] == FAILURE:
                self._fds[slot] = self._sys.open_file(self._backing_file)
