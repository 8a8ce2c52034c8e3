"""Admission-controlled spawner — fill the process table without knowing its size.

The kernel under test has a process ceiling the harness is not told
about.  The spawner discovers it the only way a client can: by asking
for one more child until exec refuses.

- Outstanding children sit in a FIFO queue, ordered by spawn order.
- Each unit of work gets a signature chosen *before* the exec.  It is
  passed to the child in ``argv`` and must come back as the child's
  exit status.
- When exec refuses, the oldest child is joined (retired) and its status
  checked, then the same unit is tried again.  Refusal is backpressure,
  not an error.
- Once every unit is spawned, the remaining children are retired in
  FIFO order.

Every child carries its own expected signature, so the check holds no
matter in which order the children actually finish.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from itertools import count
from typing import TYPE_CHECKING, Protocol

from sysconform.facade import AtCapacity, SpawnOutcome, Spawned
from sysconform.harness.assertion import Diagnostics, assertx

if TYPE_CHECKING:
    from collections.abc import Callable

WRONG_STATUS_EXIT = 1


class ProcessControl(Diagnostics, Protocol):
    """The slice of the syscall facade the spawner drives."""

    def spawn(self, program: str, argv: list[str]) -> SpawnOutcome:
        """Exec a child."""
        ...  # pragma: no cover

    def wait(self, pid: int) -> int | None:
        """Join a child."""
        ...  # pragma: no cover


@dataclass(frozen=True)
class ChildHandle:
    """One spawned, not yet retired child.

    Attributes:
        pid: Identifier returned by spawn; meaningless once retired.
        expected_signature: Exit status the child must publish.
        spawn_order: Monotonic sequence number; retirement follows it.

    """

    pid: int
    expected_signature: int
    spawn_order: int


class AdmissionSpawner:
    """Spawn units of work under an unknown process ceiling."""

    def __init__(
        self,
        sys: ProcessControl,
        *,
        program: str,
        build_argv: Callable[[int, int], list[str]],
        choose_signature: Callable[[int], int],
        exit_code: int = WRONG_STATUS_EXIT,
    ) -> None:
        """Create a spawner for *program*.

        Args:
            sys: The calling process's syscalls.
            program: Program every unit execs.
            build_argv: Maps ``(unit, signature)`` to the child's argv.
            choose_signature: Maps a unit number to its expected status.
            exit_code: Status this process terminates with on a violation.

        """
        self._sys = sys
        self._program = program
        self._build_argv = build_argv
        self._choose_signature = choose_signature
        self._exit_code = exit_code
        self._queue: deque[ChildHandle] = deque()
        self._retired: list[ChildHandle] = []
        self._order = count()
        self._peak_outstanding = 0
        self._refusals = 0

    @property
    def outstanding(self) -> list[ChildHandle]:
        """Return the unretired children, oldest first."""
        return list(self._queue)

    @property
    def retired(self) -> list[ChildHandle]:
        """Return the retired children in retirement order."""
        return list(self._retired)

    @property
    def peak_outstanding(self) -> int:
        """Return the most children ever outstanding at once."""
        return self._peak_outstanding

    @property
    def refusals(self) -> int:
        """Return how many exec attempts were refused."""
        return self._refusals

    def run(self, units: int) -> list[ChildHandle]:
        """Spawn *units* children, retire them all, and return them in retirement order."""
        for unit in range(units):
            self.issue(unit)
        self.drain()
        return self.retired

    def issue(self, unit: int) -> ChildHandle:
        """Spawn *unit*, retiring the oldest child each time exec refuses."""
        signature = self._choose_signature(unit)
        argv = self._build_argv(unit, signature)
        while True:
            match self._sys.spawn(self._program, argv):
                case Spawned(pid=pid):
                    handle = ChildHandle(
                        pid=pid,
                        expected_signature=signature,
                        spawn_order=next(self._order),
                    )
                    self._queue.append(handle)
                    self._peak_outstanding = max(self._peak_outstanding, len(self._queue))
                    return handle
                case AtCapacity():
                    self._refusals += 1
                    # Nothing of ours to retire: the refusal is not backpressure.
                    assertx(
                        self._sys,
                        bool(self._queue),
                        self._exit_code,
                        f"spawn {self._program} unit {unit} failed with no outstanding children",
                    )
                    self.retire_oldest()

    def retire_oldest(self) -> ChildHandle:
        """Join the oldest outstanding child and check its exit status."""
        handle = self._queue.popleft()
        status = self._sys.wait(handle.pid)
        assertx(
            self._sys,
            status is not None,
            self._exit_code,
            f"join {handle.pid} failed: not a child",
        )
        assertx(
            self._sys,
            status == handle.expected_signature,
            self._exit_code,
            f"wrong status: pid {handle.pid} exited {status}, "
            f"expected {handle.expected_signature}",
        )
        self._retired.append(handle)
        return handle

    def drain(self) -> None:
        """Retire every outstanding child in FIFO order."""
        while self._queue:
            self.retire_oldest()
