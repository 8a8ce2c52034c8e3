"""Syscall facade — the typed, user-space view of the kernel.

Every harness program receives one ``SyscallFacade`` bound to its own
process.  The facade is the only way a program reaches the kernel, and
it turns the trap interface (numbered syscalls, ``SyscallError``) into
plain Python results:

- ``spawn`` returns a two-case outcome, ``Spawned(pid)`` or
  ``AtCapacity``.  A refused exec is expected flow control (the process
  table is full, or the program does not exist), so it is a value the
  caller matches on, never an exception.
- ``wait`` returns the child's exit status, or None when the pid is not
  an unjoined child of the caller.  None cannot collide with any exit
  status.
- File operations return a descriptor, a byte count or ``0``, and the
  ``FAILURE`` sentinel (``-1``) when the kernel refuses.
- ``terminate`` never returns.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NoReturn, TypeAlias

from sysconform.fs.fd import CONSOLE_FD
from sysconform.syscalls import ProcessExit, SyscallError, SyscallNumber

if TYPE_CHECKING:
    from random import Random

FAILURE = -1


@dataclass(frozen=True)
class Spawned:
    """exec succeeded; *pid* is the new child."""

    pid: int


@dataclass(frozen=True)
class AtCapacity:
    """exec was refused: no free process slot, or no such program."""


SpawnOutcome: TypeAlias = Spawned | AtCapacity


class SyscallFacade:
    """Syscalls on behalf of one process."""

    def __init__(self, kernel: Any, pid: int) -> None:
        """Bind the facade to *kernel* and the calling process *pid*."""
        self._kernel = kernel
        self._pid = pid
        self._rng: Random | None = None

    @property
    def pid(self) -> int:
        """Return the calling process's PID."""
        return self._pid

    @property
    def rng(self) -> Random:
        """Return this process's explicitly seeded random generator."""
        if self._rng is None:
            self._rng = self._kernel.process_random(self._pid)
        return self._rng

    def _call(self, number: SyscallNumber, **kwargs: Any) -> Any:
        return self._kernel.syscall(number, pid=self._pid, **kwargs)

    # -- Processes ----------------------------------------------------------------

    def spawn(self, program: str, argv: list[str]) -> SpawnOutcome:
        """Exec *program* with *argv* in a new child process."""
        try:
            result = self._call(SyscallNumber.SYS_EXEC, name=program, argv=list(argv))
        except SyscallError:
            return AtCapacity()
        return Spawned(result["pid"])

    def wait(self, pid: int) -> int | None:
        """Block until child *pid* exits and return its status.

        Returns None immediately if *pid* is not an unjoined child.
        """
        try:
            result = self._call(SyscallNumber.SYS_JOIN, child_pid=pid)
        except SyscallError:
            return None
        return result["status"]

    def terminate(self, status: int) -> NoReturn:
        """End the calling process, publishing *status* to its joiner."""
        self._call(SyscallNumber.SYS_EXIT, status=status)
        raise ProcessExit(status)  # pragma: no cover

    # -- Files --------------------------------------------------------------------

    def create_file(self, name: str) -> int:
        """Create or truncate *name*; return a descriptor or FAILURE."""
        try:
            return self._call(SyscallNumber.SYS_CREATE, name=name)["fd"]
        except SyscallError:
            return FAILURE

    def open_file(self, name: str) -> int:
        """Open an existing file; return a descriptor or FAILURE."""
        try:
            return self._call(SyscallNumber.SYS_OPEN, name=name)["fd"]
        except SyscallError:
            return FAILURE

    def close_file(self, fd: int) -> int:
        """Close *fd*; return 0 or FAILURE."""
        try:
            self._call(SyscallNumber.SYS_CLOSE, fd=fd)
        except SyscallError:
            return FAILURE
        return 0

    def read_file(self, fd: int, length: int) -> bytes | None:
        """Read up to *length* bytes from *fd*; None on a bad descriptor."""
        try:
            return self._call(SyscallNumber.SYS_READ, fd=fd, count=length)["data"]
        except SyscallError:
            return None

    def write_file(self, fd: int, data: bytes) -> int:
        """Write *data* to *fd*; return the byte count or FAILURE."""
        try:
            return self._call(SyscallNumber.SYS_WRITE, fd=fd, data=bytes(data))["bytes_written"]
        except SyscallError:
            return FAILURE

    def remove_file(self, name: str) -> int:
        """Unlink *name*; return 0 or FAILURE."""
        try:
            self._call(SyscallNumber.SYS_UNLINK, name=name)
        except SyscallError:
            return FAILURE
        return 0

    def print(self, text: str) -> None:
        """Write *text* and a newline to the console."""
        self.write_file(CONSOLE_FD, f"{text}\n".encode("ascii", errors="replace"))
