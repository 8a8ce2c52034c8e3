"""Process and Process Control Block (PCB).

A process is a program in execution.  The kernel tracks each one via a
PCB holding its PID, program name and arguments, parent relationship,
fd table, and its exit status once it has finished.

Processes follow a strict state machine; each transition method
enforces that the process is in the correct source state before moving
it::

    NEW → RUNNING → TERMINATED → REAPED

A TERMINATED process is a **zombie**: it has stopped running but still
occupies a slot in the process table until its parent joins it (or the
kernel reaps it because nobody will).
"""

from __future__ import annotations

from enum import StrEnum
from threading import Event
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sysconform.fs.fd import FdTable


class ProcessState(StrEnum):
    """Lifecycle states of a process.

    - NEW: created and loaded, not yet started.
    - RUNNING: its program is executing on its own thread.
    - TERMINATED: finished, exit status published, awaiting reaping.
    - REAPED: collected and removed from the process table.
    """

    NEW = "new"
    RUNNING = "running"
    TERMINATED = "terminated"
    REAPED = "reaped"


class Process:
    """A simulated process (the Process Control Block).

    State transitions are enforced: calling ``reap()`` on a RUNNING
    process raises RuntimeError, because only a zombie can be reaped.
    """

    def __init__(
        self,
        *,
        pid: int,
        name: str,
        argv: list[str],
        fd_table: FdTable,
        parent_pid: int | None = None,
    ) -> None:
        """Create a new process in the NEW state.

        Args:
            pid: Identifier assigned by the process table.
            name: Name of the program image (e.g. "fibonacci").
            argv: Argument list; ``argv[0]`` conventionally names the program.
            fd_table: The process's private descriptor table.
            parent_pid: PID of the parent process, or None for the root.

        """
        self._pid = pid
        self._name = name
        self._argv = list(argv)
        self._fd_table = fd_table
        self._parent_pid = parent_pid
        self._state = ProcessState.NEW
        self._exit_status: int | None = None
        self._abnormal = False
        self._children: list[int] = []
        self._finished = Event()

    @property
    def pid(self) -> int:
        """Return the unique process identifier."""
        return self._pid

    @property
    def name(self) -> str:
        """Return the program name."""
        return self._name

    @property
    def argv(self) -> list[str]:
        """Return a copy of the argument list."""
        return list(self._argv)

    @property
    def fd_table(self) -> FdTable:
        """Return the process's descriptor table."""
        return self._fd_table

    @property
    def parent_pid(self) -> int | None:
        """Return the parent's PID, or None for the root and orphans."""
        return self._parent_pid

    @parent_pid.setter
    def parent_pid(self, pid: int | None) -> None:
        """Reparent the process (None when the parent exits first)."""
        self._parent_pid = pid

    @property
    def state(self) -> ProcessState:
        """Return the current process state."""
        return self._state

    @property
    def exit_status(self) -> int | None:
        """Return the published exit status, or None while running."""
        return self._exit_status

    @property
    def abnormal(self) -> bool:
        """Return True if the program died from an uncaught exception."""
        return self._abnormal

    @property
    def children(self) -> list[int]:
        """Return the PIDs of unjoined children, oldest first."""
        return list(self._children)

    def add_child(self, pid: int) -> None:
        """Record *pid* as a child this process may join."""
        self._children.append(pid)

    def remove_child(self, pid: int) -> bool:
        """Forget a child; return False if it was not recorded."""
        if pid not in self._children:
            return False
        self._children.remove(pid)
        return True

    def _transition(self, action: str, expected: ProcessState, target: ProcessState) -> None:
        """Enforce a state transition.

        Raises:
            RuntimeError: If the process is not in the expected state.

        """
        if self._state is not expected:
            msg = f"Cannot {action}: process {self._pid} is {self._state}, expected {expected}"
            raise RuntimeError(msg)
        self._state = target

    def start(self) -> None:
        """Transition NEW → RUNNING."""
        self._transition("start", ProcessState.NEW, ProcessState.RUNNING)

    def exit(self, status: int, *, abnormal: bool = False) -> None:
        """Transition RUNNING → TERMINATED and publish the exit status.

        Wakes every thread blocked in ``wait_finished()``.
        """
        self._transition("exit", ProcessState.RUNNING, ProcessState.TERMINATED)
        self._exit_status = status
        self._abnormal = abnormal
        self._finished.set()

    def reap(self) -> None:
        """Transition TERMINATED → REAPED."""
        self._transition("reap", ProcessState.TERMINATED, ProcessState.REAPED)

    def wait_finished(self) -> None:
        """Block the calling thread until this process has exited."""
        self._finished.wait()

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"Process(pid={self._pid}, name={self._name!r}, state={self._state})"
