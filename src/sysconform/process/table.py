"""The process table — bounded bookkeeping for every live process.

The table is where the system under test keeps its hidden ceiling.  A
process occupies one slot from the moment it is admitted until it is
reaped, so zombies count: a parent that never joins its children will
eventually be refused new ones.  That refusal is the backpressure the
admission-controlled spawner is built around.

The table is not thread-safe on its own; the kernel serialises access.
"""

from __future__ import annotations

from itertools import count

from sysconform.fs.fd import FdTable
from sysconform.process.pcb import Process, ProcessState

DEFAULT_MAX_PROCESSES = 8


class CapacityError(Exception):
    """Raise when the process table has no free slot."""


class JoinError(Exception):
    """Raise when a process asks to join something that is not its child."""


class ProcessTable:
    """Track live processes, their parentage, and the slot ceiling."""

    def __init__(self, *, max_processes: int = DEFAULT_MAX_PROCESSES) -> None:
        """Create an empty table.

        Args:
            max_processes: Maximum number of simultaneously live
                (unreaped) processes.

        Raises:
            ValueError: If *max_processes* is not positive.

        """
        if max_processes < 1:
            msg = f"max_processes must be positive, got {max_processes}"
            raise ValueError(msg)
        self._max_processes = max_processes
        self._processes: dict[int, Process] = {}
        self._pids = count(start=1)
        self._peak = 0

    @property
    def max_processes(self) -> int:
        """Return the slot ceiling."""
        return self._max_processes

    @property
    def live_count(self) -> int:
        """Return the number of occupied slots (running and zombie)."""
        return len(self._processes)

    @property
    def peak(self) -> int:
        """Return the highest ``live_count`` ever observed."""
        return self._peak

    def get(self, pid: int) -> Process | None:
        """Return the process with *pid*, or None if it is not live."""
        return self._processes.get(pid)

    def processes(self) -> list[Process]:
        """Return every live process in PID order."""
        return [self._processes[pid] for pid in sorted(self._processes)]

    def admit(
        self,
        *,
        name: str,
        argv: list[str],
        fd_table: FdTable,
        parent_pid: int | None,
    ) -> Process:
        """Create a PCB in a free slot and link it to its parent.

        Raises:
            CapacityError: If every slot is occupied.

        """
        if self.live_count >= self._max_processes:
            msg = f"Process table full ({self._max_processes} slots)"
            raise CapacityError(msg)
        process = Process(
            pid=next(self._pids),
            name=name,
            argv=argv,
            fd_table=fd_table,
            parent_pid=parent_pid,
        )
        self._processes[process.pid] = process
        self._peak = max(self._peak, self.live_count)
        if parent_pid is not None:
            parent = self._processes.get(parent_pid)
            if parent is not None:
                parent.add_child(process.pid)
        return process

    def claim_child(self, parent_pid: int, child_pid: int) -> Process:
        """Detach *child_pid* from its parent so it can be joined exactly once.

        Raises:
            JoinError: If *child_pid* is not an unjoined child of *parent_pid*.

        """
        parent = self._processes.get(parent_pid)
        child = self._processes.get(child_pid)
        if parent is None or child is None or not parent.remove_child(child_pid):
            msg = f"Process {child_pid} is not a child of {parent_pid}"
            raise JoinError(msg)
        return child

    def orphan_children(self, pid: int) -> list[Process]:
        """Detach every unjoined child of *pid*, returning them.

        The children keep running with no parent; whoever notices them
        terminate is responsible for reaping them.
        """
        parent = self._processes.get(pid)
        if parent is None:
            return []
        orphans = []
        for child_pid in parent.children:
            parent.remove_child(child_pid)
            child = self._processes.get(child_pid)
            if child is not None:
                child.parent_pid = None
                orphans.append(child)
        return orphans

    def reap(self, process: Process) -> None:
        """Free the slot of a terminated process.

        Raises:
            RuntimeError: If the process has not terminated.

        """
        if process.state is not ProcessState.TERMINATED:
            msg = f"Cannot reap: process {process.pid} is {process.state}"
            raise RuntimeError(msg)
        process.reap()
        del self._processes[process.pid]
