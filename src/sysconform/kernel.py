"""The kernel — the resource manager the conformance harness runs against.

The harness programs are clients of a black box: they can only exec,
join, exit, and push bytes through file descriptors.  This kernel plays
that black box.  It owns every subsystem and is the only code that
mutates them:

    0. Logger — capture events from the start.
    1. Console — descriptor 0 of every process.
    2. File system — a flat namespace with deferred unlink.
    3. Process table — bounded; a full table refuses exec.

Each process runs its program on its own thread, so children really do
run concurrently with their parent and with each other.  One re-entrant
lock serialises every syscall's access to kernel state; ``join`` drops
the lock while it blocks on the child.

Lifecycle::

    SHUTDOWN  →  RUNNING  →  SHUTDOWN
"""

from enum import StrEnum
from random import Random
from threading import RLock, Thread
from typing import Any

from sysconform.facade import SyscallFacade
from sysconform.fs.fd import DEFAULT_FD_TABLE_SIZE, FdError, FdTable, OpenFileDescription
from sysconform.fs.filesystem import FlatFileSystem
from sysconform.io.devices import ConsoleDevice
from sysconform.logging import Logger, LogLevel
from sysconform.process.loader import LoadError, Program, ProgramTable
from sysconform.process.pcb import Process, ProcessState
from sysconform.process.table import (
    DEFAULT_MAX_PROCESSES,
    CapacityError,
    JoinError,
    ProcessTable,
)
from sysconform.syscalls import ProcessExit, SyscallNumber, dispatch_syscall

DEFAULT_SEED = 0

# Status published for a program killed by an uncaught exception.
ABNORMAL_EXIT_STATUS = -1

_SEED_STRIDE = 1_000_003


class KernelState(StrEnum):
    """Represent the lifecycle phases of the kernel."""

    SHUTDOWN = "shutdown"
    RUNNING = "running"


class Kernel:
    """The central coordinator of the simulated resource manager.

    Subsystem references are None when the kernel is not running, and
    are initialised during boot.
    """

    def __init__(
        self,
        *,
        max_processes: int = DEFAULT_MAX_PROCESSES,
        fd_table_size: int = DEFAULT_FD_TABLE_SIZE,
        seed: int = DEFAULT_SEED,
        programs: ProgramTable | None = None,
        trace_syscalls: bool = False,
    ) -> None:
        """Create a kernel in the SHUTDOWN state.

        Args:
            max_processes: Process-table ceiling, counting every live or
                unreaped process (the root included).
            fd_table_size: Slots per process fd table, console included.
            seed: Base seed for the per-process random generators.
            programs: Programs that ``exec`` can load.  Defaults to an
                empty table.
            trace_syscalls: Log every syscall with its arguments and
                outcome at DEBUG level.

        """
        self._state = KernelState.SHUTDOWN
        self._max_processes = max_processes
        self._fd_table_size = fd_table_size
        self._seed = seed
        self._programs = programs if programs is not None else ProgramTable()
        self._trace_syscalls = trace_syscalls
        self._lock = RLock()
        self._logger: Logger | None = None
        self._console: ConsoleDevice | None = None
        self._filesystem: FlatFileSystem | None = None
        self._process_table: ProcessTable | None = None

    @property
    def state(self) -> KernelState:
        """Return the current kernel state."""
        return self._state

    @property
    def logger(self) -> Logger | None:
        """Return the kernel log, or None if not booted."""
        return self._logger

    @property
    def console(self) -> ConsoleDevice | None:
        """Return the console device, or None if not booted."""
        return self._console

    @property
    def filesystem(self) -> FlatFileSystem | None:
        """Return the file system, or None if not booted."""
        return self._filesystem

    @property
    def process_table(self) -> ProcessTable | None:
        """Return the process table, or None if not booted."""
        return self._process_table

    @property
    def programs(self) -> ProgramTable:
        """Return the program table."""
        return self._programs

    @property
    def fd_table_size(self) -> int:
        """Return the configured fd table size."""
        return self._fd_table_size

    # -- Lifecycle --------------------------------------------------------------

    def boot(self) -> None:
        """Transition the kernel from SHUTDOWN → RUNNING.

        Raises:
            RuntimeError: If the kernel is not in the SHUTDOWN state.

        """
        if self._state is not KernelState.SHUTDOWN:
            msg = f"Cannot boot: kernel is {self._state}, expected shutdown"
            raise RuntimeError(msg)

        self._logger = Logger()
        self._console = ConsoleDevice()
        self._filesystem = FlatFileSystem()
        self._process_table = ProcessTable(max_processes=self._max_processes)
        self._state = KernelState.RUNNING
        self._logger.log(
            LogLevel.INFO,
            f"Kernel boot complete (max_processes={self._max_processes}, "
            f"fd_table_size={self._fd_table_size}, seed={self._seed})",
            source="kernel",
        )

    def shutdown(self) -> None:
        """Transition the kernel from RUNNING → SHUTDOWN.

        Raises:
            RuntimeError: If the kernel is not running or a process is
                still executing.

        """
        self._require_running()
        assert self._process_table is not None  # noqa: S101
        with self._lock:
            running = [
                p.pid for p in self._process_table.processes() if p.state is ProcessState.RUNNING
            ]
            if running:
                msg = f"Cannot shut down: processes still running: {running}"
                raise RuntimeError(msg)
            self._process_table = None
            self._filesystem = None
            self._console = None
            self._logger = None
            self._state = KernelState.SHUTDOWN

    def _require_running(self) -> None:
        """Raise if the kernel is not in the RUNNING state."""
        if self._state is not KernelState.RUNNING:
            msg = f"Kernel is not running (state: {self._state})"
            raise RuntimeError(msg)

    def _log(self, level: LogLevel, message: str, *, source: str, pid: int = 0) -> None:
        if self._logger is not None:
            self._logger.log(level, message, source=source, pid=pid)

    # -- Syscall gateway --------------------------------------------------------

    def syscall(self, number: SyscallNumber, **kwargs: Any) -> Any:
        """Execute a system call — the user-space → kernel-space gateway.

        Args:
            number: The syscall number identifying the operation.
            **kwargs: Arguments specific to the syscall; ``pid`` names
                the calling process.

        Returns:
            The syscall result (type depends on the operation).

        Raises:
            RuntimeError: If the kernel is not running.
            SyscallError: If the syscall fails.
            ProcessExit: For ``SYS_EXIT``.

        """
        self._require_running()
        if not self._trace_syscalls:
            return dispatch_syscall(self, number, **kwargs)
        pid = kwargs.get("pid", 0)
        args = ", ".join(f"{k}={v!r}" for k, v in kwargs.items() if k != "pid")
        try:
            result = dispatch_syscall(self, number, **kwargs)
        except ProcessExit as e:
            message = f"{number.name}({args}) = exit {e.status}"
            self._log(LogLevel.DEBUG, message, source="syscall", pid=pid)
            raise
        except Exception as exc:
            self._log(
                LogLevel.DEBUG, f"{number.name}({args}) = error: {exc}", source="syscall", pid=pid
            )
            raise
        self._log(LogLevel.DEBUG, f"{number.name}({args}) = {result!r}", source="syscall", pid=pid)
        return result

    def process_random(self, pid: int) -> Random:
        """Return a generator seeded from the kernel seed and *pid*.

        Pids are handed out in exec order, so a run with the same seed
        and the same spawn sequence sees the same random streams.
        """
        return Random(self._seed * _SEED_STRIDE + pid)

    # -- Process lifecycle ------------------------------------------------------

    def run(self, name: str, argv: list[str] | None = None) -> Process:
        """Exec *name* as a root process and block until it exits.

        Args:
            name: Registered program to run.
            argv: Argument list; defaults to ``[name]``.

        Returns:
            The terminated (and reaped) root process.

        Raises:
            RuntimeError: If the kernel is not running.
            LoadError: If the program is unknown.
            CapacityError: If the process table is full.

        """
        self._require_running()
        process = self.exec_process(
            parent_pid=None,
            name=name,
            argv=argv if argv is not None else [name],
        )
        process.wait_finished()
        with self._lock:
            # _exit_process reaps a root process before it releases the lock.
            return process

    def wait_idle(self) -> None:
        """Block until no process is still running.

        A root that exits early leaves its running children as orphans;
        they keep their table slots until they finish, so callers wait
        here before ``shutdown()``.

        Raises:
            RuntimeError: If the kernel is not running.

        """
        self._require_running()
        assert self._process_table is not None  # noqa: S101
        while True:
            with self._lock:
                pending = [
                    p
                    for p in self._process_table.processes()
                    if p.state is not ProcessState.TERMINATED
                ]
            if not pending:
                return
            for process in pending:
                process.wait_finished()

    def exec_process(self, *, parent_pid: int | None, name: str, argv: list[str]) -> Process:
        """Load *name* into a new process and start it on its own thread.

        Args:
            parent_pid: The exec'ing process, or None for a root process.
            name: Registered program name.
            argv: Argument list passed to the program.

        Returns:
            The new, running process.

        Raises:
            LoadError: If the program is unknown.
            CapacityError: If the process table is full.

        """
        self._require_running()
        assert self._process_table is not None  # noqa: S101
        with self._lock:
            try:
                program = self._programs.load(name)
                process = self._process_table.admit(
                    name=name,
                    argv=argv,
                    fd_table=FdTable(self._fd_table_size),
                    parent_pid=parent_pid,
                )
            except (LoadError, CapacityError) as e:
                self._log(
                    LogLevel.DEBUG,
                    f"exec {name} refused: {e}",
                    source="process",
                    pid=parent_pid or 0,
                )
                raise
            process.start()
            self._log(
                LogLevel.INFO,
                f"exec {name} {argv[1:]} as pid {process.pid}",
                source="process",
                pid=parent_pid or 0,
            )
        thread = Thread(
            target=self._run_process,
            args=(process, program),
            name=f"pid-{process.pid}-{name}",
            daemon=True,
        )
        thread.start()
        return process

    def _run_process(self, process: Process, program: Program) -> None:
        """Thread body: run the program, then publish its exit status."""
        sys = SyscallFacade(self, process.pid)
        abnormal = False
        try:
            result = program(sys, process.argv)
            status = 0 if result is None else int(result)
        except ProcessExit as e:
            status = e.status
        except Exception as e:  # noqa: BLE001
            status = ABNORMAL_EXIT_STATUS
            abnormal = True
            self._log(
                LogLevel.ERROR, f"{process.name} killed: {e!r}", source="process", pid=process.pid
            )
        self._exit_process(process, status, abnormal=abnormal)

    def _exit_process(self, process: Process, status: int, *, abnormal: bool) -> None:
        """Release a process's resources and publish its exit status.

        Open descriptors are closed, unjoined children are orphaned
        (terminated ones are reaped on the spot), and a process nobody
        can join is reaped immediately.
        """
        assert self._process_table is not None  # noqa: S101
        assert self._filesystem is not None  # noqa: S101
        with self._lock:
            for ofd in process.fd_table.close_all():
                if not ofd.console:
                    self._filesystem.release(ofd.name)
            for orphan in self._process_table.orphan_children(process.pid):
                if orphan.state is ProcessState.TERMINATED:
                    self._process_table.reap(orphan)
            process.exit(status, abnormal=abnormal)
            self._log(LogLevel.INFO, f"exit {status}", source="process", pid=process.pid)
            if process.parent_pid is None:
                self._process_table.reap(process)

    def join_process(self, *, parent_pid: int, child_pid: int) -> dict[str, Any]:
        """Wait for a specific child to terminate, then reap it.

        Blocks without holding the kernel lock, so the child (and every
        other process) keeps running.

        Args:
            parent_pid: PID of the joining process.
            child_pid: PID of the child to collect.

        Returns:
            Dict with the child's pid, exit status, and abnormal flag.

        Raises:
            JoinError: If *child_pid* is not an unjoined child of the caller.

        """
        self._require_running()
        assert self._process_table is not None  # noqa: S101
        with self._lock:
            try:
                child = self._process_table.claim_child(parent_pid, child_pid)
            except JoinError as e:
                self._log(LogLevel.DEBUG, f"join refused: {e}", source="process", pid=parent_pid)
                raise
        child.wait_finished()
        with self._lock:
            self._process_table.reap(child)
            self._log(LogLevel.INFO, f"reaped pid {child_pid}", source="process", pid=parent_pid)
        return {"pid": child.pid, "status": child.exit_status, "abnormal": child.abnormal}

    # -- File descriptor operations ---------------------------------------------

    def _fd_table(self, pid: int) -> FdTable:
        assert self._process_table is not None  # noqa: S101
        process = self._process_table.get(pid)
        if process is None or process.state is not ProcessState.RUNNING:
            msg = f"Process {pid} not found"
            raise FdError(msg)
        return process.fd_table

    def _reserve_slot(self, pid: int, table: FdTable, name: str) -> None:
        """Fail before touching the file system if the table is full."""
        if table.free_count == 0:
            self._log(LogLevel.DEBUG, f"fd table exhausted opening {name}", source="fs", pid=pid)
            msg = f"Too many open files ({table.size} slots in use)"
            raise FdError(msg)

    def create_file(self, pid: int, name: str) -> int:
        """Create or truncate *name* and return a new descriptor for it.

        Raises:
            FdError: If the process is unknown or its table is full.
            FileNotFoundError: If the name is invalid or pending removal.

        """
        self._require_running()
        assert self._filesystem is not None  # noqa: S101
        with self._lock:
            table = self._fd_table(pid)
            self._reserve_slot(pid, table, name)
            self._filesystem.create(name)
            return table.allocate(OpenFileDescription(name=name))

    def open_file(self, pid: int, name: str) -> int:
        """Open an existing file and return a new descriptor for it.

        Raises:
            FdError: If the process is unknown or its table is full.
            FileNotFoundError: If the file does not exist or is pending removal.

        """
        self._require_running()
        assert self._filesystem is not None  # noqa: S101
        with self._lock:
            table = self._fd_table(pid)
            self._reserve_slot(pid, table, name)
            self._filesystem.open(name)
            return table.allocate(OpenFileDescription(name=name))

    def close_file(self, pid: int, fd: int) -> None:
        """Close a descriptor, finishing a deferred unlink if it was the last.

        Raises:
            FdError: If the process is unknown or the fd is not open.

        """
        self._require_running()
        assert self._filesystem is not None  # noqa: S101
        with self._lock:
            ofd = self._fd_table(pid).close(fd)
            if not ofd.console:
                self._filesystem.release(ofd.name)

    def read_fd(self, pid: int, fd: int, *, count: int) -> bytes:
        """Read up to *count* bytes through a descriptor, advancing its offset.

        Raises:
            FdError: If the fd is invalid or *count* is negative.

        """
        self._require_running()
        assert self._filesystem is not None  # noqa: S101
        assert self._console is not None  # noqa: S101
        if count < 0:
            msg = f"Negative read count: {count}"
            raise FdError(msg)
        with self._lock:
            ofd = self._fd_table(pid).lookup(fd)
            if ofd.console:
                return self._console.read(count)
            data = self._filesystem.read_at(ofd.name, offset=ofd.offset, count=count)
            ofd.offset += len(data)
            return data

    def write_fd(self, pid: int, fd: int, data: bytes) -> int:
        """Write bytes through a descriptor, advancing its offset.

        Returns:
            The number of bytes written.

        Raises:
            FdError: If the fd is invalid.

        """
        self._require_running()
        assert self._filesystem is not None  # noqa: S101
        assert self._console is not None  # noqa: S101
        with self._lock:
            ofd = self._fd_table(pid).lookup(fd)
            if ofd.console:
                self._console.write(data)
                return len(data)
            self._filesystem.write_at(ofd.name, offset=ofd.offset, data=data)
            ofd.offset += len(data)
            return len(data)

    def unlink_file(self, pid: int, name: str) -> None:
        """Remove *name*, deferring the removal while it is open anywhere.

        Raises:
            FileNotFoundError: If the file does not exist.

        """
        self._require_running()
        assert self._filesystem is not None  # noqa: S101
        with self._lock:
            freed = self._filesystem.unlink(name)
            detail = "removed" if freed else "marked for removal"
            self._log(LogLevel.DEBUG, f"unlink {name}: {detail}", source="fs", pid=pid)

    def open_fds(self, pid: int) -> dict[int, str]:
        """Return a snapshot of a live process's open descriptors."""
        self._require_running()
        with self._lock:
            return {fd: ofd.name for fd, ofd in self._fd_table(pid).list_fds().items()}
