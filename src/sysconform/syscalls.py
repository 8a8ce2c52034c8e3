"""System call interface — the gateway between harness programs and the kernel.

A user program cannot touch the process table or the file system
directly.  It traps into the kernel with a syscall number and
arguments; a dispatcher validates the request and routes it to the
right handler.

1. ``SyscallNumber`` — the operations the kernel under test supports,
   numbered as in the Nachos syscall table.
2. ``SyscallError`` — the only failure user space sees.  Handlers catch
   kernel-internal exceptions (``FdError``, ``CapacityError``, …) and
   re-raise them as ``SyscallError`` so programs never depend on kernel
   internals.
3. ``ProcessExit`` — raised by ``SYS_EXIT`` in the caller's own thread
   and caught by the kernel at the bottom of that process's stack.
4. ``dispatch_syscall()`` — the trap handler, the single entry point
   from user space into the kernel.
"""

from enum import IntEnum
from typing import Any, NoReturn

from sysconform.fs.fd import FdError
from sysconform.process.loader import LoadError
from sysconform.process.table import CapacityError, JoinError


class SyscallNumber(IntEnum):
    """Enumerate every system call the kernel supports.

    Using IntEnum means each syscall is also a plain int, matching how
    real kernels identify syscalls by number in a lookup table.
    """

    SYS_EXIT = 1
    SYS_EXEC = 2
    SYS_JOIN = 3
    SYS_CREATE = 4
    SYS_OPEN = 5
    SYS_READ = 6
    SYS_WRITE = 7
    SYS_CLOSE = 8
    SYS_UNLINK = 9


class SyscallError(Exception):
    """Raised when a system call fails.

    This is the only exception user space should ever see from a
    syscall.  Internal kernel exceptions are caught and wrapped.
    """


class ProcessExit(BaseException):  # noqa: N818
    """Unwind the calling process's stack with an exit status.

    Derives from BaseException, like SystemExit, so program code that
    catches ``Exception`` cannot swallow an exit.
    """

    def __init__(self, status: int) -> None:
        """Record the exit status being published."""
        super().__init__(status)
        self.status = status


def dispatch_syscall(
    kernel: Any,
    number: SyscallNumber,
    **kwargs: Any,
) -> Any:
    """Dispatch a system call to the appropriate kernel handler.

    Args:
        kernel: The running kernel instance.
        number: The syscall number identifying the operation.
        **kwargs: Arguments specific to the syscall.

    Returns:
        The syscall result (type depends on the operation).

    Raises:
        SyscallError: If the syscall fails or the number is unknown.
        ProcessExit: For ``SYS_EXIT``.

    """
    handlers: dict[SyscallNumber, Any] = {
        SyscallNumber.SYS_EXIT: _sys_exit,
        SyscallNumber.SYS_EXEC: _sys_exec,
        SyscallNumber.SYS_JOIN: _sys_join,
        SyscallNumber.SYS_CREATE: _sys_create,
        SyscallNumber.SYS_OPEN: _sys_open,
        SyscallNumber.SYS_READ: _sys_read,
        SyscallNumber.SYS_WRITE: _sys_write,
        SyscallNumber.SYS_CLOSE: _sys_close,
        SyscallNumber.SYS_UNLINK: _sys_unlink,
    }

    handler = handlers.get(number)
    if handler is None:
        msg = f"Unknown syscall: {number}"
        raise SyscallError(msg)

    return handler(kernel, **kwargs)


# -- Process syscall handlers ------------------------------------------------


def _sys_exit(_kernel: Any, **kwargs: Any) -> NoReturn:
    """Terminate the calling process with the given status."""
    raise ProcessExit(int(kwargs["status"]))


def _sys_exec(kernel: Any, **kwargs: Any) -> dict[str, int]:
    """Load a program into a new child process and start it."""
    try:
        child = kernel.exec_process(
            parent_pid=kwargs["pid"],
            name=kwargs["name"],
            argv=list(kwargs["argv"]),
        )
    except (LoadError, CapacityError) as e:
        raise SyscallError(str(e)) from e
    return {"pid": child.pid}


def _sys_join(kernel: Any, **kwargs: Any) -> dict[str, Any]:
    """Block until a specific child terminates and collect its status."""
    try:
        return kernel.join_process(parent_pid=kwargs["pid"], child_pid=kwargs["child_pid"])
    except JoinError as e:
        raise SyscallError(str(e)) from e


# -- File syscall handlers ---------------------------------------------------


def _sys_create(kernel: Any, **kwargs: Any) -> dict[str, int]:
    """Create (or truncate) a file and return a descriptor."""
    try:
        fd = kernel.create_file(kwargs["pid"], kwargs["name"])
    except (FdError, FileNotFoundError) as e:
        raise SyscallError(str(e)) from e
    return {"fd": fd}


def _sys_open(kernel: Any, **kwargs: Any) -> dict[str, int]:
    """Open an existing file and return a descriptor."""
    try:
        fd = kernel.open_file(kwargs["pid"], kwargs["name"])
    except (FdError, FileNotFoundError) as e:
        raise SyscallError(str(e)) from e
    return {"fd": fd}


def _sys_read(kernel: Any, **kwargs: Any) -> dict[str, Any]:
    """Read bytes from a file descriptor."""
    try:
        data = kernel.read_fd(kwargs["pid"], kwargs["fd"], count=kwargs["count"])
    except (FdError, FileNotFoundError) as e:
        raise SyscallError(str(e)) from e
    return {"data": data, "count": len(data)}


def _sys_write(kernel: Any, **kwargs: Any) -> dict[str, int]:
    """Write bytes to a file descriptor."""
    try:
        written = kernel.write_fd(kwargs["pid"], kwargs["fd"], kwargs["data"])
    except (FdError, FileNotFoundError) as e:
        raise SyscallError(str(e)) from e
    return {"bytes_written": written}


def _sys_close(kernel: Any, **kwargs: Any) -> None:
    """Close a file descriptor."""
    try:
        kernel.close_file(kwargs["pid"], kwargs["fd"])
    except FdError as e:
        raise SyscallError(str(e)) from e


def _sys_unlink(kernel: Any, **kwargs: Any) -> None:
    """Remove a file name (deferred while the file is open)."""
    try:
        kernel.unlink_file(kwargs["pid"], kwargs["name"])
    except FileNotFoundError as e:
        raise SyscallError(str(e)) from e
