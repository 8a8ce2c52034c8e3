"""Tests for the system call interface.

Programs never touch kernel subsystems directly.  They invoke numbered
operations via ``kernel.syscall()``; the dispatcher routes each one to
its handler and turns kernel-internal errors into ``SyscallError``, the
only failure user space ever sees.
"""

from typing import Any

import pytest

from sysconform.facade import SyscallFacade
from sysconform.kernel import Kernel
from sysconform.process.loader import ProgramTable
from sysconform.syscalls import ProcessExit, SyscallError, SyscallNumber, dispatch_syscall

EXIT_STATUS = 9
UNKNOWN_SYSCALL = 99
UNKNOWN_PID = 77


def _booted_kernel() -> Kernel:
    """Create and boot a kernel with a single ``exit_with`` program."""
    kernel = Kernel(programs=ProgramTable({"exit_with": lambda _sys, argv: int(argv[1])}))
    kernel.boot()
    return kernel


def _trap(kernel: Kernel, calls: list[tuple[SyscallNumber, dict[str, Any]]]) -> list[Any]:
    """Issue *calls* from inside a process, recording results or errors."""
    results: list[Any] = []

    def body(sys: SyscallFacade, _argv: list[str]) -> int:
        for number, kwargs in calls:
            try:
                results.append(kernel.syscall(number, pid=sys.pid, **kwargs))
            except SyscallError as e:
                results.append(e)
        return 0

    kernel.programs.register("body", body)
    kernel.run("body")
    return results


class TestSyscallNumbers:
    """Verify the syscall table."""

    def test_numbering(self) -> None:
        """Syscalls keep their Nachos numbers."""
        assert [(s.name, int(s)) for s in SyscallNumber] == [
            ("SYS_EXIT", 1),
            ("SYS_EXEC", 2),
            ("SYS_JOIN", 3),
            ("SYS_CREATE", 4),
            ("SYS_OPEN", 5),
            ("SYS_READ", 6),
            ("SYS_WRITE", 7),
            ("SYS_CLOSE", 8),
            ("SYS_UNLINK", 9),
        ]

    def test_unknown_number(self) -> None:
        """An unknown syscall number raises SyscallError."""
        kernel = _booted_kernel()
        with pytest.raises(SyscallError, match="Unknown syscall"):
            dispatch_syscall(kernel, UNKNOWN_SYSCALL)  # type: ignore[arg-type]

    def test_syscall_requires_running_kernel(self) -> None:
        """Trapping into a shut down kernel is a RuntimeError."""
        with pytest.raises(RuntimeError, match="not running"):
            Kernel().syscall(SyscallNumber.SYS_UNLINK, pid=1, name="x")


class TestProcessSyscalls:
    """Verify exit, exec, and join."""

    def test_exit_raises_process_exit(self) -> None:
        """SYS_EXIT unwinds the caller with its status."""
        kernel = _booted_kernel()
        with pytest.raises(ProcessExit) as info:
            kernel.syscall(SyscallNumber.SYS_EXIT, pid=1, status=EXIT_STATUS)
        assert info.value.status == EXIT_STATUS

    def test_process_exit_is_not_an_exception(self) -> None:
        """ProcessExit escapes ``except Exception``."""
        assert not issubclass(ProcessExit, Exception)

    def test_exec_and_join(self) -> None:
        """exec returns a pid; join returns that child's status."""
        kernel = _booted_kernel()
        results: list[Any] = []

        def body(sys: SyscallFacade, _argv: list[str]) -> int:
            child = kernel.syscall(
                SyscallNumber.SYS_EXEC,
                pid=sys.pid,
                name="exit_with",
                argv=["exit_with", str(EXIT_STATUS)],
            )
            joined = kernel.syscall(SyscallNumber.SYS_JOIN, pid=sys.pid, child_pid=child["pid"])
            results.append(joined)
            return 0

        kernel.programs.register("body", body)
        kernel.run("body")
        assert results[0]["status"] == EXIT_STATUS
        assert results[0]["abnormal"] is False

    def test_exec_unknown_program(self) -> None:
        """exec of a missing program is a SyscallError."""
        kernel = _booted_kernel()
        [result] = _trap(kernel, [(SyscallNumber.SYS_EXEC, {"name": "asd", "argv": ["asd"]})])
        assert isinstance(result, SyscallError)
        assert "No such program" in str(result)

    def test_join_non_child(self) -> None:
        """join of a pid that is not our child is a SyscallError."""
        kernel = _booted_kernel()
        [result] = _trap(kernel, [(SyscallNumber.SYS_JOIN, {"child_pid": UNKNOWN_PID})])
        assert isinstance(result, SyscallError)
        assert "not a child" in str(result)


class TestFileSyscalls:
    """Verify create, open, read, write, close, and unlink."""

    def test_round_trip(self) -> None:
        """Each file syscall returns its documented result shape."""
        kernel = _booted_kernel()
        results = _trap(
            kernel,
            [
                (SyscallNumber.SYS_CREATE, {"name": "f"}),
                (SyscallNumber.SYS_WRITE, {"fd": 1, "data": b"abc"}),
                (SyscallNumber.SYS_CLOSE, {"fd": 1}),
                (SyscallNumber.SYS_OPEN, {"name": "f"}),
                (SyscallNumber.SYS_READ, {"fd": 1, "count": 10}),
                (SyscallNumber.SYS_UNLINK, {"name": "f"}),
            ],
        )
        abc_len = 3
        assert results == [
            {"fd": 1},
            {"bytes_written": abc_len},
            None,
            {"fd": 1},
            {"data": b"abc", "count": abc_len},
            None,
        ]

    def test_errors_are_wrapped(self) -> None:
        """Kernel errors surface as SyscallError, never raw."""
        kernel = _booted_kernel()
        results = _trap(
            kernel,
            [
                (SyscallNumber.SYS_OPEN, {"name": "missing"}),
                (SyscallNumber.SYS_READ, {"fd": 5, "count": 1}),
                (SyscallNumber.SYS_WRITE, {"fd": 5, "data": b"x"}),
                (SyscallNumber.SYS_CLOSE, {"fd": 5}),
                (SyscallNumber.SYS_UNLINK, {"name": "missing"}),
                (SyscallNumber.SYS_CREATE, {"name": ""}),
            ],
        )
        assert all(isinstance(r, SyscallError) for r in results)

    def test_unknown_caller(self) -> None:
        """File syscalls for a pid with no live process fail."""
        kernel = _booted_kernel()
        with pytest.raises(SyscallError, match="not found"):
            kernel.syscall(SyscallNumber.SYS_CREATE, pid=UNKNOWN_PID, name="f")
