"""End-to-end tests: each harness program run against the simulated kernel.

A conforming kernel (the default configuration) passes every harness.
Misconfigured kernels (a smaller or larger fd table, no room for
children) are caught with the documented exit codes.
"""

from sysconform.facade import Spawned, SyscallFacade
from sysconform.harness import programs
from sysconform.harness.prober import PROBE_FAILED_EXIT
from sysconform.kernel import Kernel
from sysconform.process.pcb import Process

SMALL_UNITS = 6
SMALL_CEILING = 3
STATUS = 7
NEGATIVE_STATUS = -5
INSTANCE = 3


def _booted_kernel(**kwargs: int) -> Kernel:
    """Create and boot a kernel loaded with every harness program."""
    kernel = Kernel(programs=programs.default_programs(), **kwargs)
    kernel.boot()
    return kernel


def _console(kernel: Kernel) -> list[str]:
    assert kernel.console is not None
    return kernel.console.lines()


def _files(kernel: Kernel) -> list[str]:
    assert kernel.filesystem is not None
    return kernel.filesystem.names()


def _run(kernel: Kernel, *argv: str) -> Process:
    return kernel.run(argv[0], list(argv))


class TestProgramTable:
    """Verify the registered programs."""

    def test_default_programs(self) -> None:
        """Every harness is registered under its name."""
        assert programs.default_programs().names() == [
            "exit_with",
            "fibonacci",
            "lifecycle",
            "multiprogramming",
            "sequential_fibonacci",
            "test_fd",
        ]


class TestFdHarness:
    """Verify test_fd."""

    def test_passes_on_conforming_kernel(self) -> None:
        """Sixteen slots: every round passes and the table saturates."""
        kernel = _booted_kernel()
        process = _run(kernel, "test_fd")
        assert process.exit_status == 0
        lines = _console(kernel)
        assert lines[-1].startswith("--- PASS test_fd")
        assert sum(line.startswith("round ") for line in lines) == programs.MAX_NUM_FD - 1
        assert _files(kernel) == []

    def test_rerun_on_same_kernel(self) -> None:
        """The backing file is really gone, so a second run passes too."""
        kernel = _booted_kernel()
        assert _run(kernel, "test_fd").exit_status == 0
        assert _run(kernel, "test_fd").exit_status == 0
        passes = [line for line in _console(kernel) if line.startswith("--- PASS")]
        expected_passes = 2
        assert len(passes) == expected_passes

    def test_small_table_fails(self) -> None:
        """A table smaller than sixteen slots fails a round."""
        kernel = _booted_kernel(fd_table_size=programs.MULTI_MAX_NUM_FD)
        process = _run(kernel, "test_fd")
        assert process.exit_status == PROBE_FAILED_EXIT
        assert "fails" in _console(kernel)[-1]
        assert _files(kernel) == []

    def test_large_table_fails(self) -> None:
        """A table larger than sixteen slots fails the saturation check."""
        kernel = _booted_kernel(fd_table_size=programs.MAX_NUM_FD + 1)
        process = _run(kernel, "test_fd")
        assert process.exit_status == PROBE_FAILED_EXIT
        assert _console(kernel)[-1] == "test_fd: available fds exceed."
        assert _files(kernel) == []

    def test_multiprogramming_variant(self) -> None:
        """``test_fd <n> <file>`` exits with n and leaves the file."""
        kernel = _booted_kernel()
        process = _run(kernel, "test_fd", str(STATUS), "shared.test")
        assert process.exit_status == STATUS
        assert _console(kernel)[-1] == f"--- PASS test_fd {STATUS}"
        assert _files(kernel) == ["shared.test"]

    def test_multiprogramming_variant_needs_file(self) -> None:
        """The multi-process form requires a file argument."""
        kernel = _booted_kernel()
        process = _run(kernel, "test_fd", "1")
        assert process.exit_status == programs.BAD_ARGUMENTS_EXIT


class TestFibonacciHarness:
    """Verify fibonacci and sequential_fibonacci."""

    def test_single_instance(self) -> None:
        """One validator passes and exits 0."""
        kernel = _booted_kernel()
        process = _run(kernel, "fibonacci")
        assert process.exit_status == 0
        assert _console(kernel) == ["--- PASS fibonacci 0"]
        assert _files(kernel) == []

    def test_instance_arguments(self) -> None:
        """``fibonacci <n> <m>`` exits with n and uses pair m."""
        kernel = _booted_kernel()
        process = _run(kernel, "fibonacci", str(STATUS), str(INSTANCE))
        assert process.exit_status == STATUS
        assert _console(kernel) == [f"--- PASS fibonacci {INSTANCE}"]

    def test_concurrent_instances_are_isolated(self) -> None:
        """Two validators on disjoint file pairs both finish correctly."""
        kernel = _booted_kernel()
        statuses: list[int | None] = []

        def pair(sys: SyscallFacade, _argv: list[str]) -> int:
            first = sys.spawn("fibonacci", ["fibonacci", "1", "1"])
            second = sys.spawn("fibonacci", ["fibonacci", "2", "2"])
            assert isinstance(first, Spawned)
            assert isinstance(second, Spawned)
            statuses.append(sys.wait(first.pid))
            statuses.append(sys.wait(second.pid))
            return 0

        kernel.programs.register("pair", pair)
        assert kernel.run("pair").exit_status == 0
        assert statuses == [1, 2]
        assert _files(kernel) == []

    def test_sequential_small(self) -> None:
        """A few units under a tight ceiling all pass."""
        kernel = _booted_kernel(max_processes=SMALL_CEILING)
        process = _run(kernel, "sequential_fibonacci", str(SMALL_UNITS))
        assert process.exit_status == 0
        lines = _console(kernel)
        assert lines[-1] == "--- PASS sequential fibonacci"
        assert sum(line.startswith("--- PASS fibonacci") for line in lines) == SMALL_UNITS
        assert kernel.process_table is not None
        assert kernel.process_table.peak <= SMALL_CEILING
        assert _files(kernel) == []

    def test_sequential_full(self) -> None:
        """The full hundred-unit run passes on the default kernel."""
        kernel = _booted_kernel()
        process = _run(kernel, "sequential_fibonacci")
        assert process.exit_status == 0
        lines = _console(kernel)
        assert lines[-1] == "--- PASS sequential fibonacci"
        assert sum(line.startswith("--- PASS fibonacci") for line in lines) == (
            programs.SEQUENTIAL_UNITS
        )

    def test_sequential_same_seed_same_outcome(self) -> None:
        """A fixed seed gives the same signatures in the same spawn order."""
        spawns: list[list[str]] = []
        for _ in range(2):
            kernel = _booted_kernel(max_processes=SMALL_CEILING, seed=SMALL_UNITS)
            assert _run(kernel, "sequential_fibonacci", str(SMALL_UNITS)).exit_status == 0
            assert kernel.logger is not None
            root_log = kernel.logger.filter(source="process", pid=1)
            spawns.append([e.message for e in root_log if " as pid " in e.message])
        assert len(spawns[0]) == SMALL_UNITS
        assert spawns[0] == spawns[1]

    def test_no_room_for_children(self) -> None:
        """With only the root's slot, the first spawn is fatal."""
        kernel = _booted_kernel(max_processes=1)
        process = _run(kernel, "sequential_fibonacci", str(SMALL_UNITS))
        assert process.exit_status == programs.WRONG_STATUS_EXIT
        assert "no outstanding children" in _console(kernel)[-1]

    def test_bad_unit_count(self) -> None:
        """A non-numeric unit count is rejected."""
        kernel = _booted_kernel()
        process = _run(kernel, "sequential_fibonacci", "many")
        assert process.exit_status == programs.BAD_ARGUMENTS_EXIT
        assert _console(kernel) == ["bad count 'many'"]

    def test_bad_fibonacci_arguments(self) -> None:
        """fibonacci with a single argument is rejected."""
        kernel = _booted_kernel()
        process = _run(kernel, "fibonacci", "1")
        assert process.exit_status == programs.BAD_ARGUMENTS_EXIT
        assert _console(kernel) == ["fibonacci: argc < 3"]


class TestMultiprogramming:
    """Verify multiprogramming."""

    def test_children_share_a_file(self) -> None:
        """Both test_fd children pass and the shared file is removed."""
        kernel = _booted_kernel()
        process = _run(kernel, "multiprogramming")
        assert process.exit_status == 0
        lines = _console(kernel)
        assert "--- PASS test_fd 0" in lines
        assert "--- PASS test_fd 1" in lines
        assert lines[-1] == "--- PASS multiprogramming"
        assert _files(kernel) == []

    def test_rerun_on_same_kernel(self) -> None:
        """A second run finds no leftovers."""
        kernel = _booted_kernel()
        assert _run(kernel, "multiprogramming").exit_status == 0
        assert _run(kernel, "multiprogramming").exit_status == 0


class TestLifecycle:
    """Verify lifecycle and exit_with."""

    def test_lifecycle_passes(self) -> None:
        """Exec/join round trips and every sentinel behave."""
        kernel = _booted_kernel()
        process = _run(kernel, "lifecycle")
        assert process.exit_status == 0
        lines = _console(kernel)
        assert "no process:AtCapacity()" in lines
        assert "join reaped child:None" in lines
        assert "join un-child:None" in lines
        assert lines[-1] == "--- PASS lifecycle"
        assert kernel.process_table is not None
        assert kernel.process_table.live_count == 0

    def test_exit_with(self) -> None:
        """exit_with publishes its argument."""
        kernel = _booted_kernel()
        assert _run(kernel, "exit_with", str(STATUS)).exit_status == STATUS

    def test_exit_with_negative(self) -> None:
        """Negative statuses pass through."""
        kernel = _booted_kernel()
        assert _run(kernel, "exit_with", str(NEGATIVE_STATUS)).exit_status == NEGATIVE_STATUS

    def test_exit_with_needs_argument(self) -> None:
        """exit_with without a status is rejected."""
        kernel = _booted_kernel()
        assert _run(kernel, "exit_with").exit_status == programs.BAD_ARGUMENTS_EXIT


class TestNumericArguments:
    """Arguments int() cannot parse are rejected cleanly, not by a crash."""

    def _rejected(self, *argv: str) -> list[str]:
        kernel = _booted_kernel()
        process = _run(kernel, *argv)
        assert process.exit_status == programs.BAD_ARGUMENTS_EXIT
        assert process.abnormal is False
        return _console(kernel)

    def test_exit_with_double_sign(self) -> None:
        """``--5`` is not a status."""
        assert self._rejected("exit_with", "--5") == ["exit_with: bad status"]

    def test_exit_with_superscript_digit(self) -> None:
        """A superscript digit is not a status."""
        assert self._rejected("exit_with", "²") == ["exit_with: bad status"]

    def test_fibonacci_superscript_digit(self) -> None:
        """fibonacci rejects an unparsable instance."""
        assert self._rejected("fibonacci", "1", "²") == ["fibonacci: bad arguments ['1', '?']"]

    def test_test_fd_double_sign(self) -> None:
        """test_fd rejects an unparsable instance."""
        lines = self._rejected("test_fd", "--1", "shared.test")
        assert lines[-1] == "test_fd: bad instance"

    def test_sequential_superscript_digit(self) -> None:
        """sequential_fibonacci rejects an unparsable count."""
        assert self._rejected("sequential_fibonacci", "²") == ["bad count '?'"]

    def test_sequential_zero_count(self) -> None:
        """A count must be positive."""
        assert self._rejected("sequential_fibonacci", "0") == ["bad count '0'"]
