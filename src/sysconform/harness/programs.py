"""Harness programs — the entry points that run inside simulated processes.

Each program has the loader's signature ``(sys, argv) -> int | None``
and composes the harness components into one conformance test:

- ``test_fd`` — descriptor exhaustion, alone or as one of several
  children sharing a backing file.
- ``fibonacci`` — one sequential-state validator instance.
- ``sequential_fibonacci`` — many validator instances under admission
  control, each exiting with a random signature.
- ``multiprogramming`` — several ``test_fd`` children at once.
- ``lifecycle`` — exec/join/exit round trips and the failure sentinels.
- ``exit_with`` — exits with its argument; a child for ``lifecycle``.

Every program prints a ``--- PASS`` line when it succeeds.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

from sysconform.facade import FAILURE, AtCapacity, Spawned
from sysconform.harness.assertion import assertx, fail
from sysconform.harness.fibonacci import (
    EXPECTED_AFTER_100_ROUNDS,
    VALIDATION_FAILED_EXIT,
    FibonacciValidator,
)
from sysconform.harness.prober import PROBE_FAILED_EXIT, FdProber
from sysconform.harness.spawner import AdmissionSpawner
from sysconform.process.loader import ProgramTable

if TYPE_CHECKING:
    from sysconform.facade import SyscallFacade

MAX_NUM_FD = 16
MULTI_MAX_NUM_FD = 8
FD_TEST_FILE = "nachos_test_fd.txt.test"
SHARED_FD_TEST_FILE = "test.txt.test"

SEQUENTIAL_UNITS = 100
SIGNATURE_RANGE = 16
MULTIPROGRAMMING_CHILDREN = 2
LIFECYCLE_CHILDREN = 10
MISSING_PROGRAM = "asd"

BAD_ARGUMENTS_EXIT = -1
WRONG_STATUS_EXIT = 1


def _int_argument(sys: SyscallFacade, arg: str, message: str) -> int:
    """Parse *arg* as a decimal integer, failing with *message* otherwise."""
    try:
        return int(arg)
    except ValueError:
        fail(sys, BAD_ARGUMENTS_EXIT, message)


def _count_argument(sys: SyscallFacade, argv: list[str], default: int) -> int:
    """Return ``argv[1]`` as a positive count, or *default* when absent."""
    if len(argv) < 2:  # noqa: PLR2004
        return default
    message = f"bad count {argv[1]!r}"
    count = _int_argument(sys, argv[1], message)
    assertx(sys, count > 0, BAD_ARGUMENTS_EXIT, message)
    return count


def fd_probe(sys: SyscallFacade, argv: list[str]) -> int:
    """Probe descriptor allocation, reuse, and saturation.

    ``test_fd`` alone uses the full table and its own backing file.
    ``test_fd <n> <file>`` is the multi-process variant: eight slots on
    a shared file, slot 0 held throughout, exiting with ``n``.
    """
    multiprogramming = len(argv) > 1
    if multiprogramming:
        sys.print(f"multiprogramming: {argv[1]}")
        assertx(sys, len(argv) >= 3, BAD_ARGUMENTS_EXIT, "test_fd: argc < 3")  # noqa: PLR2004
        n = _int_argument(sys, argv[1], "test_fd: bad instance")
        filename = argv[2]
        capacity = MULTI_MAX_NUM_FD
    else:
        n = 0
        filename = FD_TEST_FILE
        capacity = MAX_NUM_FD
        assertx(
            sys,
            sys.open_file(filename) == FAILURE,
            PROBE_FAILED_EXIT,
            f"test_fd: {filename} exists before creation. check unlink.",
        )

    first = sys.create_file(filename)
    if first == FAILURE:
        sys.remove_file(filename)
        fail(sys, PROBE_FAILED_EXIT, f"test_fd: {filename} create fails.")

    prober = FdProber(
        sys,
        backing_file=filename,
        capacity=capacity,
        rng=sys.rng,
        first_fd=first,
        keep_first=multiprogramming,
        verbose=not multiprogramming,
    )
    prober.run()

    if multiprogramming:
        sys.print(f"--- PASS test_fd {n}")
    else:
        prober.check_saturated()
        sys.remove_file(filename)
        sys.print("--- PASS test_fd. If first time run this again to check unlink")
    return n


def fibonacci(sys: SyscallFacade, argv: list[str]) -> int:
    """Run one validator instance: ``fibonacci [<n> <m>]``.

    ``n`` is the exit status to publish, ``m`` selects the file pair.
    """
    if len(argv) == 1:
        n = m = 0
    else:
        assertx(sys, len(argv) >= 3, BAD_ARGUMENTS_EXIT, "fibonacci: argc < 3")  # noqa: PLR2004
        message = f"fibonacci: bad arguments {argv[1:3]}"
        n = _int_argument(sys, argv[1], message)
        m = _int_argument(sys, argv[2], message)

    c = FibonacciValidator(sys, instance=m).run()
    assertx(
        sys,
        c == EXPECTED_AFTER_100_ROUNDS,
        VALIDATION_FAILED_EXIT,
        f"fibonacci {m}: wrong result {c}, expected {EXPECTED_AFTER_100_ROUNDS}",
    )
    sys.print(f"--- PASS fibonacci {m}")
    return n


def sequential_fibonacci(sys: SyscallFacade, argv: list[str]) -> int:
    """Spawn ``fibonacci`` instances under admission control: ``sequential_fibonacci [<units>]``."""
    units = _count_argument(sys, argv, SEQUENTIAL_UNITS)
    spawner = AdmissionSpawner(
        sys,
        program="fibonacci",
        build_argv=lambda unit, signature: ["fibonacci", str(signature), str(units - unit)],
        choose_signature=lambda _unit: sys.rng.randrange(SIGNATURE_RANGE),
        exit_code=WRONG_STATUS_EXIT,
    )
    spawner.run(units)
    sys.print("--- PASS sequential fibonacci")
    return 0


def multiprogramming(sys: SyscallFacade, argv: list[str]) -> int:
    """Run ``test_fd`` children on a shared file: ``multiprogramming [<children>]``."""
    children = _count_argument(sys, argv, MULTIPROGRAMMING_CHILDREN)
    spawner = AdmissionSpawner(
        sys,
        program="test_fd",
        build_argv=lambda unit, _signature: ["test_fd", str(unit), SHARED_FD_TEST_FILE],
        choose_signature=lambda unit: unit,
        exit_code=BAD_ARGUMENTS_EXIT,
    )
    for handle in spawner.run(children):
        sys.print(f"{handle.spawn_order} {handle.expected_signature}")
    sys.remove_file(SHARED_FD_TEST_FILE)
    sys.print("--- PASS multiprogramming")
    return 0


def lifecycle(sys: SyscallFacade, _argv: list[str]) -> int:
    """Exec and join children one at a time, then probe the failure sentinels."""
    last_pid = sys.pid
    for i in range(1, LIFECYCLE_CHILDREN + 1):
        match sys.spawn("exit_with", ["exit_with", str(i)]):
            case Spawned(pid=pid):
                status = sys.wait(pid)
                sys.print(f"new pid:{status} {pid}")
                assertx(
                    sys,
                    status == i,
                    WRONG_STATUS_EXIT,
                    f"lifecycle: child {pid} exited {status}, expected {i}",
                )
                last_pid = pid
            case AtCapacity():
                fail(sys, WRONG_STATUS_EXIT, f"lifecycle: spawn exit_with {i} refused")

    outcome = sys.spawn(MISSING_PROGRAM, [MISSING_PROGRAM])
    sys.print(f"no process:{outcome}")
    assertx(
        sys,
        isinstance(outcome, AtCapacity),
        WRONG_STATUS_EXIT,
        f"lifecycle: spawning {MISSING_PROGRAM} succeeded",
    )
    rejoined = sys.wait(last_pid)
    sys.print(f"join reaped child:{rejoined}")
    assertx(sys, rejoined is None, WRONG_STATUS_EXIT, f"lifecycle: joined pid {last_pid} twice")
    self_join = sys.wait(sys.pid)
    sys.print(f"join un-child:{self_join}")
    assertx(sys, self_join is None, WRONG_STATUS_EXIT, "lifecycle: joined itself")
    sys.print("--- PASS lifecycle")
    return 0


def exit_with(sys: SyscallFacade, argv: list[str]) -> NoReturn:
    """Exit with ``int(argv[1])``."""
    assertx(sys, len(argv) >= 2, BAD_ARGUMENTS_EXIT, "exit_with: argc < 2")  # noqa: PLR2004
    sys.terminate(_int_argument(sys, argv[1], "exit_with: bad status"))


def default_programs() -> ProgramTable:
    """Return a program table holding every harness program."""
    return ProgramTable(
        {
            "exit_with": exit_with,
            "fibonacci": fibonacci,
            "lifecycle": lifecycle,
            "multiprogramming": multiprogramming,
            "sequential_fibonacci": sequential_fibonacci,
            "test_fd": fd_probe,
        }
    )
