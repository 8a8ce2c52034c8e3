"""Command-line runner — boot a kernel, run one harness, report the result.

The runner is the thin I/O wrapper around the kernel.  ``run_program``
does the work and returns a ``RunResult`` (no printing), so it is fully
testable; ``main`` parses the command line, prints the console
transcript and the log, and exits with the root process's status::

    sysconform list
    sysconform run sequential_fibonacci --max-processes 4 --seed 7
    sysconform run test_fd --trace --log-level debug
"""

import argparse
from collections.abc import Sequence
from dataclasses import dataclass

from sysconform.fs.fd import DEFAULT_FD_TABLE_SIZE
from sysconform.harness.programs import default_programs
from sysconform.kernel import DEFAULT_SEED, Kernel
from sysconform.logging import LogEntry, LogLevel
from sysconform.process.table import DEFAULT_MAX_PROCESSES


@dataclass(frozen=True)
class RunResult:
    """Outcome of one harness run.

    Attributes:
        status: Exit status of the root process.
        abnormal: True if the root process was killed by an exception.
        console: Everything written to the console during the run.
        log: The kernel log, in chronological order.

    """

    status: int
    abnormal: bool
    console: str
    log: list[LogEntry]

    @property
    def passed(self) -> bool:
        """Return True if the root process exited normally with status 0."""
        return self.status == 0 and not self.abnormal


def run_program(
    name: str,
    argv: Sequence[str] = (),
    *,
    max_processes: int = DEFAULT_MAX_PROCESSES,
    fd_table_size: int = DEFAULT_FD_TABLE_SIZE,
    seed: int = DEFAULT_SEED,
    trace: bool = False,
) -> RunResult:
    """Run harness *name* as the root process of a fresh kernel.

    Args:
        name: Registered program to run.
        argv: Extra arguments; ``argv[0]`` is always *name*.
        max_processes: Process-table ceiling.
        fd_table_size: Slots per process fd table.
        seed: Base seed for the per-process random generators.
        trace: Log every syscall at DEBUG level.

    Returns:
        The root process's status together with the console and log.

    Raises:
        LoadError: If *name* is not a registered program.

    """
    kernel = Kernel(
        max_processes=max_processes,
        fd_table_size=fd_table_size,
        seed=seed,
        programs=default_programs(),
        trace_syscalls=trace,
    )
    kernel.boot()
    process = kernel.run(name, [name, *argv])
    kernel.wait_idle()
    assert kernel.console is not None  # noqa: S101
    assert kernel.logger is not None  # noqa: S101
    result = RunResult(
        status=process.exit_status if process.exit_status is not None else 0,
        abnormal=process.abnormal,
        console=kernel.console.output(),
        log=kernel.logger.entries,
    )
    kernel.shutdown()
    return result


def format_log(entries: list[LogEntry], min_level: LogLevel) -> str:
    """Render the entries at or above *min_level*, one per line."""
    return "\n".join(str(e) for e in entries if e.level >= min_level)


def build_parser() -> argparse.ArgumentParser:
    """Build the ``sysconform`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="sysconform",
        description="Run conformance harnesses against the simulated kernel.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List the registered harness programs.")

    run = sub.add_parser("run", help="Run one harness program as the root process.")
    run.add_argument("program", help="Program name (see 'sysconform list').")
    run.add_argument("args", nargs="*", help="Arguments passed to the program.")
    run.add_argument(
        "--max-processes",
        type=int,
        default=DEFAULT_MAX_PROCESSES,
        help="Process-table ceiling (default: %(default)s).",
    )
    run.add_argument(
        "--fd-table-size",
        type=int,
        default=DEFAULT_FD_TABLE_SIZE,
        help="Slots per fd table, console included (default: %(default)s).",
    )
    run.add_argument(
        "--seed",
        type=int,
        default=DEFAULT_SEED,
        help="Base seed for per-process randomness (default: %(default)s).",
    )
    run.add_argument("--trace", action="store_true", help="Log every syscall.")
    run.add_argument(
        "--log-level",
        choices=[level.name.lower() for level in LogLevel],
        default="warning",
        help="Lowest log level to print after the run (default: %(default)s).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Run the ``sysconform`` console entry point.

    Raises:
        SystemExit: Always, carrying the root process's exit status.

    """
    args = build_parser().parse_args(argv)

    if args.command == "list":
        for name in default_programs().names():
            print(name)  # noqa: T201
        raise SystemExit(0)

    if args.program not in default_programs():
        print(f"sysconform: no such program: {args.program}")  # noqa: T201
        raise SystemExit(2)

    result = run_program(
        args.program,
        args.args,
        max_processes=args.max_processes,
        fd_table_size=args.fd_table_size,
        seed=args.seed,
        trace=args.trace,
    )
    print(result.console, end="")  # noqa: T201
    log = format_log(result.log, LogLevel[args.log_level.upper()])
    if log:
        print(log)  # noqa: T201
    raise SystemExit(result.status)
