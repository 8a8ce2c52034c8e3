"""Assertion and diagnostics — the harness's only failure path.

A failed invariant means the system under test is already in an
unspecified state, so there is nothing to recover: the message goes to
the console and the process terminates with a code the parent (or the
runner) can tell apart from success.
"""

from __future__ import annotations

from typing import NoReturn, Protocol


class Diagnostics(Protocol):
    """What ``assertx`` needs from the calling process."""

    def print(self, text: str) -> None:
        """Write a line to the console."""
        ...  # pragma: no cover

    def terminate(self, status: int) -> NoReturn:
        """End the calling process."""
        ...  # pragma: no cover


def assertx(
    sys: Diagnostics,
    condition: bool,  # noqa: FBT001
    exit_code: int,
    message: str,
) -> None:
    """Terminate with *exit_code* after printing *message* unless *condition* holds."""
    if condition:
        return
    fail(sys, exit_code, message)


def fail(sys: Diagnostics, exit_code: int, message: str) -> NoReturn:
    """Print *message* and terminate with *exit_code* unconditionally."""
    sys.print(message)
    sys.terminate(exit_code)
