"""Program table — the kernel's view of which programs can be exec'd.

A real loader maps an executable image into a fresh address space.
Here a program is simply a Python callable registered under a name::

    def main(sys: SyscallFacade, argv: list[str]) -> int | None: ...

The callable runs on the new process's thread.  Returning an int is
the same as calling ``exit`` with it; returning None exits with 0.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from sysconform.facade import SyscallFacade

Program: TypeAlias = "Callable[[SyscallFacade, list[str]], int | None]"


class LoadError(Exception):
    """Raise when exec names a program the table does not know."""


class ProgramTable:
    """A registry mapping program names to entry points."""

    def __init__(self, programs: dict[str, Program] | None = None) -> None:
        """Create a table, optionally pre-populated."""
        self._programs: dict[str, Program] = dict(programs or {})

    def register(self, name: str, program: Program) -> None:
        """Register *program* under *name*, replacing any previous entry."""
        self._programs[name] = program

    def load(self, name: str) -> Program:
        """Return the entry point for *name*.

        Raises:
            LoadError: If no program is registered under *name*.

        """
        program = self._programs.get(name)
        if program is None:
            msg = f"No such program: {name}"
            raise LoadError(msg)
        return program

    def names(self) -> list[str]:
        """Return registered program names in sorted order."""
        return sorted(self._programs)

    def __contains__(self, name: object) -> bool:
        """Return True if *name* is registered."""
        return name in self._programs
