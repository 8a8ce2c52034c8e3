"""Process subsystem — PCB, process table, and program loader.

Re-exports public symbols so callers can write::

    from sysconform.process import Process, ProcessTable, ProgramTable
"""

from sysconform.process.loader import LoadError, Program, ProgramTable
from sysconform.process.pcb import Process, ProcessState
from sysconform.process.table import (
    DEFAULT_MAX_PROCESSES,
    CapacityError,
    JoinError,
    ProcessTable,
)

__all__ = [
    "DEFAULT_MAX_PROCESSES",
    "CapacityError",
    "JoinError",
    "LoadError",
    "Process",
    "ProcessState",
    "ProcessTable",
    "Program",
    "ProgramTable",
]
