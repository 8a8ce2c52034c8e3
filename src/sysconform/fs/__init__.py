"""File system subsystem — the flat namespace and per-process fd tables.

Re-exports public symbols so callers can write::

    from sysconform.fs import FlatFileSystem, FdTable
"""

from sysconform.fs.fd import (
    CONSOLE_FD,
    DEFAULT_FD_TABLE_SIZE,
    FdError,
    FdTable,
    OpenFileDescription,
)
from sysconform.fs.filesystem import MAX_NAME_LENGTH, FlatFileSystem

__all__ = [
    "CONSOLE_FD",
    "DEFAULT_FD_TABLE_SIZE",
    "MAX_NAME_LENGTH",
    "FdError",
    "FdTable",
    "FlatFileSystem",
    "OpenFileDescription",
]
