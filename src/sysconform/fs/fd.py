"""File descriptors — fixed-size per-process tables tracking open files.

Programs interact with files through **file descriptors** (small
integers).  The workflow is:

1. ``creat(name)`` / ``open(name)`` → the kernel allocates the lowest
   free slot in the calling process's table and returns its number.
2. ``read(fd, count)`` / ``write(fd, data)`` → operates at the fd's
   current offset, then advances the offset.
3. ``close(fd)`` → releases the slot for reuse.

Unlike a Unix table, this one has a hard capacity.  When every slot is
taken the next open fails, and that failure is exactly what the
descriptor-exhaustion harness probes for.

Descriptor 0 is bound to the console when a process is created and is
never handed out by ``allocate()`` while it stays bound.
"""

from __future__ import annotations

from dataclasses import dataclass

CONSOLE_FD = 0
DEFAULT_FD_TABLE_SIZE = 16


class FdError(Exception):
    """Raise when a file descriptor operation fails."""


@dataclass
class OpenFileDescription:
    """Track an open file's name and current offset.

    Not frozen — ``offset`` must be mutable so reads and writes can
    advance the position.  ``console`` marks the description bound to
    the console device rather than a file.
    """

    name: str
    offset: int = 0
    console: bool = False


class FdTable:
    """Per-process table mapping fd numbers to open file descriptions.

    Allocation always picks the lowest free slot, so a released
    descriptor is the first to be handed out again.
    """

    def __init__(self, size: int = DEFAULT_FD_TABLE_SIZE) -> None:
        """Create a table of *size* slots with the console bound to fd 0.

        Args:
            size: Number of slots, including the console slot.

        Raises:
            ValueError: If *size* leaves no room for the console.

        """
        if size < 1:
            msg = f"Fd table needs at least one slot, got {size}"
            raise ValueError(msg)
        self._slots: list[OpenFileDescription | None] = [None] * size
        self._slots[CONSOLE_FD] = OpenFileDescription(name="console", console=True)

    @property
    def size(self) -> int:
        """Return the total number of slots."""
        return len(self._slots)

    @property
    def free_count(self) -> int:
        """Return how many slots are currently free."""
        return sum(1 for ofd in self._slots if ofd is None)

    def allocate(self, ofd: OpenFileDescription) -> int:
        """Assign the lowest free slot to an open file description.

        Args:
            ofd: The open file description to register.

        Returns:
            The newly assigned fd number.

        Raises:
            FdError: If every slot is in use.

        """
        for fd, slot in enumerate(self._slots):
            if slot is None:
                self._slots[fd] = ofd
                return fd
        msg = f"Too many open files ({self.size} slots in use)"
        raise FdError(msg)

    def lookup(self, fd: int) -> OpenFileDescription:
        """Return the open file description for a given fd.

        Args:
            fd: The file descriptor number.

        Raises:
            FdError: If the fd is out of range or not open.

        """
        ofd = self._slots[fd] if 0 <= fd < self.size else None
        if ofd is None:
            msg = f"Bad file descriptor: {fd}"
            raise FdError(msg)
        return ofd

    def close(self, fd: int) -> OpenFileDescription:
        """Close an fd, releasing it for reuse.

        Args:
            fd: The file descriptor number.

        Returns:
            The description that was bound to *fd*.

        Raises:
            FdError: If the fd is out of range or not open, or is the console.

        """
        ofd = self.lookup(fd)
        if ofd.console:
            msg = f"Cannot close the console descriptor: {fd}"
            raise FdError(msg)
        self._slots[fd] = None
        return ofd

    def close_all(self) -> list[OpenFileDescription]:
        """Close every open fd, returning the released descriptions."""
        released = [ofd for ofd in self._slots if ofd is not None]
        self._slots = [None] * self.size
        return released

    def list_fds(self) -> dict[int, OpenFileDescription]:
        """Return a snapshot of all open fds.

        Returns:
            A dict mapping fd numbers to open file descriptions.

        """
        return {fd: ofd for fd, ofd in enumerate(self._slots) if ofd is not None}
