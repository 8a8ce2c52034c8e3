"""Flat in-memory file system with deferred unlink.

The system under test exposes a single global namespace: file names
are plain strings, there are no directories.  Each name maps to a byte
string, and the file system counts how many open descriptions refer to
each name across all processes.

Unlink follows the Unix rule the harness relies on for cleanup:

- Unlinking a file nobody has open removes it immediately.
- Unlinking a file that is still open only **marks** it removed.  The
  name can no longer be opened or created, and the data disappears when
  the last open description is released.
"""

from __future__ import annotations

MAX_NAME_LENGTH = 256


def _check_name(name: str) -> None:
    """Reject names the flat namespace cannot hold."""
    if not name or len(name) > MAX_NAME_LENGTH:
        msg = f"Invalid file name: {name!r}"
        raise FileNotFoundError(msg)


class FlatFileSystem:
    """A single-directory file system keyed by name."""

    def __init__(self) -> None:
        """Create an empty file system."""
        self._files: dict[str, bytes] = {}
        self._open_counts: dict[str, int] = {}
        self._removed: set[str] = set()

    def exists(self, name: str) -> bool:
        """Return True if *name* is present (even if marked removed)."""
        return name in self._files

    def is_removed(self, name: str) -> bool:
        """Return True if *name* is unlinked but still held open."""
        return name in self._removed

    def names(self) -> list[str]:
        """Return every live file name in sorted order."""
        return sorted(n for n in self._files if n not in self._removed)

    def open_count(self, name: str) -> int:
        """Return how many open descriptions refer to *name*."""
        return self._open_counts.get(name, 0)

    def create(self, name: str) -> None:
        """Create *name* empty, truncating it if it already exists.

        Raises:
            FileNotFoundError: If the name is invalid or pending removal.

        """
        _check_name(name)
        if name in self._removed:
            msg = f"File pending removal: {name}"
            raise FileNotFoundError(msg)
        self._files[name] = b""
        self._acquire(name)

    def open(self, name: str) -> None:
        """Register a new open description for an existing file.

        Raises:
            FileNotFoundError: If the file does not exist or is pending removal.

        """
        _check_name(name)
        if name not in self._files or name in self._removed:
            msg = f"File not found: {name}"
            raise FileNotFoundError(msg)
        self._acquire(name)

    def release(self, name: str) -> None:
        """Drop one open description, finishing a deferred unlink if needed."""
        remaining = self._open_counts.get(name, 0) - 1
        if remaining > 0:
            self._open_counts[name] = remaining
            return
        self._open_counts.pop(name, None)
        if name in self._removed:
            self._removed.discard(name)
            self._files.pop(name, None)

    def unlink(self, name: str) -> bool:
        """Remove *name*, or mark it removed while it is still open.

        Returns:
            True if the data was freed now, False if removal is deferred.

        Raises:
            FileNotFoundError: If the file does not exist or is already
                pending removal.

        """
        if name not in self._files or name in self._removed:
            msg = f"File not found: {name}"
            raise FileNotFoundError(msg)
        if self.open_count(name) > 0:
            self._removed.add(name)
            return False
        del self._files[name]
        return True

    def read_at(self, name: str, *, offset: int, count: int) -> bytes:
        """Read *count* bytes from a file starting at *offset*.

        Reading past EOF returns fewer bytes than requested; reading at or
        beyond EOF returns ``b""``.

        Raises:
            FileNotFoundError: If the file does not exist.

        """
        data = self._files.get(name)
        if data is None:
            msg = f"File not found: {name}"
            raise FileNotFoundError(msg)
        return data[offset : offset + count]

    def write_at(self, name: str, *, offset: int, data: bytes) -> None:
        r"""Write *data* into a file at *offset*, splicing into existing content.

        Writing within the file overwrites bytes in place; writing beyond
        EOF pads the gap with ``\x00`` bytes.

        Raises:
            FileNotFoundError: If the file does not exist.

        """
        existing = self._files.get(name)
        if existing is None:
            msg = f"File not found: {name}"
            raise FileNotFoundError(msg)
        # Pad with nulls if offset is past current EOF
        if offset > len(existing):
            existing = existing + b"\x00" * (offset - len(existing))
        self._files[name] = existing[:offset] + data + existing[offset + len(data) :]

    def _acquire(self, name: str) -> None:
        self._open_counts[name] = self._open_counts.get(name, 0) + 1
