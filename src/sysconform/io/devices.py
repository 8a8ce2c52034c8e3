"""Console device — the diagnostic channel every harness prints to.

Descriptor 0 of every process is bound to the console.  Writes append
to a shared transcript (the equivalent of the machine's serial
console), reads consume queued input.  The transcript is what the
runner shows after a conformance run and what tests inspect for the
``--- PASS`` lines.
"""

from collections import deque
from threading import Lock


class ConsoleDevice:
    """Buffered terminal I/O shared by every process.

    Models ``/dev/console``: output is appended to a transcript, input
    is a FIFO of pending chunks.  Processes write concurrently, so both
    sides are guarded by a lock.
    """

    def __init__(self) -> None:
        """Create a console with an empty transcript and no pending input."""
        self._input: deque[bytes] = deque()
        self._transcript: list[bytes] = []
        self._lock = Lock()

    def feed(self, data: bytes) -> None:
        """Queue *data* as console input."""
        with self._lock:
            self._input.append(data)

    def read(self, count: int) -> bytes:
        """Read up to *count* bytes of pending input, or empty if none."""
        with self._lock:
            if not self._input:
                return b""
            chunk = self._input.popleft()
            if len(chunk) > count:
                self._input.appendleft(chunk[count:])
                chunk = chunk[:count]
            return chunk

    def write(self, data: bytes) -> None:
        """Append data to the transcript."""
        with self._lock:
            self._transcript.append(data)

    def output(self) -> str:
        """Return everything written so far as text."""
        with self._lock:
            return b"".join(self._transcript).decode("ascii", errors="replace")

    def lines(self) -> list[str]:
        """Return the transcript split into lines."""
        return self.output().splitlines()
