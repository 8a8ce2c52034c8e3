"""I/O subsystem — the console device.

Re-exports public symbols so callers can write::

    from sysconform.io import ConsoleDevice
"""

from sysconform.io.devices import ConsoleDevice

__all__ = [
    "ConsoleDevice",
]
