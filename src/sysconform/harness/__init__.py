"""Conformance harness — the programs that probe the kernel from user space.

Re-exports public symbols so callers can write::

    from sysconform.harness import AdmissionSpawner, default_programs
"""

from sysconform.harness.assertion import Diagnostics, assertx, fail
from sysconform.harness.fibonacci import (
    EXPECTED_AFTER_100_ROUNDS,
    RECORD_WIDTH,
    FibonacciValidator,
    expected_term,
)
from sysconform.harness.programs import default_programs
from sysconform.harness.prober import FdProber, permutation
from sysconform.harness.spawner import AdmissionSpawner, ChildHandle

__all__ = [
    "EXPECTED_AFTER_100_ROUNDS",
    "RECORD_WIDTH",
    "AdmissionSpawner",
    "ChildHandle",
    "Diagnostics",
    "FdProber",
    "FibonacciValidator",
    "assertx",
    "default_programs",
    "expected_term",
    "fail",
    "permutation",
]
