"""Tests for assertx and fail — the harness's only failure path."""

from typing import NoReturn

import pytest

from sysconform.harness.assertion import assertx, fail
from sysconform.syscalls import ProcessExit

EXIT_CODE = 3


class FakeSys:
    """Record console lines; terminate by raising ProcessExit."""

    def __init__(self) -> None:
        """Start with an empty console."""
        self.lines: list[str] = []

    def print(self, text: str) -> None:
        """Record a console line."""
        self.lines.append(text)

    def terminate(self, status: int) -> NoReturn:
        """Unwind like the real facade."""
        raise ProcessExit(status)


class TestAssertx:
    """Verify assertx."""

    def test_true_condition_is_silent(self) -> None:
        """A holding condition prints nothing and returns."""
        sys = FakeSys()
        assertx(sys, True, EXIT_CODE, "never shown")  # noqa: FBT003
        assert sys.lines == []

    def test_false_condition_terminates(self) -> None:
        """A failed condition prints the message and exits with the code."""
        sys = FakeSys()
        with pytest.raises(ProcessExit) as info:
            assertx(sys, False, EXIT_CODE, "broken invariant")  # noqa: FBT003
        assert info.value.status == EXIT_CODE
        assert sys.lines == ["broken invariant"]


class TestFail:
    """Verify fail."""

    def test_fail_always_terminates(self) -> None:
        """fail prints and exits unconditionally."""
        sys = FakeSys()
        with pytest.raises(ProcessExit) as info:
            fail(sys, EXIT_CODE, "gave up")
        assert info.value.status == EXIT_CODE
        assert sys.lines == ["gave up"]
