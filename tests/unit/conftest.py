"""Shared fakes for the CLI rendering tests."""

from __future__ import annotations

import re
import time
from contextlib import contextmanager
from typing import Iterator

import pytest

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


class FakeTerminal:
    """Records every terminal operation; reports a fixed cursor position."""

    def __init__(
        self,
        keys: list[str] | None = None,
        columns: int = 80,
        cursor: tuple[int, int] = (0, 5),
        interactive: bool = True,
    ) -> None:
        self.ops: list[tuple] = []
        self.keys = list(keys or [])
        self.cursor = cursor
        self.interactive = interactive
        self._columns = columns
        self.raw_entered = False
        self.raw_exited = False

    def columns(self) -> int:
        return self._columns

    @contextmanager
    def raw_mode(self) -> Iterator[FakeTerminal]:
        self.raw_entered = True
        try:
            yield self
        finally:
            self.raw_exited = True

    def write(self, text: str) -> None:
        self.ops.append(("write", strip_ansi(text)))

    def flush(self) -> None:
        self.ops.append(("flush",))

    def move_to(self, col: int, row: int) -> None:
        self.ops.append(("move_to", col, row))

    def move_to_column(self, col: int) -> None:
        self.ops.append(("move_to_column", col))

    def scroll_up(self, n: int) -> None:
        self.ops.append(("scroll_up", n))

    def clear_below(self) -> None:
        self.ops.append(("clear_below",))

    def cursor_position(self) -> tuple[int, int]:
        self.ops.append(("cursor_position",))
        return self.cursor

    def poll_key(self, timeout: float) -> str | None:
        if self.keys:
            return self.keys.pop(0)
        time.sleep(min(timeout, 0.005))
        return None

    def writes(self) -> list[str]:
        return [op[1] for op in self.ops if op[0] == "write"]


@pytest.fixture
def fake_terminal() -> FakeTerminal:
    return FakeTerminal()
