"""Thin POSIX terminal layer: raw mode, cursor control and key polling.

Everything is plain ANSI escape sequences written to stdout plus
``termios``/``tty``/``select`` on the stdin file descriptor. The cursor
position is obtained with a Device Status Report (``ESC[6n``) round-trip.
"""

from __future__ import annotations

import os
import platform
import re
import select
import shutil
import sys
import time
from contextlib import contextmanager
from typing import IO, Iterator

_IS_WINDOWS = platform.system() == "Windows"

CTRL_C = "\x03"
CTRL_D = "\x04"

_CURSOR_REPORT_RE = re.compile(rb"\x1b\[(\d+);(\d+)R")
_CURSOR_REPORT_TIMEOUT = 1.0  # seconds


class Terminal:
    def __init__(self, stdin: IO[str] | None = None, stdout: IO[str] | None = None) -> None:
        self._in = stdin or sys.stdin
        self._out = stdout or sys.stdout
        # Bytes typed by the user that arrived while we waited for a cursor report
        self._pending = bytearray()

    @property
    def interactive(self) -> bool:
        """True when raw mode and cursor reports are usable."""
        if _IS_WINDOWS:
            return False
        try:
            return self._in.isatty() and self._out.isatty()
        except (AttributeError, ValueError):
            return False

    def columns(self) -> int:
        return shutil.get_terminal_size((80, 24)).columns

    @contextmanager
    def raw_mode(self) -> Iterator[Terminal]:
        """Put stdin in raw mode for the duration of the block; always restore it."""
        import termios
        import tty

        fd = self._in.fileno()
        old_settings = termios.tcgetattr(fd)
        try:
            tty.setraw(fd)
            yield self
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)

    # -- output -----------------------------------------------------------

    def write(self, text: str) -> None:
        self._out.write(text)

    def flush(self) -> None:
        self._out.flush()

    def move_to(self, col: int, row: int) -> None:
        self._out.write(f"\x1b[{row + 1};{col + 1}H")

    def move_to_column(self, col: int) -> None:
        self._out.write(f"\x1b[{col + 1}G")

    def scroll_up(self, n: int) -> None:
        if n > 0:
            self._out.write(f"\x1b[{n}S")

    def clear_below(self) -> None:
        self._out.write("\x1b[J")

    # -- input ------------------------------------------------------------

    def cursor_position(self) -> tuple[int, int]:
        """Return the zero-based ``(col, row)`` of the cursor. Requires raw mode."""
        self._out.write("\x1b[6n")
        self._out.flush()
        fd = self._in.fileno()
        data = bytearray()
        deadline = time.monotonic() + _CURSOR_REPORT_TIMEOUT
        while True:
            match = _CURSOR_REPORT_RE.search(data)
            if match:
                self._pending.extend(data[: match.start()])
                self._pending.extend(data[match.end() :])
                return int(match.group(2)) - 1, int(match.group(1)) - 1
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._pending.extend(data)
                raise OSError("Terminal did not report the cursor position")
            ready, _, _ = select.select([fd], [], [], remaining)
            if ready:
                chunk = os.read(fd, 64)
                if not chunk:
                    raise OSError("stdin closed while reading the cursor position")
                data.extend(chunk)

    def poll_key(self, timeout: float) -> str | None:
        """Wait up to ``timeout`` seconds for one key press and return it."""
        if self._pending:
            byte = self._pending[:1]
            del self._pending[:1]
            return byte.decode("latin-1")
        fd = self._in.fileno()
        ready, _, _ = select.select([fd], [], [], max(0.0, timeout))
        if not ready:
            return None
        chunk = os.read(fd, 1)
        if not chunk:
            return None
        return chunk.decode("latin-1")
