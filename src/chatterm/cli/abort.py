"""Cancellation token shared by the calling thread and the renderer thread."""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from types import FrameType
from typing import Iterator


class AbortSignal:
    """Two independent, set-once cancel reasons: Ctrl-C and Ctrl-D.

    Both flags are backed by ``threading.Event`` so any thread (or a signal
    handler) can set them and any other thread can read them without blocking.
    Nothing ever clears a flag; a new request gets a new signal.
    """

    def __init__(self) -> None:
        self._ctrlc = threading.Event()
        self._ctrld = threading.Event()

    def set_ctrlc(self) -> None:
        self._ctrlc.set()

    def set_ctrld(self) -> None:
        self._ctrld.set()

    @property
    def ctrlc(self) -> bool:
        return self._ctrlc.is_set()

    @property
    def ctrld(self) -> bool:
        return self._ctrld.is_set()

    def aborted(self) -> bool:
        return self._ctrlc.is_set() or self._ctrld.is_set()

    def __repr__(self) -> str:
        return f"AbortSignal(ctrlc={self.ctrlc}, ctrld={self.ctrld})"


@contextmanager
def sigint_sets_ctrlc(abort: AbortSignal) -> Iterator[None]:
    """Route SIGINT to ``abort.set_ctrlc()`` for the duration of the block.

    Only installs the handler on the main thread; elsewhere the block runs unchanged.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: FrameType | None) -> None:
        abort.set_ctrlc()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
