"""Reply stream plumbing: events, channel, handler, and the render orchestrator.

The calling thread runs the (blocking) network call and feeds a
``ReplyStreamHandler``. When highlighting is on, the handler forwards every
fragment over an in-process channel to a renderer thread that owns the
terminal; otherwise it writes fragments straight to stdout.
"""

from __future__ import annotations

import logging
import queue
import sys
import threading
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Protocol, Union

from ..services.errors import ChatError
from .abort import AbortSignal

if TYPE_CHECKING:
    from .terminal import Terminal

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Events and channel
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Text:
    fragment: str


@dataclass(frozen=True)
class Done:
    pass


ReplyStreamEvent = Union[Text, Done]


class ChannelSendError(ChatError):
    """The renderer thread has already exited; nobody is left to receive."""


class ChannelClosed(Exception):
    """Raised on the receiving side once the sender closed and the queue is drained."""


_CLOSED = object()


class ReplySender:
    def __init__(self, q: queue.Queue[object], receiver_gone: threading.Event) -> None:
        self._queue = q
        self._receiver_gone = receiver_gone
        self._closed = False

    def send(self, event: ReplyStreamEvent) -> None:
        if self._receiver_gone.is_set():
            raise ChannelSendError(f"Failed to send {type(event).__name__} event: renderer has exited")
        if self._closed:
            raise ChannelSendError(f"Failed to send {type(event).__name__} event: channel is closed")
        self._queue.put(event)
        if isinstance(event, Done):
            self._closed = True

    def close(self) -> None:
        """Signal end of stream without a ``Done``. No-op after ``Done`` or a prior close."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_CLOSED)


class ReplyReceiver:
    def __init__(self, q: queue.Queue[object], receiver_gone: threading.Event) -> None:
        self._queue = q
        self._receiver_gone = receiver_gone

    def try_recv(self) -> ReplyStreamEvent | None:
        """Return the next event, or None when nothing is queued right now."""
        try:
            item = self._queue.get_nowait()
        except queue.Empty:
            return None
        return self._unwrap(item)

    def recv(self, timeout: float) -> ReplyStreamEvent | None:
        """Wait up to ``timeout`` seconds for the next event."""
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        return self._unwrap(item)

    def close(self) -> None:
        self._receiver_gone.set()

    @staticmethod
    def _unwrap(item: object) -> ReplyStreamEvent:
        if item is _CLOSED:
            raise ChannelClosed()
        return item  # type: ignore[return-value]


def open_channel() -> tuple[ReplySender, ReplyReceiver]:
    """Create an unbounded FIFO channel for one request."""
    q: queue.Queue[object] = queue.Queue()
    receiver_gone = threading.Event()
    return ReplySender(q, receiver_gone), ReplyReceiver(q, receiver_gone)


# ---------------------------------------------------------------------------
# Completion rendezvous
# ---------------------------------------------------------------------------


class WaitGroup:
    """Counting rendezvous: ``wait()`` blocks until every ``add()`` has a matching ``done()``."""

    def __init__(self) -> None:
        self._count = 0
        self._cond = threading.Condition()

    def add(self, n: int = 1) -> None:
        with self._cond:
            self._count += n

    def done(self) -> None:
        with self._cond:
            if self._count <= 0:
                raise ValueError("WaitGroup.done() called more times than add()")
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def wait(self, timeout: float | None = None) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout=timeout)

    @property
    def outstanding(self) -> int:
        with self._cond:
            return self._count


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


class ReplyStreamHandler:
    """Receives fragments from the ingestion layer and keeps the full reply.

    ``sender`` present means formatted mode (fragments go to a renderer
    thread); absent means direct mode (fragments are written to ``out``).
    """

    def __init__(
        self,
        sender: ReplySender | None,
        repl: bool,
        abort: AbortSignal,
        out: IO[str] | None = None,
    ) -> None:
        self._sender = sender
        self._buffer: list[str] = []
        self._ends_with_newline = False
        self.repl = repl
        self.abort = abort
        self._out = out

    @property
    def formatted(self) -> bool:
        return self._sender is not None

    def _write(self, text: str) -> None:
        out = self._out or sys.stdout
        out.write(text)
        out.flush()

    def text(self, fragment: str) -> None:
        self._buffer.append(fragment)
        if fragment:
            self._ends_with_newline = fragment.endswith("\n")
        if self._sender is not None:
            self._sender.send(Text(fragment))
        else:
            self._write(fragment)

    def done(self) -> None:
        if self._sender is not None:
            self._sender.send(Done())
            return
        if not self._ends_with_newline:
            self._write("\n")
        if self.repl:
            self._write("\n")

    def close(self) -> None:
        if self._sender is not None:
            self._sender.close()

    def get_buffer(self) -> str:
        return "".join(self._buffer)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class StreamingClient(Protocol):
    def send_message_streaming(self, prompt: str, handler: ReplyStreamHandler) -> None: ...


def _run_renderer(
    receiver: ReplyReceiver,
    abort: AbortSignal,
    repl: bool,
    light_theme: bool,
    wait_group: WaitGroup,
    terminal: Terminal | None,
) -> None:
    from . import renderer
    from .terminal import Terminal as _Terminal

    try:
        term = terminal or _Terminal()
        if repl and term.interactive:
            renderer.repl_render_stream(receiver, light_theme, abort, terminal=term)
        else:
            if repl:
                logger.debug("Terminal is not interactive, using the plain renderer")
            renderer.cmd_render_stream(receiver, light_theme, abort)
    except Exception as e:
        logger.exception("Render stream failed")
        renderer.render_error(str(e) or type(e).__name__)
    finally:
        receiver.close()
        wait_group.done()


def render_stream(
    prompt: str,
    client: StreamingClient,
    highlight: bool,
    repl: bool,
    abort: AbortSignal,
    wait_group: WaitGroup | None = None,
    *,
    light_theme: bool = False,
    terminal: Terminal | None = None,
) -> str:
    """Send ``prompt`` and render the streamed reply; return the full reply text.

    Never returns while a renderer thread may still write to the terminal,
    including when the network call raises.
    """
    wg = wait_group or WaitGroup()
    if highlight:
        sender, receiver = open_channel()
        wg.add()
        thread = threading.Thread(
            target=_run_renderer,
            args=(receiver, abort, repl, light_theme, wg, terminal),
            name="chatterm-render",
            daemon=True,
        )
        thread.start()
        handler = ReplyStreamHandler(sender, repl, abort)
    else:
        handler = ReplyStreamHandler(None, repl, abort)

    try:
        client.send_message_streaming(prompt, handler)
    finally:
        handler.close()
        wg.wait()
    return handler.get_buffer()
