"""Terminal output for the CLI: streamed reply rendering plus Rich-based messages."""

from __future__ import annotations

import sys
import time
from typing import IO

from rich.console import Console
from rich.markup import escape

from .abort import AbortSignal
from .markdown import MarkdownRender, expanded_width
from .stream import ChannelClosed, Done, ReplyReceiver, ReplyStreamEvent, Text
from .terminal import CTRL_C, CTRL_D, Terminal

console = Console(stderr=True)

# ---------------------------------------------------------------------------
# Color palette (explicit values, readable on dark terminals)
# ---------------------------------------------------------------------------

GOLD = "#C5A059"  # accents, prompt marker
SLATE = "#94A3B8"  # labels
MUTED = "#8b8b8b"  # secondary text
CHROME = "#6b7280"  # UI chrome (hints)
ERROR_RED = "#CD6B6B"  # pale red for inline errors

_TICK_RATE = 0.1  # seconds between keyboard polls while no event is queued


# ---------------------------------------------------------------------------
# Streamed reply rendering
# ---------------------------------------------------------------------------


def wrapped_rows(width: int, columns: int) -> int:
    """Number of terminal rows a line of ``width`` cells occupies."""
    columns = max(columns, 1)
    return (width + columns - 1) // columns


def recover_cursor(term: Terminal, columns: int, buffer: str) -> None:
    """Move the cursor back to the first row of the trailing (uncommitted) line."""
    rows = wrapped_rows(expanded_width(buffer), columns)
    _, row = term.cursor_position()
    if rows == 0:
        term.move_to(0, row)
    elif row + 1 >= rows:
        term.move_to(0, row + 1 - rows)
    else:
        term.scroll_up(rows - 1 - row)
        term.move_to(0, 0)


def _next_event(receiver: ReplyReceiver, timeout: float | None = None) -> ReplyStreamEvent | None:
    try:
        if timeout is None:
            return receiver.try_recv()
        return receiver.recv(timeout)
    except ChannelClosed:
        # Producer finished without Done (request failed); finish the output cleanly
        return Done()


def repl_render_stream(
    receiver: ReplyReceiver,
    light_theme: bool,
    abort: AbortSignal,
    terminal: Terminal | None = None,
) -> None:
    """Interactive renderer: raw mode, in-place redraw of the trailing line, Ctrl-C/Ctrl-D."""
    term = terminal or Terminal()
    with term.raw_mode():
        _repl_render_stream_inner(receiver, light_theme, abort, term)


def _repl_render_stream_inner(
    receiver: ReplyReceiver,
    light_theme: bool,
    abort: AbortSignal,
    term: Terminal,
) -> None:
    last_tick = time.monotonic()
    buffer = ""
    markdown = MarkdownRender(light_theme)
    columns = term.columns()

    while True:
        if abort.aborted():
            return

        event = _next_event(receiver)
        if event is not None:
            recover_cursor(term, columns, buffer)
            term.clear_below()

            if isinstance(event, Text):
                if "\n" in event.fragment:
                    lines = (buffer + event.fragment).split("\n")
                    buffer = lines.pop()
                    output = markdown.render("\n".join(lines))
                    for line in output.split("\n"):
                        term.write(line)
                        term.write("\n")
                        term.move_to_column(0)
                else:
                    buffer += event.fragment
                term.write(markdown.render_line_stateless(buffer))
                term.flush()
            else:
                tail = buffer.rstrip()
                if tail:
                    term.write(markdown.render_line_stateless(tail))
                    term.flush()
                _, row = term.cursor_position()
                term.move_to(0, row)
                term.write("\n\n")
                term.flush()
                return
            continue

        key = term.poll_key(max(0.0, _TICK_RATE - (time.monotonic() - last_tick)))
        if key == CTRL_C:
            abort.set_ctrlc()
            return
        if key == CTRL_D:
            abort.set_ctrld()
            return

        if time.monotonic() - last_tick >= _TICK_RATE:
            last_tick = time.monotonic()


def cmd_render_stream(
    receiver: ReplyReceiver,
    light_theme: bool,
    abort: AbortSignal,
    out: IO[str] | None = None,
) -> None:
    """Plain renderer: print each line once it is complete; no raw mode, no redraws."""
    out = out or sys.stdout
    buffer = ""
    markdown = MarkdownRender(light_theme)

    while not abort.aborted():
        event = _next_event(receiver, _TICK_RATE)
        if event is None:
            continue
        if isinstance(event, Text):
            buffer += event.fragment
            if "\n" in buffer:
                lines = buffer.split("\n")
                buffer = lines.pop()
                out.write(markdown.render("\n".join(lines)) + "\n")
                out.flush()
        else:
            tail = buffer.rstrip()
            if tail:
                out.write(markdown.render_line_stateless(tail))
            out.write("\n")
            out.flush()
            return


def render_markdown(text: str, light_theme: bool = False, out: IO[str] | None = None) -> None:
    """Render a complete reply at once (non-streaming replies, ``.last``)."""
    out = out or sys.stdout
    out.write(MarkdownRender(light_theme).render(text.strip()) + "\n")
    out.flush()


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def render_error(message: str) -> None:
    console.print(f"[{ERROR_RED} bold]Error:[/] {escape(message)}\n")


def render_info(text: str) -> None:
    console.print(f"[{MUTED}]{escape(text.rstrip())}[/{MUTED}]\n")


def render_hint(text: str) -> None:
    console.print(f"[{CHROME}]{escape(text)}[/{CHROME}]")


def render_welcome(model: str, version: str = "") -> None:
    parts = [f"chatterm v{version}" if version else "chatterm", escape(model)]
    console.print(f"[{GOLD}]{parts[0]}[/] [{SLATE}]· {parts[1]}[/{SLATE}]")
    console.print(f"[{CHROME}]Type .help for commands, Ctrl+D to exit[/{CHROME}]\n")


def render_help() -> None:
    m = MUTED
    console.print()
    console.print(f"  .info                 [{m}]show configuration[/]")
    console.print(f"  .set <key> <value>    [{m}]change a setting (model, temperature, highlight, light_theme, save)[/]")
    console.print(f"  .prompt <text>        [{m}]use a temporary system prompt[/]")
    console.print(f"  .clear prompt         [{m}]drop the temporary system prompt[/]")
    console.print(f"  .last                 [{m}]show the last reply again[/]")
    console.print(f"  .exit                 [{m}]quit[/]")
    console.print(f"  Ctrl+C [{m}]abort reply[/]  Ctrl+D [{m}]abort and quit[/]")
    console.print()
