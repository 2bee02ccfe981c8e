"""Non-interactive directive mode: one prompt in, one reply out."""

from __future__ import annotations

import logging
import sys

from ..config import AppConfig
from ..services.ai_client import AIClient
from ..services.errors import ChatError
from ..services.transcript import save_message
from . import renderer
from .abort import AbortSignal, sigint_sets_ctrlc
from .stream import render_stream

logger = logging.getLogger(__name__)

_MAX_STDIN_CHARS = 10_000_000  # 10 MB cap on piped stdin


def _read_stdin() -> str | None:
    if sys.stdin is None or sys.stdin.isatty():
        return None
    try:
        content = sys.stdin.read(_MAX_STDIN_CHARS + 1)
    except UnicodeDecodeError:
        logger.warning("Stdin contains binary data, skipping")
        return None
    if not content.strip():
        return None
    if len(content) > _MAX_STDIN_CHARS:
        content = content[:_MAX_STDIN_CHARS]
        logger.warning("Stdin truncated to %d characters", _MAX_STDIN_CHARS)
    return content


def build_prompt(text: str | None, stdin_content: str | None) -> str | None:
    """Combine command-line text and piped input; None when there is neither."""
    if text and stdin_content:
        return f"{text}\n{stdin_content}"
    return text or stdin_content or None


def _stdout_is_tty() -> bool:
    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def run_directive(
    config: AppConfig,
    client: AIClient,
    prompt: str,
    *,
    no_stream: bool = False,
) -> int:
    """Send ``prompt`` once and print the reply. Returns the process exit code."""
    highlight = config.app.highlight and _stdout_is_tty()
    abort = AbortSignal()
    try:
        if no_stream:
            reply = client.send_message(prompt)
            if highlight:
                renderer.render_markdown(reply, config.app.light_theme)
            else:
                sys.stdout.write(reply if reply.endswith("\n") else reply + "\n")
                sys.stdout.flush()
        else:
            with sigint_sets_ctrlc(abort):
                reply = render_stream(
                    prompt,
                    client,
                    highlight,
                    False,
                    abort,
                    light_theme=config.app.light_theme,
                )
    except ChatError as e:
        logger.debug("Directive failed", exc_info=True)
        renderer.render_error(str(e))
        return 1

    if abort.aborted():
        logger.debug("Directive aborted by user (%s)", abort)
    if config.app.save:
        try:
            save_message(config.app.messages_path, prompt, reply)
        except OSError as e:
            renderer.render_error(f"Failed to save message: {e}")
            return 1
    return 0
