"""Interactive REPL: prompt_toolkit input, dot commands, streamed replies."""

from __future__ import annotations

import logging
from typing import Any

from ..config import AppConfig
from ..services.ai_client import AIClient
from ..services.errors import ChatError
from ..services.transcript import save_message
from . import renderer
from .abort import AbortSignal, sigint_sets_ctrlc
from .renderer import CHROME, GOLD
from .stream import WaitGroup, render_stream

logger = logging.getLogger(__name__)

COMMANDS = [".help", ".info", ".set", ".prompt", ".clear", ".last", ".exit", ".quit"]


class ReplSession:
    """Per-REPL state and command dispatch, independent of the input widget."""

    def __init__(self, config: AppConfig, client: AIClient) -> None:
        self.config = config
        self.client = client
        self.last_reply = ""
        self.wait_group = WaitGroup()

    def handle(self, line: str) -> bool:
        """Process one line of input. Returns False when the REPL should exit."""
        text = line.strip()
        if text.startswith("."):
            return self._handle_command(text)
        if not text:
            self.last_reply = ""
            return True
        return self._submit(text)

    def _handle_command(self, text: str) -> bool:
        parts = text.split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd in (".exit", ".quit"):
            return False
        elif cmd == ".help":
            renderer.render_help()
        elif cmd == ".info":
            renderer.render_info(self.config.info())
        elif cmd == ".set":
            key, _, value = arg.partition(" ")
            if not key or not value.strip():
                renderer.render_hint("Usage: .set <key> <value>\n")
                return True
            try:
                renderer.render_info(self.config.update(key, value))
            except ValueError as e:
                renderer.render_error(str(e))
        elif cmd == ".prompt":
            if not arg:
                renderer.render_hint("Usage: .prompt <text>\n")
                return True
            self.client.prompt_override = arg
            renderer.render_info("Temporary prompt set")
        elif cmd == ".clear":
            if arg != "prompt":
                renderer.render_hint("Usage: .clear prompt\n")
                return True
            self.client.prompt_override = None
            renderer.render_info("Temporary prompt cleared")
        elif cmd == ".last":
            if self.last_reply:
                renderer.render_markdown(self.last_reply, self.config.app.light_theme)
            else:
                renderer.render_hint("No reply yet\n")
        else:
            renderer.render_error(f"Unknown command: {cmd} (try .help)")
        return True

    def _submit(self, prompt: str) -> bool:
        abort = AbortSignal()
        try:
            with sigint_sets_ctrlc(abort):
                reply = render_stream(
                    prompt,
                    self.client,
                    self.config.app.highlight,
                    True,
                    abort,
                    self.wait_group,
                    light_theme=self.config.app.light_theme,
                )
        except ChatError as e:
            logger.debug("Request failed", exc_info=True)
            renderer.render_error(str(e))
            return True

        self.last_reply = reply
        if self.config.app.save:
            try:
                save_message(self.config.app.messages_path, prompt, reply)
            except OSError as e:
                renderer.render_error(f"Failed to save message: {e}")
        if abort.ctrld:
            return False
        return True


def run_repl(config: AppConfig, client: AIClient, version: str = "") -> None:
    from prompt_toolkit import PromptSession
    from prompt_toolkit.completion import WordCompleter
    from prompt_toolkit.formatted_text import HTML
    from prompt_toolkit.history import FileHistory
    from prompt_toolkit.key_binding import KeyBindings

    config.app.data_dir.mkdir(parents=True, exist_ok=True)

    kb = KeyBindings()

    @kb.add("escape", "enter")
    @kb.add("c-j")
    def _newline(event: Any) -> None:
        event.current_buffer.insert_text("\n")

    session: PromptSession[str] = PromptSession(
        history=FileHistory(str(config.app.history_path)),
        key_bindings=kb,
        completer=WordCompleter(COMMANDS, sentence=True),
    )
    prompt_text = HTML(f"<style fg='{GOLD}'>〉</style>")

    repl = ReplSession(config, client)
    renderer.render_welcome(config.ai.model, version)

    while True:
        try:
            line = session.prompt(prompt_text)
        except EOFError:
            break
        except KeyboardInterrupt:
            renderer.console.print(f"[{CHROME}](To exit, press Ctrl+D or type .exit)[/{CHROME}]\n")
            continue
        if not repl.handle(line):
            break
