"""Line-oriented Markdown highlighting for streamed replies.

Replies arrive one fragment at a time, so rendering works a line at a time
and never changes the characters of a line (only styles them, after tabs
are expanded). That keeps the on-screen width of a line equal to
``expanded_width`` of its source, which the cursor recovery in the renderer
relies on.

``render`` is stateful: it tracks fenced code blocks across calls so lines
inside a fence are syntax-highlighted with the fence's language.
``render_line_stateless`` renders a not-yet-finished line without touching
that state.
"""

from __future__ import annotations

import io
import os
import re

from rich.cells import cell_len
from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.syntax import Syntax
from rich.text import Text
from rich.theme import Theme

TAB_SIZE = 8  # tabs are expanded before rendering so on-screen width matches expanded_width()

_FENCE_RE = re.compile(r"^\s*(```|~~~)\s*([\w+#.-]*)")

DARK_STYLES = {
    "md.heading": "bold #C5A059",
    "md.quote": "italic #94A3B8",
    "md.bullet": "bold #C5A059",
    "md.code": "#E5C07B",
    "md.bold": "bold",
    "md.italic": "italic",
    "md.link": "underline #61AFEF",
    "md.rule": "#6b7280",
    "md.fence": "#6b7280",
}

LIGHT_STYLES = {
    "md.heading": "bold #8A6A1F",
    "md.quote": "italic #475569",
    "md.bullet": "bold #8A6A1F",
    "md.code": "#A626A4",
    "md.bold": "bold",
    "md.italic": "italic",
    "md.link": "underline #4078F2",
    "md.rule": "#8b8b8b",
    "md.fence": "#8b8b8b",
}

_DARK_SYNTAX_THEME = "monokai"
_LIGHT_SYNTAX_THEME = "friendly"


class MarkdownLineHighlighter(RegexHighlighter):
    """Styles inline Markdown constructs of a single line."""

    base_style = "md."
    highlights = [
        r"^(?P<heading>#{1,6}\s.*)$",
        r"^(?P<quote>>.*)$",
        r"^(?P<rule>(?:-{3,}|\*{3,}|_{3,})\s*)$",
        r"^\s*(?P<bullet>[-*+]|\d+[.)])\s",
        r"(?P<bold>\*\*[^*\s](?:[^*]*[^*\s])?\*\*|__[^_\s](?:[^_]*[^_\s])?__)",
        r"(?<![*\w])(?P<italic>\*[^*\s](?:[^*]*[^*\s])?\*)(?![*\w])",
        r"(?P<link>\[[^\]]+\]\([^)\s]+\))",
        r"(?P<code>`[^`]+`)",
    ]


def _color_system() -> str:
    if os.environ.get("COLORTERM", "").lower() in ("truecolor", "24bit"):
        return "truecolor"
    return "256"


def expanded_width(line: str) -> int:
    """Terminal cells ``line`` occupies once rendered (tabs expanded, wide characters as 2)."""
    return cell_len(line.expandtabs(TAB_SIZE))


class MarkdownRender:
    def __init__(self, light_theme: bool = False) -> None:
        self.light_theme = light_theme
        styles = LIGHT_STYLES if light_theme else DARK_STYLES
        self._console = Console(
            file=io.StringIO(),
            force_terminal=True,
            color_system=_color_system(),  # type: ignore[arg-type]
            theme=Theme(styles),
            highlight=False,
        )
        self._highlighter = MarkdownLineHighlighter()
        self._syntax_theme = _LIGHT_SYNTAX_THEME if light_theme else _DARK_SYNTAX_THEME
        self._syntax_cache: dict[str, Syntax] = {}
        self.in_code_block = False
        self.code_lang = ""

    def render(self, text: str) -> str:
        """Render committed lines, updating fenced-code state as fences pass by."""
        return "\n".join(self._render_line(line, commit=True) for line in text.split("\n"))

    def render_line_stateless(self, line: str) -> str:
        """Render a single (possibly partial) line without changing any state."""
        return self._render_line(line, commit=False)

    def _render_line(self, line: str, commit: bool) -> str:
        if not line:
            return ""
        line = line.expandtabs(TAB_SIZE)
        fence = _FENCE_RE.match(line)
        if fence:
            if commit:
                if self.in_code_block:
                    self.in_code_block = False
                    self.code_lang = ""
                else:
                    self.in_code_block = True
                    self.code_lang = fence.group(2)
            return self._to_ansi(Text(line, style="md.fence"))
        if self.in_code_block:
            return self._to_ansi(self._highlight_code(line))
        text = Text(line)
        self._highlighter.highlight(text)
        return self._to_ansi(text)

    def _highlight_code(self, line: str) -> Text:
        lang = self.code_lang or "text"
        syntax = self._syntax_cache.get(lang)
        if syntax is None:
            syntax = Syntax("", lang, theme=self._syntax_theme, background_color="default", tab_size=TAB_SIZE)
            self._syntax_cache[lang] = syntax
        text = syntax.highlight(line)
        # Lexers terminate the last line; the renderer owns line breaks
        if text.plain.endswith("\n"):
            text.right_crop(1)
        return text

    def _to_ansi(self, text: Text) -> str:
        with self._console.capture() as capture:
            self._console.print(text, end="", soft_wrap=True)
        return capture.get()
