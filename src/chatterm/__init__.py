"""chatterm: stream chat completions into the terminal as live Markdown."""

__version__ = "0.3.0"
