"""Append prompt/reply exchanges to a Markdown transcript file."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

RULE = "--------"


def format_message(input: str, output: str, now: datetime | None = None) -> str:
    timestamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    return f"# CHAT:[{timestamp}]\n{input}\n{RULE}\n{output}\n{RULE}\n\n"


def save_message(path: Path, input: str, output: str, now: datetime | None = None) -> bool:
    """Append one exchange to ``path``. Returns False when there is nothing to save."""
    if not output:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(format_message(input, output, now))
    logger.debug("Saved exchange to %s", path)
    return True
