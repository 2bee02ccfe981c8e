"""Server-sent events ingestion for streamed chat completions.

Turns the body of a streaming ``/chat/completions`` response into calls on
a reply handler: one ``handler.text()`` per non-empty content delta. The
handler's ``done()`` is left to the caller so it is called exactly once.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterator

import httpx

from .errors import ApiError, TransportError

if TYPE_CHECKING:
    from ..cli.stream import ReplyStreamHandler

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"


@dataclass(frozen=True)
class SseEvent:
    kind: str  # "open" or "message"
    data: str = ""


def iter_sse_events(response: httpx.Response) -> Iterator[SseEvent]:
    """Yield an ``open`` event, then one ``message`` per dispatched SSE event."""
    yield SseEvent("open")
    data_lines: list[str] = []
    for line in response.iter_lines():
        if not line:
            if data_lines:
                yield SseEvent("message", "\n".join(data_lines))
                data_lines = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)
    # A final event without the terminating blank line still counts
    if data_lines:
        yield SseEvent("message", "\n".join(data_lines))


def _error_message(payload: Any) -> str | None:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
    return None


def _delta_content(payload: Any) -> str | None:
    try:
        content = payload["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    return content if isinstance(content, str) else None


def raise_for_api_error(response: httpx.Response) -> None:
    """Raise ``ApiError`` for a non-2xx response, using the service's message when present."""
    if response.is_success:
        return
    try:
        response.read()
        message = _error_message(json.loads(response.text))
    except (json.JSONDecodeError, UnicodeDecodeError):
        message = None
    logger.debug("API request failed with status %s", response.status_code)
    raise ApiError(message or "Request failed", status_code=response.status_code)


def ingest_stream(response: httpx.Response, handler: ReplyStreamHandler) -> None:
    """Drive ``handler`` from a streaming response until ``[DONE]``, EOF, or abort.

    Raises ``ApiError`` for service errors and ``TransportError`` for a payload
    that is not JSON. Returns normally on every graceful end, abort included.
    """
    from ..cli.stream import ChannelSendError

    raise_for_api_error(response)

    for event in iter_sse_events(response):
        if handler.abort.aborted():
            logger.debug("Stream aborted by user")
            return
        if event.kind == "open":
            continue
        if event.data == DONE_MARKER:
            return
        try:
            payload = json.loads(event.data)
        except json.JSONDecodeError as e:
            raise TransportError(f"Invalid response data: {event.data}") from e
        message = _error_message(payload)
        if message:
            raise ApiError(message)
        content = _delta_content(payload)
        if not content:
            continue
        try:
            handler.text(content)
        except ChannelSendError:
            if handler.abort.aborted():
                return
            raise
