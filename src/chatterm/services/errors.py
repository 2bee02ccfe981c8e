"""Errors raised while talking to the chat-completions service."""

from __future__ import annotations


class ChatError(RuntimeError):
    """Base class for every error a request can surface to the user."""


class ApiError(ChatError):
    """The service answered with a structured error (e.g. ``{"error": {"message": ...}}``)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransportError(ChatError):
    """Malformed stream payload or a low-level I/O failure."""

    def __init__(self, details: str) -> None:
        super().__init__(details)
        self.details = details
