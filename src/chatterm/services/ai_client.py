"""httpx client for an OpenAI-compatible chat-completions endpoint."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from ..config import AIConfig
from .errors import TransportError
from .sse import ingest_stream, raise_for_api_error

if TYPE_CHECKING:
    from ..cli.stream import ReplyStreamHandler

logger = logging.getLogger(__name__)


def create_ai_client(config: AIConfig) -> "AIClient":
    return AIClient(config)


class AIClient:
    def __init__(self, config: AIConfig, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        # Temporary system prompt set from the REPL; wins over config.system_prompt
        self.prompt_override: str | None = None
        self._client = self._build_client(transport)

    def _build_client(self, transport: httpx.BaseTransport | None) -> httpx.Client:
        timeout = httpx.Timeout(
            connect=float(self.config.connect_timeout),
            read=float(self.config.request_timeout),
            write=float(self.config.request_timeout),
            pool=float(self.config.connect_timeout),
        )
        headers = {"Authorization": f"Bearer {self.config.api_key}"}
        if self.config.organization_id:
            headers["OpenAI-Organization"] = self.config.organization_id
        # verify=False only when the user sets verify_ssl: false in config
        return httpx.Client(
            base_url=self.config.base_url,
            headers=headers,
            timeout=timeout,
            verify=self.config.verify_ssl,
            transport=transport,
        )

    @property
    def system_prompt(self) -> str:
        if self.prompt_override is not None:
            return self.prompt_override
        return self.config.system_prompt

    def build_body(self, prompt: str, stream: bool) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        body: dict[str, Any] = {"model": self.config.model, "messages": messages}
        if self.config.temperature is not None:
            body["temperature"] = self.config.temperature
        if stream:
            body["stream"] = True
        return body

    def send_message(self, prompt: str) -> str:
        """Non-streaming request; return the whole reply text."""
        body = self.build_body(prompt, stream=False)
        logger.debug("POST /chat/completions model=%s", self.config.model)
        try:
            response = self._client.post("/chat/completions", json=body)
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e
        raise_for_api_error(response)
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError) as e:
            raise TransportError(f"Invalid response data: {response.text}") from e
        if not isinstance(content, str):
            raise TransportError(f"Invalid response data: {response.text}")
        return content

    def send_message_streaming(self, prompt: str, handler: ReplyStreamHandler) -> None:
        """Stream the reply into ``handler``; call ``handler.done()`` unless aborted."""
        body = self.build_body(prompt, stream=True)
        logger.debug("POST /chat/completions (stream) model=%s", self.config.model)
        try:
            with self._client.stream("POST", "/chat/completions", json=body) as response:
                ingest_stream(response, handler)
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__) from e
        if handler.abort.aborted():
            logger.debug("Stream ended by abort (%s)", handler.abort)
            return
        logger.debug("Stream finished")
        handler.done()

    def close(self) -> None:
        self._client.close()
