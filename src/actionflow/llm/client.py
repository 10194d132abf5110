"""Chat-completion HTTP client normalized to plain text."""

from __future__ import annotations

import json
import logging
from typing import Protocol

import httpx

from actionflow.config import LlmSettings
from actionflow.errors import LlmRequestError

logger = logging.getLogger(__name__)

_SENSITIVE_HEADERS: tuple[str, ...] = ("authorization", "x-api-key")


class LlmClient(Protocol):
    """Narrow text-in, text-out model interface used by the pipeline."""

    async def request_text(self, prompt: str, system_instructions: str | None = None) -> str:
        """Send one prompt and return the model answer as plain text."""


class HttpLlmClient:
    """Non-streaming chat client for Ollama and OpenAI-compatible endpoints."""

    def __init__(
        self,
        settings: LlmSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.timeout_seconds, connect=10.0),
            headers=settings.build_headers(),
            transport=transport,
        )

    async def request_text(self, prompt: str, system_instructions: str | None = None) -> str:
        messages: list[dict[str, str]] = []
        if system_instructions:
            messages.append({"role": "system", "content": system_instructions})
        messages.append({"role": "user", "content": prompt})
        body = {"model": self._settings.model, "messages": messages, "stream": False}

        logger.debug(
            "LLM request: %s",
            build_curl_command(
                url=self._settings.endpoint,
                headers=dict(self._client.headers),
                body=body,
                reveal_sensitive=self._settings.log_unmasked_headers,
            ),
        )
        try:
            response = await self._client.post(self._settings.endpoint, json=body)
        except httpx.TimeoutException as error:
            raise LlmRequestError(f"LLM request timed out: {self._settings.endpoint}") from error
        except httpx.HTTPError as error:
            raise LlmRequestError(f"LLM request failed: {error}") from error

        body_text = response.text
        if not response.is_success:
            raise LlmRequestError(
                f"LLM error {response.status_code}: {body_text}",
                status_code=response.status_code,
            )
        return normalize_response_text(body_text) or body_text

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpLlmClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()


def normalize_response_text(body_text: str) -> str:
    """Reduce known chat response shapes to the answer text.

    Non-JSON bodies are returned as-is; unknown JSON is pretty-printed.
    """

    if not body_text:
        return ""
    try:
        parsed = json.loads(body_text)
    except json.JSONDecodeError:
        return body_text
    if isinstance(parsed, str):
        return parsed
    if isinstance(parsed, dict):
        response = parsed.get("response")
        if isinstance(response, str):
            return response
        message = parsed.get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]
        choices = parsed.get("choices")
        if isinstance(choices, list):
            combined = "".join(_choice_text(choice) for choice in choices)
            if combined:
                return combined
    return json.dumps(parsed, indent=2)


def _choice_text(choice: object) -> str:
    if not isinstance(choice, dict):
        return ""
    message = choice.get("message")
    if isinstance(message, dict) and message.get("content"):
        return str(message["content"])
    for key in ("text", "response"):
        value = choice.get(key)
        if value:
            return str(value)
    return ""


def build_curl_command(
    *,
    url: str,
    headers: dict[str, str],
    body: object | None = None,
    method: str = "POST",
    reveal_sensitive: bool = False,
) -> str:
    """Render an equivalent curl line for debug logs, masking credentials."""

    parts = [f"curl -s -X {method.upper()} '{url}'"]
    for key, value in headers.items():
        lowered = key.lower()
        sensitive = any(marker in lowered for marker in _SENSITIVE_HEADERS)
        printable = value if reveal_sensitive or not sensitive else "****"
        parts.append(f"-H '{key}: {printable}'")
    if body is not None:
        payload = body if isinstance(body, str) else json.dumps(body)
        escaped = payload.replace("'", "'\\''")
        parts.append(f"--data-raw '{escaped}'")
    return " ".join(parts)
