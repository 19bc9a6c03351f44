"""Completion backends that turn a review prompt into review text."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Protocol

import httpx

from gpt_pr_review.schema import BackendKind, RunConfiguration

logger = logging.getLogger(__name__)

HOSTED_COMPLETION_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_TIMEOUT_SECONDS: float | None = None


class CompletionError(RuntimeError):
    """Raised when a completion response cannot be interpreted."""


class CompletionBackend(Protocol):
    """Protocol for services that review a prompt and return free text."""

    def complete(
        self,
        prompt: str,
        *,
        instructions: str | None = None,
        max_tokens: int,
    ) -> str | None:
        """Return the generated text, or None when nothing was produced."""


def build_messages(prompt: str, instructions: str | None) -> list[dict[str, str]]:
    """Build the chat message list: optional system instructions, then the prompt."""
    messages: list[dict[str, str]] = []
    if instructions:
        messages.append({"role": "system", "content": instructions})
    messages.append({"role": "user", "content": prompt})
    return messages


def extract_first_choice(payload: object) -> str | None:
    """Read the text of ``choices[0]`` from a chat or legacy completion payload."""
    if not isinstance(payload, dict):
        raise CompletionError("Expected JSON object in completion response.")
    choices = payload.get("choices")
    if not choices:
        return None
    if not isinstance(choices, list) or not isinstance(choices[0], dict):
        raise CompletionError("Expected 'choices' to be a list of objects.")

    first_choice: dict[str, Any] = choices[0]
    message = first_choice.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise CompletionError("Expected 'message.content' to be a string or null.")
        return content

    text = first_choice.get("text")
    if text is not None and not isinstance(text, str):
        raise CompletionError("Expected 'text' to be a string or null.")
    return text


class _HttpCompletionBackend(ABC):
    """Shared request/response handling for the JSON completion APIs."""

    def __init__(self, client: httpx.Client, url: str) -> None:
        self._client = client
        self._url = url

    @abstractmethod
    def _headers(self) -> dict[str, str]:
        """Authentication headers for one request."""

    @abstractmethod
    def _body(self, messages: list[dict[str, str]], *, max_tokens: int) -> dict[str, Any]:
        """JSON request body for one completion."""

    def complete(
        self,
        prompt: str,
        *,
        instructions: str | None = None,
        max_tokens: int,
    ) -> str | None:
        body = self._body(build_messages(prompt, instructions), max_tokens=max_tokens)
        try:
            response = self._client.post(self._url, headers=self._headers(), json=body)
            response.raise_for_status()
            return extract_first_choice(response.json())
        except httpx.HTTPStatusError as error:
            logger.error(
                "Completion request failed with status %s: %s",
                error.response.status_code,
                error.response.text,
            )
        except httpx.HTTPError as error:
            logger.error("Completion request failed: %s", error)
        except (CompletionError, ValueError) as error:
            logger.error("Unusable completion response: %s", error)
        return None


class HostedBackend(_HttpCompletionBackend):
    """OpenAI-hosted chat completions with bearer-token auth."""

    def __init__(
        self,
        client: httpx.Client,
        *,
        api_key: str,
        model: str,
        temperature: float | None = None,
        url: str = HOSTED_COMPLETION_URL,
    ) -> None:
        super().__init__(client, url)
        self._api_key = api_key
        self.model = model
        self.temperature = temperature

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _body(self, messages: list[dict[str, str]], *, max_tokens: int) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if self.temperature is not None:
            body["temperature"] = self.temperature
        return body


class EndpointBackend(_HttpCompletionBackend):
    """Azure OpenAI style deployment endpoint with ``api-key`` header auth."""

    def __init__(self, client: httpx.Client, *, api_key: str, endpoint_url: str) -> None:
        super().__init__(client, endpoint_url)
        self._api_key = api_key

    def _headers(self) -> dict[str, str]:
        return {"api-key": self._api_key}

    def _body(self, messages: list[dict[str, str]], *, max_tokens: int) -> dict[str, Any]:
        return {"max_tokens": max_tokens, "messages": messages}


def build_completion_client(
    *, verify: bool = True, timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS
) -> httpx.Client:
    """Build the HTTP client used for completion calls."""
    return httpx.Client(
        headers={"Content-Type": "application/json"},
        timeout=timeout_seconds,
        verify=verify,
    )


def build_completion_backend(
    config: RunConfiguration, *, client: httpx.Client | None = None
) -> HostedBackend | EndpointBackend:
    """Pick the backend variant once from the run configuration."""
    http_client = client or build_completion_client(
        verify=not config.support_self_signed_certificate
    )
    if config.backend is BackendKind.ENDPOINT:
        if config.endpoint_url is None:
            raise ValueError("Endpoint backend selected without an endpoint URL.")
        logger.info("Using completion endpoint %s", config.endpoint_url)
        return EndpointBackend(http_client, api_key=config.api_key, endpoint_url=config.endpoint_url)

    logger.info("Using hosted completion model %s", config.model)
    return HostedBackend(
        http_client,
        api_key=config.api_key,
        model=config.model,
        temperature=config.temperature,
    )
