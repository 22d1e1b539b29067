"""LLM Provider Abstraction for Chat/Completion APIs (Groq, OpenAI-compatible)."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# HTTP 429 backoff
MAX_RETRIES = 5
INITIAL_DELAY = 2.0  # seconds
MAX_DELAY = 60.0  # seconds

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_SUMMARY_MODEL = "openai/gpt-oss-120b"


@dataclass
class ChatResponse:
    """One completion plus token usage."""

    content: str
    model: str
    tokens_input: int
    tokens_output: int
    finish_reason: str
    latency_ms: int


class LLMError(Exception):
    """Summary backend failure; `retriable` marks rate limits and 5xx."""

    def __init__(
        self,
        message: str,
        provider: str,
        retriable: bool = False,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.retriable = retriable
        self.status_code = status_code


class LLMProvider(ABC):
    """A chat-completion backend."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Label used in logs and errors."""
        ...

    @property
    @abstractmethod
    def model_id(self) -> str:
        """Model ID sent with each request."""
        ...

    @property
    def configured(self) -> bool:
        """Whether credentials are present."""
        return True

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> ChatResponse:
        """Run one completion over OpenAI-style messages.

        Raises:
            LLMError: On auth, rate-limit, HTTP or parse failures.
        """
        ...

    async def close(self) -> None:
        """Release network resources."""


class OpenAICompatibleChatProvider(LLMProvider):
    """Chat provider for any ``/chat/completions`` endpoint (Groq by default)."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_SUMMARY_MODEL,
        base_url: str = GROQ_BASE_URL,
        timeout: float = 120.0,
        provider_name: str = "Groq",
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize provider.

        Args:
            api_key: API key; an empty key makes every chat() call fail fast.
            model: Model ID understood by the endpoint.
            base_url: API root, e.g. https://api.groq.com/openai/v1
            timeout: Per-request timeout in seconds.
            provider_name: Label used in logs and errors.
            client: Optional pre-built httpx client (tests).
        """
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._provider_name = provider_name
        self._client = client

    @property
    def name(self) -> str:
        return self._provider_name

    @property
    def model_id(self) -> str:
        return self._model

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def chat(
        self,
        messages: list[dict[str, str]],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> ChatResponse:
        if not self._api_key:
            raise LLMError(f"{self.name} API key not set", provider=self.name)

        body: dict[str, Any] = {"model": self._model, "messages": messages, "temperature": temperature}
        if max_tokens:
            body["max_tokens"] = max_tokens

        started = time.monotonic()
        data = await self._post_with_backoff(body)
        return self._parse(data, latency_ms=int((time.monotonic() - started) * 1000))

    async def _post_with_backoff(self, body: dict[str, Any]) -> Any:
        """POST to /chat/completions, sleeping and retrying while rate limited."""
        client = await self._get_client()
        url = f"{self._base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        delay = INITIAL_DELAY

        for attempt in range(1, MAX_RETRIES + 1):
            response = await client.post(url, headers=headers, json=body)
            status = response.status_code

            if status == 429:
                logger.warning(
                    f"{self.name} rate limited ({attempt}/{MAX_RETRIES}), sleeping {delay:.1f}s"
                )
                await asyncio.sleep(delay)
                delay = min(delay * 2, MAX_DELAY)
                continue

            if status == 401:
                raise LLMError(f"{self.name} API key rejected", provider=self.name, status_code=status)
            if status == 404:
                raise LLMError(
                    f"Model '{self._model}' not available",
                    provider=self.name,
                    status_code=status,
                )
            if status >= 400:
                raise LLMError(
                    f"{self.name} API error: {status} - {response.text[:200]}",
                    provider=self.name,
                    retriable=status >= 500,
                    status_code=status,
                )

            try:
                return response.json()
            except ValueError as e:
                raise LLMError(f"Malformed {self.name} response: {e}", provider=self.name) from e

        raise LLMError(
            f"Rate limit not cleared after {MAX_RETRIES} attempts",
            provider=self.name,
            retriable=True,
            status_code=429,
        )

    def _parse(self, data: Any, latency_ms: int) -> ChatResponse:
        try:
            choice = data["choices"][0]
            usage = data.get("usage") or {}
            return ChatResponse(
                content=choice["message"].get("content") or "",
                model=data.get("model", self._model),
                tokens_input=usage.get("prompt_tokens", 0),
                tokens_output=usage.get("completion_tokens", 0),
                finish_reason=choice.get("finish_reason") or "",
                latency_ms=latency_ms,
            )
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise LLMError(
                f"Malformed {self.name} response: {type(e).__name__}: {e}",
                provider=self.name,
            ) from e


def get_chat_provider(
    api_key: str,
    model: str | None = None,
    base_url: str = GROQ_BASE_URL,
    timeout: float = 120.0,
) -> LLMProvider:
    """Factory for the summary LLM provider."""
    return OpenAICompatibleChatProvider(
        api_key=api_key,
        model=model or DEFAULT_SUMMARY_MODEL,
        base_url=base_url,
        timeout=timeout,
    )
