"""Best-effort summarization of harvested text.

The summarizer never raises for backend failures. Callers decide what to do
with a failed SummaryResult (the harvest run falls back to the raw text).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

import httpx

from harvest.core.llm_providers import LLMError, LLMProvider
from harvest.core.prompts import get_prompt
from harvest.core.sources import Source

logger = logging.getLogger(__name__)

# Input cap before submission; truncation is silent
DEFAULT_MAX_CHARS = 5000


class SummaryErrorType(str, Enum):
    """Why a summary could not be produced."""

    AUTH_MISSING = "auth_missing"
    TIMEOUT = "timeout"
    BACKEND_ERROR = "backend_error"
    EMPTY_RESULT = "empty_result"


@dataclass
class SummaryResult:
    """Result of a summarization call."""

    success: bool
    text: str | None = None
    truncated: bool = False
    tokens_input: int = 0
    tokens_output: int = 0
    error_type: SummaryErrorType | None = None
    error_message: str | None = None


class Summarizer:
    """Condenses raw text with a chat LLM using the category's prompt."""

    def __init__(
        self,
        provider: LLMProvider,
        max_chars: int = DEFAULT_MAX_CHARS,
        timeout: float = 120.0,
    ) -> None:
        self.provider = provider
        self.max_chars = max_chars
        self.timeout = timeout

    def truncate(self, text: str) -> tuple[str, bool]:
        """Cut text to the first max_chars characters."""
        if len(text) <= self.max_chars:
            return text, False
        return text[: self.max_chars], True

    async def summarize(self, text: str, source: Source | None = None) -> SummaryResult:
        """Summarize text, optionally using the source for prompt context.

        Args:
            text: Raw harvested text.
            source: Source the text came from (selects the prompt).

        Returns:
            SummaryResult; success only when the model returned non-empty text.
        """
        if not self.provider.configured:
            return SummaryResult(
                success=False,
                error_type=SummaryErrorType.AUTH_MISSING,
                error_message=f"{self.provider.name} API key not set",
            )

        prompt_text, truncated = self.truncate(text)
        prompt = get_prompt(source.category if source else "general")
        messages = [
            {
                "role": "user",
                "content": prompt.render(
                    locator=source.locator if source else "unknown",
                    text=prompt_text,
                ),
            }
        ]

        try:
            response = await asyncio.wait_for(
                self.provider.chat(
                    messages,
                    temperature=prompt.temperature,
                    max_tokens=prompt.max_tokens,
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return SummaryResult(
                success=False,
                truncated=truncated,
                error_type=SummaryErrorType.TIMEOUT,
                error_message=f"Summary timed out after {self.timeout}s",
            )
        except LLMError as e:
            return SummaryResult(
                success=False,
                truncated=truncated,
                error_type=SummaryErrorType.BACKEND_ERROR,
                error_message=str(e),
            )
        except httpx.HTTPError as e:
            return SummaryResult(
                success=False,
                truncated=truncated,
                error_type=SummaryErrorType.BACKEND_ERROR,
                error_message=f"{type(e).__name__}: {e}",
            )

        content = (response.content or "").strip()
        if not content:
            return SummaryResult(
                success=False,
                truncated=truncated,
                tokens_input=response.tokens_input,
                tokens_output=response.tokens_output,
                error_type=SummaryErrorType.EMPTY_RESULT,
                error_message="Model returned an empty summary",
            )

        return SummaryResult(
            success=True,
            text=content,
            truncated=truncated,
            tokens_input=response.tokens_input,
            tokens_output=response.tokens_output,
        )

    async def close(self) -> None:
        await self.provider.close()
