"""Tests for summarizer.py, llm_providers.py and prompts.py"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from harvest.core.llm_providers import (
    ChatResponse,
    LLMError,
    OpenAICompatibleChatProvider,
    get_chat_provider,
)
from harvest.core.prompts import DEFAULT_PROMPTS, get_prompt
from harvest.core.sources import Source
from harvest.core.summarizer import Summarizer, SummaryErrorType

SOURCE = Source("https://huggingface.co/models", "models")


def chat_response(content):
    return ChatResponse(
        content=content,
        model="openai/gpt-oss-120b",
        tokens_input=100,
        tokens_output=20,
        finish_reason="stop",
        latency_ms=5,
    )


def mock_provider(**chat_kwargs):
    provider = MagicMock()
    provider.name = "Groq"
    provider.configured = True
    provider.chat = AsyncMock(**chat_kwargs)
    provider.close = AsyncMock()
    return provider


class TestPrompts:
    """Tests for the prompt registry."""

    def test_category_prompts(self):
        assert get_prompt("models").key == "summary_models"
        assert get_prompt("finance").key == "summary_finance"
        assert get_prompt("reddit").key == "summary_reddit"

    def test_unknown_category_uses_general(self):
        assert get_prompt("crypto").key == "summary_general"

    def test_all_prompts_render(self):
        for key in DEFAULT_PROMPTS:
            prompt = get_prompt(key.removeprefix("summary_"))
            rendered = prompt.render(locator="r/OpenAI", text="BODY")
            assert "BODY" in rendered


class TestSummarizer:
    """Tests for Summarizer."""

    @pytest.mark.asyncio
    async def test_success(self):
        provider = mock_provider(return_value=chat_response("  Condensed.  "))
        result = await Summarizer(provider).summarize("raw text", SOURCE)

        assert result.success is True
        assert result.text == "Condensed."
        assert result.truncated is False
        assert result.tokens_input == 100

    @pytest.mark.asyncio
    async def test_input_truncated_to_cap(self):
        provider = mock_provider(return_value=chat_response("ok"))
        result = await Summarizer(provider, max_chars=5000).summarize("Z" * 6000, SOURCE)

        messages = provider.chat.call_args.args[0]
        assert messages[0]["content"].count("Z") == 5000
        assert result.truncated is True

    @pytest.mark.asyncio
    async def test_prompt_uses_category(self):
        provider = mock_provider(return_value=chat_response("ok"))
        await Summarizer(provider).summarize("text", SOURCE)

        content = provider.chat.call_args.args[0][0]["content"]
        assert "trending AI models" in content

    @pytest.mark.asyncio
    async def test_empty_result_is_failure(self):
        provider = mock_provider(return_value=chat_response("   "))
        result = await Summarizer(provider).summarize("raw text", SOURCE)

        assert result.success is False
        assert result.error_type == SummaryErrorType.EMPTY_RESULT

    @pytest.mark.asyncio
    async def test_backend_error(self):
        provider = mock_provider(side_effect=LLMError("Groq API error: 500", provider="Groq"))
        result = await Summarizer(provider).summarize("raw text", SOURCE)

        assert result.success is False
        assert result.error_type == SummaryErrorType.BACKEND_ERROR
        assert "500" in result.error_message

    @pytest.mark.asyncio
    async def test_transport_error(self):
        provider = mock_provider(side_effect=httpx.ConnectError("refused"))
        result = await Summarizer(provider).summarize("raw text", SOURCE)
        assert result.error_type == SummaryErrorType.BACKEND_ERROR

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow_chat(*args, **kwargs):
            await asyncio.sleep(5)

        provider = mock_provider(side_effect=slow_chat)
        result = await Summarizer(provider, timeout=0.01).summarize("raw text", SOURCE)

        assert result.error_type == SummaryErrorType.TIMEOUT

    @pytest.mark.asyncio
    async def test_unconfigured_provider_not_called(self):
        provider = mock_provider()
        provider.configured = False
        result = await Summarizer(provider).summarize("raw text", SOURCE)

        assert result.error_type == SummaryErrorType.AUTH_MISSING
        provider.chat.assert_not_called()


def make_provider(handler, api_key="gsk-test"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatibleChatProvider(api_key=api_key, base_url="https://llm.test/v1", client=client)


class TestOpenAICompatibleChatProvider:
    """Tests for the chat completion client."""

    @pytest.mark.asyncio
    async def test_chat(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "model": "openai/gpt-oss-120b",
                    "choices": [{"message": {"content": "Summary"}, "finish_reason": "stop"}],
                    "usage": {"prompt_tokens": 12, "completion_tokens": 3},
                },
            )

        response = await make_provider(handler).chat([{"role": "user", "content": "hi"}], max_tokens=50)

        assert response.content == "Summary"
        assert response.tokens_input == 12
        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["body"]["model"] == "openai/gpt-oss-120b"
        assert seen["body"]["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_missing_key(self):
        provider = make_provider(lambda request: httpx.Response(200), api_key="")
        assert provider.configured is False
        with pytest.raises(LLMError):
            await provider.chat([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        provider = make_provider(lambda request: httpx.Response(401))
        with pytest.raises(LLMError) as exc_info:
            await provider.chat([{"role": "user", "content": "hi"}])
        assert exc_info.value.status_code == 401
        assert exc_info.value.retriable is False

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        provider = make_provider(lambda request: httpx.Response(200, json={"choices": []}))
        with pytest.raises(LLMError, match="Malformed"):
            await provider.chat([{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self):
        responses = [
            httpx.Response(429),
            httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]}),
        ]

        def handler(request):
            return responses.pop(0)

        with patch("harvest.core.llm_providers.asyncio.sleep", new=AsyncMock()) as sleep:
            response = await make_provider(handler).chat([{"role": "user", "content": "hi"}])

        assert response.content == "ok"
        sleep.assert_awaited_once()

    def test_factory_defaults(self):
        provider = get_chat_provider(api_key="gsk-test")
        assert provider.model_id == "openai/gpt-oss-120b"
        assert provider.name == "Groq"
