"""
Tests for OpenAI LLM provider.
"""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import BaseModel

from souvenir.core.llm.openai import OpenAILLM
from souvenir.models.extraction import Summarization
from souvenir.utils.exceptions import LLMError, ValidationError


class SimpleResponse(BaseModel):
    """Test response model."""

    answer: str
    confidence: float


@pytest.fixture
def openai_llm():
    """Create OpenAI LLM for testing."""
    return OpenAILLM(api_key="test-key", model="gpt-4o", timeout=120.0)


def text_response(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


def parsed_response(parsed):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(parsed=parsed))]
    return response


@pytest.mark.unit
@pytest.mark.asyncio
class TestOpenAILLM:
    """Test OpenAI LLM provider."""

    async def test_initialization(self, openai_llm):
        """Test provider initialization."""
        assert openai_llm.model == "gpt-4o"
        assert openai_llm.client is not None

    async def test_initialization_with_base_url(self):
        """Test initialization with custom base URL."""
        llm = OpenAILLM(api_key="test-key", base_url="https://custom.openai.com/v1")
        assert str(llm.client.base_url).startswith("https://custom.openai.com/v1")

    async def test_complete_simple(self, openai_llm):
        """Test simple completion."""
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = text_response("test response")

            result = await openai_llm.complete("test prompt", system_prompt="Be brief")

            assert result == "test response"
            assert mock_create.call_args.kwargs["messages"] == [
                {"role": "system", "content": "Be brief"},
                {"role": "user", "content": "test prompt"},
            ]

    async def test_complete_with_parameters(self, openai_llm):
        """Test completion with custom parameters."""
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = text_response("test")

            await openai_llm.complete("test", temperature=0.8, max_tokens=500, stop=["END"])

            kwargs = mock_create.call_args.kwargs
            assert kwargs["temperature"] == 0.8
            assert kwargs["max_tokens"] == 500
            assert kwargs["stop"] == ["END"]

    async def test_empty_prompt(self, openai_llm):
        """Test empty prompts are rejected before any call."""
        with pytest.raises(ValidationError):
            await openai_llm.complete("  ")

    async def test_empty_content(self, openai_llm):
        """Test empty content is an LLMError."""
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = text_response(None)

            with pytest.raises(LLMError, match="empty content"):
                await openai_llm.complete("test")

    async def test_api_error_wrapped(self, openai_llm):
        """Test SDK failures surface as LLMError."""
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = RuntimeError("rate limited")

            with pytest.raises(LLMError, match="OpenAI API error"):
                await openai_llm.complete("test")

    async def test_close(self, openai_llm):
        """Test close method."""
        with patch.object(openai_llm.client, "close", new_callable=AsyncMock) as mock_close:
            await openai_llm.close()
            mock_close.assert_called_once()


@pytest.mark.unit
@pytest.mark.asyncio
class TestOpenAIStructuredOutput:
    """Test the parse API path."""

    async def test_complete_structured(self, openai_llm):
        """Test structured output with Parse API."""
        with patch.object(
            openai_llm.client.beta.chat.completions, "parse", new_callable=AsyncMock
        ) as mock_parse:
            mock_parse.return_value = parsed_response(Summarization(summary="Paris trip"))

            result = await openai_llm.complete("Summarize", response_format=Summarization)

            assert result.summary == "Paris trip"
            assert mock_parse.call_args.kwargs["response_format"] is Summarization

    async def test_structured_extra_params(self, openai_llm):
        """Test structured output with extra parameters."""
        with patch.object(
            openai_llm.client.beta.chat.completions, "parse", new_callable=AsyncMock
        ) as mock_parse:
            mock_parse.return_value = parsed_response(SimpleResponse(answer="yes", confidence=0.9))

            await openai_llm.complete(
                "test", response_format=SimpleResponse, temperature=0.5, presence_penalty=0.6
            )

            kwargs = mock_parse.call_args.kwargs
            assert kwargs["temperature"] == 0.5
            assert kwargs["presence_penalty"] == 0.6

    async def test_refusal(self, openai_llm):
        """Test a model refusal is reported as LLMError."""
        with patch.object(
            openai_llm.client.beta.chat.completions, "parse", new_callable=AsyncMock
        ) as mock_parse:
            response = parsed_response(None)
            response.choices[0].message.refusal = "I can't help with that."
            mock_parse.return_value = response

            with pytest.raises(LLMError, match="refused"):
                await openai_llm.complete("test", response_format=SimpleResponse)

    async def test_empty_parsed(self, openai_llm):
        """Test a refusal or empty parse is a ValidationError."""
        with patch.object(
            openai_llm.client.beta.chat.completions, "parse", new_callable=AsyncMock
        ) as mock_parse:
            mock_parse.return_value = parsed_response(None)

            with pytest.raises(ValidationError, match="empty parsed response"):
                await openai_llm.complete("test", response_format=SimpleResponse)


@pytest.mark.integration
@pytest.mark.asyncio
class TestOpenAILLMIntegration:
    """
    Integration tests for OpenAI LLM.
    Requires OPENAI_API_KEY environment variable.
    Run with: pytest -m integration
    """

    async def test_real_structured_output(self):
        """Test real summarization schema with OpenAI."""
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            pytest.skip("OPENAI_API_KEY not set")

        llm = OpenAILLM(api_key=api_key, model="gpt-4o-mini")

        try:
            result = await llm.complete(
                "Summarize in one sentence: Paris is the capital of France.",
                response_format=Summarization,
                temperature=0.0,
            )
            assert isinstance(result, Summarization)
            assert result.summary
        finally:
            await llm.close()
