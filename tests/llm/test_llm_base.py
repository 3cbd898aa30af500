"""
Tests for LLM base class.
"""

import pytest
from pydantic import BaseModel

from souvenir.core.llm.base import LLMProvider


class EchoLLM(LLMProvider):
    """Provider that records calls and echoes the prompt."""

    def __init__(self):
        self.calls = []

    async def complete(self, prompt: str, response_format=None, **kwargs):
        self.calls.append((prompt, kwargs))
        if response_format:
            return response_format(answer=prompt, confidence=0.9)
        return f"echo: {prompt}"


class AnswerResponse(BaseModel):
    """Structured answer."""

    answer: str
    confidence: float


@pytest.mark.unit
@pytest.mark.asyncio
class TestLLMProviderBase:
    """Test base LLM provider functionality."""

    async def test_abstract_instantiation(self):
        """Test that abstract class cannot be instantiated."""
        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            LLMProvider()

    async def test_complete_text(self):
        """Test plain completion."""
        provider = EchoLLM()
        assert await provider.complete("hello") == "echo: hello"

    async def test_complete_structured(self):
        """Test structured output goes through the response model."""
        provider = EchoLLM()

        result = await provider.complete("yes", response_format=AnswerResponse)

        assert isinstance(result, AnswerResponse)
        assert result.answer == "yes"

    async def test_parameters_forwarded(self):
        """Test generation parameters reach the implementation."""
        provider = EchoLLM()

        await provider.complete("test", max_tokens=100, temperature=0.7, system_prompt="Be brief")

        assert provider.calls[0][1] == {
            "max_tokens": 100,
            "temperature": 0.7,
            "system_prompt": "Be brief",
        }

    async def test_close_default(self):
        """Test default close is a no-op."""
        assert await EchoLLM().close() is None


@pytest.mark.unit
class TestBuildMessages:
    """Test chat message construction."""

    def test_user_only(self):
        """Test a prompt without system instruction."""
        assert LLMProvider.build_messages("Hi") == [{"role": "user", "content": "Hi"}]

    def test_with_system_prompt(self):
        """Test the system message comes first."""
        messages = LLMProvider.build_messages("Hi", system_prompt="You extract facts.")

        assert messages == [
            {"role": "system", "content": "You extract facts."},
            {"role": "user", "content": "Hi"},
        ]
