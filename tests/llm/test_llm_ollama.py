"""
Tests for Ollama LLM provider.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import BaseModel

from souvenir.core.llm.ollama import OllamaLLM
from souvenir.models.extraction import EntityExtraction
from souvenir.utils.exceptions import LLMError


class SimpleResponse(BaseModel):
    """Test response model."""

    answer: str
    confidence: float
    reasoning: str


@pytest.fixture
def ollama_llm():
    """Create Ollama LLM for testing."""
    return OllamaLLM(host="http://localhost:11434", model="llama3.1:8b", timeout=120.0)


def reply(content: str) -> dict:
    return {"message": {"content": content}}


@pytest.mark.unit
@pytest.mark.asyncio
class TestOllamaLLM:
    """Test Ollama LLM provider."""

    async def test_initialization(self, ollama_llm):
        """Test provider initialization."""
        assert ollama_llm.host == "http://localhost:11434"
        assert ollama_llm.model == "llama3.1:8b"
        assert ollama_llm.timeout == 120.0
        assert ollama_llm.client is not None

    async def test_complete_simple(self, ollama_llm):
        """Test simple text completion."""
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply("Paris is the capital")

            result = await ollama_llm.complete("What is the capital of France?", max_tokens=50)

            assert result == "Paris is the capital"
            assert mock_chat.call_args.kwargs["format"] is None
            assert mock_chat.call_args.kwargs["messages"] == [
                {"role": "user", "content": "What is the capital of France?"}
            ]

    async def test_complete_with_system_prompt(self, ollama_llm):
        """Test the system prompt becomes the first message."""
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply("ok")

            await ollama_llm.complete("test", system_prompt="Answer with data only.")

            messages = mock_chat.call_args.kwargs["messages"]
            assert messages[0] == {"role": "system", "content": "Answer with data only."}

    async def test_complete_with_temperature(self, ollama_llm):
        """Test completion with custom temperature."""
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply("test")

            await ollama_llm.complete("test", temperature=0.7, max_tokens=100)

            options = mock_chat.call_args.kwargs["options"]
            assert options["temperature"] == 0.7
            assert options["num_predict"] == 100

    async def test_complete_with_extra_options(self, ollama_llm):
        """Test completion with extra options."""
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply("test")

            await ollama_llm.complete("test", options={"top_p": 0.9, "top_k": 40})

            options = mock_chat.call_args.kwargs["options"]
            assert options["top_p"] == 0.9
            assert options["top_k"] == 40

    async def test_backend_error_wrapped(self, ollama_llm):
        """Test client failures surface as LLMError."""
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.side_effect = ConnectionError("connection refused")

            with pytest.raises(LLMError, match="Ollama API error"):
                await ollama_llm.complete("test")

    async def test_close(self, ollama_llm):
        """Test close method."""
        await ollama_llm.close()


@pytest.mark.unit
@pytest.mark.asyncio
class TestOllamaStructuredOutput:
    """Test JSON mode structured outputs."""

    async def test_complete_structured(self, ollama_llm):
        """Test structured output completion."""
        json_response = '{"answer": "yes", "confidence": 0.95, "reasoning": "because"}'

        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply(json_response)

            result = await ollama_llm.complete("Is Python good?", response_format=SimpleResponse)

            assert isinstance(result, SimpleResponse)
            assert result.confidence == 0.95
            assert mock_chat.call_args.kwargs["format"] == "json"

    async def test_prompt_carries_example(self, ollama_llm):
        """Test the prompt includes an example built from the schema."""
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply('{"entities": []}')

            await ollama_llm.complete("Extract entities", response_format=EntityExtraction)

            prompt = mock_chat.call_args.kwargs["messages"][-1]["content"]
            assert prompt.startswith("Extract entities")
            example = prompt.split("structure:\n")[1].split("\n\nIMPORTANT")[0]
            assert json.loads(example) == {
                "entities": [{"text": "<text>", "type": "<type>", "metadata": {}}]
            }

    async def test_markdown_fences(self, ollama_llm):
        """Test structured output wrapped in code fences."""
        for content in (
            '```json\n{"answer": "yes", "confidence": 0.9, "reasoning": "test"}\n```',
            '```\n{"answer": "yes", "confidence": 0.9, "reasoning": "test"}\n```',
        ):
            with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
                mock_chat.return_value = reply(content)

                result = await ollama_llm.complete("test", response_format=SimpleResponse)

                assert result.answer == "yes"

    async def test_invalid_json(self, ollama_llm):
        """Test structured output with invalid JSON."""
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply("not json at all")

            with pytest.raises(ValueError, match="Failed to parse structured output"):
                await ollama_llm.complete("test", response_format=SimpleResponse)

    async def test_missing_fields(self, ollama_llm):
        """Test structured output with missing required fields."""
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply('{"answer": "yes"}')

            with pytest.raises(ValueError):
                await ollama_llm.complete("test", response_format=SimpleResponse)

    async def test_schema_echo_rejected(self, ollama_llm):
        """Test a model that returns the schema itself is an error."""
        schema = json.dumps(SimpleResponse.model_json_schema())

        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = reply(schema)

            with pytest.raises(ValueError, match="JSON schema instead of actual data"):
                await ollama_llm.complete("test", response_format=SimpleResponse)


@pytest.mark.unit
class TestExtractJson:
    """Test JSON extraction from raw content."""

    def test_clean(self, ollama_llm):
        assert ollama_llm._extract_json('{"key": "value"}') == '{"key": "value"}'

    def test_whitespace(self, ollama_llm):
        assert ollama_llm._extract_json('  \n  {"key": "value"}  \n  ') == '{"key": "value"}'

    def test_markdown_json(self, ollama_llm):
        assert ollama_llm._extract_json('```json\n{"key": "value"}\n```') == '{"key": "value"}'

    def test_markdown_generic(self, ollama_llm):
        assert ollama_llm._extract_json('```\n{"key": "value"}\n```') == '{"key": "value"}'


@pytest.mark.integration
@pytest.mark.asyncio
class TestOllamaLLMIntegration:
    """
    Integration tests for Ollama LLM.
    Requires running Ollama server.
    Run with: pytest -m integration
    """

    async def test_real_structured_output(self):
        """Test real entity extraction schema with Ollama."""
        llm = OllamaLLM(model="llama3.1:8b")

        try:
            result = await llm.complete(
                "Extract the entities from: Paris is the capital of France.",
                response_format=EntityExtraction,
                temperature=0.0,
            )
            assert isinstance(result, EntityExtraction)
        except LLMError as e:
            pytest.skip(f"Ollama not available: {e}")
        finally:
            await llm.close()
