"""
Ollama LLM provider using native ollama-python SDK.
"""

import json
from typing import Any

import ollama
from pydantic import BaseModel

from souvenir.core.llm.base import LLMProvider
from souvenir.utils.exceptions import LLMError
from souvenir.utils.logger import get_logger

logger = get_logger(__name__)


def _example_value(name: str, info: dict[str, Any], defs: dict[str, Any]) -> Any:
    """Placeholder value for one JSON-schema property, following $ref and anyOf."""
    if "$ref" in info:
        ref_schema = defs.get(info["$ref"].split("/")[-1], {})
        return _example_object(ref_schema, defs)
    if "anyOf" in info:
        options = [opt for opt in info["anyOf"] if opt.get("type") != "null"]
        return _example_value(name, options[0], defs) if options else None

    field_type = info.get("type", "string")
    if field_type == "string":
        return f"<{name}>"
    if field_type in ("number", "integer"):
        return 0.5 if field_type == "number" else 1
    if field_type == "boolean":
        return True
    if field_type == "array":
        return [_example_value(name, info.get("items", {}), defs)]
    if field_type == "object":
        return {}
    return None


def _example_object(schema: dict[str, Any], defs: dict[str, Any]) -> dict[str, Any]:
    return {
        name: _example_value(name, info, defs)
        for name, info in schema.get("properties", {}).items()
    }


class OllamaLLM(LLMProvider):
    """
    Ollama LLM provider for text generation.

    Uses JSON mode plus an example document derived from the response
    model's schema for structured outputs.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
    ):
        """
        Initialize Ollama LLM provider.

        Args:
            host: Ollama server URL
            model: Model name for text generation (e.g., "llama3.1", "mistral")
            timeout: Request timeout in seconds
        """
        self.host = host
        self.model = model
        self.timeout = timeout

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        system_prompt: str | None = None,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion using Ollama.

        Raises:
            LLMError: If the Ollama call fails
            ValueError: If structured output parsing fails
        """
        options = {
            "temperature": temperature,
            "num_predict": max_tokens,
            **kwargs.pop("options", {}),
        }

        format_type = None
        if response_format:
            format_type = "json"
            prompt = self._structured_prompt(prompt, response_format)

        try:
            response = await self.client.chat(
                model=self.model,
                messages=self.build_messages(prompt, system_prompt),
                format=format_type,
                options=options,
                **kwargs,
            )
        except Exception as e:
            logger.error(f"Ollama chat error ({self.model} @ {self.host}): {e}")
            raise LLMError(f"Ollama API error: {e}", context={"model": self.model}) from e

        content = response["message"]["content"]

        if response_format:
            return self._parse_structured(content, response_format)

        return content

    def _structured_prompt(self, prompt: str, response_format: type[BaseModel]) -> str:
        schema = response_format.model_json_schema()
        example = _example_object(schema, schema.get("$defs", {}))
        example_str = json.dumps(example, indent=2)

        return f"""{prompt}

You MUST respond with valid JSON matching this structure:
{example_str}

IMPORTANT:
- Replace placeholder values like "<field_name>" with actual content
- Return ONLY valid JSON, no markdown formatting or extra text
- Do not return the schema itself, return actual data"""

    def _parse_structured(self, content: str, response_format: type[BaseModel]) -> BaseModel:
        cleaned = self._extract_json(content)
        try:
            parsed = json.loads(cleaned)
            if isinstance(parsed, dict) and "properties" in parsed and "type" in parsed:
                raise ValueError("LLM returned the JSON schema instead of actual data")
            return response_format.model_validate(parsed)
        except Exception as e:
            raise ValueError(
                f"Failed to parse structured output: {e}\n"
                f"Raw response (first 500 chars): {content[:500]}\n"
                f"Expected format: {response_format.__name__}"
            ) from e

    def _extract_json(self, content: str) -> str:
        """
        Extract JSON from content that might have markdown formatting.

        Args:
            content: Raw content that may contain JSON

        Returns:
            Cleaned JSON string
        """
        content = content.strip()

        if "```json" in content:
            content = content.split("```json")[1].split("```")[0].strip()
        elif "```" in content:
            content = content.split("```")[1].split("```")[0].strip()

        return content
