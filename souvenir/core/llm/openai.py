"""
OpenAI chat provider.

Plain completions go through ``chat.completions.create``; when a response
model is given the SDK's ``parse`` helper enforces the schema server-side.
"""

from openai import AsyncOpenAI
from pydantic import BaseModel

from souvenir.core.llm.base import LLMProvider
from souvenir.utils.exceptions import LLMError, ValidationError
from souvenir.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAILLM(LLMProvider):
    """OpenAI (or OpenAI-compatible, via ``base_url``) chat completions."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
    ):
        self.model = model
        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

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
        Run one chat completion.

        Raises:
            ValidationError: Empty prompt, or the parse API produced no object
            LLMError: Transport failures, refusals and empty text replies
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")

        request = {
            "model": self.model,
            "messages": self.build_messages(prompt, system_prompt),
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs,
        }

        try:
            if response_format is None:
                return await self._complete_text(request)
            return await self._complete_parsed(request, response_format)
        except (ValidationError, LLMError):
            raise
        except Exception as e:
            logger.error(f"OpenAI request to {self.model} failed ({type(e).__name__}): {e}")
            raise LLMError(f"OpenAI API error: {e}", context={"model": self.model}) from e

    async def _complete_text(self, request: dict) -> str:
        response = await self.client.chat.completions.create(**request)
        content = response.choices[0].message.content
        if not content:
            raise LLMError("OpenAI returned empty content", context={"model": self.model})
        return content

    async def _complete_parsed(self, request: dict, response_format: type[BaseModel]) -> BaseModel:
        response = await self.client.beta.chat.completions.parse(
            **request, response_format=response_format
        )
        message = response.choices[0].message

        refusal = getattr(message, "refusal", None)
        if isinstance(refusal, str) and refusal:
            raise LLMError(
                f"OpenAI refused the request: {refusal}",
                context={"model": self.model, "schema": response_format.__name__},
            )

        if not message.parsed:
            raise ValidationError(
                "OpenAI returned empty parsed response",
                context={"schema": response_format.__name__},
            )
        return message.parsed

    async def close(self):
        await self.client.close()
