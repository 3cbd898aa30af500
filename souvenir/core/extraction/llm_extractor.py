"""
Extractor backed by an LLM with structured outputs.
"""

import re

from souvenir.core.extraction.base import Extractor
from souvenir.core.llm.base import LLMProvider
from souvenir.models.extraction import (
    ChunkExtraction,
    EntityExtraction,
    ExtractedEntity,
    ExtractedRelationship,
    PromptTemplates,
    RelationshipExtraction,
    Summarization,
)
from souvenir.models.retrieval import ProcessOptions
from souvenir.utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You extract structured knowledge from text for a memory graph. "
    "Answer with data only."
)

MULTI_CONTENT_SEPARATOR = "\n\n---\n\n"

PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _render(template: str, **values: str) -> str:
    """
    Fill ``{name}`` placeholders in one pass.

    Inserted values are never rescanned, so braces or placeholder names inside
    chunk text stay as written. Unknown placeholders are left alone.
    """
    return PLACEHOLDER.sub(lambda match: values.get(match.group(1), match.group(0)), template)


class LLMExtractor(Extractor):
    """
    Extractor that prompts an LLMProvider with pydantic response schemas.

    Every backend or parse failure is logged and degrades to an empty result.
    """

    def __init__(
        self,
        llm: LLMProvider,
        prompts: PromptTemplates | None = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ):
        """
        Initialize extractor.

        Args:
            llm: Provider used for all calls
            prompts: Prompt templates (built-in defaults if not provided)
            temperature: Sampling temperature
            max_tokens: Maximum tokens per call
        """
        self.llm = llm
        self.prompts = prompts or PromptTemplates()
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def _complete(self, prompt: str, response_format):
        return await self.llm.complete(
            prompt,
            response_format=response_format,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system_prompt=SYSTEM_PROMPT,
        )

    async def extract_entities(self, text: str, prompt: str | None = None) -> list[ExtractedEntity]:
        entities, _ = await self._entities(text, prompt)
        return entities

    async def extract_relationships(
        self,
        text: str,
        entities: list[ExtractedEntity],
        prompt: str | None = None,
    ) -> list[ExtractedRelationship]:
        relationships, _ = await self._relationships(text, entities, prompt)
        return relationships

    async def summarize(self, text: str | list[str], max_length: int = 200) -> str:
        summary, _ = await self._summary(text, max_length)
        return summary

    async def process_chunk(
        self, text: str, options: ProcessOptions | None = None, max_summary_length: int = 200
    ) -> ChunkExtraction:
        """
        Like Extractor.process_chunk, but records which steps failed.

        A failed step is one whose LLM call raised; an empty but valid answer
        is not a failure.
        """
        options = options or ProcessOptions()
        result = ChunkExtraction()

        if options.extract_entities:
            result.entities, failed = await self._entities(text, options.entity_prompt)
            if failed:
                result.failures.append("entities")

        if options.extract_relationships and len(result.entities) >= 2:
            result.relationships, failed = await self._relationships(
                text, result.entities, options.relationship_prompt
            )
            if failed:
                result.failures.append("relationships")

        if options.summarize_chunks:
            result.summary, failed = await self._summary(text, max_summary_length)
            if failed:
                result.failures.append("summary")

        return result

    # Each step returns (result, failed)

    async def _entities(
        self, text: str, prompt: str | None
    ) -> tuple[list[ExtractedEntity], bool]:
        if not text or not text.strip():
            return [], False

        template = prompt or self.prompts.entity_extraction
        try:
            result = await self._complete(_render(template, content=text), EntityExtraction)
        except Exception as e:
            logger.warning(f"Entity extraction failed, continuing without entities: {e}")
            return [], True

        entities = []
        for entity in result.entities:
            name = entity.text.strip()
            if not name:
                continue
            entities.append(
                ExtractedEntity(
                    text=name,
                    type=(entity.type or "").strip().lower() or "entity",
                    metadata=entity.metadata,
                )
            )
        return entities, False

    async def _relationships(
        self, text: str, entities: list[ExtractedEntity], prompt: str | None
    ) -> tuple[list[ExtractedRelationship], bool]:
        if len(entities) < 2:
            return [], False

        entity_list = ", ".join(f"{entity.text} ({entity.type})" for entity in entities)
        template = prompt or self.prompts.relationship_extraction
        try:
            result = await self._complete(
                _render(template, content=text, entities=entity_list), RelationshipExtraction
            )
        except Exception as e:
            logger.warning(f"Relationship extraction failed, continuing without relationships: {e}")
            return [], True

        relationships = []
        for rel in result.relationships:
            source, target = rel.source.strip(), rel.target.strip()
            if not source or not target:
                continue
            relationships.append(
                ExtractedRelationship(
                    source=source,
                    target=target,
                    type=rel.type.strip().lower() or "related_to",
                    weight=rel.weight,
                )
            )
        return relationships, False

    async def _summary(self, text: str | list[str], max_length: int) -> tuple[str, bool]:
        if isinstance(text, list):
            parts = [part for part in text if part and part.strip()]
            if not parts:
                return "", False
            prompt = _render(
                self.prompts.multi_summarization,
                content=MULTI_CONTENT_SEPARATOR.join(parts),
                summary_type="session",
                max_length=str(max_length),
            )
        else:
            if not text or not text.strip():
                return "", False
            prompt = _render(self.prompts.summarization, content=text, max_length=str(max_length))

        try:
            result = await self._complete(prompt, Summarization)
        except Exception as e:
            logger.warning(f"Summarization failed: {e}")
            return "", True

        return result.summary.strip(), False

    async def close(self):
        """Close the underlying LLM provider."""
        await self.llm.close()
