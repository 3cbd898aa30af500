"""
Abstract base class for extractors.
"""

from abc import ABC, abstractmethod

from souvenir.models.extraction import ChunkExtraction, ExtractedEntity, ExtractedRelationship
from souvenir.models.retrieval import ProcessOptions


class Extractor(ABC):
    """
    Turns text into candidate entities, relationships and summaries.

    Implementations never raise on bad backend output: each method returns
    an empty result instead.
    """

    @abstractmethod
    async def extract_entities(self, text: str, prompt: str | None = None) -> list[ExtractedEntity]:
        """Extract entities from text ([] on failure)."""
        pass

    @abstractmethod
    async def extract_relationships(
        self,
        text: str,
        entities: list[ExtractedEntity],
        prompt: str | None = None,
    ) -> list[ExtractedRelationship]:
        """Extract relationships between ``entities`` ([] on failure or fewer than two entities)."""
        pass

    @abstractmethod
    async def summarize(self, text: str | list[str], max_length: int = 200) -> str:
        """Summarize one text or several ("" on failure)."""
        pass

    async def process_chunk(
        self, text: str, options: ProcessOptions | None = None, max_summary_length: int = 200
    ) -> ChunkExtraction:
        """
        Run entity extraction, relationship extraction and summarization for one chunk.

        Args:
            text: Chunk text
            options: Which steps to run; the chunk summary follows ``summarize_chunks``
            max_summary_length: Target summary length in characters

        Returns:
            ChunkExtraction; ``failures`` lists the steps that came back empty
            because of an error
        """
        options = options or ProcessOptions()
        result = ChunkExtraction()

        if options.extract_entities:
            result.entities = await self.extract_entities(text, prompt=options.entity_prompt)

        if options.extract_relationships and len(result.entities) >= 2:
            result.relationships = await self.extract_relationships(
                text, result.entities, prompt=options.relationship_prompt
            )

        if options.summarize_chunks:
            result.summary = await self.summarize(text, max_length=max_summary_length)

        return result

    async def close(self):
        """Release backend resources. Override if the extractor holds any."""
        return None
