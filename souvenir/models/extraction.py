"""
Extraction models.

The ``*Extraction`` / ``Summarization`` classes are the structured-output
schemas handed to the LLM; anything the model returns is validated against
them before it reaches the engine.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class ExtractedEntity(BaseModel):
    """Entity extracted from content."""

    model_config = {"extra": "ignore"}

    text: str = Field(..., description="The text of the entity")
    type: str = Field(
        ...,
        description=(
            "The type/category of the entity (e.g., person, organization, location, "
            "concept, event, date, technology)"
        ),
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Additional metadata about the entity"
    )

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, value: Any) -> Any:
        return value if value is not None else {}


class EntityExtraction(BaseModel):
    """Entity extraction result (LLM structured output)."""

    model_config = {"extra": "ignore"}

    entities: list[ExtractedEntity] = Field(
        default_factory=list, description="Array of extracted entities from the text"
    )


class ExtractedRelationship(BaseModel):
    """Relationship between two extracted entities, referenced by entity text."""

    model_config = {"extra": "ignore"}

    source: str = Field(..., description="The source entity text")
    target: str = Field(..., description="The target entity text")
    type: str = Field(
        ...,
        description=(
            "The type of relationship (e.g., related_to, part_of, caused_by, enables, "
            "requires, similar_to)"
        ),
    )
    weight: float | None = Field(
        default=None, ge=0.0, le=1.0, description="The strength of the relationship (0-1)"
    )


class RelationshipExtraction(BaseModel):
    """Relationship extraction result (LLM structured output)."""

    model_config = {"extra": "ignore"}

    relationships: list[ExtractedRelationship] = Field(
        default_factory=list, description="Array of extracted relationships between entities"
    )


class Summarization(BaseModel):
    """Summary result (LLM structured output)."""

    model_config = {"extra": "ignore"}

    summary: str = Field(..., description="A concise summary of the content")


class ChunkExtraction(BaseModel):
    """
    Everything extracted from one chunk.

    ``failures`` names the steps that degraded to an empty result, so callers
    can tell "nothing found" from "extraction failed".
    """

    entities: list[ExtractedEntity] = Field(default_factory=list)
    relationships: list[ExtractedRelationship] = Field(default_factory=list)
    summary: str = ""
    failures: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class PromptTemplates(BaseModel):
    """
    Prompt templates for extraction.

    Placeholders: ``{content}``, ``{entities}``, ``{max_length}``, ``{summary_type}``.
    """

    entity_extraction: str = """Extract key entities from the following text. Identify important people, organizations, locations, concepts, events, dates, technologies, and other significant entities.

Be thorough but accurate. Only extract entities that are clearly mentioned or strongly implied in the text.

Text:
{content}"""

    relationship_extraction: str = """Given the following entities: {entities}

Extract meaningful relationships between these entities from the text below. Focus on direct relationships that are explicitly stated or strongly implied.

Types of relationships to consider: related_to, part_of, caused_by, enables, requires, similar_to, and other descriptive types.

Assign a weight between 0 and 1 to indicate the strength of each relationship (1 = very strong, 0 = weak).

Text:
{content}"""

    summarization: str = """Provide a concise summary of the following text. Keep it under {max_length} characters while capturing the key information and main ideas.

Text:
{content}"""

    multi_summarization: str = """Generate a comprehensive summary of the following {summary_type} content.
Identify key themes, entities, and relationships. Keep it under {max_length} characters.

Content:
{content}"""
