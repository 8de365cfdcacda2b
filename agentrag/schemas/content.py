"""Schemas for content analysis: content type/complexity enums and the content profile."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    ARTICLE = "article"
    TECHNICAL = "technical"
    STRUCTURED_DATA = "structured-data"
    CONVERSATIONAL = "conversational"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class Complexity(str, Enum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class ContentSignals(BaseModel):
    """Structural signals measured on the raw content. All counts are >= 0."""

    model_config = ConfigDict(frozen=True)

    word_count: int = 0
    char_count: int = 0
    line_count: int = 0
    sentence_count: int = 0
    heading_count: int = 0
    heading_density: float = Field(0.0, description="Headings per non-empty line.")
    list_item_count: int = 0
    table_count: int = 0
    table_row_count: int = 0
    list_table_density: float = Field(0.0, description="List items and table rows per non-empty line.")
    code_token_count: int = 0
    code_block_count: int = 0
    numeric_density: float = Field(0.0, description="Share of tokens that are numbers.")
    vocabulary_diversity: float = Field(0.0, description="Guiraud index: unique words / sqrt(words).")
    avg_sentence_length: float = 0.0
    sentence_length_variance: float = 0.0
    link_count: int = 0
    question_count: int = 0
    reading_time_minutes: float = 0.0
    readability_score: float = Field(50.0, ge=0.0, le=100.0, description="Flesch reading ease estimate; higher is easier.")


class ContentProfile(BaseModel):
    """Structural/complexity classification of one piece of content. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    type: ContentType = Field(..., description="Winning content bucket.")
    complexity: Complexity = Field(..., description="Complexity tier from length, vocabulary and structure.")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Normalized margin between the top two buckets.")
    signals: ContentSignals = Field(default_factory=ContentSignals)
    type_scores: dict[str, float] = Field(default_factory=dict, description="Heuristic score per bucket.")
    language: str = "en"
    domain: str = "unknown"
    fingerprint: str = Field("", description="Compact key-signal string used to group content patterns.")
    analyzed_by: str = Field("heuristic", description="heuristic | llm | cache | default")


def default_profile() -> ContentProfile:
    """Profile substituted when analysis fails, so downstream steps can still proceed."""
    return ContentProfile(
        type=ContentType.UNKNOWN,
        complexity=Complexity.MEDIUM,
        confidence=0.3,
        analyzed_by="default",
    )
