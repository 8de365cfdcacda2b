"""Schemas for strategies, device constraints, selection results and execution results."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from agentrag.schemas.content import Complexity, ContentType


class PerformanceProfile(str, Enum):
    FAST = "fast"
    BALANCED = "balanced"
    COMPREHENSIVE = "comprehensive"


class ChunkingMethod(str, Enum):
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    SECTION = "section"
    SEMANTIC = "semantic"


class StrategyDescriptor(BaseModel):
    """A named retrieval/answering approach. Owned by the strategy catalog; immutable."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique catalog key.")
    description: str = ""
    performance_profile: PerformanceProfile
    content_types: frozenset[ContentType] = Field(
        ..., description="Supported content types; 'mixed' acts as a wildcard."
    )
    complexity_levels: frozenset[Complexity]
    device_optimized: bool = False
    latency_estimate_ms: float = Field(..., ge=0.0)
    cost: float = Field(..., ge=0.0, le=1.0, description="Relative resource cost.")
    accuracy_estimate: float = Field(0.7, ge=0.0, le=1.0)
    chunking_method: ChunkingMethod = ChunkingMethod.PARAGRAPH
    chunk_size: int = Field(1024, gt=0)
    chunk_overlap: int = Field(100, ge=0)
    top_k: int = Field(5, gt=0)
    max_tokens: int = Field(400, gt=0)

    def supports(self, content_type: ContentType, complexity: Complexity) -> bool:
        type_ok = content_type in self.content_types or ContentType.MIXED in self.content_types
        return type_ok and complexity in self.complexity_levels


class ProcessingPower(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Connectivity(str, Enum):
    WIFI = "wifi"
    CELLULAR = "cellular"
    ETHERNET = "ethernet"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class FormFactor(str, Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"


class DeviceConstraints(BaseModel):
    """Capability/connectivity envelope of the requesting client. Immutable per request."""

    model_config = ConfigDict(frozen=True)

    processing_power: ProcessingPower = ProcessingPower.MEDIUM
    memory_mb: int = Field(4096, ge=0)
    connectivity: Connectivity = Connectivity.UNKNOWN
    form_factor: FormFactor = FormFactor.DESKTOP

    @property
    def is_mobile(self) -> bool:
        return self.form_factor in (FormFactor.MOBILE, FormFactor.TABLET)

    @property
    def device_type(self) -> str:
        return self.form_factor.value


class SelectionPreferences(BaseModel):
    prioritize_speed: bool = False
    prioritize_accuracy: bool = False
    max_processing_time_ms: float | None = None


class PredictedPerformance(BaseModel):
    latency_ms: float
    accuracy: float = Field(..., ge=0.0, le=1.0)
    memory_mb: float = 0.0


class ScoredStrategy(BaseModel):
    strategy: StrategyDescriptor
    score: float
    static_score: float = 0.0
    historical_score: float | None = None
    history_weight: float = 0.0
    device_bonus: float = 0.0
    pattern_bonus: float = 0.0


class StrategySelectionResult(BaseModel):
    selected_strategy: StrategyDescriptor
    alternatives: list[ScoredStrategy] = Field(default_factory=list, description="Next best candidates (max 3).")
    ranking: list[ScoredStrategy] = Field(default_factory=list, description="Every scored candidate in rank order.")
    confidence: float = Field(..., ge=0.0, le=1.0)
    reasoning: list[str] = Field(default_factory=list, description="Factors that shaped the ranking, in order.")
    performance: PredictedPerformance
    used_fallback_catalog: bool = False
    warnings: list[str] = Field(default_factory=list)


class SourceChunk(BaseModel):
    chunk_id: int
    text: str
    score: float = 0.0


class ExecutionResult(BaseModel):
    answer: str
    sources: list[SourceChunk] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    actual_latency_ms: float
    strategy_name: str
    chunks_considered: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    extractive: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
