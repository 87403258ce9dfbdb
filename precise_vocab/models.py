"""Pydantic data models for the precise vocabulary generator."""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

import config


class DifficultyTier(str, Enum):
    """Difficulty levels a vocabulary record may carry."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    PROFESSIONAL = "Professional"


class VocabularyRecord(BaseModel):
    """A single validated vocabulary item."""

    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    headword: str
    definition: str
    example: str
    pronunciation: str
    category: str
    difficulty_tier: DifficultyTier
    localized_meaning: str

    @property
    def key(self) -> str:
        """Case-insensitive identity used for duplicate detection."""
        return self.headword.lower()


class FreeTextRequest(BaseModel):
    """A request described by the user's own words."""

    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    kind: Literal["free_text"] = "free_text"
    prompt: str
    context: Optional[str] = None
    difficulty_tier: DifficultyTier = DifficultyTier.INTERMEDIATE
    batch_size: int = Field(default=config.DEFAULT_BATCH_SIZE, gt=0)


class PersonaRequest(BaseModel):
    """A request described by the learner's occupation and interests."""

    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    kind: Literal["persona"] = "persona"
    occupation: str
    interests: str
    theme: Optional[str] = None
    difficulty_tier: DifficultyTier = DifficultyTier.INTERMEDIATE
    batch_size: int = Field(default=config.DEFAULT_BATCH_SIZE, gt=0)


GenerationRequest = Annotated[
    Union[FreeTextRequest, PersonaRequest], Field(discriminator="kind")
]


class GenerationOptions(BaseModel):
    """Sampling options passed through to the text generator."""

    temperature: float = config.DEFAULT_TEMPERATURE
    max_output_tokens: int = config.DEFAULT_MAX_OUTPUT_TOKENS
    top_p: float = config.DEFAULT_TOP_P
    top_k: int = config.DEFAULT_TOP_K


class RunState(str, Enum):
    """Orchestrator run states."""

    RUNNING = "running"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"


class MemorySnapshot(BaseModel):
    """Read-only copy of a generation memory."""

    records: list[VocabularyRecord] = Field(default_factory=list)
    word_count: int = 0
    target_word_count: int = 0
    history: list[str] = Field(default_factory=list)


class GenerationStats(BaseModel):
    """Summary of one orchestrator run."""

    word_count: int = 0
    target_word_count: int = 0
    item_count: int = 0
    batches_attempted: int = 0
    is_complete: bool = False
    history: list[str] = Field(default_factory=list)


class GenerationResult(BaseModel):
    """Records produced by a run together with its statistics."""

    records: list[VocabularyRecord] = Field(default_factory=list)
    stats: GenerationStats
    state: RunState = RunState.RUNNING


class VocabularyApiRequest(BaseModel):
    """Request accepted by the generation service and the batch runner."""

    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: Optional[str] = None  # checkpoint key in request files
    prompt: str = ""
    difficulty: DifficultyTier = DifficultyTier.INTERMEDIATE
    target_count: int = Field(default=config.DEFAULT_TARGET_WORD_COUNT, gt=0)
    mode: Literal["customized", "custom-made"] = "customized"
    occupation: Optional[str] = None
    habits: Optional[str] = None
    theme: Optional[str] = None
    max_items: Optional[int] = Field(default=None, gt=0)


class ResponseMetadata(BaseModel):
    """Bookkeeping attached to every service response."""

    timestamp: str
    request_id: str
    processing_time_ms: int


class ResponseData(BaseModel):
    """Payload of a service response."""

    vocabulary: list[VocabularyRecord] = Field(default_factory=list)
    stats: GenerationStats
    metadata: ResponseMetadata


class VocabularyApiResponse(BaseModel):
    """Result returned by the generation service."""

    success: bool
    data: ResponseData
    error: Optional[str] = None


class CheckpointData(BaseModel):
    """Checkpoint data for tracking request-file progress."""

    processed_requests: list[str] = Field(default_factory=list)
    failed_requests: list[str] = Field(default_factory=list)
