"""Data Transfer Objects for application layer."""

from waffle_intel.application.dtos.generation import (
    CatchUpResponse,
    ConversationStarterRequest,
    SuggestionsResponse,
)
from waffle_intel.application.dtos.ingestion import (
    IngestionResponse,
    ProcessingStep,
    StepOutcome,
    StepSeverity,
    StepStatus,
    StorageObjectEvent,
)
from waffle_intel.application.dtos.search import (
    AIAnswerState,
    AnswerEvent,
    AnswerStatus,
    DateRangeFilter,
    MediaTypeFilter,
    ProcessingStatus,
    SearchFilters,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
)

__all__ = [
    # Generation DTOs
    "CatchUpResponse",
    "ConversationStarterRequest",
    "SuggestionsResponse",
    # Ingestion DTOs
    "IngestionResponse",
    "ProcessingStep",
    "StepOutcome",
    "StepSeverity",
    "StepStatus",
    "StorageObjectEvent",
    # Search DTOs
    "AIAnswerState",
    "AnswerEvent",
    "AnswerStatus",
    "DateRangeFilter",
    "MediaTypeFilter",
    "ProcessingStatus",
    "SearchFilters",
    "SearchRequest",
    "SearchResponse",
    "SearchResultItem",
]
