"""Application services for ingestion, generation and search."""

from waffle_intel.application.services.answer_broker import AnswerBroker, SearchTask
from waffle_intel.application.services.captions import CaptionSuggestionService
from waffle_intel.application.services.catchup import CatchUpService
from waffle_intel.application.services.conversation import (
    ConversationStarterService,
)
from waffle_intel.application.services.ingestion import (
    IngestionContext,
    IngestionError,
    PipelineStep,
    StepRunner,
    VideoIngestionService,
)
from waffle_intel.application.services.linker import PendingLinkSweeper
from waffle_intel.application.services.media_urls import MediaUrlResolver
from waffle_intel.application.services.query_parser import (
    ParsedQuery,
    QueryParser,
    normalize_query,
)
from waffle_intel.application.services.search import SearchService

__all__ = [
    "AnswerBroker",
    "CaptionSuggestionService",
    "CatchUpService",
    "ConversationStarterService",
    "IngestionContext",
    "IngestionError",
    "MediaUrlResolver",
    "ParsedQuery",
    "PendingLinkSweeper",
    "PipelineStep",
    "QueryParser",
    "SearchService",
    "SearchTask",
    "StepRunner",
    "VideoIngestionService",
    "normalize_query",
]
