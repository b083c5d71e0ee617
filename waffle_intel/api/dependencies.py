"""FastAPI dependency injection for services and settings."""

from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, Header

from waffle_intel.application.services.answer_broker import AnswerBroker
from waffle_intel.application.services.captions import CaptionSuggestionService
from waffle_intel.application.services.catchup import CatchUpService
from waffle_intel.application.services.conversation import (
    ConversationStarterService,
)
from waffle_intel.application.services.ingestion import VideoIngestionService
from waffle_intel.application.services.linker import PendingLinkSweeper
from waffle_intel.application.services.media_urls import MediaUrlResolver
from waffle_intel.application.services.search import SearchService
from waffle_intel.commons.cache import CacheBase, CacheSweeper, RequestThrottle
from waffle_intel.commons.security import AuthenticatedUser
from waffle_intel.commons.settings.loader import get_settings as _load_settings
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.infrastructure.factory import (
    InfrastructureFactory,
    get_factory,
    reset_factory,
)

logger = get_logger(__name__)

EMBEDDING_CACHE = "query_embeddings"
CATCHUP_CACHE = "catchup_summaries"
THROTTLE_CACHE = "convo_throttle"
TASK_REGISTRY = "search_tasks"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Application settings loaded from config files and environment.
    """
    return _load_settings()


def get_infrastructure_factory(
    settings: Annotated[Settings, Depends(get_settings)],
) -> InfrastructureFactory:
    """Get infrastructure factory with all providers.

    Args:
        settings: Application settings.

    Returns:
        Configured infrastructure factory.
    """
    return get_factory(settings)


def _caches(
    factory: InfrastructureFactory, settings: Settings
) -> dict[str, CacheBase[Any, Any]]:
    """The process-local caches, created on first use."""
    return {
        EMBEDDING_CACHE: factory.get_cache(
            EMBEDDING_CACHE, settings.search.embedding_cache_ttl_seconds
        ),
        CATCHUP_CACHE: factory.get_cache(
            CATCHUP_CACHE, settings.catchup.cache_ttl_seconds
        ),
        THROTTLE_CACHE: factory.get_cache(
            THROTTLE_CACHE, settings.conversation.throttle_seconds
        ),
        TASK_REGISTRY: factory.get_cache(
            TASK_REGISTRY, settings.search.task_ttl_seconds
        ),
    }


class _ServiceHolder:
    """Holder for process-wide service state to avoid global statements."""

    broker: AnswerBroker | None = None
    sweeper: CacheSweeper | None = None
    linker: PendingLinkSweeper | None = None


def get_current_user(
    factory: Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)],
    authorization: Annotated[str | None, Header()] = None,
) -> AuthenticatedUser:
    """Authenticate the request's bearer token.

    Raises:
        AuthenticationRequiredError: If the header is missing (401).
        InvalidTokenError: If the token does not verify (403).
    """
    return factory.get_token_verifier().authenticate(authorization)


def get_answer_broker(
    factory: Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AnswerBroker:
    """Get the process-wide answer broker."""
    if _ServiceHolder.broker is None:
        _ServiceHolder.broker = AnswerBroker(
            llm_service=factory.get_llm_service(),
            registry=_caches(factory, settings)[TASK_REGISTRY],
            settings=settings,
        )
    return _ServiceHolder.broker


def get_media_url_resolver(
    factory: Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> MediaUrlResolver:
    return MediaUrlResolver(factory.get_blob_storage(), settings)


def get_ingestion_service(
    factory: Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
    media_urls: Annotated[MediaUrlResolver, Depends(get_media_url_resolver)],
) -> VideoIngestionService:
    """Get video ingestion service with all dependencies.

    Args:
        factory: Infrastructure factory.
        settings: Application settings.
        media_urls: Display URL resolver.

    Returns:
        Configured video ingestion service.
    """
    return VideoIngestionService(
        blob_storage=factory.get_blob_storage(),
        transcoder=factory.get_transcoder(),
        transcription_service=factory.get_transcription_service(),
        embedding_service=factory.get_embedding_service(),
        llm_service=factory.get_llm_service(),
        metadata_store=factory.get_metadata_store(),
        waffle_store=factory.get_waffle_store(),
        media_urls=media_urls,
        settings=settings,
    )


def get_caption_service(
    factory: Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CaptionSuggestionService:
    return CaptionSuggestionService(
        transcoder=factory.get_transcoder(),
        transcription_service=factory.get_transcription_service(),
        embedding_service=factory.get_embedding_service(),
        llm_service=factory.get_llm_service(),
        metadata_store=factory.get_metadata_store(),
        waffle_store=factory.get_waffle_store(),
        settings=settings,
    )


def get_conversation_service(
    factory: Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ConversationStarterService:
    convo = settings.conversation
    return ConversationStarterService(
        waffle_store=factory.get_waffle_store(),
        llm_service=factory.get_llm_service(),
        throttle=RequestThrottle(
            _caches(factory, settings)[THROTTLE_CACHE],
            interval_seconds=convo.throttle_seconds,
            enabled=convo.throttle_enabled,
        ),
        settings=settings,
    )


def get_search_service(
    factory: Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
    media_urls: Annotated[MediaUrlResolver, Depends(get_media_url_resolver)],
    broker: Annotated[AnswerBroker, Depends(get_answer_broker)],
) -> SearchService:
    """Get search service with all dependencies.

    Args:
        factory: Infrastructure factory.
        settings: Application settings.
        media_urls: Display URL resolver.
        broker: Process-wide answer broker.

    Returns:
        Configured search service.
    """
    return SearchService(
        embedding_service=factory.get_embedding_service(),
        search_repository=factory.get_search_repository(),
        waffle_store=factory.get_waffle_store(),
        media_urls=media_urls,
        answer_broker=broker,
        embedding_cache=_caches(factory, settings)[EMBEDDING_CACHE],
        settings=settings,
    )


def get_catchup_service(
    factory: Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CatchUpService:
    return CatchUpService(
        waffle_store=factory.get_waffle_store(),
        llm_service=factory.get_llm_service(),
        cache=_caches(factory, settings)[CATCHUP_CACHE],
        settings=settings,
    )


# Type aliases for cleaner route signatures
SettingsDep = Annotated[Settings, Depends(get_settings)]
FactoryDep = Annotated[InfrastructureFactory, Depends(get_infrastructure_factory)]
CurrentUserDep = Annotated[AuthenticatedUser, Depends(get_current_user)]
AnswerBrokerDep = Annotated[AnswerBroker, Depends(get_answer_broker)]
IngestionServiceDep = Annotated[VideoIngestionService, Depends(get_ingestion_service)]
CaptionServiceDep = Annotated[CaptionSuggestionService, Depends(get_caption_service)]
ConversationServiceDep = Annotated[
    ConversationStarterService, Depends(get_conversation_service)
]
SearchServiceDep = Annotated[SearchService, Depends(get_search_service)]
CatchUpServiceDep = Annotated[CatchUpService, Depends(get_catchup_service)]


async def init_services(settings: Settings) -> None:
    """Initialize infrastructure and background housekeeping on startup.

    Args:
        settings: Application settings.
    """
    factory = get_factory(settings)

    # Pre-initialize providers so misconfiguration fails fast
    factory.get_blob_storage()
    factory.get_token_verifier()
    try:
        await factory.get_database().connect()
    except Exception as e:
        logger.warning(
            "Database unavailable at startup, will retry on first use",
            extra={"error": str(e)},
        )

    _caches(factory, settings)
    _ServiceHolder.sweeper = CacheSweeper(
        factory.caches(), interval_seconds=settings.cache.sweep_interval_seconds
    )
    _ServiceHolder.sweeper.start()

    processing = settings.processing
    _ServiceHolder.linker = PendingLinkSweeper(
        factory.get_metadata_store(),
        factory.get_waffle_store(),
        MediaUrlResolver(factory.get_blob_storage(), settings),
        interval_seconds=processing.link_interval_seconds,
        batch_size=processing.link_batch_size,
        window_hours=processing.link_window_hours,
    )
    _ServiceHolder.linker.start()


async def shutdown_services() -> None:
    """Stop background work and close infrastructure services."""
    if _ServiceHolder.sweeper is not None:
        await _ServiceHolder.sweeper.stop()
        _ServiceHolder.sweeper = None
    if _ServiceHolder.linker is not None:
        await _ServiceHolder.linker.stop()
        _ServiceHolder.linker = None
    if _ServiceHolder.broker is not None:
        await _ServiceHolder.broker.close()
        _ServiceHolder.broker = None
    try:
        factory = get_factory()
        await factory.close_all()
    except ValueError:
        logger.debug("Factory was never initialized")
    finally:
        reset_factory()
        get_settings.cache_clear()
