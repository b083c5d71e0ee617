"""Infrastructure factory for creating provider instances from configuration."""

from typing import Any, cast

from waffle_intel.commons.cache import CacheBase, TTLCache
from waffle_intel.commons.infrastructure.blob import BlobStorageBase, MinioBlobStorage
from waffle_intel.commons.infrastructure.relationaldb import (
    PostgresDatabase,
    RelationalDBBase,
)
from waffle_intel.commons.security import TokenVerifier
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import get_logger
from waffle_intel.infrastructure.embeddings import (
    EmbeddingServiceBase,
    OpenAIEmbeddingService,
)
from waffle_intel.infrastructure.llm import LLMServiceBase, OpenAILLMService
from waffle_intel.infrastructure.media import FFmpegTranscoder, TranscoderBase
from waffle_intel.infrastructure.resilience import RetryPolicy
from waffle_intel.infrastructure.store import (
    SearchRepository,
    VideoMetadataStore,
    WaffleStore,
)
from waffle_intel.infrastructure.transcription import (
    OpenAIWhisperTranscription,
    TranscriptionServiceBase,
)

logger = get_logger(__name__)


class InfrastructureFactory:
    """Creates and memoizes infrastructure providers.

    Every getter returns the same instance for the factory's lifetime, so
    pools, clients and in-process caches are shared across requests.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize factory with settings.

        Args:
            settings: Application settings.
        """
        self._settings = settings
        self._instances: dict[str, Any] = {}

    def _retry_policy(self, timeout_seconds: float) -> RetryPolicy:
        processing = self._settings.processing
        return RetryPolicy(
            attempts=processing.retry_attempts,
            timeout_seconds=timeout_seconds,
            min_wait_seconds=processing.retry_min_wait_seconds,
            max_wait_seconds=processing.retry_max_wait_seconds,
        )

    def get_blob_storage(self) -> BlobStorageBase:
        if "blob_storage" not in self._instances:
            blob = self._settings.blob_storage
            self._instances["blob_storage"] = MinioBlobStorage(
                endpoint=blob.endpoint,
                access_key=blob.access_key,
                secret_key=blob.secret_key,
                secure=blob.use_ssl,
                region=blob.region,
            )
        return cast("BlobStorageBase", self._instances["blob_storage"])

    def get_database(self) -> RelationalDBBase:
        if "database" not in self._instances:
            db = self._settings.database
            self._instances["database"] = PostgresDatabase(
                dsn=db.build_dsn(),
                min_size=db.min_pool_size,
                max_size=db.max_pool_size,
                command_timeout=db.command_timeout_seconds,
            )
        return cast("RelationalDBBase", self._instances["database"])

    def get_transcoder(self) -> TranscoderBase:
        if "transcoder" not in self._instances:
            media = self._settings.media
            self._instances["transcoder"] = FFmpegTranscoder(
                ffmpeg_path=media.ffmpeg_path,
                ffprobe_path=media.ffprobe_path,
                timeout_seconds=media.subprocess_timeout_seconds,
                thumbnail_max_width=media.thumbnail_max_width,
                thumbnail_quality=media.thumbnail_quality,
                audio_bitrate=media.audio_bitrate,
            )
        return cast("TranscoderBase", self._instances["transcoder"])

    def get_transcription_service(self) -> TranscriptionServiceBase:
        if "transcription" not in self._instances:
            trans = self._settings.transcription
            self._instances["transcription"] = OpenAIWhisperTranscription(
                api_key=trans.api_key,
                model=trans.model,
                base_url=trans.endpoint,
                retry_policy=self._retry_policy(trans.timeout_seconds),
            )
        return cast("TranscriptionServiceBase", self._instances["transcription"])

    def get_embedding_service(self) -> EmbeddingServiceBase:
        if "embedding" not in self._instances:
            embed = self._settings.embeddings
            self._instances["embedding"] = OpenAIEmbeddingService(
                api_key=embed.api_key,
                model=embed.model,
                base_url=embed.endpoint,
                dimensions=embed.dimensions,
                retry_policy=self._retry_policy(embed.timeout_seconds),
            )
        return cast("EmbeddingServiceBase", self._instances["embedding"])

    def get_llm_service(self) -> LLMServiceBase:
        if "llm" not in self._instances:
            llm = self._settings.llm
            self._instances["llm"] = OpenAILLMService(
                api_key=llm.api_key,
                model=llm.model,
                base_url=llm.endpoint,
                stream_model=llm.stream_model,
                retry_policy=self._retry_policy(llm.timeout_seconds),
            )
        return cast("LLMServiceBase", self._instances["llm"])

    def get_token_verifier(self) -> TokenVerifier:
        if "token_verifier" not in self._instances:
            auth = self._settings.auth
            self._instances["token_verifier"] = TokenVerifier(
                secret=auth.jwt_secret,
                algorithms=auth.algorithms,
                audience=auth.audience,
                leeway_seconds=auth.leeway_seconds,
            )
        return cast("TokenVerifier", self._instances["token_verifier"])

    def get_metadata_store(self) -> VideoMetadataStore:
        if "metadata_store" not in self._instances:
            self._instances["metadata_store"] = VideoMetadataStore(self.get_database())
        return cast("VideoMetadataStore", self._instances["metadata_store"])

    def get_waffle_store(self) -> WaffleStore:
        if "waffle_store" not in self._instances:
            self._instances["waffle_store"] = WaffleStore(self.get_database())
        return cast("WaffleStore", self._instances["waffle_store"])

    def get_search_repository(self) -> SearchRepository:
        if "search_repository" not in self._instances:
            self._instances["search_repository"] = SearchRepository(self.get_database())
        return cast("SearchRepository", self._instances["search_repository"])

    def get_cache(
        self, name: str, default_ttl_seconds: float | None
    ) -> CacheBase[Any, Any]:
        """Get the named in-process cache, creating it on first use."""
        key = f"cache:{name}"
        if key not in self._instances:
            self._instances[key] = TTLCache(
                name=name, default_ttl_seconds=default_ttl_seconds
            )
        return cast("CacheBase[Any, Any]", self._instances[key])

    def caches(self) -> list[CacheBase[Any, Any]]:
        """Every cache created so far."""
        return [v for k, v in self._instances.items() if k.startswith("cache:")]

    async def close_all(self) -> None:
        """Close every provider that holds connections."""
        for name, instance in self._instances.items():
            close = getattr(instance, "close", None)
            if close is None:
                continue
            try:
                result = close()
                if hasattr(result, "__await__"):
                    await result
            except Exception:
                logger.warning("Failed to close provider", extra={"provider": name})
        self._instances.clear()


class _FactoryHolder:
    """Holder for the factory singleton to avoid global statements."""

    instance: InfrastructureFactory | None = None


def get_factory(settings: Settings | None = None) -> InfrastructureFactory:
    """Get or create the infrastructure factory singleton.

    Args:
        settings: Settings to use. Required on first call.

    Raises:
        ValueError: If settings not provided on first call.
    """
    if _FactoryHolder.instance is None:
        if settings is None:
            raise ValueError("Settings required to initialize factory")
        _FactoryHolder.instance = InfrastructureFactory(settings)
    return _FactoryHolder.instance


def reset_factory() -> None:
    """Reset the factory singleton (for testing)."""
    _FactoryHolder.instance = None
