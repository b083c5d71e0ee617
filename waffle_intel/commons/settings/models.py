"""Pydantic settings models for application configuration."""

from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseModel):
    """Application-level settings."""

    name: str = "waffle-intel"
    version: str = "0.1.0"
    environment: Literal["dev", "staging", "prod"] = "dev"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


class ServerSettings(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    workers: int = Field(default=1, ge=1, le=32)
    reload: bool = False
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    docs_enabled: bool = True


class AuthSettings(BaseModel):
    """Bearer-token verification settings."""

    jwt_secret: str = ""
    algorithms: list[str] = Field(default_factory=lambda: ["HS256"])
    audience: str | None = "authenticated"
    leeway_seconds: int = Field(default=0, ge=0)


class WebhookSettings(BaseModel):
    """Storage webhook settings."""

    shared_secret: str | None = None
    secret_header: str = "X-Webhook-Secret"


class BlobStorageSettings(BaseModel):
    """Object storage settings (S3-compatible endpoint)."""

    endpoint: str = "localhost:9000"
    access_key: str = ""
    secret_key: str = ""
    use_ssl: bool = False
    region: str = "us-east-1"
    bucket: str = "waffles"
    public_base_url: str | None = None
    thumbnail_suffix: str = "_thumb.jpg"
    thumbnail_prefix: str = "thumbnails/"
    presigned_url_expiry_seconds: int = 3600


class DatabaseSettings(BaseModel):
    """PostgreSQL connection pool settings."""

    dsn: str | None = None
    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: str = ""
    database: str = "postgres"
    min_pool_size: int = Field(default=1, ge=0)
    max_pool_size: int = Field(default=10, ge=1)
    command_timeout_seconds: float = 30.0

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "DatabaseSettings":
        if self.min_pool_size > self.max_pool_size:
            raise ValueError("min_pool_size cannot exceed max_pool_size")
        return self

    def build_dsn(self) -> str:
        """Return the configured DSN, composing one from parts if needed."""
        if self.dsn:
            return self.dsn
        auth = self.username
        if self.password:
            auth = f"{auth}:{self.password}"
        return f"postgresql://{auth}@{self.host}:{self.port}/{self.database}"


class TranscriptionSettings(BaseModel):
    """Speech-to-text settings."""

    api_key: str = ""
    endpoint: str | None = None
    model: str = "whisper-1"
    language: str | None = None
    timeout_seconds: float = 120.0


class EmbeddingSettings(BaseModel):
    """Text embedding settings."""

    api_key: str = ""
    endpoint: str | None = None
    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    timeout_seconds: float = 30.0


class LLMSettings(BaseModel):
    """Completion model settings."""

    api_key: str = ""
    endpoint: str | None = None
    model: str = "gpt-4o"
    stream_model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = 1024
    timeout_seconds: float = 60.0


class MediaSettings(BaseModel):
    """ffmpeg transcoding settings."""

    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    subprocess_timeout_seconds: float = 180.0
    thumbnail_offset_seconds: float = 1.0
    thumbnail_max_width: int = 720
    thumbnail_quality: int = Field(default=4, ge=2, le=31)
    audio_sample_rate: int = 16000
    audio_channels: int = 1
    audio_bitrate: str = "64k"
    default_duration_seconds: int = 180
    video_extensions: list[str] = Field(
        default_factory=lambda: [".mp4", ".mov", ".m4v", ".webm", ".mkv", ".avi"]
    )


class ProcessingSettings(BaseModel):
    """Pipeline retry, recap and late post-linking settings."""

    retry_attempts: int = Field(default=3, ge=1)
    retry_min_wait_seconds: float = 1.0
    retry_max_wait_seconds: float = 8.0
    recap_max_words: int = 80
    recap_max_tokens: int = 200
    recap_temperature: float = 0.5
    link_interval_seconds: float = Field(default=60.0, gt=0)
    link_batch_size: int = Field(default=200, ge=1)
    link_window_hours: int = Field(default=24, ge=1)


class SearchSettings(BaseModel):
    """Semantic search settings."""

    min_query_length: int = 2
    default_limit: int = 10
    max_limit: int = 50
    default_similarity_threshold: float = 0.6
    min_similarity_threshold: float = 0.1
    max_similarity_threshold: float = 1.0
    embedding_cache_ttl_seconds: int = 3600
    answer_context_size: int = 5
    answer_max_tokens: int = 400
    answer_temperature: float = 0.4
    task_gc_delay_seconds: int = 300
    task_ttl_seconds: int = 1800
    max_suggestions: int = 3
    excerpt_length: int = 240
    placeholder_thumbnail_url: str = "https://placehold.co/320x568?text=Waffle"

    @model_validator(mode="after")
    def _check_threshold_bounds(self) -> "SearchSettings":
        if self.min_similarity_threshold > self.max_similarity_threshold:
            raise ValueError(
                "min_similarity_threshold cannot exceed max_similarity_threshold"
            )
        return self


class CaptionSettings(BaseModel):
    """Caption suggestion settings."""

    style_sample_size: int = 3
    neighbor_count: int = 5
    caption_count: int = 3
    max_caption_length: int = 70
    default_caption: str = "Check out my waffle! 🧇"
    temperature: float = 0.7
    max_tokens: int = 150


class ConversationStarterSettings(BaseModel):
    """Conversation-starter settings."""

    limit_user: int = 5
    limit_group: int = 10
    prompt_count: int = 2
    excerpt_length: int = 300
    temperature: float = 0.8
    max_tokens: int = 200
    throttle_enabled: bool = False
    throttle_seconds: int = 30
    fallback_prompts: list[str] = Field(
        default_factory=lambda: [
            "What's something that made you smile this week?",
            "What's one plan you're looking forward to?",
        ]
    )


class CatchUpSettings(BaseModel):
    """Group catch-up settings."""

    default_days: int = 10
    min_days: int = 1
    max_days: int = 30
    cache_ttl_seconds: int = 6 * 3600
    max_waffles: int = 50
    snippet_length: int = 200
    max_tokens: int = 350
    temperature: float = 0.6


class CacheSettings(BaseModel):
    """In-process cache housekeeping."""

    sweep_interval_seconds: float = 60.0


class TelemetrySettings(BaseModel):
    """Logging settings."""

    log_format: Literal["json", "text"] = "json"
    log_level: str = "INFO"


class Settings(BaseSettings):
    """Root settings container with environment loading."""

    app: AppSettings = Field(default_factory=AppSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    blob_storage: BlobStorageSettings = Field(default_factory=BlobStorageSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    transcription: TranscriptionSettings = Field(default_factory=TranscriptionSettings)
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    media: MediaSettings = Field(default_factory=MediaSettings)
    processing: ProcessingSettings = Field(default_factory=ProcessingSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    captions: CaptionSettings = Field(default_factory=CaptionSettings)
    conversation: ConversationStarterSettings = Field(
        default_factory=ConversationStarterSettings
    )
    catchup: CatchUpSettings = Field(default_factory=CatchUpSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WAFFLE_INTEL__",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )
