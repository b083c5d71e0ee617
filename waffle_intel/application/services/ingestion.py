"""Webhook-triggered ingestion of uploaded videos."""

import tempfile
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from waffle_intel.application.dtos.ingestion import (
    IngestionResponse,
    ProcessingStep,
    StepOutcome,
    StepSeverity,
    StepStatus,
    StorageObjectEvent,
)
from waffle_intel.application.services.media_urls import MediaUrlResolver
from waffle_intel.application.services.prompts import RECAP_PROMPT, RECAP_SYSTEM
from waffle_intel.application.services.scratch import remove_tree
from waffle_intel.commons.infrastructure.blob import BlobStorageBase
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import LogContext, get_logger
from waffle_intel.domain.models import VideoMetadata, WafflePost
from waffle_intel.domain.value_objects import ContentKey
from waffle_intel.infrastructure.embeddings import EmbeddingServiceBase
from waffle_intel.infrastructure.llm import LLMServiceBase, Message
from waffle_intel.infrastructure.media import TranscoderBase, TranscoderError
from waffle_intel.infrastructure.store import VideoMetadataStore, WaffleStore
from waffle_intel.infrastructure.transcription import TranscriptionServiceBase

logger = get_logger(__name__)


class IngestionError(Exception):
    """Base exception for ingestion errors."""

    def __init__(self, message: str, step: ProcessingStep) -> None:
        self.step = step
        super().__init__(message)


@dataclass
class IngestionContext:
    """State passed from step to step during one run."""

    key: ContentKey
    workdir: Path
    default_duration: int
    video_path: Path | None = None
    probed_duration: int | None = None
    thumbnail_path: Path | None = None
    thumbnail_key: ContentKey | None = None
    audio_path: Path | None = None
    transcript: str = ""
    embedding: list[float] = field(default_factory=list)
    recap: str | None = None
    post: WafflePost | None = None
    waffle_id: str | None = None
    outcomes: list[StepOutcome] = field(default_factory=list)

    @property
    def duration(self) -> int:
        """Probed duration, or the configured default when probing failed."""
        return self.probed_duration or self.default_duration


StepFn = Callable[[IngestionContext], Awaitable[None]]


@dataclass(frozen=True)
class PipelineStep:
    """One named unit of pipeline work."""

    step: ProcessingStep
    severity: StepSeverity
    run: StepFn
    when: Callable[[IngestionContext], bool] | None = None

    @property
    def critical(self) -> bool:
        return self.severity is StepSeverity.CRITICAL


class StepRunner:
    """Runs steps in order.

    A failing critical step stops the run with IngestionError. A failing
    best-effort step is recorded and the run continues.
    """

    async def run(self, steps: list[PipelineStep], ctx: IngestionContext) -> None:
        for step in steps:
            if step.when is not None and not step.when(ctx):
                ctx.outcomes.append(
                    StepOutcome(
                        step=step.step,
                        severity=step.severity,
                        status=StepStatus.SKIPPED,
                    )
                )
                logger.info("Step skipped", extra={"step": step.step.value})
                continue

            logger.debug("Step started", extra={"step": step.step.value})
            started = time.perf_counter()
            try:
                await step.run(ctx)
            except Exception as e:
                elapsed = round((time.perf_counter() - started) * 1000, 2)
                ctx.outcomes.append(
                    StepOutcome(
                        step=step.step,
                        severity=step.severity,
                        status=StepStatus.FAILED,
                        duration_ms=elapsed,
                        error=str(e),
                    )
                )
                if step.critical:
                    logger.error(
                        "Critical step failed",
                        extra={"step": step.step.value, "duration_ms": elapsed},
                        exc_info=True,
                    )
                    raise IngestionError(
                        f"Step {step.step.value} failed: {e}", step.step
                    ) from e
                logger.warning(
                    "Best-effort step failed, continuing",
                    extra={
                        "step": step.step.value,
                        "duration_ms": elapsed,
                        "error": str(e),
                    },
                )
                continue

            elapsed = round((time.perf_counter() - started) * 1000, 2)
            ctx.outcomes.append(
                StepOutcome(
                    step=step.step,
                    severity=step.severity,
                    status=StepStatus.SUCCEEDED,
                    duration_ms=elapsed,
                )
            )
            logger.info(
                "Step finished",
                extra={"step": step.step.value, "duration_ms": elapsed},
            )


class VideoIngestionService:
    """Turns an uploaded video into a searchable VideoMetadata row.

    Pipeline steps:
    1. Download the object (critical)
    2. Probe duration (best effort, default kept on failure)
    3. Extract a thumbnail frame (best effort, retried at offset 0)
    4. Upload the thumbnail and refresh the owning waffle (best effort)
    5. Extract mono audio (critical)
    6. Transcribe (critical)
    7. Embed the transcript (critical)
    8. Generate a short recap (best effort)
    9. Upsert VideoMetadata keyed by content key (critical)
    """

    def __init__(
        self,
        blob_storage: BlobStorageBase,
        transcoder: TranscoderBase,
        transcription_service: TranscriptionServiceBase,
        embedding_service: EmbeddingServiceBase,
        llm_service: LLMServiceBase,
        metadata_store: VideoMetadataStore,
        waffle_store: WaffleStore,
        media_urls: MediaUrlResolver,
        settings: Settings,
        runner: StepRunner | None = None,
    ) -> None:
        """Initialize ingestion service with dependencies.

        Args:
            blob_storage: Object storage holding uploads.
            transcoder: ffmpeg adapter.
            transcription_service: Speech-to-text client.
            embedding_service: Transcript embedder.
            llm_service: Completion client for recaps.
            metadata_store: VideoMetadata persistence.
            waffle_store: Owning post lookup and refresh.
            media_urls: Builds the thumbnail display URL.
            settings: Application settings.
            runner: Step runner.
        """
        self._blob = blob_storage
        self._transcoder = transcoder
        self._transcriber = transcription_service
        self._embedder = embedding_service
        self._llm = llm_service
        self._metadata = metadata_store
        self._waffles = waffle_store
        self._media_urls = media_urls
        self._settings = settings
        self._runner = runner or StepRunner()
        self._logger = get_logger(__name__)

    def skip_reason(self, event: StorageObjectEvent) -> str | None:
        """Why an event needs no work, or None if it should be ingested."""
        key = ContentKey(bucket=event.bucket, path=event.path)
        blob = self._settings.blob_storage
        if key.is_thumbnail(blob.thumbnail_suffix, blob.thumbnail_prefix):
            return "thumbnail object"
        extensions = {e.lower() for e in self._settings.media.video_extensions}
        if key.extension not in extensions:
            return f"unsupported extension {key.extension or '(none)'}"
        if event.mime_type and not event.mime_type.lower().startswith("video/"):
            return f"non-video mime type {event.mime_type}"
        return None

    def steps(self) -> list[PipelineStep]:
        critical, best_effort = StepSeverity.CRITICAL, StepSeverity.BEST_EFFORT
        return [
            PipelineStep(ProcessingStep.DOWNLOADING, critical, self._download),
            PipelineStep(ProcessingStep.PROBING, best_effort, self._probe),
            PipelineStep(
                ProcessingStep.EXTRACTING_THUMBNAIL, best_effort, self._thumbnail
            ),
            PipelineStep(
                ProcessingStep.UPLOADING_THUMBNAIL,
                best_effort,
                self._upload_thumbnail,
                when=lambda ctx: ctx.thumbnail_path is not None,
            ),
            PipelineStep(ProcessingStep.EXTRACTING_AUDIO, critical, self._audio),
            PipelineStep(ProcessingStep.TRANSCRIBING, critical, self._transcribe),
            PipelineStep(ProcessingStep.EMBEDDING, critical, self._embed),
            PipelineStep(
                ProcessingStep.GENERATING_RECAP,
                best_effort,
                self._recap,
                when=lambda ctx: bool(ctx.transcript.strip()),
            ),
            PipelineStep(ProcessingStep.STORING, critical, self._store),
        ]

    async def ingest(self, event: StorageObjectEvent) -> IngestionResponse:
        """Run the pipeline for one storage event.

        Raises:
            IngestionError: If a critical step fails.
        """
        key = ContentKey(bucket=event.bucket, path=event.path)
        reason = self.skip_reason(event)
        if reason is not None:
            self._logger.info(
                "Skipping storage event",
                extra={"content_key": str(key), "reason": reason},
            )
            return IngestionResponse(
                message=f"Skipped: {reason}", content_key=str(key)
            )

        workdir = Path(tempfile.mkdtemp(prefix="ingest-"))
        ctx = IngestionContext(
            key=key,
            workdir=workdir,
            default_duration=self._settings.media.default_duration_seconds,
        )
        async with LogContext(content_key=str(key)):
            self._logger.info("Starting video ingestion")
            started = time.perf_counter()
            try:
                await self._runner.run(self.steps(), ctx)
            finally:
                remove_tree(workdir)

            self._logger.info(
                "Video ingestion complete",
                extra={
                    "waffle_id": ctx.waffle_id,
                    "degraded_steps": [
                        o.step.value
                        for o in ctx.outcomes
                        if o.status is StepStatus.FAILED
                    ],
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )

        return IngestionResponse(
            message="Video processed",
            content_key=str(key),
            waffle_id=ctx.waffle_id,
            steps=ctx.outcomes,
        )

    async def _download(self, ctx: IngestionContext) -> None:
        local = ctx.workdir / f"source{ctx.key.extension}"
        await self._blob.download_to_file(ctx.key.bucket, ctx.key.path, local)
        ctx.video_path = local

    async def _probe(self, ctx: IngestionContext) -> None:
        assert ctx.video_path is not None
        duration = await self._transcoder.probe_duration(ctx.video_path)
        ctx.probed_duration = max(1, round(duration))

    async def _thumbnail(self, ctx: IngestionContext) -> None:
        assert ctx.video_path is not None
        output = ctx.workdir / "thumbnail.jpg"
        offset = self._settings.media.thumbnail_offset_seconds
        try:
            await self._transcoder.extract_thumbnail(ctx.video_path, output, offset)
        except TranscoderError as e:
            if offset == 0:
                raise
            self._logger.warning(
                "Thumbnail extraction failed, retrying at start of video",
                extra={"offset_seconds": offset, "error": str(e)},
            )
            await self._transcoder.extract_thumbnail(ctx.video_path, output, 0.0)
        ctx.thumbnail_path = output

    async def _upload_thumbnail(self, ctx: IngestionContext) -> None:
        assert ctx.thumbnail_path is not None
        thumb_key = ContentKey(
            bucket=ctx.key.bucket,
            path=ctx.key.thumbnail_path(self._settings.blob_storage.thumbnail_suffix),
        )
        await self._blob.upload_file(
            thumb_key.bucket,
            thumb_key.path,
            ctx.thumbnail_path,
            content_type="image/jpeg",
        )
        ctx.thumbnail_key = thumb_key

        ctx.post = await self._waffles.find_post_by_locator(ctx.key)
        if ctx.post is None:
            self._logger.info("No owning waffle yet, thumbnail not linked")
            return
        url = await self._media_urls.display_url(str(thumb_key))
        if url is None:
            self._logger.warning("Thumbnail URL unavailable, waffle not updated")
            return
        await self._waffles.update_post_media(ctx.post.id, url, ctx.duration)

    async def _audio(self, ctx: IngestionContext) -> None:
        assert ctx.video_path is not None
        media = self._settings.media
        ctx.audio_path = await self._transcoder.extract_audio(
            ctx.video_path,
            ctx.workdir / "audio.mp3",
            sample_rate=media.audio_sample_rate,
            channels=media.audio_channels,
        )

    async def _transcribe(self, ctx: IngestionContext) -> None:
        assert ctx.audio_path is not None
        result = await self._transcriber.transcribe(
            ctx.audio_path, language_hint=self._settings.transcription.language
        )
        if result.is_empty:
            self._logger.warning("Transcription returned no speech")
        ctx.transcript = result.full_text.strip()

    async def _embed(self, ctx: IngestionContext) -> None:
        result = await self._embedder.embed_text(ctx.transcript)
        ctx.embedding = result.vector

    async def _recap(self, ctx: IngestionContext) -> None:
        processing = self._settings.processing
        response = await self._llm.generate(
            messages=[
                Message.system(RECAP_SYSTEM),
                Message.user(
                    RECAP_PROMPT.format(
                        max_words=processing.recap_max_words,
                        transcript=ctx.transcript,
                    )
                ),
            ],
            temperature=processing.recap_temperature,
            max_tokens=processing.recap_max_tokens,
        )
        words = response.content.split()
        if not words:
            raise ValueError("empty recap")
        recap = " ".join(words[: processing.recap_max_words])
        ctx.recap = recap

    async def _store(self, ctx: IngestionContext) -> None:
        if ctx.post is None:
            ctx.post = await self._waffles.find_post_by_locator(ctx.key)
        record = await self._metadata.upsert(
            VideoMetadata(
                content_key=str(ctx.key),
                waffle_id=ctx.post.id if ctx.post else None,
                transcript=ctx.transcript,
                embedding=ctx.embedding,
                ai_recap=ctx.recap,
                thumbnail_locator=(
                    str(ctx.thumbnail_key) if ctx.thumbnail_key else None
                ),
                duration_seconds=ctx.probed_duration,
            )
        )
        ctx.waffle_id = record.waffle_id
