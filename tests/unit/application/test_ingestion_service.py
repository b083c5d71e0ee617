"""Unit tests for VideoIngestionService."""

from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from waffle_intel.application.dtos.ingestion import (
    ProcessingStep,
    StepSeverity,
    StepStatus,
    StorageObjectEvent,
)
from waffle_intel.application.services.ingestion import (
    IngestionContext,
    IngestionError,
    PipelineStep,
    StepRunner,
    VideoIngestionService,
)
from waffle_intel.application.services.media_urls import MediaUrlResolver
from waffle_intel.domain.models import VideoMetadata, WafflePost
from waffle_intel.domain.value_objects import ContentKey
from waffle_intel.infrastructure.embeddings import EmbeddingResult
from waffle_intel.infrastructure.llm import LLMResponse, LLMUsage
from waffle_intel.infrastructure.media import TranscoderError
from waffle_intel.infrastructure.transcription import TranscriptionResult

# =============================================================================
# Fixtures
# =============================================================================

EVENT = StorageObjectEvent(bucket="waffles", path="g1/abc.mp4", mime_type="video/mp4")


@pytest.fixture
def mock_blob():
    """Blob storage that writes a fake video on download."""
    blob = MagicMock()

    async def download_to_file(bucket, path, local_path):
        Path(local_path).write_bytes(b"fake video content")

    blob.download_to_file = AsyncMock(side_effect=download_to_file)
    blob.upload_file = AsyncMock()
    blob.generate_presigned_url = AsyncMock(return_value="https://signed/thumb.jpg")
    return blob


@pytest.fixture
def mock_transcoder():
    transcoder = MagicMock()
    transcoder.probe_duration = AsyncMock(return_value=12.4)

    async def extract_thumbnail(video_path, output_path, offset_seconds):
        Path(output_path).write_bytes(b"jpeg")

    async def extract_audio(video_path, output_path, sample_rate, channels):
        Path(output_path).write_bytes(b"mp3")
        return output_path

    transcoder.extract_thumbnail = AsyncMock(side_effect=extract_thumbnail)
    transcoder.extract_audio = AsyncMock(side_effect=extract_audio)
    return transcoder


@pytest.fixture
def mock_transcriber():
    transcriber = MagicMock()
    transcriber.transcribe = AsyncMock(
        return_value=TranscriptionResult(
            full_text=" Hey everyone, we finally moved into the new flat! ",
            language="en",
            duration_seconds=12.4,
        )
    )
    return transcriber


@pytest.fixture
def mock_embedder():
    embedder = MagicMock()
    embedder.embed_text = AsyncMock(
        return_value=EmbeddingResult(vector=[0.3] * 4, dimensions=4, model="m")
    )
    return embedder


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.generate = AsyncMock(
        return_value=LLMResponse(
            content="Ana moved into a new flat.",
            finish_reason="stop",
            usage=LLMUsage(prompt_tokens=50, completion_tokens=8, total_tokens=58),
            model="gpt-4o",
        )
    )
    return llm


@pytest.fixture
def mock_metadata_store():
    store = MagicMock()
    store.upsert = AsyncMock(side_effect=lambda record: record)
    return store


@pytest.fixture
def post():
    return WafflePost(
        id="waffle-1",
        user_id="u1",
        group_id="g1",
        content_url="https://cdn.example.com/waffles/g1/abc.mp4",
        created_at=datetime(2024, 6, 10, tzinfo=UTC),
    )


@pytest.fixture
def mock_waffle_store(post):
    store = MagicMock()
    store.find_post_by_locator = AsyncMock(return_value=post)
    store.update_post_media = AsyncMock(return_value=True)
    return store


@pytest.fixture
def ingestion_service(
    settings,
    mock_blob,
    mock_transcoder,
    mock_transcriber,
    mock_embedder,
    mock_llm,
    mock_metadata_store,
    mock_waffle_store,
):
    """Create ingestion service with mocked dependencies."""
    return VideoIngestionService(
        blob_storage=mock_blob,
        transcoder=mock_transcoder,
        transcription_service=mock_transcriber,
        embedding_service=mock_embedder,
        llm_service=mock_llm,
        metadata_store=mock_metadata_store,
        waffle_store=mock_waffle_store,
        media_urls=MediaUrlResolver(mock_blob, settings),
        settings=settings,
    )


def _stored(mock_metadata_store):
    return mock_metadata_store.upsert.call_args.args[0]


def _status(response, step: ProcessingStep) -> StepStatus:
    return next(o.status for o in response.steps if o.step is step)


# =============================================================================
# Tests
# =============================================================================


class TestFullPipeline:
    """Tests for a run where every step succeeds."""

    async def test_happy_path(self, ingestion_service, mock_metadata_store):
        response = await ingestion_service.ingest(EVENT)

        assert response.message == "Video processed"
        assert response.content_key == "waffles/g1/abc.mp4"
        assert response.waffle_id == "waffle-1"
        assert len(response.steps) == 9
        assert all(o.status is StepStatus.SUCCEEDED for o in response.steps)

        record = _stored(mock_metadata_store)
        assert record.content_key == "waffles/g1/abc.mp4"
        assert record.waffle_id == "waffle-1"
        assert record.transcript == "Hey everyone, we finally moved into the new flat!"
        assert record.embedding == [0.3] * 4
        assert record.ai_recap == "Ana moved into a new flat."
        assert record.thumbnail_locator == "waffles/g1/abc_thumb.jpg"
        assert record.duration_seconds == 12

    async def test_thumbnail_uploaded_and_linked(
        self, ingestion_service, mock_blob, mock_waffle_store
    ):
        await ingestion_service.ingest(EVENT)

        args = mock_blob.upload_file.call_args
        assert args.args[:2] == ("waffles", "g1/abc_thumb.jpg")
        assert args.kwargs["content_type"] == "image/jpeg"
        mock_waffle_store.update_post_media.assert_awaited_once_with(
            "waffle-1", "https://signed/thumb.jpg", 12
        )
        mock_waffle_store.find_post_by_locator.assert_awaited_once_with(
            ContentKey.parse("waffles/g1/abc.mp4")
        )

    async def test_audio_is_mono_16k(self, ingestion_service, mock_transcoder):
        await ingestion_service.ingest(EVENT)
        kwargs = mock_transcoder.extract_audio.call_args.kwargs
        assert (kwargs["sample_rate"], kwargs["channels"]) == (16000, 1)

    async def test_workdir_removed(self, ingestion_service, mock_blob):
        await ingestion_service.ingest(EVENT)
        local = mock_blob.download_to_file.call_args.args[2]
        assert local.name == "source.mp4"
        assert not local.parent.exists()

    async def test_recap_is_word_capped(self, ingestion_service, mock_llm, settings):
        mock_llm.generate.return_value.content = " ".join(["word"] * 200)
        response = await ingestion_service.ingest(EVENT)
        status = _status(response, ProcessingStep.GENERATING_RECAP)
        assert status is StepStatus.SUCCEEDED
        recap = _stored(ingestion_service._metadata).ai_recap
        assert len(recap.split()) == settings.processing.recap_max_words


class TestDegradedSteps:
    """Tests for best-effort steps that fail without aborting."""

    async def test_thumbnail_failure(
        self,
        ingestion_service,
        mock_transcoder,
        mock_blob,
        mock_waffle_store,
        mock_metadata_store,
    ):
        mock_transcoder.extract_thumbnail.side_effect = TranscoderError(
            "thumbnail", "no frame"
        )
        response = await ingestion_service.ingest(EVENT)

        assert mock_transcoder.extract_thumbnail.await_count == 2
        assert mock_transcoder.extract_thumbnail.call_args.args[2] == 0.0
        assert _status(response, ProcessingStep.EXTRACTING_THUMBNAIL) is (
            StepStatus.FAILED
        )
        assert _status(response, ProcessingStep.UPLOADING_THUMBNAIL) is (
            StepStatus.SKIPPED
        )
        mock_blob.upload_file.assert_not_awaited()
        mock_waffle_store.update_post_media.assert_not_awaited()
        assert _stored(mock_metadata_store).thumbnail_locator is None
        assert response.waffle_id == "waffle-1"

    async def test_thumbnail_retry_succeeds(self, ingestion_service, mock_transcoder):
        async def flaky(video_path, output_path, offset_seconds):
            if offset_seconds > 0:
                raise TranscoderError("thumbnail", "video too short")
            Path(output_path).write_bytes(b"jpeg")

        mock_transcoder.extract_thumbnail.side_effect = flaky
        response = await ingestion_service.ingest(EVENT)
        assert _status(response, ProcessingStep.EXTRACTING_THUMBNAIL) is (
            StepStatus.SUCCEEDED
        )

    async def test_probe_failure_uses_default_duration(
        self, ingestion_service, mock_transcoder, mock_waffle_store, mock_metadata_store
    ):
        mock_transcoder.probe_duration.side_effect = TranscoderError("probe", "bad")
        response = await ingestion_service.ingest(EVENT)

        assert _status(response, ProcessingStep.PROBING) is StepStatus.FAILED
        assert mock_waffle_store.update_post_media.call_args.args[2] == 180
        assert _stored(mock_metadata_store).duration_seconds is None

    async def test_recap_failure(
        self, ingestion_service, mock_llm, mock_metadata_store
    ):
        mock_llm.generate.side_effect = RuntimeError("rate limited")
        response = await ingestion_service.ingest(EVENT)

        outcome = next(
            o for o in response.steps if o.step is ProcessingStep.GENERATING_RECAP
        )
        assert outcome.status is StepStatus.FAILED
        assert outcome.severity is StepSeverity.BEST_EFFORT
        assert outcome.error == "rate limited"
        assert _stored(mock_metadata_store).ai_recap is None

    async def test_empty_transcript_skips_recap(
        self, ingestion_service, mock_transcriber, mock_llm, mock_embedder
    ):
        mock_transcriber.transcribe.return_value = TranscriptionResult(
            full_text="  ", language=None, duration_seconds=3.0
        )
        response = await ingestion_service.ingest(EVENT)

        assert _status(response, ProcessingStep.GENERATING_RECAP) is (
            StepStatus.SKIPPED
        )
        mock_llm.generate.assert_not_awaited()
        mock_embedder.embed_text.assert_awaited_once_with("")

    async def test_unresolvable_thumbnail_url(
        self, ingestion_service, mock_blob, mock_waffle_store
    ):
        mock_blob.generate_presigned_url.side_effect = RuntimeError("denied")
        response = await ingestion_service.ingest(EVENT)
        assert _status(response, ProcessingStep.UPLOADING_THUMBNAIL) is (
            StepStatus.SUCCEEDED
        )
        mock_waffle_store.update_post_media.assert_not_awaited()


class TestCriticalFailures:
    """Tests for steps that abort the run."""

    async def test_transcription_failure(
        self, ingestion_service, mock_transcriber, mock_metadata_store, mock_blob
    ):
        mock_transcriber.transcribe.side_effect = RuntimeError("whisper down")

        with pytest.raises(IngestionError) as exc_info:
            await ingestion_service.ingest(EVENT)

        assert exc_info.value.step is ProcessingStep.TRANSCRIBING
        mock_metadata_store.upsert.assert_not_awaited()
        local = mock_blob.download_to_file.call_args.args[2]
        assert not local.parent.exists()

    async def test_download_failure(
        self, ingestion_service, mock_blob, mock_transcoder
    ):
        mock_blob.download_to_file.side_effect = RuntimeError("object missing")

        with pytest.raises(IngestionError) as exc_info:
            await ingestion_service.ingest(EVENT)

        assert exc_info.value.step is ProcessingStep.DOWNLOADING
        mock_transcoder.probe_duration.assert_not_awaited()

    async def test_store_failure(self, ingestion_service, mock_metadata_store):
        mock_metadata_store.upsert.side_effect = RuntimeError("db down")
        with pytest.raises(IngestionError) as exc_info:
            await ingestion_service.ingest(EVENT)
        assert exc_info.value.step is ProcessingStep.STORING


class TestSkipping:
    """Tests for events that need no work."""

    @pytest.mark.parametrize(
        ("path", "mime_type", "reason"),
        [
            ("g1/abc_thumb.jpg", "image/jpeg", "thumbnail object"),
            ("thumbnails/abc.jpg", None, "thumbnail object"),
            ("g1/notes.txt", "text/plain", "unsupported extension .txt"),
            ("g1/noext", None, "unsupported extension (none)"),
            ("g1/abc.mp4", "image/png", "non-video mime type image/png"),
        ],
    )
    async def test_skip_reasons(
        self, ingestion_service, mock_blob, path, mime_type, reason
    ):
        event = StorageObjectEvent(bucket="waffles", path=path, mime_type=mime_type)
        response = await ingestion_service.ingest(event)

        assert response.message == f"Skipped: {reason}"
        assert response.steps == []
        mock_blob.download_to_file.assert_not_awaited()

    def test_uppercase_extension_accepted(self, ingestion_service):
        event = StorageObjectEvent(bucket="waffles", path="g1/ABC.MOV")
        assert ingestion_service.skip_reason(event) is None


class TestOwningPost:
    async def test_no_owning_post(
        self, ingestion_service, mock_waffle_store, mock_metadata_store
    ):
        """Test metadata is still stored when the post row does not exist yet."""
        mock_waffle_store.find_post_by_locator.return_value = None
        response = await ingestion_service.ingest(EVENT)

        assert response.waffle_id is None
        assert _stored(mock_metadata_store).waffle_id is None
        assert _stored(mock_metadata_store).thumbnail_locator is not None
        mock_waffle_store.update_post_media.assert_not_awaited()
        assert mock_waffle_store.find_post_by_locator.await_count == 2


class _InMemoryMetadataStore:
    """Keyed by content key; merges the way the SQL upsert does."""

    def __init__(self):
        self.rows: dict[str, VideoMetadata] = {}

    async def upsert(self, record: VideoMetadata) -> VideoMetadata:
        current = self.rows.get(record.content_key)
        if current is not None:
            record = record.model_copy(
                update={
                    "waffle_id": record.waffle_id or current.waffle_id,
                    "thumbnail_locator": (
                        record.thumbnail_locator or current.thumbnail_locator
                    ),
                    "duration_seconds": (
                        record.duration_seconds
                        if record.duration_seconds is not None
                        else current.duration_seconds
                    ),
                }
            )
        self.rows[record.content_key] = record
        return record


class TestReingestion:
    """Tests for a second event on an already processed object."""

    async def test_second_run_refreshes_one_row(
        self,
        settings,
        mock_blob,
        mock_transcoder,
        mock_transcriber,
        mock_embedder,
        mock_llm,
        mock_waffle_store,
    ):
        store = _InMemoryMetadataStore()
        service = VideoIngestionService(
            blob_storage=mock_blob,
            transcoder=mock_transcoder,
            transcription_service=mock_transcriber,
            embedding_service=mock_embedder,
            llm_service=mock_llm,
            metadata_store=store,
            waffle_store=mock_waffle_store,
            media_urls=MediaUrlResolver(mock_blob, settings),
            settings=settings,
        )
        await service.ingest(EVENT)

        mock_transcriber.transcribe.return_value = TranscriptionResult(
            full_text="Second take of the move.", language="en", duration_seconds=9.0
        )
        mock_embedder.embed_text.return_value = EmbeddingResult(
            vector=[0.7] * 4, dimensions=4, model="m"
        )
        mock_llm.generate.return_value.content = "Ana retold the move."
        mock_transcoder.extract_thumbnail.side_effect = TranscoderError(
            "thumbnail", "no frame"
        )
        mock_waffle_store.find_post_by_locator.return_value = None

        response = await service.ingest(EVENT)

        assert list(store.rows) == ["waffles/g1/abc.mp4"]
        row = store.rows["waffles/g1/abc.mp4"]
        assert row.transcript == "Second take of the move."
        assert row.embedding == [0.7] * 4
        assert row.ai_recap == "Ana retold the move."
        assert row.thumbnail_locator == "waffles/g1/abc_thumb.jpg"
        assert row.duration_seconds == 12
        assert row.waffle_id == "waffle-1"
        assert response.waffle_id == "waffle-1"


class TestStepRunner:
    """Tests for the generic step runner."""

    @staticmethod
    def _ctx(tmp_path) -> IngestionContext:
        return IngestionContext(
            key=ContentKey.parse("waffles/a.mp4"),
            workdir=tmp_path,
            default_duration=180,
        )

    async def test_best_effort_failure_continues(self, tmp_path):
        ran = []

        async def failing(ctx):
            raise ValueError("nope")

        async def after(ctx):
            ran.append("after")

        ctx = self._ctx(tmp_path)
        await StepRunner().run(
            [
                PipelineStep(ProcessingStep.PROBING, StepSeverity.BEST_EFFORT, failing),
                PipelineStep(ProcessingStep.STORING, StepSeverity.CRITICAL, after),
            ],
            ctx,
        )
        assert ran == ["after"]
        assert [o.status for o in ctx.outcomes] == [
            StepStatus.FAILED,
            StepStatus.SUCCEEDED,
        ]

    async def test_critical_failure_stops(self, tmp_path):
        after = AsyncMock()

        async def failing(ctx):
            raise ValueError("nope")

        ctx = self._ctx(tmp_path)
        with pytest.raises(IngestionError, match="embedding failed: nope"):
            await StepRunner().run(
                [
                    PipelineStep(
                        ProcessingStep.EMBEDDING, StepSeverity.CRITICAL, failing
                    ),
                    PipelineStep(ProcessingStep.STORING, StepSeverity.CRITICAL, after),
                ],
                ctx,
            )
        after.assert_not_awaited()

    async def test_condition_skips(self, tmp_path):
        run = AsyncMock()
        ctx = self._ctx(tmp_path)
        await StepRunner().run(
            [
                PipelineStep(
                    ProcessingStep.GENERATING_RECAP,
                    StepSeverity.BEST_EFFORT,
                    run,
                    when=lambda c: False,
                )
            ],
            ctx,
        )
        run.assert_not_awaited()
        assert ctx.outcomes[0].status is StepStatus.SKIPPED

    def test_duration_falls_back_to_default(self, tmp_path):
        ctx = self._ctx(tmp_path)
        assert ctx.duration == 180
        ctx.probed_duration = 7
        assert ctx.duration == 7
