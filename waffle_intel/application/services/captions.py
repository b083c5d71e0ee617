"""Caption suggestions for a video the user is about to post."""

import asyncio
import shutil
from pathlib import Path
from typing import BinaryIO

from waffle_intel.application.services.prompts import (
    CAPTION_PROMPT,
    CAPTION_SYSTEM,
    bullet_list,
    parse_json_object,
    string_list,
)
from waffle_intel.application.services.scratch import scratch_dir
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import get_logger, timed
from waffle_intel.domain.exceptions import NotGroupMemberError
from waffle_intel.infrastructure.embeddings import EmbeddingServiceBase
from waffle_intel.infrastructure.llm import LLMServiceBase, Message
from waffle_intel.infrastructure.media import TranscoderBase
from waffle_intel.infrastructure.store import VideoMetadataStore, WaffleStore
from waffle_intel.infrastructure.transcription import TranscriptionServiceBase


def _save_upload(source: BinaryIO, path: Path) -> None:
    with path.open("wb") as out:
        shutil.copyfileobj(source, out)


class CaptionSuggestionService:
    """Suggests captions from a short media chunk.

    The chunk is transcribed, then one completion sees the transcript, the
    user's own caption style and captions of the most similar past videos
    the user is allowed to see.
    """

    def __init__(
        self,
        transcoder: TranscoderBase,
        transcription_service: TranscriptionServiceBase,
        embedding_service: EmbeddingServiceBase,
        llm_service: LLMServiceBase,
        metadata_store: VideoMetadataStore,
        waffle_store: WaffleStore,
        settings: Settings,
    ) -> None:
        self._transcoder = transcoder
        self._transcriber = transcription_service
        self._embedder = embedding_service
        self._llm = llm_service
        self._metadata = metadata_store
        self._waffles = waffle_store
        self._settings = settings
        self._captions = settings.captions
        self._logger = get_logger(__name__)

    @timed(operation="caption_suggestions")
    async def suggest(
        self,
        user_id: str,
        source: BinaryIO,
        filename: str,
        *,
        style_captions: list[str] | None = None,
        group_id: str | None = None,
    ) -> list[str]:
        """Generate up to ``caption_count`` captions for an uploaded chunk.

        Args:
            user_id: Authenticated caller.
            source: Uploaded video or audio stream.
            filename: Client filename, used only for its extension.
            style_captions: Example captions supplied by the client.
            group_id: Group the video will be posted to.

        Returns:
            Caption strings, or an empty list if the completion was unusable.

        Raises:
            NotGroupMemberError: If ``group_id`` is not one of the caller's groups.
            TranscoderError: If audio could not be extracted.
        """
        if group_id is not None and not await self._waffles.is_group_member(
            user_id, group_id
        ):
            raise NotGroupMemberError(user_id, group_id)

        with scratch_dir(prefix="caption-") as workdir:
            upload_path = workdir / f"chunk{Path(filename).suffix or '.bin'}"
            await asyncio.get_running_loop().run_in_executor(
                None, _save_upload, source, upload_path
            )
            audio_path = await self._transcoder.extract_audio(
                upload_path,
                workdir / "chunk.mp3",
                sample_rate=self._settings.media.audio_sample_rate,
                channels=self._settings.media.audio_channels,
            )
            result = await self._transcriber.transcribe(
                audio_path, language_hint=self._settings.transcription.language
            )

        transcript = result.full_text.strip()
        style = await self._style_sample(user_id, group_id, style_captions or [])
        neighbors = await self._neighbor_captions(user_id, group_id, transcript)

        self._logger.info(
            "Generating caption suggestions",
            extra={
                "transcript_length": len(transcript),
                "style_examples": len(style),
                "neighbor_captions": len(neighbors),
            },
        )
        return await self._generate(transcript, style, neighbors)

    async def _style_sample(
        self,
        user_id: str,
        group_id: str | None,
        client_captions: list[str],
    ) -> list[str]:
        try:
            own = await self._waffles.recent_captions(
                user_id,
                group_id=group_id,
                limit=self._captions.style_sample_size,
                exclude=self._captions.default_caption,
            )
        except Exception as e:
            self._logger.warning(
                "Could not load caption history",
                extra={"error": str(e)},
            )
            own = []
        merged: list[str] = []
        for caption in [*client_captions, *own]:
            text = caption.strip() if isinstance(caption, str) else ""
            if text and text not in merged:
                merged.append(text)
        return merged

    async def _neighbor_captions(
        self,
        user_id: str,
        group_id: str | None,
        transcript: str,
    ) -> list[str]:
        if not transcript:
            return []
        try:
            embedding = await self._embedder.embed_text(transcript)
            samples = await self._metadata.nearest_transcripts(
                embedding.vector,
                user_id=user_id,
                group_id=group_id,
                limit=self._captions.neighbor_count,
                exclude_caption=self._captions.default_caption,
            )
        except Exception as e:
            self._logger.warning(
                "Nearest-caption lookup failed",
                extra={"error": str(e)},
            )
            return []
        return [s.caption for s in samples if s.caption]

    async def _generate(
        self,
        transcript: str,
        style: list[str],
        neighbors: list[str],
    ) -> list[str]:
        prompt = CAPTION_PROMPT.format(
            count=self._captions.caption_count,
            max_length=self._captions.max_caption_length,
            style_examples=bullet_list(style),
            neighbor_captions=bullet_list(neighbors),
            transcript=transcript,
        )
        try:
            response = await self._llm.generate(
                messages=[Message.system(CAPTION_SYSTEM), Message.user(prompt)],
                temperature=self._captions.temperature,
                max_tokens=self._captions.max_tokens,
                json_mode=True,
            )
            captions = string_list(
                parse_json_object(response.content), "captions", "suggestions"
            )
        except Exception as e:
            self._logger.warning(
                "Caption generation returned nothing usable",
                extra={"error": str(e)},
            )
            return []

        limit = self._captions.max_caption_length
        return [c[:limit].rstrip() for c in captions][: self._captions.caption_count]
