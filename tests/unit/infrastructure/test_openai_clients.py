"""Unit tests for the OpenAI-backed transcription, embedding and LLM clients."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from waffle_intel.infrastructure.embeddings import OpenAIEmbeddingService
from waffle_intel.infrastructure.llm import Message, OpenAILLMService
from waffle_intel.infrastructure.resilience import RetryPolicy
from waffle_intel.infrastructure.transcription import OpenAIWhisperTranscription

FAST = RetryPolicy(
    attempts=2, timeout_seconds=1.0, min_wait_seconds=0, max_wait_seconds=0
)


def _completion(content: str | None = "hi") -> SimpleNamespace:
    return SimpleNamespace(
        choices=[
            SimpleNamespace(
                message=SimpleNamespace(content=content), finish_reason="stop"
            )
        ],
        usage=SimpleNamespace(prompt_tokens=5, completion_tokens=2, total_tokens=7),
        model="gpt-4o",
    )


def _chunk(text: str | None) -> SimpleNamespace:
    delta = SimpleNamespace(content=text)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)])


async def _stream(*texts):
    for text in texts:
        yield _chunk(text)


@pytest.fixture
def llm():
    service = OpenAILLMService(
        api_key="test-key", stream_model="gpt-4o-mini", retry_policy=FAST
    )
    service._client = MagicMock()
    service._client.chat.completions.create = AsyncMock(return_value=_completion())
    return service


class TestOpenAILLMService:
    """Tests for buffered and streamed completions."""

    async def test_generate(self, llm):
        response = await llm.generate([Message.system("s"), Message.user("u")])

        assert response.content == "hi"
        assert response.usage.total_tokens == 7
        kwargs = llm._client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"] == [
            {"role": "system", "content": "s"},
            {"role": "user", "content": "u"},
        ]
        assert "response_format" not in kwargs

    async def test_json_mode(self, llm):
        await llm.generate([Message.user("u")], json_mode=True)
        kwargs = llm._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    async def test_null_content_is_empty(self, llm):
        llm._client.chat.completions.create.return_value = _completion(None)
        response = await llm.generate([Message.user("u")])
        assert response.content == ""

    async def test_retries_transient_failure(self, llm):
        llm._client.chat.completions.create.side_effect = [
            TimeoutError(),
            _completion(),
        ]
        response = await llm.generate([Message.user("u")])
        assert response.content == "hi"
        assert llm._client.chat.completions.create.await_count == 2

    async def test_stream_yields_deltas(self, llm):
        llm._client.chat.completions.create.return_value = _stream(
            "Ana ", None, "", "hiked."
        )
        deltas = [d async for d in llm.generate_stream([Message.user("u")])]

        assert deltas == ["Ana ", "hiked."]
        kwargs = llm._client.chat.completions.create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["model"] == "gpt-4o-mini"


@pytest.fixture
def embedder():
    service = OpenAIEmbeddingService(api_key="test-key", retry_policy=FAST)
    service._client = MagicMock()
    service._client.embeddings.create = AsyncMock()
    return service


def _embedding_response(*vectors) -> SimpleNamespace:
    # Returned out of order to check results are re-sorted by index.
    data = [
        SimpleNamespace(index=i, embedding=list(v)) for i, v in enumerate(vectors)
    ]
    return SimpleNamespace(
        data=list(reversed(data)),
        usage=SimpleNamespace(total_tokens=4 * len(vectors)),
    )


class TestOpenAIEmbeddingService:
    async def test_embed_text(self, embedder):
        embedder._client.embeddings.create.return_value = _embedding_response(
            [0.1, 0.2]
        )
        result = await embedder.embed_text("hiking")

        assert result.vector == [0.1, 0.2]
        assert result.tokens_used == 4
        kwargs = embedder._client.embeddings.create.call_args.kwargs
        assert kwargs["input"] == ["hiking"]
        assert kwargs["dimensions"] == 1536

    async def test_empty_text_sent_as_space(self, embedder):
        embedder._client.embeddings.create.return_value = _embedding_response([0.0])
        await embedder.embed_text("  ")
        kwargs = embedder._client.embeddings.create.call_args.kwargs
        assert kwargs["input"] == [" "]

    async def test_embed_texts_preserves_order(self, embedder):
        embedder._client.embeddings.create.return_value = _embedding_response(
            [1.0], [2.0]
        )
        results = await embedder.embed_texts(["a", "b"])
        assert [r.vector for r in results] == [[1.0], [2.0]]

    async def test_legacy_model_has_no_dimensions(self):
        service = OpenAIEmbeddingService(
            api_key="test-key", model="text-embedding-ada-002", retry_policy=FAST
        )
        service._client = MagicMock()
        service._client.embeddings.create = AsyncMock(
            return_value=_embedding_response([0.5])
        )
        await service.embed_text("x")
        kwargs = service._client.embeddings.create.call_args.kwargs
        assert "dimensions" not in kwargs

    def test_dimensions_by_model(self):
        service = OpenAIEmbeddingService(
            api_key="test-key", model="text-embedding-3-large"
        )
        assert service.dimensions == 3072


class TestOpenAIWhisperTranscription:
    """Tests for speech-to-text requests."""

    @pytest.fixture
    def whisper(self):
        service = OpenAIWhisperTranscription(api_key="test-key", retry_policy=FAST)
        service._client = MagicMock()
        service._client.audio.transcriptions.create = AsyncMock(
            return_value=SimpleNamespace(
                text="  We went hiking.  ", language="english", duration=12.4
            )
        )
        return service

    async def test_transcribe(self, whisper, tmp_path):
        audio = tmp_path / "audio.mp3"
        audio.write_bytes(b"ID3")

        result = await whisper.transcribe(audio)

        assert result.full_text == "We went hiking."
        assert result.language == "english"
        assert result.duration_seconds == 12.4
        assert not result.is_empty
        kwargs = whisper._client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["model"] == "whisper-1"
        assert kwargs["response_format"] == "verbose_json"
        assert "language" not in kwargs

    async def test_language_hint(self, whisper, tmp_path):
        audio = tmp_path / "audio.mp3"
        audio.write_bytes(b"ID3")
        await whisper.transcribe(audio, language_hint="es")
        kwargs = whisper._client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["language"] == "es"

    async def test_silent_audio(self, whisper, tmp_path):
        whisper._client.audio.transcriptions.create.return_value = SimpleNamespace(
            text="", language=None, duration=None
        )
        audio = tmp_path / "audio.mp3"
        audio.write_bytes(b"ID3")

        result = await whisper.transcribe(audio)
        assert result.is_empty
        assert result.duration_seconds is None
