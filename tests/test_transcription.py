"""Tests for transcription decoding, the orchestrator and transcript artifacts."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from conftest import run
from podcast_qa.audio import AudioSegment
from podcast_qa.exceptions import (
    SegmentTranscriptionFailure,
    UnparsableTranscriptionResponse,
)
from podcast_qa.storage import LocalStorage
from podcast_qa.transcription import (
    OpenAITranscriber,
    Transcript,
    TranscriptionOrchestrator,
    TranscriptionResult,
    TranscriptRepository,
    decode_transcription_response,
    normalize_timed_segments,
    transcript_filename,
)


def _segments(count):
    return [AudioSegment(i, f"/tmp/seg{i}.mp3", i * 10.0, 10.0) for i in range(count)]


def _api_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com"))


class FakeTranscriber:
    """Answers 'text-{index}' after a per-segment delay; can fail chosen segments."""

    def __init__(self, delays=None, failing=(), unparsable=()):
        self.delays = delays or {}
        self.failing = set(failing)
        self.unparsable = set(unparsable)
        self.active = 0
        self.max_active = 0

    async def transcribe(self, segment):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(segment.index, 0))
            if segment.index in self.failing:
                raise SegmentTranscriptionFailure(segment.index, RuntimeError("provider down"))
            if segment.index in self.unparsable:
                raise UnparsableTranscriptionResponse("list")
            return TranscriptionResult(f"text-{segment.index}")
        finally:
            self.active -= 1


class TestDecodeTranscriptionResponse:
    def test_plain_string(self):
        result = decode_transcription_response("  hello world \n", "whisper-1")
        assert result.text == "hello world"
        assert result.source_shape == "plain"

    def test_json_string_envelope(self):
        assert decode_transcription_response('{"text": "from json"}').text == "from json"

    def test_dict_with_transcript_field(self):
        result = decode_transcription_response({"transcript": "hi"})
        assert result.text == "hi"
        assert result.source_shape == "transcript"

    def test_sdk_object(self):
        assert decode_transcription_response(SimpleNamespace(text=" obj ")).text == "obj"

    def test_unknown_shapes_raise(self):
        with pytest.raises(UnparsableTranscriptionResponse):
            decode_transcription_response({"words": []})
        with pytest.raises(UnparsableTranscriptionResponse):
            decode_transcription_response(12)


class TestTranscriptionOrchestrator:
    def test_preserves_order_when_completion_order_differs(self):
        transcriber = FakeTranscriber(delays={0: 0.05, 1: 0.0, 2: 0.02})
        orchestrator = TranscriptionOrchestrator(transcriber, max_workers=3)

        text = run(orchestrator.transcribe_segments(_segments(3)))

        assert text == "text-0 text-1 text-2"

    def test_batches_bound_concurrency(self):
        transcriber = FakeTranscriber(delays={i: 0.01 for i in range(7)})
        orchestrator = TranscriptionOrchestrator(transcriber, max_workers=3)

        text = run(orchestrator.transcribe_segments(_segments(7)))

        assert transcriber.max_active == 3
        assert text.split() == [f"text-{i}" for i in range(7)]

    def test_failed_segment_contributes_nothing(self):
        transcriber = FakeTranscriber(failing={1}, unparsable={3})
        orchestrator = TranscriptionOrchestrator(transcriber, max_workers=10)

        text = run(orchestrator.transcribe_segments(_segments(4)))

        assert text == "text-0 text-2"

    def test_all_segments_failing_gives_empty_text(self):
        orchestrator = TranscriptionOrchestrator(FakeTranscriber(failing={0, 1}))
        assert run(orchestrator.transcribe_segments(_segments(2))) == ""

    def test_transcribe_audio_file_cleans_up_segments(self):
        segments = _segments(2)
        segmenter = MagicMock()
        segmenter.split = AsyncMock(return_value=segments)
        orchestrator = TranscriptionOrchestrator(FakeTranscriber())

        text = run(orchestrator.transcribe_audio_file("episode.mp3", segmenter))

        assert text == "text-0 text-1"
        segmenter.cleanup.assert_called_once_with(segments)

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            TranscriptionOrchestrator(FakeTranscriber(), max_workers=0)


class TestOpenAITranscriber:
    def _client(self, side_effect):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(side_effect=side_effect)
        return client

    def test_primary_model_success(self, tmp_path):
        audio = tmp_path / "seg.mp3"
        audio.write_bytes(b"audio")
        client = self._client([SimpleNamespace(text="primary")])
        transcriber = OpenAITranscriber(client, model="gpt-4o-mini-transcribe")

        result = run(transcriber.transcribe(AudioSegment(0, str(audio), 0.0, 5.0)))

        assert result.text == "primary"
        kwargs = client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini-transcribe"
        assert kwargs["file"] == ("seg.mp3", b"audio")
        assert kwargs["temperature"] == 0.2

    def test_falls_back_once(self, tmp_path):
        audio = tmp_path / "seg.mp3"
        audio.write_bytes(b"audio")
        client = self._client([_api_error(), SimpleNamespace(text="fallback")])
        transcriber = OpenAITranscriber(client, fallback_model="whisper-1")

        result = run(transcriber.transcribe(AudioSegment(0, str(audio), 0.0, 5.0)))

        assert result.text == "fallback"
        models = [c.kwargs["model"] for c in client.audio.transcriptions.create.call_args_list]
        assert models == ["gpt-4o-mini-transcribe", "whisper-1"]

    def test_both_models_failing(self, tmp_path):
        audio = tmp_path / "seg.mp3"
        audio.write_bytes(b"audio")
        client = self._client([_api_error(), _api_error()])

        with pytest.raises(SegmentTranscriptionFailure) as excinfo:
            run(OpenAITranscriber(client).transcribe(AudioSegment(4, str(audio), 0.0, 5.0)))
        assert excinfo.value.segment_index == 4

    def test_unreadable_segment(self, tmp_path):
        client = self._client([])
        with pytest.raises(SegmentTranscriptionFailure):
            run(
                OpenAITranscriber(client).transcribe(
                    AudioSegment(0, str(tmp_path / "missing.mp3"), 0.0, 5.0)
                )
            )
        client.audio.transcriptions.create.assert_not_called()


class TestTranscriptRepository:
    def test_save_then_load(self, tmp_path):
        repository = TranscriptRepository(LocalStorage(str(tmp_path)), "transcripts")
        assert not repository.exists(7)

        location = repository.save(7, Transcript(guid="g7", title="Seven", transcript="Hello."))

        assert location.endswith(transcript_filename(7))
        assert repository.exists(7)
        assert repository.load(7) == Transcript(guid="g7", title="Seven", transcript="Hello.")

    def test_load_missing_returns_none(self, tmp_path):
        repository = TranscriptRepository(LocalStorage(str(tmp_path)), "transcripts")
        assert repository.load(99) is None

    def test_filename(self):
        assert transcript_filename(12) == "e12_transcript.json"


class TestNormalizeTimedSegments:
    def test_speaker_prefix_carries_forward(self):
        turns = normalize_timed_segments(
            [
                {"text": "Kirk: Welcome back.", "start": 0.0, "duration": 2.0},
                {"text": "Today we talk drafts.", "start": 2.0, "duration": 3.0},
                {"text": "Guest: Thanks for having me.", "start": 5.0, "duration": 2.5},
                {"text": "   ", "start": 7.5, "duration": 1.0},
            ]
        )

        assert [(t.speaker, t.text) for t in turns] == [
            ("Kirk", "Welcome back."),
            ("Kirk", "Today we talk drafts."),
            ("Guest", "Thanks for having me."),
        ]
        assert turns[2].end == pytest.approx(7.5)

    def test_unknown_speaker_before_first_prefix(self):
        turns = normalize_timed_segments([{"text": "no prefix", "start": 0, "duration": 1}])
        assert turns[0].speaker == "Unknown"
