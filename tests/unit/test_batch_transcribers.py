# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import math
from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest
from elevenlabs.core.api_error import ApiError

from adapters.asr.base import TranscriptionError
from adapters.asr.elevenlabs_batch import ElevenLabsBatchTranscriber
from adapters.asr.openai_batch import OpenAIBatchTranscriber


class RecordingCall:
    def __init__(self, result: Any = None, exc: Exception | None = None) -> None:
        self.result = result
        self.exc = exc
        self.kwargs: dict[str, Any] = {}

    async def __call__(self, **kwargs: Any) -> Any:
        self.kwargs = kwargs
        if self.exc is not None:
            raise self.exc
        return self.result


def openai_client(call: RecordingCall) -> Any:
    return SimpleNamespace(audio=SimpleNamespace(transcriptions=SimpleNamespace(create=call)))


def elevenlabs_client(call: RecordingCall) -> Any:
    return SimpleNamespace(speech_to_text=SimpleNamespace(convert=call))


# ---------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------

def test_openai_uses_defaults_and_strips_text():
    call = RecordingCall(result=SimpleNamespace(text="  hello there \n"))
    transcriber = OpenAIBatchTranscriber(client=openai_client(call))

    result = asyncio.run(
        transcriber.transcribe(b"abc", filename="clip.webm", content_type="audio/webm")
    )

    assert result.text == "hello there"
    assert result.provider == "openai"
    assert result.model == "whisper-1"
    assert call.kwargs["model"] == "whisper-1"
    assert call.kwargs["language"] == "ja"
    assert call.kwargs["file"] == ("clip.webm", b"abc", "audio/webm")


def test_openai_per_request_overrides():
    call = RecordingCall(result=SimpleNamespace(text="hi"))
    transcriber = OpenAIBatchTranscriber(client=openai_client(call))

    result = asyncio.run(
        transcriber.transcribe(b"abc", filename="a.wav", model="gpt-4o-transcribe", language="en")
    )

    assert result.model == "gpt-4o-transcribe"
    assert call.kwargs["language"] == "en"
    assert call.kwargs["file"] == ("a.wav", b"abc")


def test_openai_errors_become_transcription_errors():
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    call = RecordingCall(exc=openai.APIConnectionError(request=request))
    transcriber = OpenAIBatchTranscriber(client=openai_client(call))

    with pytest.raises(TranscriptionError):
        asyncio.run(transcriber.transcribe(b"abc", filename="clip.webm"))


# ---------------------------------------------------------------------
# ElevenLabs
# ---------------------------------------------------------------------

def test_elevenlabs_keeps_only_word_tokens():
    words = [
        SimpleNamespace(text="こんにちは", start=0.0, end=0.6, type="word", logprob=0.0),
        SimpleNamespace(text=" ", start=0.6, end=0.7, type="spacing", logprob=None),
        SimpleNamespace(text="(laughs)", start=0.7, end=1.0, type="audio_event", logprob=None),
        SimpleNamespace(text="世界", start=1.0, end=1.4, type="word", logprob=None),
    ]
    call = RecordingCall(result=SimpleNamespace(text="こんにちは 世界", words=words))
    transcriber = ElevenLabsBatchTranscriber(client=elevenlabs_client(call))

    result = asyncio.run(transcriber.transcribe(b"abc", filename="clip.webm"))

    assert result.provider == "elevenlabs"
    assert result.model == "scribe_v1"
    assert [w.word for w in result.words] == ["こんにちは", "世界"]
    assert math.isclose(result.words[0].confidence, 1.0)
    assert result.words[1].confidence is None
    assert call.kwargs["model_id"] == "scribe_v1"
    assert call.kwargs["language_code"] == "ja"


def test_elevenlabs_response_without_words():
    call = RecordingCall(result=SimpleNamespace(text="ok", words=None))
    transcriber = ElevenLabsBatchTranscriber(client=elevenlabs_client(call))

    result = asyncio.run(transcriber.transcribe(b"abc", filename="clip.webm"))

    assert result.text == "ok"
    assert result.words == ()


@pytest.mark.parametrize(
    "exc",
    [
        ApiError(status_code=401, body={"detail": "invalid key"}),
        httpx.ConnectError("unreachable"),
    ],
)
def test_elevenlabs_errors_become_transcription_errors(exc):
    transcriber = ElevenLabsBatchTranscriber(client=elevenlabs_client(RecordingCall(exc=exc)))

    with pytest.raises(TranscriptionError):
        asyncio.run(transcriber.transcribe(b"abc", filename="clip.webm"))
