"""Tests for WhisperClient HTTP handling and response parsing."""

import math
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from callintel.capture.artifact import AudioArtifact
from callintel.config import TranscriptionConfig
from callintel.core.errors import TranscriptionError
from callintel.transcription.whisper_client import WhisperClient, parse_transcription

URL = "https://stt.test/v1/audio/transcriptions"


@pytest.fixture
def client():
    return WhisperClient(TranscriptionConfig(base_url="https://stt.test/v1/", api_key="sk-test"))


@pytest.fixture
def artifact():
    return AudioArtifact(data=b"\x00" * 64, media_type="audio/webm")


def _response(status: int, **kwargs) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", URL), **kwargs)


VERBOSE_JSON = {
    "text": " Hello, thanks for taking the call. Happy to help. ",
    "language": "en",
    "segments": [
        {"start": 0.0, "end": 2.5, "text": " Hello, thanks for taking the call.", "avg_logprob": -0.1},
        {"start": 2.5, "end": 4.0, "text": " Happy to help.", "avg_logprob": -0.3},
    ],
}


@pytest.mark.asyncio
async def test_transcribe_success(client, artifact):
    with patch.object(
        httpx.AsyncClient,
        "post",
        new_callable=AsyncMock,
        return_value=_response(200, json=VERBOSE_JSON),
    ) as mock_post:
        result = await client.transcribe(artifact, call_id="call-1")

    assert result.text == "Hello, thanks for taking the call. Happy to help."
    assert result.language == "en"
    assert [s.id for s in result.speakers] == ["speaker_1", "speaker_2"]
    expected = (math.exp(-0.1) + math.exp(-0.3)) / 2
    assert result.confidence == pytest.approx(expected)

    args, kwargs = mock_post.call_args
    assert args[0] == URL
    assert kwargs["data"]["response_format"] == "verbose_json"
    assert kwargs["data"]["model"] == "whisper-1"
    assert kwargs["headers"] == {"Authorization": "Bearer sk-test"}


@pytest.mark.asyncio
async def test_transcribe_non_200_raises(client, artifact):
    with patch.object(
        httpx.AsyncClient,
        "post",
        new_callable=AsyncMock,
        return_value=_response(500, text="boom"),
    ):
        with pytest.raises(TranscriptionError, match="500"):
            await client.transcribe(artifact)


@pytest.mark.asyncio
async def test_transcribe_invalid_json_raises(client, artifact):
    with patch.object(
        httpx.AsyncClient,
        "post",
        new_callable=AsyncMock,
        return_value=_response(200, text="not json"),
    ):
        with pytest.raises(TranscriptionError, match="invalid JSON"):
            await client.transcribe(artifact)


@pytest.mark.asyncio
async def test_transcribe_connection_error(client, artifact):
    with patch.object(
        httpx.AsyncClient,
        "post",
        new_callable=AsyncMock,
        side_effect=httpx.ConnectError("refused"),
    ):
        with pytest.raises(TranscriptionError, match="unavailable"):
            await client.transcribe(artifact)


@pytest.mark.asyncio
async def test_transcribe_timeout(client, artifact):
    with patch.object(
        httpx.AsyncClient,
        "post",
        new_callable=AsyncMock,
        side_effect=httpx.ReadTimeout("slow"),
    ):
        with pytest.raises(TranscriptionError, match="timed out"):
            await client.transcribe(artifact)


def test_parse_missing_text():
    with pytest.raises(TranscriptionError):
        parse_transcription({"segments": []}, "en")


def test_parse_explicit_confidence_is_clamped():
    result = parse_transcription({"text": "hi", "confidence": 1.7, "segments": []}, "en")
    assert result.confidence == 1.0


def test_parse_defaults_without_segments():
    result = parse_transcription({"text": "hi"}, "de")
    assert result.confidence == 0.8
    assert result.language == "de"
    assert result.speakers == []


def test_parse_uses_backend_speaker_labels():
    payload = {
        "text": "a b c",
        "segments": [
            {"start": 0, "end": 1, "text": "a", "speaker": "SPEAKER_00"},
            {"start": 1, "end": 2, "text": "b", "speaker": "SPEAKER_00"},
            {"start": 2, "end": 3, "text": "c", "speaker": "SPEAKER_01"},
        ],
    }
    result = parse_transcription(payload, "en")
    assert [(s.display_name, len(s.segments)) for s in result.speakers] == [
        ("Speaker 1", 2),
        ("Speaker 2", 1),
    ]
