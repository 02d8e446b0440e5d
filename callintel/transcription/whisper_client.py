"""HTTP client for an OpenAI-compatible speech-to-text endpoint."""

import math

import httpx

from ..capture.artifact import AudioArtifact
from ..config import TranscriptionConfig
from ..core.errors import TranscriptionError
from ..core.logging import call_logger, get_logger
from ..core.ranges import clamp_unit
from .diarization import assign_speakers
from .result import DEFAULT_SEGMENT_CONFIDENCE, TranscriptionResult

log = get_logger("whisper_client")


class WhisperClient:
    """Submits one audio artifact to `/audio/transcriptions` and parses verbose JSON."""

    def __init__(self, config: TranscriptionConfig):
        self.config = config
        self.url = f"{config.base_url.rstrip('/')}/audio/transcriptions"
        self._auth_headers = (
            {"Authorization": f"Bearer {config.api_key}"} if config.api_key else {}
        )

    async def transcribe(
        self, artifact: AudioArtifact, call_id: str | None = None
    ) -> TranscriptionResult:
        clog = call_logger(log, call_id)
        files = {"file": (artifact.filename, artifact.data, artifact.media_type)}
        data = {
            "model": self.config.model,
            "language": self.config.language,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "segment",
        }

        clog.info(
            f"Submitting {artifact.size} bytes to transcription backend",
            extra={"model": self.config.model},
        )
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                response = await client.post(
                    self.url, files=files, data=data, headers=self._auth_headers
                )
        except httpx.TimeoutException as e:
            raise TranscriptionError(
                "Transcription backend timed out", {"call_id": call_id}
            ) from e
        except httpx.HTTPError as e:
            raise TranscriptionError(
                f"Transcription backend unavailable: {e}", {"call_id": call_id}
            ) from e

        if response.status_code != 200:
            raise TranscriptionError(
                f"Transcription backend rejected request ({response.status_code})",
                {"call_id": call_id, "status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TranscriptionError(
                "Transcription backend returned invalid JSON", {"call_id": call_id}
            ) from e

        return parse_transcription(payload, self.config.language)


def parse_transcription(payload: dict, default_language: str) -> TranscriptionResult:
    """Turn a verbose_json response into a TranscriptionResult."""
    if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
        raise TranscriptionError("Transcription response missing 'text'")

    segments = []
    for seg in payload.get("segments") or []:
        if not isinstance(seg, dict):
            raise TranscriptionError("Transcription segment is not an object")
        segments.append({**seg, "confidence": _segment_confidence(seg)})

    if "confidence" in payload:
        confidence = clamp_unit(payload["confidence"], DEFAULT_SEGMENT_CONFIDENCE)
    elif segments:
        confidence = sum(s["confidence"] for s in segments) / len(segments)
    else:
        confidence = DEFAULT_SEGMENT_CONFIDENCE

    return TranscriptionResult(
        text=payload["text"].strip(),
        confidence=clamp_unit(confidence),
        language=payload.get("language") or default_language,
        speakers=assign_speakers(segments),
    )


def _segment_confidence(seg: dict) -> float:
    if seg.get("confidence") is not None:
        return clamp_unit(float(seg["confidence"]))
    if seg.get("avg_logprob") is not None:
        return clamp_unit(math.exp(float(seg["avg_logprob"])))
    return DEFAULT_SEGMENT_CONFIDENCE
