"""Transcription service: guards around the speech-to-text backend."""

from ..capture.artifact import AudioArtifact
from ..config import TranscriptionConfig
from ..core.errors import TranscriptionError
from ..core.logging import call_logger, get_logger
from ..interfaces import AbstractTranscriber
from .result import TranscriptionResult
from .whisper_client import WhisperClient

log = get_logger("transcription")


class TranscriptionService(AbstractTranscriber):
    """Turns a finalized audio artifact into text with speaker segments."""

    def __init__(self, client: WhisperClient):
        self.client = client

    @classmethod
    def from_config(cls, config: TranscriptionConfig) -> "TranscriptionService":
        return cls(WhisperClient(config))

    async def transcribe(
        self, artifact: AudioArtifact, call_id: str | None = None
    ) -> TranscriptionResult:
        clog = call_logger(log, call_id)
        if artifact.size == 0:
            raise TranscriptionError("No audio captured", {"call_id": call_id})

        try:
            result = await self.client.transcribe(artifact, call_id=call_id)
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(f"Transcription failed: {e}", {"call_id": call_id}) from e

        if not result.text:
            raise TranscriptionError("No speech detected in audio", {"call_id": call_id})

        clog.info(
            f"Transcribed {len(result.text)} chars, {len(result.speakers)} speakers",
            extra={"confidence": result.confidence, "language": result.language},
        )
        return result
