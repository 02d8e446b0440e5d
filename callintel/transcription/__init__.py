from .result import Speaker, SpeakerSegment, TranscriptionResult
from .service import TranscriptionService
from .whisper_client import WhisperClient

__all__ = ["Speaker", "SpeakerSegment", "TranscriptionResult", "TranscriptionService", "WhisperClient"]
