"""Abstract base classes for dependency inversion."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .capture.artifact import AudioArtifact
    from .models import CallActionItem, CallKeyword, CallParticipant, CallRecord
    from .schemas.analysis import AnalysisResult
    from .schemas.calls import CallSearchFilters
    from .transcription.result import TranscriptionResult


class CaptureStream(ABC):
    """An open capture session on a device."""

    @property
    @abstractmethod
    def paused(self) -> bool: ...

    @abstractmethod
    def write(self, chunk: bytes) -> None: ...

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def resume(self) -> None: ...

    @abstractmethod
    def close(self) -> AudioArtifact:
        """Release the device and return everything captured as one blob."""


class AbstractCaptureDevice(ABC):
    """Exclusive audio source; `open` raises CaptureError on device failure."""

    @abstractmethod
    async def open(self) -> CaptureStream: ...


class AbstractTranscriber(ABC):
    """Interface for speech-to-text."""

    @abstractmethod
    async def transcribe(
        self, artifact: AudioArtifact, call_id: str | None = None
    ) -> TranscriptionResult: ...


class AbstractAnalysisService(ABC):
    """Interface for LLM-based call analysis."""

    @abstractmethod
    async def analyze(self, transcript_text: str, call_id: str | None = None) -> AnalysisResult: ...


class AbstractAudioStorage(ABC):
    """Durable home for validated audio; returns a reference URL."""

    @abstractmethod
    async def save(self, artifact: AudioArtifact, call_id: str) -> str: ...


class AbstractNotifier(ABC):
    """Sends team notifications about calls needing attention."""

    @abstractmethod
    async def notify(self, call: CallRecord, reasons: list[str]) -> None: ...


class AbstractCallRepository(ABC):
    """Interface for call data access."""

    @abstractmethod
    async def create(self, call: CallRecord) -> CallRecord: ...

    @abstractmethod
    async def get(self, call_id: str) -> CallRecord | None: ...

    @abstractmethod
    async def delete(self, call_id: str) -> bool: ...

    @abstractmethod
    async def update_status(
        self, call_id: str, status: str, error: str | None = None
    ) -> CallRecord: ...

    @abstractmethod
    async def complete_call(self, call_id: str, fields: dict) -> CallRecord: ...

    @abstractmethod
    async def add_participants(self, participants: list[CallParticipant]) -> int: ...

    @abstractmethod
    async def add_action_items(self, items: list[CallActionItem]) -> int: ...

    @abstractmethod
    async def add_keywords(self, keywords: list[CallKeyword]) -> int: ...

    @abstractmethod
    async def get_participants(self, call_id: str) -> list[CallParticipant]: ...

    @abstractmethod
    async def get_action_items(self, call_ids: list[str]) -> list[CallActionItem]: ...

    @abstractmethod
    async def get_keywords(self, call_ids: list[str]) -> list[CallKeyword]: ...

    @abstractmethod
    async def find_calls(
        self, filters: CallSearchFilters, completed_only: bool = True, limit: int | None = None
    ) -> list[CallRecord]: ...

    @abstractmethod
    async def search_transcripts(
        self, query: str, filters: CallSearchFilters, limit: int
    ) -> list[CallRecord]: ...

    @abstractmethod
    async def list_completed_since(self, since: datetime) -> list[CallRecord]: ...

    @abstractmethod
    async def set_deal_probability(self, deal_id: str, probability: int) -> bool: ...

    @abstractmethod
    async def open_action_items_for(self, assignee: str) -> list[CallActionItem]: ...

    @abstractmethod
    async def complete_action_item(self, item_id: str) -> CallActionItem | None: ...
