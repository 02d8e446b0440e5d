from dataclasses import dataclass, field

# Used when the backend reports no per-segment confidence.
DEFAULT_SEGMENT_CONFIDENCE = 0.8


@dataclass
class SpeakerSegment:
    start: float
    end: float
    text: str
    confidence: float = DEFAULT_SEGMENT_CONFIDENCE


@dataclass
class Speaker:
    id: str
    name: str | None = None
    segments: list[SpeakerSegment] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass
class TranscriptionResult:
    text: str
    confidence: float
    language: str
    speakers: list[Speaker] = field(default_factory=list)

    @property
    def segment_count(self) -> int:
        return sum(len(s.segments) for s in self.speakers)
