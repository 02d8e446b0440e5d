"""Group transcript segments into speakers.

Backends that diarize tag each segment with a speaker label and those labels
are used as-is. Otherwise segments alternate between two speakers, which is a
rough approximation of a two-party call and not a claim of accuracy.
"""

from .result import DEFAULT_SEGMENT_CONFIDENCE, Speaker, SpeakerSegment

ALTERNATING_SPEAKERS = 2


def assign_speakers(segments: list[dict]) -> list[Speaker]:
    """Build speakers from raw backend segments, preserving first-appearance order."""
    diarized = any(seg.get("speaker") for seg in segments)
    speakers: dict[str, Speaker] = {}

    for index, seg in enumerate(segments):
        if diarized:
            label = str(seg.get("speaker") or "unknown")
            speaker_id, name = label, _friendly_label(label)
        else:
            speaker_id, name = f"speaker_{(index % ALTERNATING_SPEAKERS) + 1}", None

        speaker = speakers.setdefault(speaker_id, Speaker(id=speaker_id, name=name))
        speaker.segments.append(
            SpeakerSegment(
                start=float(seg.get("start", 0.0)),
                end=float(seg.get("end", 0.0)),
                text=str(seg.get("text", "")).strip(),
                confidence=float(seg.get("confidence", DEFAULT_SEGMENT_CONFIDENCE)),
            )
        )

    return list(speakers.values())


def _friendly_label(label: str) -> str:
    """Convert 'SPEAKER_00' to 'Speaker 1'; leave names like 'Sales Rep' alone."""
    prefix, _, number = label.rpartition("_")
    if prefix.upper() == "SPEAKER" and number.isdigit():
        return f"Speaker {int(number) + 1}"
    return label
