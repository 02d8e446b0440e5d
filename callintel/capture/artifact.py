from dataclasses import dataclass
from pathlib import Path

from ..core.errors import ValidationError

ALLOWED_MEDIA_PREFIXES = ("audio/", "video/")


@dataclass
class AudioArtifact:
    """A finalized audio blob: a closed capture stream or an uploaded file."""

    data: bytes
    media_type: str
    filename: str = "recording.webm"

    @property
    def size(self) -> int:
        return len(self.data)


def safe_filename(name: str | None) -> str:
    """Sanitize a client-supplied filename to prevent path traversal."""
    safe = Path(name or "").name
    safe = safe.replace("\0", "").replace("/", "_").replace("\\", "_")
    safe = safe.replace("..", "")
    return safe or "unnamed"


def validate_artifact(artifact: AudioArtifact, max_bytes: int) -> None:
    """Reject non audio/video media types, empty files and files over `max_bytes`."""
    media_type = (artifact.media_type or "").lower()
    if not media_type.startswith(ALLOWED_MEDIA_PREFIXES):
        raise ValidationError(
            "Please upload an audio or video file",
            {"media_type": artifact.media_type, "filename": artifact.filename},
        )
    if artifact.size == 0:
        raise ValidationError("Uploaded file is empty", {"filename": artifact.filename})
    if artifact.size > max_bytes:
        raise ValidationError(
            f"File size must be at most {max_bytes // (1024 * 1024)}MB",
            {"size": artifact.size, "max_bytes": max_bytes},
            too_large=True,
        )
