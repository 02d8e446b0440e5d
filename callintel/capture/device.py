"""In-process capture device fed with chunks pushed by a client."""

from ..core.errors import CaptureError, ValidationError
from ..core.logging import get_logger
from ..interfaces import AbstractCaptureDevice, CaptureStream
from .artifact import AudioArtifact

log = get_logger("capture")


class BufferedCaptureStream(CaptureStream):
    """Accumulates chunks until closed; chunks written while paused are dropped.

    A chunk that would take the recording past `max_bytes` is rejected and the
    audio captured so far is kept.
    """

    def __init__(
        self, device: "BufferedCaptureDevice", media_type: str, max_bytes: int | None = None
    ):
        self._device = device
        self._media_type = media_type
        self._max_bytes = max_bytes
        self._chunks: list[bytes] = []
        self._size = 0
        self._paused = False
        self._closed = False

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def bytes_captured(self) -> int:
        return self._size

    def write(self, chunk: bytes) -> None:
        if self._closed:
            raise CaptureError("Capture stream already closed")
        if self._paused or not chunk:
            return
        if self._max_bytes is not None and self._size + len(chunk) > self._max_bytes:
            raise ValidationError(
                f"Recording exceeds {self._max_bytes} bytes",
                {"size": self._size + len(chunk)},
                too_large=True,
            )
        self._chunks.append(chunk)
        self._size += len(chunk)

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def close(self) -> AudioArtifact:
        if not self._closed:
            self._closed = True
            self._device._release(self)
        return AudioArtifact(data=b"".join(self._chunks), media_type=self._media_type)


class BufferedCaptureDevice(AbstractCaptureDevice):
    """One open stream at a time, like a microphone."""

    def __init__(
        self,
        media_type: str = "audio/webm",
        available: bool = True,
        max_bytes: int | None = None,
    ):
        self.media_type = media_type
        self.available = available
        self.max_bytes = max_bytes
        self._stream: BufferedCaptureStream | None = None

    @property
    def in_use(self) -> bool:
        return self._stream is not None

    async def open(self) -> BufferedCaptureStream:
        if not self.available:
            raise CaptureError("Audio capture device unavailable or permission denied")
        if self._stream is not None:
            raise CaptureError("Capture device already in use")
        self._stream = BufferedCaptureStream(self, self.media_type, self.max_bytes)
        log.debug("Capture stream opened")
        return self._stream

    def _release(self, stream: BufferedCaptureStream) -> None:
        if self._stream is stream:
            self._stream = None
            log.debug("Capture stream released")
