from .artifact import AudioArtifact, safe_filename, validate_artifact
from .device import BufferedCaptureDevice, BufferedCaptureStream

__all__ = [
    "AudioArtifact",
    "BufferedCaptureDevice",
    "BufferedCaptureStream",
    "safe_filename",
    "validate_artifact",
]
