import asyncio
from pathlib import Path

from ..capture.artifact import AudioArtifact, safe_filename
from ..core.errors import PersistenceError
from ..core.logging import call_logger, get_logger
from ..interfaces import AbstractAudioStorage

log = get_logger("storage")


class AudioStorage(AbstractAudioStorage):
    """Keeps validated audio under `upload_dir/<call_id>/`."""

    def __init__(self, upload_dir: Path, public_base_url: str = ""):
        self.upload_dir = upload_dir
        self.public_base_url = public_base_url.rstrip("/")

    def _write(self, path: Path, data: bytes):
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    async def save(self, artifact: AudioArtifact, call_id: str) -> str:
        """Write the artifact and return a URL the stored file can be fetched from."""
        relative = Path(call_id) / safe_filename(artifact.filename)
        path = self.upload_dir / relative
        try:
            await asyncio.to_thread(self._write, path, artifact.data)
        except OSError as e:
            raise PersistenceError(f"Could not store audio: {e}", {"call_id": call_id}) from e

        call_logger(log, call_id).info(f"Stored {artifact.size} bytes at {relative}")
        if self.public_base_url:
            return f"{self.public_base_url}/{relative.as_posix()}"
        return path.resolve().as_uri()
