import pytest

from callintel.capture import (
    AudioArtifact,
    BufferedCaptureDevice,
    safe_filename,
    validate_artifact,
)
from callintel.core.errors import CaptureError, ValidationError

LIMIT = 100 * 1024 * 1024


@pytest.mark.asyncio
async def test_stream_collects_chunks():
    device = BufferedCaptureDevice()
    stream = await device.open()
    stream.write(b"one")
    stream.write(b"")
    stream.write(b"two")
    assert stream.bytes_captured == 6

    artifact = stream.close()
    assert artifact.data == b"onetwo"
    assert artifact.media_type == "audio/webm"
    assert not device.in_use


@pytest.mark.asyncio
async def test_device_is_exclusive():
    device = BufferedCaptureDevice()
    stream = await device.open()
    with pytest.raises(CaptureError):
        await device.open()
    stream.close()
    second = await device.open()
    assert device.in_use
    second.close()


@pytest.mark.asyncio
async def test_unavailable_device():
    with pytest.raises(CaptureError, match="permission"):
        await BufferedCaptureDevice(available=False).open()


@pytest.mark.asyncio
async def test_write_after_close():
    stream = await BufferedCaptureDevice().open()
    stream.close()
    with pytest.raises(CaptureError):
        stream.write(b"late")


@pytest.mark.asyncio
async def test_paused_stream_drops_chunks():
    stream = await BufferedCaptureDevice().open()
    stream.write(b"a")
    stream.pause()
    stream.write(b"b")
    stream.resume()
    stream.write(b"c")
    assert stream.close().data == b"ac"


@pytest.mark.parametrize("media_type", ["audio/mpeg", "audio/webm", "video/mp4", "AUDIO/WAV"])
def test_validate_accepts_audio_and_video(media_type):
    validate_artifact(AudioArtifact(data=b"x", media_type=media_type), LIMIT)


@pytest.mark.parametrize("media_type", ["application/pdf", "image/png", "", "text/audio"])
def test_validate_rejects_other_types(media_type):
    with pytest.raises(ValidationError) as exc_info:
        validate_artifact(AudioArtifact(data=b"x", media_type=media_type), LIMIT)
    assert exc_info.value.too_large is False


def test_validate_size_limit():
    validate_artifact(AudioArtifact(data=b"x" * 10, media_type="audio/wav"), 10)
    with pytest.raises(ValidationError) as exc_info:
        validate_artifact(AudioArtifact(data=b"x" * 11, media_type="audio/wav"), 10)
    assert exc_info.value.too_large is True


def test_validate_rejects_empty():
    with pytest.raises(ValidationError, match="empty"):
        validate_artifact(AudioArtifact(data=b"", media_type="audio/wav"), LIMIT)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("call.mp3", "call.mp3"),
        ("../../secret.wav", "secret.wav"),
        ("..", "unnamed"),
        (None, "unnamed"),
    ],
)
def test_safe_filename(name, expected):
    assert safe_filename(name) == expected


@pytest.mark.asyncio
async def test_stream_rejects_chunk_over_limit():
    stream = await BufferedCaptureDevice(max_bytes=4).open()
    stream.write(b"abcd")
    with pytest.raises(ValidationError) as exc_info:
        stream.write(b"e")
    assert exc_info.value.too_large is True
    assert stream.bytes_captured == 4
    assert stream.close().data == b"abcd"
