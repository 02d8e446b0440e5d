"""Tests for TeamNotifier and AudioStorage collaborators."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from callintel.capture.artifact import AudioArtifact
from callintel.core.errors import PersistenceError
from callintel.models import CallRecord
from callintel.services.notifier import TeamNotifier
from callintel.services.storage import AudioStorage

WEBHOOK = "https://hooks.test/calls"


def _call() -> CallRecord:
    return CallRecord(
        id="call-1", title="Renewal", sentiment_overall="negative", urgency_level="high"
    )


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", WEBHOOK), text="")


@pytest.mark.asyncio
async def test_notifier_posts_payload():
    notifier = TeamNotifier(WEBHOOK)
    with patch.object(
        httpx.AsyncClient, "post", new_callable=AsyncMock, return_value=_response(200)
    ) as mock_post:
        await notifier.notify(_call(), ["negative sentiment", "high urgency"])

    args, kwargs = mock_post.call_args
    assert args[0] == WEBHOOK
    assert kwargs["json"]["call_id"] == "call-1"
    assert kwargs["json"]["reasons"] == ["negative sentiment", "high urgency"]


@pytest.mark.asyncio
async def test_notifier_without_webhook_only_logs():
    notifier = TeamNotifier("")
    with patch.object(httpx.AsyncClient, "post", new_callable=AsyncMock) as mock_post:
        await notifier.notify(_call(), ["high urgency"])
    mock_post.assert_not_awaited()


@pytest.mark.asyncio
async def test_notifier_error_status_raises():
    notifier = TeamNotifier(WEBHOOK)
    with patch.object(
        httpx.AsyncClient, "post", new_callable=AsyncMock, return_value=_response(503)
    ):
        with pytest.raises(PersistenceError, match="503"):
            await notifier.notify(_call(), ["high urgency"])


@pytest.mark.asyncio
async def test_notifier_unreachable_raises():
    notifier = TeamNotifier(WEBHOOK)
    with patch.object(
        httpx.AsyncClient,
        "post",
        new_callable=AsyncMock,
        side_effect=httpx.ConnectError("refused"),
    ):
        with pytest.raises(PersistenceError, match="unreachable"):
            await notifier.notify(_call(), ["high urgency"])


@pytest.mark.asyncio
async def test_storage_file_uri(tmp_path):
    storage = AudioStorage(tmp_path / "uploads")
    artifact = AudioArtifact(data=b"abc", media_type="audio/wav", filename="../../etc/passwd")

    url = await storage.save(artifact, "call-1")

    stored = tmp_path / "uploads" / "call-1" / "passwd"
    assert stored.read_bytes() == b"abc"
    assert url == stored.resolve().as_uri()


@pytest.mark.asyncio
async def test_storage_public_url(tmp_path):
    storage = AudioStorage(tmp_path, public_base_url="https://cdn.test/audio/")
    artifact = AudioArtifact(data=b"abc", media_type="audio/wav", filename="call one.wav")

    url = await storage.save(artifact, "call-2")

    assert url == "https://cdn.test/audio/call-2/call one.wav"
