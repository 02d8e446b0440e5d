"""Shared test fixtures for the call intelligence service."""

from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from callintel.capture.device import BufferedCaptureDevice
from callintel.config import Config
from callintel.database import Database
from callintel.models import CallRecord, CallStatus
from callintel.repositories.call_repository import CallRepository
from callintel.schemas.analysis import (
    AnalysisActionItem,
    AnalysisResult,
    CallInsights,
    SentimentAnalysis,
)
from callintel.services.analytics_service import CallAnalyticsService
from callintel.services.integration_service import CallIntegrationService
from callintel.services.pipeline import CallPipeline, PipelineRegistry
from callintel.services.storage import AudioStorage
from callintel.transcription.result import Speaker, SpeakerSegment, TranscriptionResult

TRANSCRIPT = (
    "Thanks for joining. We need a CRM that handles our growth and the budget is approved "
    "for next quarter, but HubSpot quoted us less."
)


def make_transcription(text: str = TRANSCRIPT) -> TranscriptionResult:
    return TranscriptionResult(
        text=text,
        confidence=0.92,
        language="en",
        speakers=[
            Speaker(
                id="speaker_1",
                name="Sales Rep",
                segments=[
                    SpeakerSegment(0.0, 4.0, "Thanks for joining."),
                    SpeakerSegment(9.0, 12.0, "Understood."),
                ],
            ),
            Speaker(
                id="speaker_2",
                name="Customer",
                segments=[SpeakerSegment(4.0, 9.0, "We need a CRM that handles our growth.")],
            ),
        ],
    )


def make_analysis(
    sentiment: str = "positive",
    urgency: str = "low",
    probability: int | None = 60,
    stage: str | None = "discovery",
    action_items: list[AnalysisActionItem] | None = None,
    needs: list[str] | None = None,
) -> AnalysisResult:
    return AnalysisResult(
        summary="Prospect evaluating CRM options with approved budget.",
        sentiment=SentimentAnalysis(
            overall=sentiment, confidence=0.85, emotions=["interested"], score=0.6
        ),
        insights=CallInsights(
            customer_needs=needs if needs is not None else ["CRM platform", "budget approval"],
            opportunities=["team expansion"],
            competitors_mentioned=["HubSpot"],
            objections=["price"],
        ),
        action_items=action_items
        if action_items is not None
        else [
            AnalysisActionItem(action="Send proposal", priority="high", confidence=0.9),
            AnalysisActionItem(action="Maybe call again", priority="low", confidence=0.4),
        ],
        next_steps=["Send proposal by Friday"],
        deal_probability=probability,
        urgency=urgency,
        deal_stage=stage,
    )


# --- Database fixtures ---


@pytest.fixture
async def test_db(tmp_path):
    """SQLite database in a temp dir."""
    db = Database(tmp_path / "test.db")
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def test_repo(test_db):
    return CallRepository(test_db)


@pytest.fixture
def notifier():
    return AsyncMock()


@pytest.fixture
def integration(test_repo, notifier):
    return CallIntegrationService(test_repo, notifier)


@pytest.fixture
def analytics(test_repo):
    return CallAnalyticsService(test_repo)


@pytest.fixture
def seed_completed_call(test_repo):
    """Factory inserting a completed call with the given fields."""

    async def _seed(**fields) -> CallRecord:
        started_at = fields.pop("started_at", None)
        call = CallRecord(title=fields.pop("title", "Seeded Call"), status=CallStatus.ANALYZING)
        for key in ("contact_id", "deal_id", "call_type"):
            if key in fields:
                setattr(call, key, fields.pop(key))
        if started_at is not None:
            call.started_at = started_at
        call = await test_repo.create(call)
        return await test_repo.complete_call(call.id, fields)

    return _seed


# --- Pipeline fixtures ---


@pytest.fixture
def transcriber():
    mock = AsyncMock()
    mock.transcribe.return_value = make_transcription()
    return mock


@pytest.fixture
def analyzer():
    mock = AsyncMock()
    mock.analyze.return_value = make_analysis()
    return mock


@pytest.fixture
def storage(tmp_path):
    return AudioStorage(tmp_path / "uploads")


@pytest.fixture
def pipeline_factory(transcriber, analyzer, integration, storage):
    def _factory(**kwargs) -> CallPipeline:
        kwargs.setdefault("device", BufferedCaptureDevice())
        kwargs.setdefault("timer_tick", 0.01)
        return CallPipeline(
            transcriber=transcriber,
            analyzer=analyzer,
            integration=integration,
            storage=storage,
            **kwargs,
        )

    return _factory


@pytest.fixture
async def pipeline(pipeline_factory):
    async with pipeline_factory() as p:
        yield p


# --- App fixtures for route testing ---


@pytest.fixture
def test_config(tmp_path):
    return Config(
        data_dir=tmp_path / "data",
        upload_dir=tmp_path / "uploads",
        db_path=tmp_path / "test.db",
    )


@pytest.fixture
async def test_app(test_config, test_db, integration, analytics, pipeline_factory):
    """FastAPI app wired with the test database and mock backends."""
    from callintel.main import app

    registry = PipelineRegistry(pipeline_factory)
    app.state.config = test_config
    app.state.db = test_db
    app.state.integration_service = integration
    app.state.analytics_service = analytics
    app.state.registry = registry

    yield app

    await registry.aclose()


@pytest.fixture
async def client(test_app):
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
