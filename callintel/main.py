"""Call Intelligence API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .capture.device import BufferedCaptureDevice
from .config import Config, load_config
from .core.errors import (
    CallIntelligenceError,
    CaptureError,
    InvalidTransitionError,
    PipelineStateError,
    TranscriptionError,
    ValidationError,
)
from .core.llm import LLMFactory
from .core.logging import get_logger
from .database import Database
from .repositories.call_repository import CallRepository
from .routers import analytics, calls, crm, sessions, upload
from .services.analysis_service import AnalysisService
from .services.analytics_service import CallAnalyticsService
from .services.integration_service import CallIntegrationService
from .services.notifier import TeamNotifier
from .services.pipeline import CallPipeline, PipelineRegistry
from .services.storage import AudioStorage
from .transcription.service import TranscriptionService

log = get_logger("api")

VERSION = "0.1.0"


def build_pipeline_factory(
    config: Config,
    transcriber,
    analyzer,
    integration: CallIntegrationService,
    storage,
):
    """Each session gets its own capture device and pipeline."""

    def factory() -> CallPipeline:
        return CallPipeline(
            device=BufferedCaptureDevice(max_bytes=config.upload.max_upload_bytes),
            transcriber=transcriber,
            analyzer=analyzer,
            integration=integration,
            storage=storage,
            timer_tick=config.pipeline.timer_tick,
            transcription_timeout=config.transcription.timeout,
            analysis_timeout=config.analysis.timeout,
            max_upload_bytes=config.upload.max_upload_bytes,
        )

    return factory


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - setup and teardown."""
    config = load_config()
    db = Database(config.db_path)
    await db.connect()

    repo = CallRepository(db)
    notifier = TeamNotifier(config.integration.notify_webhook_url)
    integration = CallIntegrationService(repo, notifier, config.integration)
    analytics_service = CallAnalyticsService(repo, config.analytics, config.integration)
    storage = AudioStorage(config.upload_dir, config.upload.public_base_url)
    transcriber = TranscriptionService.from_config(config.transcription)
    analyzer = AnalysisService(config.analysis)

    app.state.config = config
    app.state.db = db
    app.state.integration_service = integration
    app.state.analytics_service = analytics_service
    app.state.registry = PipelineRegistry(
        build_pipeline_factory(config, transcriber, analyzer, integration, storage),
        max_age=config.pipeline.session_max_age,
    )

    log.info("Backend started")
    log.info(f"Data dir: {config.data_dir}")
    log.info(f"Transcription backend: {config.transcription.base_url}")
    if not LLMFactory.is_configured():
        log.warning("LLM not configured, calls will complete with degraded analysis")

    yield

    await app.state.registry.aclose()
    await db.close()


app = FastAPI(
    title="Call Intelligence API",
    description="Sales call transcription, analysis and CRM enrichment",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_status(exc: CallIntelligenceError) -> int:
    if isinstance(exc, ValidationError):
        return 413 if exc.too_large else 400
    if isinstance(exc, (CaptureError, PipelineStateError, InvalidTransitionError)):
        return 409
    if isinstance(exc, TranscriptionError):
        return 502
    return 500


@app.exception_handler(CallIntelligenceError)
async def call_intelligence_error_handler(request: Request, exc: CallIntelligenceError):
    status = error_status(exc)
    if status >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status, content={"detail": exc.message})


app.include_router(upload.router)
app.include_router(sessions.router)
app.include_router(calls.router)
app.include_router(crm.router)
app.include_router(analytics.router)


@app.get("/")
async def root():
    return {"service": "Call Intelligence", "version": VERSION}


@app.get("/health")
async def health(request: Request):
    """Health check endpoint."""
    return {
        "status": "ok",
        "llm_configured": LLMFactory.is_configured(),
        "active_sessions": len(request.app.state.registry),
    }


def main():
    import uvicorn

    config = load_config()
    uvicorn.run(
        "callintel.main:app",
        host=config.host,
        port=config.port,
    )


if __name__ == "__main__":
    main()
