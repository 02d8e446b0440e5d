from fastapi import HTTPException, Request

from .config import Config
from .services.analytics_service import CallAnalyticsService
from .services.integration_service import CallIntegrationService
from .services.pipeline import CallPipeline, PipelineRegistry


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_integration_service(request: Request) -> CallIntegrationService:
    return request.app.state.integration_service


def get_analytics_service(request: Request) -> CallAnalyticsService:
    return request.app.state.analytics_service


def get_registry(request: Request) -> PipelineRegistry:
    return request.app.state.registry


def get_pipeline(session_id: str, request: Request) -> CallPipeline:
    """Resolve `{session_id}` path parameters to their pipeline."""
    pipeline = get_registry(request).get(session_id)
    if pipeline is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return pipeline
