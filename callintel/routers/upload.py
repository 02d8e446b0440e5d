import json

import pydantic
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile

from ..capture.artifact import AudioArtifact, safe_filename, validate_artifact
from ..config import Config
from ..core.errors import CallIntelligenceError
from ..core.logging import get_logger
from ..dependencies import get_config, get_registry
from ..schemas.calls import CallDetails
from ..services.pipeline import CallPipeline, PipelineRegistry

router = APIRouter(prefix="/api/upload")

log = get_logger("api.upload")


def _parse_details(metadata: str) -> CallDetails:
    """Parse the metadata form field into call details."""
    try:
        return CallDetails(**json.loads(metadata or "{}"))
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid metadata JSON")
    except (TypeError, pydantic.ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid metadata: {e}")


async def _run_upload(pipeline: CallPipeline, artifact: AudioArtifact, details: CallDetails):
    try:
        await pipeline.upload_file(artifact, details)
    except CallIntelligenceError as e:
        # Failure is recorded on the pipeline and the call record.
        log.warning(f"Upload processing failed: {e}")


@router.post("", status_code=202)
async def upload_call(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="Call audio or video file"),
    metadata: str = Form("{}", description="Call details as JSON"),
    config: Config = Depends(get_config),
    registry: PipelineRegistry = Depends(get_registry),
):
    """Upload a recorded call. Processing continues in the background."""
    details = _parse_details(metadata)
    artifact = AudioArtifact(
        data=await file.read(),
        media_type=file.content_type or "",
        filename=safe_filename(file.filename),
    )
    validate_artifact(artifact, config.upload.max_upload_bytes)

    session_id, pipeline = registry.create()
    background_tasks.add_task(_run_upload, pipeline, artifact, details)

    return {
        "session_id": session_id,
        "status": "queued",
        "size": artifact.size,
    }
