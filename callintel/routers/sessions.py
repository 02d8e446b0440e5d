from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Request

from ..core.errors import CallIntelligenceError
from ..core.logging import get_logger
from ..dependencies import get_pipeline, get_registry
from ..schemas.calls import CallDetails
from ..services.pipeline import CallPipeline, PipelineRegistry

router = APIRouter(prefix="/api/sessions")

log = get_logger("api.sessions")


async def _run_stop(pipeline: CallPipeline):
    try:
        await pipeline.stop_recording()
    except CallIntelligenceError as e:
        log.warning(f"Recording processing failed: {e}")


@router.post("", status_code=201)
async def create_session(registry: PipelineRegistry = Depends(get_registry)):
    session_id, pipeline = registry.create()
    return {"session_id": session_id, **pipeline.snapshot().to_dict()}


@router.get("/{session_id}")
async def get_session(pipeline: CallPipeline = Depends(get_pipeline)):
    return pipeline.snapshot().to_dict()


@router.post("/{session_id}/start")
async def start_recording(
    details: CallDetails | None = Body(None),
    pipeline: CallPipeline = Depends(get_pipeline),
):
    """Begin capturing. Audio arrives through the chunks endpoint."""
    await pipeline.start_recording(details)
    return pipeline.snapshot().to_dict()


@router.post("/{session_id}/chunks")
async def write_chunk(request: Request, pipeline: CallPipeline = Depends(get_pipeline)):
    """Append raw audio bytes from the request body."""
    chunk = await request.body()
    pipeline.write_chunk(chunk)
    return {"received": len(chunk), "paused": pipeline.paused}


@router.post("/{session_id}/pause")
async def pause_recording(pipeline: CallPipeline = Depends(get_pipeline)):
    await pipeline.pause_recording()
    return pipeline.snapshot().to_dict()


@router.post("/{session_id}/resume")
async def resume_recording(pipeline: CallPipeline = Depends(get_pipeline)):
    await pipeline.resume_recording()
    return pipeline.snapshot().to_dict()


@router.post("/{session_id}/stop", status_code=202)
async def stop_recording(
    background_tasks: BackgroundTasks,
    pipeline: CallPipeline = Depends(get_pipeline),
):
    """Stop capturing and process the recording in the background."""
    if not pipeline.capturing:
        raise HTTPException(status_code=409, detail="No active recording")
    background_tasks.add_task(_run_stop, pipeline)
    return pipeline.snapshot().to_dict()


@router.post("/{session_id}/clear")
async def clear_results(pipeline: CallPipeline = Depends(get_pipeline)):
    pipeline.clear_results()
    return pipeline.snapshot().to_dict()


@router.delete("/{session_id}")
async def close_session(session_id: str, registry: PipelineRegistry = Depends(get_registry)):
    """Release the session's capture device and forget it."""
    if not await registry.remove(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"ok": True}
