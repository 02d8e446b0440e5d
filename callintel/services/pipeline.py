"""Call pipeline: capture or upload, then transcription, analysis and persistence."""

import asyncio
import contextlib
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from ..capture.artifact import AudioArtifact, validate_artifact
from ..config import MEGABYTE
from ..core.errors import (
    AnalysisError,
    CallIntelligenceError,
    CaptureError,
    PipelineStateError,
    TranscriptionError,
)
from ..core.logging import call_logger, get_logger
from ..interfaces import (
    AbstractAnalysisService,
    AbstractAudioStorage,
    AbstractCaptureDevice,
    AbstractTranscriber,
    CaptureStream,
)
from ..models import CallRecord, CallStatus
from ..schemas.analysis import AnalysisResult
from ..schemas.calls import CallDetails
from ..transcription.result import TranscriptionResult
from .integration_service import CallIntegrationService

log = get_logger("pipeline")


class PipelineStage(StrEnum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


STARTABLE_STAGES = {PipelineStage.IDLE, PipelineStage.COMPLETED, PipelineStage.FAILED}
FINISHED_STAGES = {PipelineStage.COMPLETED, PipelineStage.FAILED}

PROGRESS_TRANSCRIBING = 10
PROGRESS_ANALYZING = 50
PROGRESS_PERSISTING = 90
PROGRESS_DONE = 100


@dataclass
class PipelineSnapshot:
    stage: PipelineStage
    paused: bool
    progress: int
    duration_seconds: int
    call_id: str | None
    error: str | None
    degraded: bool

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "paused": self.paused,
            "progress": self.progress,
            "duration_seconds": self.duration_seconds,
            "call_id": self.call_id,
            "error": self.error,
            "degraded": self.degraded,
        }


@dataclass
class PipelineEvent:
    kind: str  # state_changed, progress, completed, failed, degraded
    snapshot: PipelineSnapshot


@dataclass
class CallOutcome:
    call: CallRecord
    transcription: TranscriptionResult
    analysis: AnalysisResult
    degraded: bool = False


Listener = Callable[[PipelineEvent], None]


class CallPipeline:
    """
    Drives one call at a time through capture, transcription, analysis and storage.

    Capture is exclusive: a second `start_recording` while a stream is open is
    rejected. Once transcription has begun the run cannot be cancelled; it ends
    in `completed` or `failed`. Use as an async context manager, or call
    `aclose()`, so the capture stream and duration timer are always released.
    """

    def __init__(
        self,
        device: AbstractCaptureDevice,
        transcriber: AbstractTranscriber,
        analyzer: AbstractAnalysisService,
        integration: CallIntegrationService,
        storage: AbstractAudioStorage,
        timer_tick: float = 1.0,
        transcription_timeout: float = 300.0,
        analysis_timeout: float = 120.0,
        max_upload_bytes: int = 100 * MEGABYTE,
    ):
        self.device = device
        self.transcriber = transcriber
        self.analyzer = analyzer
        self.integration = integration
        self.storage = storage
        self.timer_tick = timer_tick
        self.transcription_timeout = transcription_timeout
        self.analysis_timeout = analysis_timeout
        self.max_upload_bytes = max_upload_bytes

        self._listeners: list[Listener] = []
        self._stream: CaptureStream | None = None
        self._timer: asyncio.Task | None = None
        self._running = False
        self._reset()

    def _reset(self):
        self.stage = PipelineStage.IDLE
        self.progress = 0
        self.error: str | None = None
        self.degraded = False
        self.call: CallRecord | None = None
        self.outcome: CallOutcome | None = None
        self._elapsed = 0.0
        self.finished_at: float | None = None

    # --- observation ---

    @property
    def paused(self) -> bool:
        return self._stream is not None and self._stream.paused

    @property
    def capturing(self) -> bool:
        return self._stream is not None

    @property
    def busy(self) -> bool:
        return self._running

    @property
    def duration_seconds(self) -> int:
        return int(self._elapsed)

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(
            stage=self.stage,
            paused=self.paused,
            progress=self.progress,
            duration_seconds=self.duration_seconds,
            call_id=self.call.id if self.call else None,
            error=self.error,
            degraded=self.degraded,
        )

    def add_listener(self, callback: Listener) -> Callable[[], None]:
        """Register a callback for pipeline events. Returns a function that removes it."""
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, kind: str):
        event = PipelineEvent(kind=kind, snapshot=self.snapshot())
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:
                log.exception(f"Pipeline listener failed on '{kind}'")

    def _enter(self, stage: PipelineStage, progress: int | None = None):
        self.stage = stage
        self._emit("state_changed")
        if progress is not None:
            self._set_progress(progress)

    def _set_progress(self, progress: int):
        self.progress = progress
        self._emit("progress")

    # --- duration timer ---

    async def _tick(self):
        while True:
            await asyncio.sleep(self.timer_tick)
            self._elapsed += self.timer_tick

    def _start_timer(self):
        if self._timer is None:
            self._timer = asyncio.create_task(self._tick())

    async def _stop_timer(self):
        task, self._timer = self._timer, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # --- capture ---

    async def start_recording(self, details: CallDetails | None = None) -> CallRecord:
        """Open the capture device and create the call record in `recording`."""
        if self._stream is not None:
            raise CaptureError("A recording is already in progress")
        if self._running or self.stage not in STARTABLE_STAGES:
            raise PipelineStateError(f"Cannot start recording while {self.stage}")

        stream = await self.device.open()
        try:
            call = await self.integration.create_call_record(
                details or CallDetails(), status=CallStatus.RECORDING
            )
        except Exception:
            stream.close()
            raise

        self._reset()
        self._stream = stream
        self.call = call
        self._enter(PipelineStage.RECORDING)
        self._start_timer()
        call_logger(log, call.id).info("Recording started")
        return call

    def write_chunk(self, chunk: bytes) -> None:
        if self._stream is None:
            raise PipelineStateError("No active recording")
        self._stream.write(chunk)

    async def pause_recording(self):
        if self._stream is None:
            raise PipelineStateError("No active recording")
        if self._stream.paused:
            return
        self._stream.pause()
        await self._stop_timer()
        self._emit("state_changed")

    async def resume_recording(self):
        if self._stream is None:
            raise PipelineStateError("No active recording")
        if not self._stream.paused:
            return
        self._stream.resume()
        self._start_timer()
        self._emit("state_changed")

    async def stop_recording(self) -> CallOutcome:
        """Release the device and run the captured audio through the pipeline."""
        if self._stream is None or self.stage != PipelineStage.RECORDING:
            raise PipelineStateError("No active recording")

        stream, self._stream = self._stream, None
        self._running = True
        await self._stop_timer()
        artifact = stream.close()
        return await self._process(artifact)

    # --- upload ---

    async def upload_file(
        self, artifact: AudioArtifact, details: CallDetails | None = None
    ) -> CallOutcome:
        """Validate and store an uploaded file, then process it from `transcribing`."""
        if self._stream is not None or self._running or self.stage not in STARTABLE_STAGES:
            raise PipelineStateError(f"Cannot upload while {self.stage}")
        validate_artifact(artifact, self.max_upload_bytes)

        self._running = True
        try:
            call_id = str(uuid.uuid4())
            audio_url = await self.storage.save(artifact, call_id)
            call = await self.integration.create_call_record(
                details or CallDetails(),
                status=CallStatus.TRANSCRIBING,
                audio_url=audio_url,
                call_id=call_id,
            )
        finally:
            self._running = False

        self._reset()
        self.call = call
        return await self._process(artifact)

    # --- processing ---

    async def _process(self, artifact: AudioArtifact) -> CallOutcome:
        call = self.call
        clog = call_logger(log, call.id)
        self._running = True
        try:
            self._enter(PipelineStage.TRANSCRIBING, PROGRESS_TRANSCRIBING)
            if call.status == CallStatus.RECORDING:
                call = await self.integration.mark_status(call.id, CallStatus.TRANSCRIBING)

            try:
                transcription = await asyncio.wait_for(
                    self.transcriber.transcribe(artifact, call_id=call.id),
                    self.transcription_timeout,
                )
            except TimeoutError as e:
                raise TranscriptionError(
                    f"Transcription timed out after {self.transcription_timeout}s",
                    {"call_id": call.id},
                ) from e

            await self.integration.mark_status(call.id, CallStatus.ANALYZING)
            self._enter(PipelineStage.ANALYZING, PROGRESS_ANALYZING)

            degraded = False
            try:
                analysis = await asyncio.wait_for(
                    self.analyzer.analyze(transcription.text, call_id=call.id),
                    self.analysis_timeout,
                )
            except (AnalysisError, TimeoutError) as e:
                clog.warning(f"Analysis unavailable, completing degraded: {e}")
                analysis = AnalysisResult.degraded()
                degraded = True

            self._set_progress(PROGRESS_PERSISTING)
            completed = await self.integration.update_call_with_results(
                call.id,
                transcription,
                analysis,
                self._duration_for(transcription),
                degraded=degraded,
            )
        except Exception as e:
            await self._fail(e)
            raise
        finally:
            self._running = False

        self.call = completed
        self.degraded = degraded
        self.outcome = CallOutcome(completed, transcription, analysis, degraded)
        self.finished_at = time.monotonic()
        self._enter(PipelineStage.COMPLETED, PROGRESS_DONE)
        if degraded:
            self._emit("degraded")
        self._emit("completed")
        clog.info("Pipeline completed", extra={"degraded": degraded})
        return self.outcome

    def _duration_for(self, transcription: TranscriptionResult) -> int:
        if self._elapsed > 0:
            return self.duration_seconds
        # Uploads have no capture timer; use the end of the last segment.
        ends = [seg.end for s in transcription.speakers for seg in s.segments]
        return int(max(ends, default=0))

    async def _fail(self, error: Exception):
        self.error = error.message if isinstance(error, CallIntelligenceError) else str(error)
        self.stage = PipelineStage.FAILED
        self.progress = 0
        self.finished_at = time.monotonic()
        call_id = self.call.id if self.call else None
        call_logger(log, call_id).error(f"Pipeline failed: {error}")
        if call_id:
            try:
                await self.integration.mark_status(call_id, CallStatus.FAILED, error=self.error)
            except CallIntelligenceError as e:
                call_logger(log, call_id).warning(f"Could not mark call failed: {e}")
        self._emit("state_changed")
        self._emit("progress")
        self._emit("failed")

    # --- lifecycle ---

    def clear_results(self):
        """Back to idle. Persisted records are left untouched."""
        if self._running or self._stream is not None:
            raise PipelineStateError(f"Cannot clear while {self.stage}")
        self._reset()
        self._emit("state_changed")

    async def aclose(self):
        await self._stop_timer()
        stream, self._stream = self._stream, None
        if stream is None:
            return
        stream.close()
        if self.call and self.stage == PipelineStage.RECORDING:
            try:
                await self.integration.mark_status(
                    self.call.id, CallStatus.FAILED, error="Recording abandoned"
                )
            except CallIntelligenceError as e:
                call_logger(log, self.call.id).warning(f"Could not mark call failed: {e}")
            self.stage = PipelineStage.FAILED
            self.error = "Recording abandoned"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class PipelineRegistry:
    """One pipeline per capture session, keyed by session id.

    Sessions that finished more than `max_age` seconds ago are evicted the next
    time a session is created. Their call records stay in the database.
    """

    def __init__(self, factory: Callable[[], CallPipeline], max_age: float = 3600.0):
        self._factory = factory
        self.max_age = max_age
        self._pipelines: dict[str, CallPipeline] = {}

    def create(self) -> tuple[str, CallPipeline]:
        self.cleanup_finished()
        session_id = str(uuid.uuid4())
        pipeline = self._factory()
        self._pipelines[session_id] = pipeline
        return session_id, pipeline

    def get(self, session_id: str) -> CallPipeline | None:
        return self._pipelines.get(session_id)

    def __len__(self) -> int:
        return len(self._pipelines)

    def cleanup_finished(self, max_age: float | None = None) -> int:
        """Forget completed/failed sessions idle for longer than max_age seconds."""
        max_age = self.max_age if max_age is None else max_age
        cutoff = time.monotonic() - max_age
        expired = [
            session_id
            for session_id, pipeline in self._pipelines.items()
            if pipeline.stage in FINISHED_STAGES
            and not pipeline.capturing
            and not pipeline.busy
            and pipeline.finished_at is not None
            and pipeline.finished_at <= cutoff
        ]
        for session_id in expired:
            del self._pipelines[session_id]
        if expired:
            log.info(f"Cleaned up {len(expired)} finished sessions")
        return len(expired)

    async def remove(self, session_id: str) -> bool:
        pipeline = self._pipelines.pop(session_id, None)
        if pipeline is None:
            return False
        await pipeline.aclose()
        return True

    async def aclose(self):
        for session_id in list(self._pipelines):
            await self.remove(session_id)
