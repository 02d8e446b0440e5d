"""Optional Langfuse tracing for call analysis requests."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any

from .logging import get_logger

log = get_logger("llm_observability")


@dataclass
class AnalysisSpan:
    call_id: str | None
    attempt: int
    started_at: float
    generation: Any | None = None


class LLMObservability:
    """Emits Langfuse generations when keys are present, otherwise only logs."""

    def __init__(self):
        self.prompt_version = os.getenv("CALLINTEL_ANALYSIS_PROMPT_VERSION", "v1")
        self.capture_io = os.getenv("CALLINTEL_LANGFUSE_CAPTURE_IO", "false").lower() == "true"
        self.client = self._build_client()

    def _build_client(self) -> Any | None:
        public_key = os.getenv("LANGFUSE_PUBLIC_KEY", "")
        secret_key = os.getenv("LANGFUSE_SECRET_KEY", "")
        if not public_key or not secret_key:
            return None

        try:
            from langfuse import Langfuse  # type: ignore[import-not-found]
        except ImportError:
            log.debug("Langfuse keys set but SDK not installed; tracing disabled")
            return None

        kwargs = {"public_key": public_key, "secret_key": secret_key}
        if host := os.getenv("LANGFUSE_HOST"):
            kwargs["host"] = host
        try:
            return Langfuse(**kwargs)
        except Exception as exc:
            log.warning("Failed to initialize Langfuse client", extra={"error": str(exc)})
            return None

    def start(self, call_id: str | None, model: str, transcript: str, attempt: int) -> AnalysisSpan:
        generation = None
        if self.client:
            try:
                trace = self.client.trace(
                    name="call_analysis",
                    session_id=call_id or "unknown",
                    metadata={
                        "prompt_version": self.prompt_version,
                        "transcript_length": len(transcript),
                        "transcript_sha16": sha256(transcript.encode("utf-8")).hexdigest()[:16],
                    },
                )
                generation = trace.generation(
                    name="analysis_attempt",
                    model=model,
                    metadata={"attempt": attempt},
                    input=transcript if self.capture_io else None,
                )
            except Exception as exc:
                log.warning("Failed to start Langfuse span", extra={"error": str(exc)})
        return AnalysisSpan(
            call_id=call_id, attempt=attempt, started_at=time.monotonic(), generation=generation
        )

    def finish_success(self, span: AnalysisSpan, output: dict[str, Any]) -> None:
        duration_ms = round((time.monotonic() - span.started_at) * 1000, 1)
        if span.generation:
            try:
                span.generation.end(
                    output=output if self.capture_io else {"captured": False},
                    metadata={"duration_ms": duration_ms},
                )
            except Exception as exc:
                log.warning("Failed to end Langfuse generation", extra={"error": str(exc)})
        log.info(
            "Call analysis succeeded",
            extra={"call_id": span.call_id, "attempt": span.attempt, "duration_ms": duration_ms},
        )

    def finish_error(self, span: AnalysisSpan, error: Exception) -> None:
        duration_ms = round((time.monotonic() - span.started_at) * 1000, 1)
        if span.generation:
            try:
                span.generation.end(
                    level="ERROR",
                    status_message=str(error),
                    metadata={"duration_ms": duration_ms},
                )
            except Exception as exc:
                log.warning("Failed to end Langfuse error span", extra={"error": str(exc)})
        log.warning(
            "Call analysis attempt failed",
            extra={
                "call_id": span.call_id,
                "attempt": span.attempt,
                "duration_ms": duration_ms,
                "error": str(error),
            },
        )
