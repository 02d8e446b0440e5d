"""Classified errors for the call pipeline."""

from typing import Any


class CallIntelligenceError(Exception):
    """Base class for pipeline errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message


class CaptureError(CallIntelligenceError):
    """Audio device or permission failure, or capture already active."""


class ValidationError(CallIntelligenceError):
    """Uploaded artifact rejected before the pipeline changes state."""

    def __init__(
        self, message: str, context: dict[str, Any] | None = None, too_large: bool = False
    ):
        super().__init__(message, context)
        self.too_large = too_large


class TranscriptionError(CallIntelligenceError):
    """Speech-to-text backend unavailable, timed out, or returned garbage."""


class AnalysisError(CallIntelligenceError):
    """LLM analysis failed after its retry."""


class PersistenceError(CallIntelligenceError):
    """A store write failed."""


class InvalidTransitionError(PersistenceError):
    """Call status would move backwards or out of a terminal state."""


class PipelineStateError(CallIntelligenceError):
    """Operation not allowed in the orchestrator's current stage."""
