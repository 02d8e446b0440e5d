from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ..core.ranges import clamp, clamp_percent, clamp_unit

DEGRADED_SUMMARY = "Call transcribed successfully. Manual review recommended."


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


class SentimentAnalysis(BaseModel):
    """Overall tone of the call from the customer's side."""

    overall: Literal["positive", "neutral", "negative"] = Field(
        ..., description="Overall sentiment of the call"
    )
    confidence: float = Field(..., description="Confidence in the sentiment label, 0 to 1")
    emotions: list[str] = Field(
        default_factory=list, description="Emotion tags, e.g. interested, worried"
    )
    score: float = Field(..., description="Sentiment score from -1 (negative) to 1 (positive)")

    @field_validator("overall", mode="before")
    @classmethod
    def normalize_label(cls, v):
        return _lower(v)

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return clamp_unit(v)

    @field_validator("score")
    @classmethod
    def clamp_score(cls, v: float) -> float:
        return clamp(v, -1.0, 1.0)


class CallInsights(BaseModel):
    """Business signals extracted from the conversation."""

    customer_needs: list[str] = Field(default_factory=list, description="Needs the customer stated")
    objections: list[str] = Field(default_factory=list, description="Objections raised")
    opportunities: list[str] = Field(
        default_factory=list, description="Upsell or expansion opportunities"
    )
    concerns: list[str] = Field(default_factory=list, description="Concerns or risks mentioned")
    key_quotes: list[str] = Field(default_factory=list, description="Verbatim notable quotes")
    competitors_mentioned: list[str] = Field(
        default_factory=list, description="Competitor names mentioned"
    )
    deal_indicators: list[str] = Field(
        default_factory=list, description="Buying signals such as budget or timeline talk"
    )


class AnalysisActionItem(BaseModel):
    """A follow-up task the call produced."""

    action: str = Field(..., description="What needs to be done")
    priority: Literal["high", "medium", "low"] = Field("medium")
    confidence: float = Field(..., description="How sure you are this is a real task, 0 to 1")
    category: str = Field("general", description="e.g. Follow-up, Demo, Documentation")
    due_date: str | None = Field(None, description="ISO date if a deadline was mentioned")
    assignee: str | None = Field(None, description="Person responsible, if named")

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v):
        return _lower(v)

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return clamp_unit(v)


class AnalysisResult(BaseModel):
    """Structured analysis of one sales call."""

    summary: str = Field(..., description="Concise summary, 2-3 sentences")
    sentiment: SentimentAnalysis
    insights: CallInsights = Field(default_factory=CallInsights)
    action_items: list[AnalysisActionItem] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list, description="Recommended next steps")
    key_takeaways: list[str] = Field(default_factory=list)
    deal_probability: int | None = Field(
        None, description="Estimated chance the deal closes, 0 to 100"
    )
    urgency: Literal["low", "medium", "high"] = Field(
        "medium", description="How quickly follow-up is needed"
    )
    deal_stage: Literal["qualification", "discovery", "proposal", "negotiation", "closing"] | None = (
        Field(None, description="Where the deal stands after this call")
    )

    @field_validator("urgency", "deal_stage", mode="before")
    @classmethod
    def normalize_labels(cls, v):
        return _lower(v)

    @field_validator("deal_probability", mode="before")
    @classmethod
    def clamp_probability(cls, v):
        if v is None:
            return None
        return clamp_percent(float(v))

    @classmethod
    def placeholder(cls, summary: str) -> "AnalysisResult":
        """Neutral result with no extracted fields."""
        return cls(
            summary=summary,
            sentiment=SentimentAnalysis(overall="neutral", confidence=0.0, score=0.0),
        )

    @classmethod
    def degraded(cls) -> "AnalysisResult":
        return cls.placeholder(DEGRADED_SUMMARY)
