from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from sqlmodel import JSON, Column, Field, SQLModel


def new_id() -> str:
    return str(uuid4())


class CallType(StrEnum):
    SALES = "sales"
    DISCOVERY = "discovery"
    DEMO = "demo"
    NEGOTIATION = "negotiation"
    FOLLOW_UP = "follow_up"
    MEETING = "meeting"
    SUPPORT = "support"


class CallStatus(StrEnum):
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


# Forward order of the active stages; FAILED sits outside it.
STATUS_ORDER = [
    CallStatus.RECORDING,
    CallStatus.TRANSCRIBING,
    CallStatus.ANALYZING,
    CallStatus.COMPLETED,
]
TERMINAL_STATUSES = {CallStatus.COMPLETED, CallStatus.FAILED}


def is_valid_transition(current: str, new: str) -> bool:
    """Monotonic forward moves, or into FAILED from any non-terminal status."""
    if current in TERMINAL_STATUSES:
        return False
    if new == CallStatus.FAILED:
        return True
    return STATUS_ORDER.index(CallStatus(new)) > STATUS_ORDER.index(CallStatus(current))


class Sentiment(StrEnum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Urgency(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DealStage(StrEnum):
    QUALIFICATION = "qualification"
    DISCOVERY = "discovery"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSING = "closing"


class ParticipantRole(StrEnum):
    REP = "rep"
    CUSTOMER = "customer"
    PROSPECT = "prospect"
    TEAM = "team"
    OTHER = "other"


class CallRecord(SQLModel, table=True):
    __tablename__ = "call_records"  # type: ignore

    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    contact_id: str | None = Field(default=None, index=True)
    deal_id: str | None = Field(default=None, index=True)
    organization_id: str | None = Field(default=None, index=True)
    call_type: str = Field(default=CallType.SALES)
    status: str = Field(default=CallStatus.RECORDING, index=True)

    duration_seconds: int = 0
    scheduled_at: datetime | None = None
    started_at: datetime = Field(default_factory=datetime.now, index=True)
    ended_at: datetime | None = None
    audio_url: str | None = None

    transcript_text: str = ""
    transcript_confidence: float = 0.0
    language: str = "en"

    summary: str = ""
    sentiment_overall: str = Field(default=Sentiment.NEUTRAL)
    sentiment_score: float = 0.0
    sentiment_confidence: float = 0.0

    customer_needs: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    objections: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    opportunities: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    concerns: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    competitors_mentioned: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    key_quotes: list[str] = Field(default_factory=list, sa_column=Column(JSON))

    deal_stage: str | None = None
    deal_probability: int | None = None
    urgency_level: str = Field(default=Urgency.MEDIUM)
    next_best_action: str | None = None
    analysis_degraded: bool = False
    error: str | None = None

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class CallParticipant(SQLModel, table=True):
    __tablename__ = "call_participants"  # type: ignore

    id: str = Field(default_factory=new_id, primary_key=True)
    call_id: str = Field(foreign_key="call_records.id", index=True)
    name: str
    role: str = Field(default=ParticipantRole.OTHER)
    contact_id: str | None = None
    speaking_time_percentage: float = 0.0
    created_at: datetime = Field(default_factory=datetime.now)


class CallActionItem(SQLModel, table=True):
    __tablename__ = "call_action_items"  # type: ignore

    id: str = Field(default_factory=new_id, primary_key=True)
    call_id: str = Field(foreign_key="call_records.id", index=True)
    action_text: str
    priority: str = "medium"
    assignee: str | None = Field(default=None, index=True)
    due_date: datetime | None = None
    completed: bool = False
    completed_at: datetime | None = None
    confidence_score: float = 0.0
    category: str = "general"
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class CallKeyword(SQLModel, table=True):
    __tablename__ = "call_keywords"  # type: ignore

    id: str = Field(default_factory=new_id, primary_key=True)
    call_id: str = Field(foreign_key="call_records.id", index=True)
    keyword: str
    frequency: int = 1
    relevance_score: float = 0.0
    category: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class Deal(SQLModel, table=True):
    """CRM deal owned elsewhere; the pipeline only touches `probability`."""

    __tablename__ = "deals"  # type: ignore

    id: str = Field(default_factory=new_id, primary_key=True)
    name: str
    contact_id: str | None = None
    probability: int | None = None
    updated_at: datetime = Field(default_factory=datetime.now)
