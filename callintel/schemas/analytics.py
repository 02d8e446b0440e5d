from pydantic import BaseModel, Field


class SentimentBreakdown(BaseModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


class DealStageBreakdown(BaseModel):
    qualification: int = 0
    discovery: int = 0
    proposal: int = 0
    negotiation: int = 0
    closing: int = 0


class CallTypeCount(BaseModel):
    type: str
    count: int


class KeywordStat(BaseModel):
    keyword: str
    frequency: int
    relevance: float


class CallAnalytics(BaseModel):
    """Rollup over completed calls in a lookback window."""

    range: str
    total_calls: int = 0
    average_sentiment: float = 0.0
    sentiment_breakdown: SentimentBreakdown = Field(default_factory=SentimentBreakdown)
    calls_by_type: list[CallTypeCount] = Field(default_factory=list)
    top_keywords: list[KeywordStat] = Field(default_factory=list)


class CallInsightsSummary(BaseModel):
    """Rollup over calls matching contact/deal/date filters."""

    total_calls: int = 0
    average_duration: float = 0.0
    sentiment_breakdown: SentimentBreakdown = Field(default_factory=SentimentBreakdown)
    deal_stage_breakdown: DealStageBreakdown = Field(default_factory=DealStageBreakdown)
    top_action_items: list[str] = Field(default_factory=list)
    conversion_rate: float = 0.0
