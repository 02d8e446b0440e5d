from collections import Counter
from datetime import datetime, timedelta

from ..config import AnalyticsConfig, IntegrationConfig
from ..core.errors import ValidationError
from ..core.logging import get_logger
from ..interfaces import AbstractCallRepository
from ..models import CallRecord, DealStage, Sentiment
from ..schemas.analytics import (
    CallAnalytics,
    CallInsightsSummary,
    CallTypeCount,
    DealStageBreakdown,
    KeywordStat,
    SentimentBreakdown,
)
from ..schemas.calls import CallSearchFilters
from .integration_service import keyword_relevance

log = get_logger("analytics")


def _sentiment_breakdown(calls: list[CallRecord]) -> SentimentBreakdown:
    counts = Counter(c.sentiment_overall for c in calls)
    return SentimentBreakdown(**{s.value: counts.get(s.value, 0) for s in Sentiment})


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class CallAnalyticsService:
    """Read-only rollups over stored calls."""

    def __init__(
        self,
        repo: AbstractCallRepository,
        config: AnalyticsConfig | None = None,
        integration_config: IntegrationConfig | None = None,
    ):
        self.repo = repo
        self.config = config or AnalyticsConfig()
        self.relevance_multiplier = (
            integration_config or IntegrationConfig()
        ).keyword_relevance_multiplier

    def window_start(self, range_name: str, now: datetime | None = None) -> datetime:
        days = self.config.range_days.get(range_name)
        if days is None:
            raise ValidationError(
                f"Unknown range '{range_name}'", {"allowed": sorted(self.config.range_days)}
            )
        return (now or datetime.now()) - timedelta(days=days)

    async def get_call_analytics(self, range_name: str = "month") -> CallAnalytics:
        since = self.window_start(range_name)
        calls = await self.repo.list_completed_since(since)

        type_counts = Counter(c.call_type for c in calls)
        return CallAnalytics(
            range=range_name,
            total_calls=len(calls),
            average_sentiment=_mean([c.sentiment_score for c in calls]),
            sentiment_breakdown=_sentiment_breakdown(calls),
            calls_by_type=[CallTypeCount(type=t, count=n) for t, n in type_counts.items()],
            top_keywords=await self._top_keywords(calls),
        )

    async def _top_keywords(self, calls: list[CallRecord]) -> list[KeywordStat]:
        rows = await self.repo.get_keywords([c.id for c in calls])
        totals = Counter()
        for row in rows:
            totals[row.keyword] += row.frequency
        ranked = sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
        return [
            KeywordStat(
                keyword=keyword,
                frequency=frequency,
                relevance=keyword_relevance(frequency, self.relevance_multiplier),
            )
            for keyword, frequency in ranked[: self.config.top_keywords]
        ]

    async def get_call_insights(self, filters: CallSearchFilters) -> CallInsightsSummary:
        """Totals, breakdowns and the conversion proxy over every matching call."""
        calls = await self.repo.find_calls(filters, completed_only=False)
        if not calls:
            return CallInsightsSummary()

        stage_counts = Counter(c.deal_stage for c in calls if c.deal_stage)
        stages = DealStageBreakdown(**{s.value: stage_counts.get(s.value, 0) for s in DealStage})

        items = await self.repo.get_action_items([c.id for c in calls])
        top_items = Counter(i.action_text for i in items).most_common(self.config.top_action_items)

        progressed = sum(1 for c in calls if c.deal_stage != DealStage.QUALIFICATION)
        return CallInsightsSummary(
            total_calls=len(calls),
            average_duration=_mean([c.duration_seconds for c in calls]),
            sentiment_breakdown=_sentiment_breakdown(calls),
            deal_stage_breakdown=stages,
            top_action_items=[text for text, _ in top_items],
            conversion_rate=progressed / len(calls),
        )

    async def search(self, query: str, filters: CallSearchFilters) -> list[CallRecord]:
        results = await self.repo.search_transcripts(
            query.strip(), filters, self.config.search_limit
        )
        log.debug(f"Search '{query}' matched {len(results)} calls")
        return results
