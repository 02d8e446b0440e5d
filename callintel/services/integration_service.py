import asyncio
from collections import Counter
from datetime import datetime

from ..config import IntegrationConfig
from ..core.logging import call_logger, get_logger
from ..core.ranges import clamp, clamp_unit
from ..interfaces import AbstractCallRepository, AbstractNotifier
from ..models import (
    CallActionItem,
    CallKeyword,
    CallParticipant,
    CallRecord,
    CallStatus,
    ParticipantRole,
    Sentiment,
    Urgency,
    new_id,
)
from ..schemas.analysis import AnalysisResult
from ..schemas.calls import CallDetails, CallSearchFilters
from ..transcription.result import Speaker, TranscriptionResult

log = get_logger("integration")

# First match wins, checked against the lowercased display name.
ROLE_KEYWORDS = [
    (ParticipantRole.REP, ("rep", "sales")),
    (ParticipantRole.CUSTOMER, ("customer", "client")),
    (ParticipantRole.PROSPECT, ("prospect", "lead")),
    (ParticipantRole.TEAM, ("team", "manager")),
]

KEYWORD_CATEGORIES = {
    "product": ("crm", "software", "platform", "tool", "feature"),
    "business": ("budget", "timeline", "team", "growth", "expansion"),
    "competitor": ("salesforce", "hubspot", "pipedrive", "zoho"),
    "emotion": ("excited", "concerned", "interested", "worried"),
}

LINKED_ROLES = {ParticipantRole.CUSTOMER, ParticipantRole.PROSPECT}


def infer_speaker_role(name: str | None) -> ParticipantRole:
    if not name:
        return ParticipantRole.OTHER
    lowered = name.lower()
    for role, needles in ROLE_KEYWORDS:
        if any(n in lowered for n in needles):
            return role
    return ParticipantRole.OTHER


def speaking_share(speaker: Speaker, total_segments: int) -> float:
    """Percentage of all segments spoken by `speaker` (segment count, not duration)."""
    if total_segments == 0:
        return 0.0
    return clamp(len(speaker.segments) / total_segments * 100, 0.0, 100.0)


def categorize_keyword(keyword: str) -> str:
    lowered = keyword.lower()
    for category, needles in KEYWORD_CATEGORIES.items():
        if any(n in lowered for n in needles):
            return category
    return "general"


def keyword_relevance(frequency: int, multiplier: float) -> float:
    return min(frequency * multiplier, 1.0)


def count_keywords(analysis: AnalysisResult) -> Counter:
    """Exact-string frequency across needs, opportunities and competitors."""
    insights = analysis.insights
    return Counter(
        term
        for term in (
            *insights.customer_needs,
            *insights.opportunities,
            *insights.competitors_mentioned,
        )
        if term
    )


def _parse_due_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def attention_reasons(analysis: AnalysisResult) -> list[str]:
    """Why the team should look at this call; empty when nobody needs to."""
    reasons = []
    if analysis.sentiment.overall == Sentiment.NEGATIVE:
        reasons.append("negative sentiment")
    if analysis.urgency == Urgency.HIGH:
        reasons.append("high urgency")
    return reasons


class CallIntegrationService:
    """Writes call results to the store and fans out CRM side effects."""

    def __init__(
        self,
        repo: AbstractCallRepository,
        notifier: AbstractNotifier,
        config: IntegrationConfig | None = None,
    ):
        self.repo = repo
        self.notifier = notifier
        self.config = config or IntegrationConfig()

    async def create_call_record(
        self,
        details: CallDetails,
        status: str = CallStatus.RECORDING,
        audio_url: str | None = None,
        call_id: str | None = None,
    ) -> CallRecord:
        call = CallRecord(
            id=call_id or new_id(),
            title=details.title,
            contact_id=details.contact_id,
            deal_id=details.deal_id,
            organization_id=details.organization_id,
            call_type=details.call_type,
            scheduled_at=details.scheduled_at,
            status=status,
            audio_url=audio_url,
        )
        call = await self.repo.create(call)
        call_logger(log, call.id).info(f"Call record created ({status})")
        return call

    async def mark_status(
        self, call_id: str, status: str, error: str | None = None
    ) -> CallRecord:
        return await self.repo.update_status(call_id, status, error)

    async def update_call_with_results(
        self,
        call_id: str,
        transcription: TranscriptionResult,
        analysis: AnalysisResult,
        duration_seconds: int,
        degraded: bool = False,
    ) -> CallRecord:
        """
        Complete the call in one atomic update, then run the secondary writes.

        Secondary writes (participants, action items, keywords, deal probability,
        team notification) are independent. A failure in one is logged and never
        touches the completed call record.
        """
        insights = analysis.insights
        fields = {
            "duration_seconds": max(int(duration_seconds), 0),
            "transcript_text": transcription.text,
            "transcript_confidence": clamp_unit(transcription.confidence),
            "language": transcription.language,
            "summary": analysis.summary,
            "sentiment_overall": analysis.sentiment.overall,
            "sentiment_score": analysis.sentiment.score,
            "sentiment_confidence": analysis.sentiment.confidence,
            "customer_needs": list(insights.customer_needs),
            "objections": list(insights.objections),
            "opportunities": list(insights.opportunities),
            "concerns": list(insights.concerns),
            "competitors_mentioned": list(insights.competitors_mentioned),
            "key_quotes": list(insights.key_quotes),
            "deal_stage": analysis.deal_stage,
            "deal_probability": analysis.deal_probability,
            "urgency_level": analysis.urgency,
            "next_best_action": analysis.next_steps[0] if analysis.next_steps else None,
            "analysis_degraded": degraded,
        }
        call = await self.repo.complete_call(call_id, fields)
        call_logger(log, call_id).info(
            "Call completed" + (" (degraded)" if degraded else ""),
            extra={"sentiment": call.sentiment_overall, "urgency": call.urgency_level},
        )

        await asyncio.gather(
            self._best_effort("participants", call, self._create_participants(call, transcription)),
            self._best_effort("action_items", call, self._create_action_items(call, analysis)),
            self._best_effort("keywords", call, self._create_keywords(call, analysis)),
            self._best_effort("deal_probability", call, self._update_deal_probability(call, analysis)),
            self._best_effort("notify_team", call, self._notify_team(call, analysis)),
        )
        return call

    async def _best_effort(self, name: str, call: CallRecord, coro) -> None:
        try:
            await coro
        except Exception as e:
            call_logger(log, call.id).warning(
                f"Secondary write '{name}' failed: {e}", extra={"write": name}
            )

    async def _create_participants(self, call: CallRecord, transcription: TranscriptionResult):
        participants = []
        for speaker in transcription.speakers:
            role = infer_speaker_role(speaker.display_name)
            contact_id = None
            if self.config.auto_link_contacts and call.contact_id and role in LINKED_ROLES:
                contact_id = call.contact_id
            participants.append(
                CallParticipant(
                    call_id=call.id,
                    name=speaker.display_name,
                    role=role,
                    contact_id=contact_id,
                    speaking_time_percentage=speaking_share(speaker, transcription.segment_count),
                )
            )
        await self.repo.add_participants(participants)

    async def _create_action_items(self, call: CallRecord, analysis: AnalysisResult):
        if not self.config.auto_create_action_items:
            return
        items = [
            CallActionItem(
                call_id=call.id,
                action_text=item.action,
                priority=item.priority,
                assignee=item.assignee,
                due_date=_parse_due_date(item.due_date),
                confidence_score=item.confidence,
                category=item.category,
            )
            for item in analysis.action_items
            if item.confidence >= self.config.minimum_confidence
        ]
        count = await self.repo.add_action_items(items)
        if count:
            call_logger(log, call.id).info(f"Created {count} action items")

    async def _create_keywords(self, call: CallRecord, analysis: AnalysisResult):
        multiplier = self.config.keyword_relevance_multiplier
        keywords = [
            CallKeyword(
                call_id=call.id,
                keyword=term,
                frequency=frequency,
                relevance_score=keyword_relevance(frequency, multiplier),
                category=categorize_keyword(term),
            )
            for term, frequency in count_keywords(analysis).items()
        ]
        await self.repo.add_keywords(keywords)

    async def _update_deal_probability(self, call: CallRecord, analysis: AnalysisResult):
        if not self.config.auto_update_deal_probability:
            return
        if not call.deal_id or analysis.deal_probability is None:
            return
        updated = await self.repo.set_deal_probability(call.deal_id, analysis.deal_probability)
        clog = call_logger(log, call.id)
        if updated:
            clog.info(f"Deal {call.deal_id} probability set to {analysis.deal_probability}%")
        else:
            clog.warning(f"Deal {call.deal_id} not found, probability not updated")

    async def _notify_team(self, call: CallRecord, analysis: AnalysisResult):
        if not self.config.auto_notify_team:
            return
        reasons = attention_reasons(analysis)
        if reasons:
            await self.notifier.notify(call, reasons)

    async def get_contact_call_history(self, contact_id: str) -> list[CallRecord]:
        return await self.repo.find_calls(
            CallSearchFilters(contact_id=contact_id), completed_only=False
        )

    async def get_deal_call_history(self, deal_id: str) -> list[CallRecord]:
        return await self.repo.find_calls(CallSearchFilters(deal_id=deal_id), completed_only=False)

    async def get_user_action_items(self, assignee: str) -> list[CallActionItem]:
        return await self.repo.open_action_items_for(assignee)

    async def complete_action_item(self, item_id: str) -> CallActionItem | None:
        return await self.repo.complete_action_item(item_id)

    async def get_call_details(self, call_id: str) -> dict | None:
        call = await self.repo.get(call_id)
        if not call:
            return None
        return {
            "call": call,
            "participants": await self.repo.get_participants(call_id),
            "action_items": await self.repo.get_action_items([call_id]),
            "keywords": await self.repo.get_keywords([call_id]),
        }

    async def delete_call(self, call_id: str) -> bool:
        return await self.repo.delete(call_id)
