from datetime import datetime

from sqlmodel import col, desc, select

from ..core.errors import InvalidTransitionError, PersistenceError
from ..database import Database
from ..interfaces import AbstractCallRepository
from ..models import (
    CallActionItem,
    CallKeyword,
    CallParticipant,
    CallRecord,
    CallStatus,
    Deal,
    is_valid_transition,
)
from ..schemas.calls import CallSearchFilters


class CallRepository(AbstractCallRepository):
    """Repository for call records and their derived rows via SQLModel."""

    def __init__(self, db: Database):
        self.db = db

    async def create(self, call: CallRecord) -> CallRecord:
        async with self.db.session() as session:
            session.add(call)
            await session.commit()
            await session.refresh(call)
            return call

    async def get(self, call_id: str) -> CallRecord | None:
        async with self.db.session() as session:
            return await session.get(CallRecord, call_id)

    async def update_status(
        self, call_id: str, status: str, error: str | None = None
    ) -> CallRecord:
        """Move a call forward, or to failed. Regressions raise InvalidTransitionError."""
        async with self.db.session() as session:
            call = await session.get(CallRecord, call_id)
            if not call:
                raise PersistenceError(f"Call {call_id} not found")
            if call.status != status and not is_valid_transition(call.status, status):
                raise InvalidTransitionError(
                    f"Cannot move call from {call.status} to {status}",
                    {"call_id": call_id},
                )
            call.status = status
            if error is not None:
                call.error = error
            if status == CallStatus.FAILED:
                call.ended_at = call.ended_at or datetime.now()
            call.updated_at = datetime.now()
            session.add(call)
            await session.commit()
            await session.refresh(call)
            return call

    async def complete_call(self, call_id: str, fields: dict) -> CallRecord:
        """Write all transcript and analysis fields and mark completed in one commit."""
        async with self.db.session() as session:
            async with session.begin():
                call = await session.get(CallRecord, call_id)
                if not call:
                    raise PersistenceError(f"Call {call_id} not found")
                if not is_valid_transition(call.status, CallStatus.COMPLETED):
                    raise InvalidTransitionError(
                        f"Cannot complete call in status {call.status}", {"call_id": call_id}
                    )
                for key, value in fields.items():
                    setattr(call, key, value)
                call.status = CallStatus.COMPLETED
                call.ended_at = call.ended_at or datetime.now()
                call.updated_at = datetime.now()
                session.add(call)
            await session.refresh(call)
            return call

    async def delete(self, call_id: str) -> bool:
        """Delete a call and its participants, action items and keywords."""
        async with self.db.session() as session:
            async with session.begin():
                call = await session.get(CallRecord, call_id)
                if not call:
                    return False
                for model in (CallParticipant, CallActionItem, CallKeyword):
                    rows = await session.exec(select(model).where(model.call_id == call_id))
                    for row in rows.all():
                        await session.delete(row)
                await session.delete(call)
            return True

    async def _add_all(self, rows: list) -> int:
        if not rows:
            return 0
        async with self.db.session() as session:
            session.add_all(rows)
            await session.commit()
        return len(rows)

    async def add_participants(self, participants: list[CallParticipant]) -> int:
        return await self._add_all(participants)

    async def add_action_items(self, items: list[CallActionItem]) -> int:
        return await self._add_all(items)

    async def add_keywords(self, keywords: list[CallKeyword]) -> int:
        return await self._add_all(keywords)

    async def get_participants(self, call_id: str) -> list[CallParticipant]:
        async with self.db.session() as session:
            stmt = select(CallParticipant).where(CallParticipant.call_id == call_id)
            return list((await session.exec(stmt)).all())

    async def get_action_items(self, call_ids: list[str]) -> list[CallActionItem]:
        if not call_ids:
            return []
        async with self.db.session() as session:
            stmt = (
                select(CallActionItem)
                .where(col(CallActionItem.call_id).in_(call_ids))
                .order_by(CallActionItem.created_at)
            )
            return list((await session.exec(stmt)).all())

    async def get_keywords(self, call_ids: list[str]) -> list[CallKeyword]:
        if not call_ids:
            return []
        async with self.db.session() as session:
            stmt = select(CallKeyword).where(col(CallKeyword.call_id).in_(call_ids))
            return list((await session.exec(stmt)).all())

    def _filtered(self, filters: CallSearchFilters):
        stmt = select(CallRecord)
        if filters.contact_id:
            stmt = stmt.where(CallRecord.contact_id == filters.contact_id)
        if filters.deal_id:
            stmt = stmt.where(CallRecord.deal_id == filters.deal_id)
        if filters.sentiment:
            stmt = stmt.where(CallRecord.sentiment_overall == filters.sentiment)
        if filters.date_from:
            stmt = stmt.where(CallRecord.started_at >= filters.date_from)
        if filters.date_to:
            stmt = stmt.where(CallRecord.started_at <= filters.date_to)
        return stmt

    async def find_calls(
        self, filters: CallSearchFilters, completed_only: bool = True, limit: int | None = None
    ) -> list[CallRecord]:
        """Calls matching the filters, newest first."""
        stmt = self._filtered(filters)
        if completed_only:
            stmt = stmt.where(CallRecord.status == CallStatus.COMPLETED)
        stmt = stmt.order_by(desc(CallRecord.started_at))
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.db.session() as session:
            return list((await session.exec(stmt)).all())

    async def search_transcripts(
        self, query: str, filters: CallSearchFilters, limit: int
    ) -> list[CallRecord]:
        """Case-insensitive substring match over transcript text, newest first."""
        stmt = (
            self._filtered(filters)
            .where(col(CallRecord.transcript_text).icontains(query, autoescape=True))
            .order_by(desc(CallRecord.started_at))
            .limit(limit)
        )
        async with self.db.session() as session:
            return list((await session.exec(stmt)).all())

    async def list_completed_since(self, since: datetime) -> list[CallRecord]:
        return await self.find_calls(CallSearchFilters(date_from=since))

    async def set_deal_probability(self, deal_id: str, probability: int) -> bool:
        async with self.db.session() as session:
            deal = await session.get(Deal, deal_id)
            if not deal:
                return False
            deal.probability = probability
            deal.updated_at = datetime.now()
            session.add(deal)
            await session.commit()
            return True

    async def open_action_items_for(self, assignee: str) -> list[CallActionItem]:
        """Open items for an assignee, soonest due first, undated last."""
        stmt = (
            select(CallActionItem)
            .where(CallActionItem.assignee == assignee)
            .where(col(CallActionItem.completed).is_(False))
            .order_by(col(CallActionItem.due_date).is_(None), CallActionItem.due_date)
        )
        async with self.db.session() as session:
            return list((await session.exec(stmt)).all())

    async def complete_action_item(self, item_id: str) -> CallActionItem | None:
        async with self.db.session() as session:
            item = await session.get(CallActionItem, item_id)
            if not item:
                return None
            if not item.completed:
                item.completed = True
                item.completed_at = datetime.now()
                item.updated_at = item.completed_at
                session.add(item)
                await session.commit()
                await session.refresh(item)
            return item
