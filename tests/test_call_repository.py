"""Tests for CallRepository using a real temp SQLite database."""

from datetime import datetime, timedelta

import pytest

from callintel.core.errors import InvalidTransitionError, PersistenceError
from callintel.models import (
    CallActionItem,
    CallKeyword,
    CallParticipant,
    CallRecord,
    CallStatus,
    Deal,
    is_valid_transition,
)
from callintel.schemas.calls import CallSearchFilters


async def _create(repo, **fields) -> CallRecord:
    return await repo.create(CallRecord(title=fields.pop("title", "Test Call"), **fields))


@pytest.mark.parametrize(
    "current,new,allowed",
    [
        ("recording", "transcribing", True),
        ("recording", "completed", True),
        ("transcribing", "analyzing", True),
        ("analyzing", "completed", True),
        ("analyzing", "failed", True),
        ("recording", "failed", True),
        ("analyzing", "transcribing", False),
        ("completed", "failed", False),
        ("failed", "recording", False),
        ("completed", "analyzing", False),
    ],
)
def test_status_transitions(current, new, allowed):
    assert is_valid_transition(current, new) is allowed


@pytest.mark.asyncio
async def test_create_and_get(test_repo):
    call = await _create(test_repo, contact_id="c-1", deal_id="d-1")
    fetched = await test_repo.get(call.id)
    assert fetched is not None
    assert fetched.title == "Test Call"
    assert fetched.status == CallStatus.RECORDING
    assert fetched.customer_needs == []


@pytest.mark.asyncio
async def test_get_not_found(test_repo):
    assert await test_repo.get("missing") is None


@pytest.mark.asyncio
async def test_update_status_forward(test_repo):
    call = await _create(test_repo)
    updated = await test_repo.update_status(call.id, CallStatus.TRANSCRIBING)
    assert updated.status == CallStatus.TRANSCRIBING


@pytest.mark.asyncio
async def test_update_status_rejects_regression(test_repo):
    call = await _create(test_repo, status=CallStatus.ANALYZING)
    with pytest.raises(InvalidTransitionError):
        await test_repo.update_status(call.id, CallStatus.TRANSCRIBING)
    assert (await test_repo.get(call.id)).status == CallStatus.ANALYZING


@pytest.mark.asyncio
async def test_update_status_failed_records_error(test_repo):
    call = await _create(test_repo, status=CallStatus.TRANSCRIBING)
    updated = await test_repo.update_status(call.id, CallStatus.FAILED, error="backend down")
    assert updated.status == CallStatus.FAILED
    assert updated.error == "backend down"
    assert updated.ended_at is not None


@pytest.mark.asyncio
async def test_update_status_missing_call(test_repo):
    with pytest.raises(PersistenceError):
        await test_repo.update_status("missing", CallStatus.FAILED)


@pytest.mark.asyncio
async def test_status_history_never_regresses(test_repo):
    call = await _create(test_repo)
    seen = [CallStatus.RECORDING]
    for status in (CallStatus.TRANSCRIBING, CallStatus.ANALYZING, CallStatus.TRANSCRIBING):
        try:
            seen.append((await test_repo.update_status(call.id, status)).status)
        except InvalidTransitionError:
            pass
    assert seen == [CallStatus.RECORDING, CallStatus.TRANSCRIBING, CallStatus.ANALYZING]


@pytest.mark.asyncio
async def test_complete_call_writes_all_fields(test_repo):
    call = await _create(test_repo, status=CallStatus.ANALYZING)
    completed = await test_repo.complete_call(
        call.id,
        {
            "transcript_text": "hello there",
            "summary": "Greeting",
            "customer_needs": ["CRM"],
            "deal_probability": 40,
        },
    )
    assert completed.status == CallStatus.COMPLETED
    assert completed.ended_at is not None

    fetched = await test_repo.get(call.id)
    assert fetched.transcript_text == "hello there"
    assert fetched.customer_needs == ["CRM"]
    assert fetched.deal_probability == 40


@pytest.mark.asyncio
async def test_complete_failed_call_rejected(test_repo):
    call = await _create(test_repo, status=CallStatus.FAILED)
    with pytest.raises(InvalidTransitionError):
        await test_repo.complete_call(call.id, {"summary": "late"})
    assert (await test_repo.get(call.id)).summary == ""


@pytest.mark.asyncio
async def test_delete_removes_children(test_repo):
    call = await _create(test_repo)
    await test_repo.add_participants([CallParticipant(call_id=call.id, name="Rep")])
    await test_repo.add_action_items([CallActionItem(call_id=call.id, action_text="Follow up")])
    await test_repo.add_keywords([CallKeyword(call_id=call.id, keyword="CRM")])

    assert await test_repo.delete(call.id) is True
    assert await test_repo.get(call.id) is None
    assert await test_repo.get_participants(call.id) == []
    assert await test_repo.get_action_items([call.id]) == []
    assert await test_repo.get_keywords([call.id]) == []


@pytest.mark.asyncio
async def test_delete_not_found(test_repo):
    assert await test_repo.delete("missing") is False


@pytest.mark.asyncio
async def test_add_rows_returns_count(test_repo):
    call = await _create(test_repo)
    assert await test_repo.add_keywords([]) == 0
    count = await test_repo.add_participants(
        [CallParticipant(call_id=call.id, name="A"), CallParticipant(call_id=call.id, name="B")]
    )
    assert count == 2
    assert {p.name for p in await test_repo.get_participants(call.id)} == {"A", "B"}


@pytest.mark.asyncio
async def test_find_calls_filters_and_orders(test_repo, seed_completed_call):
    now = datetime.now()
    older = await seed_completed_call(contact_id="c-1", started_at=now - timedelta(days=2))
    newer = await seed_completed_call(contact_id="c-1", started_at=now - timedelta(hours=1))
    await seed_completed_call(contact_id="c-2")
    await _create(test_repo, contact_id="c-1")  # still recording

    results = await test_repo.find_calls(CallSearchFilters(contact_id="c-1"))
    assert [c.id for c in results] == [newer.id, older.id]

    everything = await test_repo.find_calls(
        CallSearchFilters(contact_id="c-1"), completed_only=False
    )
    assert len(everything) == 3


@pytest.mark.asyncio
async def test_search_transcripts_case_insensitive(test_repo, seed_completed_call):
    hit = await seed_completed_call(transcript_text="We compared Salesforce pricing")
    await seed_completed_call(transcript_text="Nothing relevant here")

    results = await test_repo.search_transcripts("salesforce", CallSearchFilters(), limit=50)
    assert [c.id for c in results] == [hit.id]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(test_repo, seed_completed_call):
    await seed_completed_call(transcript_text="a 50% discount")
    await seed_completed_call(transcript_text="a 50 dollar discount")

    results = await test_repo.search_transcripts("50%", CallSearchFilters(), limit=50)
    assert len(results) == 1


@pytest.mark.asyncio
async def test_search_respects_limit_and_sentiment(test_repo, seed_completed_call):
    for _ in range(3):
        await seed_completed_call(transcript_text="pricing talk", sentiment_overall="negative")
    await seed_completed_call(transcript_text="pricing talk", sentiment_overall="positive")

    limited = await test_repo.search_transcripts("pricing", CallSearchFilters(), limit=2)
    assert len(limited) == 2

    negative = await test_repo.search_transcripts(
        "pricing", CallSearchFilters(sentiment="negative"), limit=50
    )
    assert len(negative) == 3


@pytest.mark.asyncio
async def test_set_deal_probability(test_repo, test_db):
    async with test_db.session() as session:
        session.add(Deal(id="deal-1", name="Acme renewal", probability=10))
        await session.commit()

    assert await test_repo.set_deal_probability("deal-1", 0) is True
    async with test_db.session() as session:
        deal = await session.get(Deal, "deal-1")
        assert deal.probability == 0

    assert await test_repo.set_deal_probability("missing", 50) is False


@pytest.mark.asyncio
async def test_open_action_items_for_assignee(test_repo):
    call = await _create(test_repo)
    await test_repo.add_action_items(
        [
            CallActionItem(call_id=call.id, action_text="Undated", assignee="sam"),
            CallActionItem(
                call_id=call.id, action_text="Later", assignee="sam", due_date=datetime(2026, 3, 1)
            ),
            CallActionItem(
                call_id=call.id, action_text="Sooner", assignee="sam", due_date=datetime(2026, 2, 1)
            ),
            CallActionItem(call_id=call.id, action_text="Not mine", assignee="kim"),
        ]
    )

    items = await test_repo.open_action_items_for("sam")
    assert [i.action_text for i in items] == ["Sooner", "Later", "Undated"]


@pytest.mark.asyncio
async def test_complete_action_item(test_repo):
    call = await _create(test_repo)
    item = CallActionItem(call_id=call.id, action_text="Send deck", assignee="sam")
    await test_repo.add_action_items([item])

    done = await test_repo.complete_action_item(item.id)
    assert done.completed is True
    assert done.completed_at is not None
    assert await test_repo.open_action_items_for("sam") == []
    assert await test_repo.complete_action_item("missing") is None
