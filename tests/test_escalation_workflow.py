"""
Tests for the escalation workflow.
Covers idempotence, concurrency, ownership and failure handling.
"""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from support_gate.exceptions import (
    AccessDenied,
    EscalationNotFound,
    ServiceUnavailable,
    SessionNotFound,
    ValidationFailed,
)
from support_gate.services import EscalationWorkflow, Principal
from support_gate.store import EscalationStatus, InMemorySupportStore, StoreError

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FlakyFlagStore(InMemorySupportStore):
    """Store whose message flagging always fails."""

    async def mark_message_escalated(self, message_id, escalated_at):
        raise StoreError("message collection unavailable")


class SlowStore(InMemorySupportStore):
    """Store whose message reads never finish in time."""

    async def get_session_messages(self, session_id):
        await asyncio.sleep(1)
        return await super().get_session_messages(session_id)


class BrokenStore(InMemorySupportStore):
    async def create_escalation_if_absent(self, record):
        raise StoreError("connection reset")


@pytest.fixture
def workflow(store):
    return EscalationWorkflow(store, timeout=2.0, clock=lambda: FIXED_NOW)


async def seed(store, make_message, session_id=None, user_id="user-1"):
    session_id = session_id or str(uuid.uuid4())
    start = FIXED_NOW - timedelta(minutes=3)
    await store.add_message(make_message(session_id, user_id=user_id, timestamp=start))
    await store.add_message(
        make_message(session_id, user_id=None, role="assistant", timestamp=start + timedelta(seconds=5))
    )
    await store.add_message(make_message(session_id, user_id=user_id, timestamp=start + timedelta(seconds=9)))
    return session_id


# ===========================
# Escalate Tests
# ===========================

@pytest.mark.unit
async def test_escalate_creates_pending_record(workflow, store, chat_session, user_principal):
    outcome = await workflow.escalate(chat_session, user_principal)

    assert outcome.status == EscalationStatus.PENDING
    assert outcome.already_escalated is False
    assert outcome.escalated_at == FIXED_NOW

    record = await store.get_escalation(chat_session)
    assert record.user_id == "user-1"
    assert record.user_email == "user1@example.com"
    assert record.user_name == "User One"


@pytest.mark.unit
async def test_escalate_is_idempotent(workflow, store, chat_session, user_principal):
    first = await workflow.escalate(chat_session, user_principal)

    later = EscalationWorkflow(store, clock=lambda: FIXED_NOW + timedelta(hours=1))
    second = await later.escalate(chat_session, user_principal)

    assert first.already_escalated is False
    assert second.already_escalated is True
    assert second.escalated_at == first.escalated_at
    assert await store.count_escalations() == 1


@pytest.mark.unit
async def test_escalate_merge_writes_session_summary(workflow, store, chat_session, user_principal):
    await store.merge_session_summary(chat_session, {"title": "Missing order"})

    await workflow.escalate(chat_session, user_principal)

    summary = await store.get_session_summary(chat_session)
    assert summary.is_escalated is True
    assert summary.escalation_status == EscalationStatus.PENDING
    assert summary.escalated_at == FIXED_NOW
    assert summary.user_id == "user-1"
    assert summary.model_extra["title"] == "Missing order"
    assert summary.user_email == "user1@example.com"
    assert summary.user_name == "User One"
    assert summary.message_count == 3

    messages = await store.get_session_messages(chat_session)
    assert summary.last_message_at == messages[-1].timestamp


@pytest.mark.unit
async def test_escalate_flags_latest_message(workflow, store, chat_session, user_principal):
    await workflow.escalate(chat_session, user_principal)

    messages = await store.get_session_messages(chat_session)
    assert messages[-1].is_escalated is True
    assert all(not m.is_escalated for m in messages[:-1])


@pytest.mark.unit
async def test_concurrent_escalations_create_one_record(workflow, store, chat_session, user_principal):
    outcomes = await asyncio.gather(
        *[workflow.escalate(chat_session, user_principal) for _ in range(10)]
    )

    assert sum(1 for o in outcomes if not o.already_escalated) == 1
    assert len({o.escalated_at for o in outcomes}) == 1
    assert await store.count_escalations() == 1


@pytest.mark.unit
async def test_unknown_session_raises_not_found(workflow, store, user_principal):
    with pytest.raises(SessionNotFound):
        await workflow.escalate("abc", user_principal)

    assert await store.count_escalations() == 0


@pytest.mark.unit
async def test_other_user_is_denied(workflow, store, chat_session, other_principal):
    with pytest.raises(AccessDenied):
        await workflow.escalate(chat_session, other_principal)

    assert await store.get_escalation(chat_session) is None
    assert await store.get_session_summary(chat_session) is None


@pytest.mark.unit
async def test_session_without_owner_accepts_caller(workflow, store, make_message, user_principal):
    session_id = await seed(store, make_message, user_id=None)

    outcome = await workflow.escalate(session_id, user_principal)

    assert outcome.already_escalated is False
    summary = await store.get_session_summary(session_id)
    assert summary.user_id is None


@pytest.mark.unit
async def test_principal_without_profile_uses_placeholders(workflow, store, chat_session):
    await workflow.escalate(chat_session, Principal(user_id="user-1"))

    record = await store.get_escalation(chat_session)
    assert record.user_email == "Unknown"
    assert record.user_name == "Unknown User"


@pytest.mark.unit
async def test_flag_failure_does_not_fail_escalation(make_message, user_principal):
    store = FlakyFlagStore()
    session_id = await seed(store, make_message)
    workflow = EscalationWorkflow(store, clock=lambda: FIXED_NOW)

    outcome = await workflow.escalate(session_id, user_principal)

    assert outcome.already_escalated is False
    assert await store.get_escalation(session_id) is not None


@pytest.mark.unit
async def test_store_timeout_is_service_unavailable(make_message, user_principal):
    store = SlowStore()
    session_id = await seed(store, make_message)
    workflow = EscalationWorkflow(store, timeout=0.05)

    with pytest.raises(ServiceUnavailable):
        await workflow.escalate(session_id, user_principal)


@pytest.mark.unit
async def test_store_error_is_service_unavailable(make_message, user_principal):
    store = BrokenStore()
    session_id = await seed(store, make_message)
    workflow = EscalationWorkflow(store)

    with pytest.raises(ServiceUnavailable) as exc_info:
        await workflow.escalate(session_id, user_principal)

    assert exc_info.value.retryable is True


# ===========================
# Status Transition Tests
# ===========================

@pytest.mark.unit
async def test_advance_to_in_progress(workflow, store, chat_session, user_principal):
    await workflow.escalate(chat_session, user_principal)

    record = await workflow.advance(chat_session, EscalationStatus.IN_PROGRESS, actor="agent@example.com")

    assert record.status == EscalationStatus.IN_PROGRESS
    assert record.resolved_at is None
    summary = await store.get_session_summary(chat_session)
    assert summary.escalation_status == EscalationStatus.IN_PROGRESS


@pytest.mark.unit
async def test_resolve_records_actor(workflow, store, chat_session, user_principal):
    await workflow.escalate(chat_session, user_principal)
    admin = Principal(user_id="admin-1", email="admin@example.com", admin_claim=True)

    record = await workflow.resolve(chat_session, admin)

    assert record.status == EscalationStatus.RESOLVED
    assert record.resolved_by == "admin@example.com"
    assert record.resolved_at == FIXED_NOW

    summary = await store.get_session_summary(chat_session)
    assert summary.escalation_status == EscalationStatus.RESOLVED
    assert summary.resolved_by == "admin@example.com"
    assert summary.is_escalated is True


@pytest.mark.unit
async def test_resolve_twice_is_noop(workflow, chat_session, user_principal):
    await workflow.escalate(chat_session, user_principal)
    admin = Principal(user_id="admin-1", email="admin@example.com")

    first = await workflow.resolve(chat_session, admin)
    second = await workflow.resolve(chat_session, admin)

    assert second.status == EscalationStatus.RESOLVED
    assert second.resolved_at == first.resolved_at


@pytest.mark.unit
async def test_status_never_regresses(workflow, chat_session, user_principal):
    await workflow.escalate(chat_session, user_principal)
    await workflow.advance(chat_session, EscalationStatus.RESOLVED)

    with pytest.raises(ValidationFailed):
        await workflow.advance(chat_session, EscalationStatus.PENDING)


@pytest.mark.unit
async def test_escalate_after_resolve_reports_existing(workflow, chat_session, user_principal):
    await workflow.escalate(chat_session, user_principal)
    await workflow.advance(chat_session, EscalationStatus.RESOLVED)

    outcome = await workflow.escalate(chat_session, user_principal)

    assert outcome.already_escalated is True
    assert outcome.status == EscalationStatus.RESOLVED


@pytest.mark.unit
async def test_advance_unknown_escalation(workflow):
    with pytest.raises(EscalationNotFound):
        await workflow.advance("missing", EscalationStatus.RESOLVED)


@pytest.mark.unit
async def test_list_escalations_newest_first(store, make_message, user_principal):
    first_id = await seed(store, make_message)
    second_id = await seed(store, make_message)

    await EscalationWorkflow(store, clock=lambda: FIXED_NOW).escalate(first_id, user_principal)
    await EscalationWorkflow(
        store, clock=lambda: FIXED_NOW + timedelta(minutes=1)
    ).escalate(second_id, user_principal)

    records = await EscalationWorkflow(store).list_escalations()
    assert [r.session_id for r in records] == [second_id, first_id]


@pytest.mark.unit
async def test_list_sessions_reads_escalated_summaries(workflow, store, chat_session, user_principal):
    await workflow.escalate(chat_session, user_principal)

    sessions, next_cursor = await workflow.list_sessions(limit=10)

    assert [s.session_id for s in sessions] == [chat_session]
    assert sessions[0].escalation_status == EscalationStatus.PENDING
    assert next_cursor is None
