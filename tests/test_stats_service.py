"""
Tests for stats aggregation and the cached stats service.
"""
from datetime import datetime, timedelta, timezone

import pytest

from support_gate.exceptions import ServiceUnavailable
from support_gate.services import (
    CacheStatus,
    EscalationWorkflow,
    Principal,
    StatsAggregator,
    StatsService,
    StatsSnapshot,
)
from support_gate.store import EscalationStatus

FIXED_NOW = datetime(2024, 5, 1, 15, 30, tzinfo=timezone.utc)
T0 = 1_700_000_000_000


@pytest.fixture
def aggregator(store):
    return StatsAggregator(store, timeout=2.0, tz_name="UTC", clock=lambda: FIXED_NOW)


@pytest.fixture
async def legacy_messages(store, make_message):
    """Messages only, no session summaries."""
    yesterday = FIXED_NOW - timedelta(days=1)
    earlier_today = FIXED_NOW - timedelta(hours=2)

    await store.add_message(make_message("s1", user_id="user-1", timestamp=yesterday))
    await store.add_message(make_message("s1", user_id="user-1", timestamp=earlier_today))
    await store.add_message(make_message("s1", user_id=None, role="assistant", timestamp=earlier_today))
    await store.add_message(make_message("s2", user_id="user-2", timestamp=earlier_today))
    await store.add_message(make_message("s3", user_id="user-1", timestamp=yesterday))


class FakeAggregator:
    """Aggregator returning numbered snapshots, optionally failing."""

    def __init__(self):
        self.calls = 0
        self.fail = False

    async def compute(self):
        self.calls += 1
        if self.fail:
            raise ServiceUnavailable("store down")
        return StatsSnapshot(total_chats=self.calls)


# ===========================
# Aggregator Tests
# ===========================

@pytest.mark.unit
async def test_empty_store(aggregator):
    snapshot = await aggregator.compute()

    assert snapshot == StatsSnapshot()


@pytest.mark.unit
async def test_counts_from_raw_messages_without_summaries(aggregator, legacy_messages):
    snapshot = await aggregator.compute()

    assert snapshot.total_chats == 3
    assert snapshot.unique_users == 2
    assert snapshot.today_chats == 3
    assert snapshot.escalated_chats == 0
    assert snapshot.pending_escalations == 0


@pytest.mark.unit
async def test_counts_from_summaries_once_present(store, aggregator, legacy_messages):
    workflow = EscalationWorkflow(store, clock=lambda: FIXED_NOW)
    await workflow.escalate("s1", Principal(user_id="user-1"))
    await workflow.escalate("s2", Principal(user_id="user-2"))
    await workflow.advance("s2", EscalationStatus.IN_PROGRESS)

    snapshot = await aggregator.compute()

    assert snapshot.total_chats == 2
    assert snapshot.unique_users == 2
    assert snapshot.escalated_chats == 2
    assert snapshot.pending_escalations == 1


@pytest.mark.unit
async def test_start_of_today_uses_configured_timezone(store):
    aggregator = StatsAggregator(store, tz_name="Asia/Tokyo", clock=lambda: FIXED_NOW)

    start = aggregator.start_of_today()

    # 15:30 UTC is 00:30 the next day in Tokyo
    assert start.astimezone(timezone.utc) == datetime(2024, 5, 1, 15, 0, tzinfo=timezone.utc)


@pytest.mark.unit
def test_snapshot_serializes_camel_case():
    snapshot = StatsSnapshot(total_chats=4, escalated_chats=1, pending_escalations=1, unique_users=3, today_chats=2)

    assert snapshot.model_dump(by_alias=True) == {
        "totalChats": 4,
        "escalatedChats": 1,
        "pendingEscalations": 1,
        "uniqueUsers": 3,
        "todayChats": 2,
    }


@pytest.mark.unit
def test_snapshot_is_immutable():
    snapshot = StatsSnapshot(total_chats=1)

    with pytest.raises(Exception):
        snapshot.total_chats = 2


# ===========================
# Service Tests
# ===========================

@pytest.mark.unit
async def test_miss_then_hit():
    fake = FakeAggregator()
    service = StatsService(fake, ttl_ms=30_000, serve_stale_on_error=False)

    first, first_status = await service.get_snapshot(now=T0)
    second, second_status = await service.get_snapshot(now=T0 + 29_999)

    assert first_status == CacheStatus.MISS
    assert second_status == CacheStatus.HIT
    assert first is second
    assert fake.calls == 1


@pytest.mark.unit
async def test_recompute_after_ttl():
    fake = FakeAggregator()
    service = StatsService(fake, ttl_ms=30_000, serve_stale_on_error=False)

    await service.get_snapshot(now=T0)
    snapshot, status = await service.get_snapshot(now=T0 + 30_000)

    assert status == CacheStatus.MISS
    assert snapshot.total_chats == 2


@pytest.mark.unit
async def test_failure_propagates_by_default():
    fake = FakeAggregator()
    service = StatsService(fake, ttl_ms=1000, serve_stale_on_error=False)
    await service.get_snapshot(now=T0)

    fake.fail = True
    with pytest.raises(ServiceUnavailable):
        await service.get_snapshot(now=T0 + 5000)


@pytest.mark.unit
async def test_stale_value_served_when_enabled():
    fake = FakeAggregator()
    service = StatsService(fake, ttl_ms=1000, serve_stale_on_error=True)
    first, _ = await service.get_snapshot(now=T0)

    fake.fail = True
    snapshot, status = await service.get_snapshot(now=T0 + 5000)

    assert status == CacheStatus.STALE
    assert snapshot is first


@pytest.mark.unit
async def test_stale_needs_a_previous_value():
    fake = FakeAggregator()
    fake.fail = True
    service = StatsService(fake, ttl_ms=1000, serve_stale_on_error=True)

    with pytest.raises(ServiceUnavailable):
        await service.get_snapshot(now=T0)
