"""
Aggregate support statistics with a short-lived cache.

Two write paths may coexist: legacy sessions that only ever wrote
messages, and sessions with a denormalized summary. When no summaries
exist yet the aggregator derives session and user counts from the raw
messages instead.

Version: 1.0.0
"""
import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..config import settings
from ..exceptions import ServiceUnavailable
from ..limiter import current_time_ms
from ..store import EscalationStatus, SupportStore, utcnow
from ..utils.telemetry import track_stats_cache
from ..utils.ttl_cache import TTLCache
from .store_calls import call_store

logger = logging.getLogger(__name__)


class StatsSnapshot(BaseModel):
    """Immutable aggregate counters."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    total_chats: int = Field(0, ge=0)
    escalated_chats: int = Field(0, ge=0)
    pending_escalations: int = Field(0, ge=0)
    unique_users: int = Field(0, ge=0)
    today_chats: int = Field(0, ge=0)


class CacheStatus(str, Enum):
    """How a snapshot was served."""
    HIT = "HIT"
    MISS = "MISS"
    STALE = "STALE"


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


class StatsAggregator:
    """Computes a StatsSnapshot from the support store."""

    def __init__(
        self,
        store: SupportStore,
        timeout: Optional[float] = None,
        tz_name: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.timeout = timeout or settings.store_timeout_seconds
        self.tz = resolve_timezone(tz_name or settings.stats_timezone)
        self.clock = clock or utcnow

    def start_of_today(self) -> datetime:
        """Local midnight in the configured timezone."""
        local_now = self.clock().astimezone(self.tz)
        return local_now.replace(hour=0, minute=0, second=0, microsecond=0)

    async def compute(self) -> StatsSnapshot:
        """
        Compute a fresh snapshot.

        Raises:
            ServiceUnavailable: On store timeout or failure
        """
        total_sessions, escalated, pending, today = await asyncio.gather(
            call_store("count_sessions", self.store.count_sessions(), self.timeout),
            call_store("count_escalations", self.store.count_escalations(), self.timeout),
            call_store(
                "count_pending_escalations",
                self.store.count_escalations(EscalationStatus.PENDING),
                self.timeout
            ),
            call_store(
                "count_messages_since",
                self.store.count_messages_since(self.start_of_today()),
                self.timeout
            ),
        )

        if total_sessions == 0:
            participants = await call_store(
                "list_message_participants",
                self.store.list_message_participants(),
                self.timeout
            )
            session_ids = {session_id for session_id, _ in participants if session_id}
            user_ids = {user_id for _, user_id in participants if user_id}

            total_chats = len(session_ids)
            unique_users = len(user_ids)
            logger.debug(
                f"No session summaries, derived {total_chats} chats from raw messages"
            )
        else:
            owners = await call_store(
                "list_session_owners", self.store.list_session_owners(), self.timeout
            )
            total_chats = total_sessions
            unique_users = len(set(owners))

        return StatsSnapshot(
            total_chats=total_chats,
            escalated_chats=escalated,
            pending_escalations=pending,
            unique_users=unique_users,
            today_chats=today
        )


class StatsService:
    """Serves stats snapshots through a TTL cache."""

    def __init__(
        self,
        aggregator: StatsAggregator,
        ttl_ms: Optional[int] = None,
        serve_stale_on_error: Optional[bool] = None,
        cache: Optional[TTLCache[StatsSnapshot]] = None
    ):
        self.aggregator = aggregator
        self.ttl_ms = settings.stats_cache_ttl_ms if ttl_ms is None else ttl_ms
        self.serve_stale_on_error = (
            settings.stats_serve_stale_on_error
            if serve_stale_on_error is None else serve_stale_on_error
        )
        self.cache: TTLCache[StatsSnapshot] = cache or TTLCache()

    async def get_snapshot(self, now: Optional[int] = None) -> Tuple[StatsSnapshot, CacheStatus]:
        """
        Cached snapshot, recomputed once the TTL passes.

        Raises:
            ServiceUnavailable: If the recompute fails (and no stale value
                may be served)
        """
        now = current_time_ms() if now is None else now

        try:
            snapshot, hit = await self.cache.get_or_compute_with_status(
                self.ttl_ms, now, self.aggregator.compute
            )
        except ServiceUnavailable:
            stale = self.cache.last_value()
            if self.serve_stale_on_error and stale is not None:
                logger.warning("Stats recompute failed, serving last known snapshot")
                track_stats_cache(CacheStatus.STALE.value)
                return stale, CacheStatus.STALE
            raise

        status = CacheStatus.HIT if hit else CacheStatus.MISS
        track_stats_cache(status.value)
        return snapshot, status


__all__ = ['StatsSnapshot', 'StatsAggregator', 'StatsService', 'CacheStatus', 'resolve_timezone']
