"""
Redis-backed support store implementation.
Suitable for production multi-instance deployments.

Escalation creation and status changes run as Lua scripts so that
insert-if-absent and forward-only transitions are atomic on the server.

Version: 1.0.0
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError
from pydantic_core import to_jsonable_python

from .base import InvalidStatusTransition, StoreError, SupportStore, paginate_summaries
from .models import (
    ChatMessage,
    ChatSessionSummary,
    EscalationRecord,
    EscalationStatus,
    ensure_aware,
    utcnow,
)

logger = logging.getLogger(__name__)


def _to_ms(value: datetime) -> int:
    return int(ensure_aware(value).timestamp() * 1000)


class RedisSupportStore(SupportStore):
    """
    Redis-backed implementation of SupportStore.

    Key layout (all under key_prefix):
    - message:<id>                 message JSON
    - session_messages:<sid>       ZSET of message ids scored by timestamp
    - messages:by_time             ZSET of all message ids scored by timestamp
    - chat_session:<sid>           HASH of JSON-encoded summary fields
    - chat_sessions                SET of summary session ids
    - escalation:<sid>             escalation JSON
    - escalations                  ZSET of session ids scored by escalated_at
    - escalations:status:<status>  SET of session ids per status
    """

    # Lua script for insert-if-absent escalation creation
    CREATE_ESCALATION_SCRIPT = """
    local existing = redis.call('GET', KEYS[1])
    if existing then
        return {0, existing}
    end

    redis.call('SET', KEYS[1], ARGV[1])
    redis.call('ZADD', KEYS[2], ARGV[2], ARGV[3])
    redis.call('SADD', KEYS[3], ARGV[3])

    return {1, ARGV[1]}
    """

    # Lua script for forward-only status transitions
    ADVANCE_ESCALATION_SCRIPT = """
    local raw = redis.call('GET', KEYS[1])
    if not raw then
        return {0, ''}
    end

    local record = cjson.decode(raw)
    local order = {pending = 1, in_progress = 2, resolved = 3}
    local sets = {pending = KEYS[2], in_progress = KEYS[3], resolved = KEYS[4]}

    local current = record['status']
    local target = ARGV[1]

    if order[target] <= order[current] then
        return {-1, raw}
    end

    record['status'] = target
    if target == 'resolved' then
        record['resolved_at'] = ARGV[2]
        if ARGV[3] == '' then
            record['resolved_by'] = cjson.null
        else
            record['resolved_by'] = ARGV[3]
        end
    end

    local encoded = cjson.encode(record)
    redis.call('SET', KEYS[1], encoded)
    redis.call('SREM', sets[current], ARGV[4])
    redis.call('SADD', sets[target], ARGV[4])

    return {1, encoded}
    """

    def __init__(
        self,
        redis_url: str,
        key_prefix: str = "support:",
        max_connections: int = 50,
        socket_timeout: float = 5,
        socket_connect_timeout: float = 5,
        health_check_interval: int = 30
    ):
        """
        Initialize Redis support store.

        Args:
            redis_url: Redis connection URL
            key_prefix: Prefix for every key
            max_connections: Maximum connection pool size
            socket_timeout: Socket timeout in seconds
            socket_connect_timeout: Connection timeout in seconds
            health_check_interval: Health check interval in seconds
        """
        self.redis_url = redis_url
        self.key_prefix = key_prefix

        self.pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
            decode_responses=True,
            health_check_interval=health_check_interval,
            socket_keepalive=True
        )
        self.client: Redis = Redis(connection_pool=self.pool)

        self._create_escalation = self.client.register_script(self.CREATE_ESCALATION_SCRIPT)
        self._advance_escalation = self.client.register_script(self.ADVANCE_ESCALATION_SCRIPT)

        logger.info(f"RedisSupportStore initialized (url={redis_url}, prefix={key_prefix})")

    # ===========================
    # Keys
    # ===========================

    def _key(self, *parts: str) -> str:
        return self.key_prefix + ":".join(parts)

    def _message_key(self, message_id: str) -> str:
        return self._key("message", message_id)

    def _status_key(self, status: EscalationStatus) -> str:
        return self._key("escalations", "status", status.value)

    # ===========================
    # Messages
    # ===========================

    async def add_message(self, message: ChatMessage) -> None:
        score = _to_ms(message.timestamp)
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.set(self._message_key(message.id), message.model_dump_json())
            pipe.zadd(self._key("session_messages", message.session_id), {message.id: score})
            pipe.zadd(self._key("messages", "by_time"), {message.id: score})
            await pipe.execute()
        except RedisError as e:
            logger.error(f"Redis error storing message {message.id}: {e}")
            raise StoreError(str(e)) from e

    async def _load_messages(self, message_ids: List[str]) -> List[ChatMessage]:
        if not message_ids:
            return []

        raw_messages = await self.client.mget([self._message_key(mid) for mid in message_ids])
        return [
            ChatMessage.model_validate_json(raw)
            for raw in raw_messages
            if raw is not None
        ]

    async def get_session_messages(self, session_id: str) -> List[ChatMessage]:
        try:
            message_ids = await self.client.zrange(self._key("session_messages", session_id), 0, -1)
            return await self._load_messages(message_ids)
        except RedisError as e:
            logger.error(f"Redis error reading messages of session {session_id}: {e}")
            raise StoreError(str(e)) from e

    async def mark_message_escalated(self, message_id: str, escalated_at: datetime) -> bool:
        key = self._message_key(message_id)
        try:
            raw = await self.client.get(key)
            if raw is None:
                return False

            message = ChatMessage.model_validate_json(raw)
            message.is_escalated = True
            message.escalated_at = ensure_aware(escalated_at)

            return bool(await self.client.set(key, message.model_dump_json(), xx=True))
        except RedisError as e:
            logger.error(f"Redis error flagging message {message_id}: {e}")
            raise StoreError(str(e)) from e

    async def count_messages_since(self, since: datetime) -> int:
        try:
            return await self.client.zcount(self._key("messages", "by_time"), _to_ms(since), "+inf")
        except RedisError as e:
            raise StoreError(str(e)) from e

    async def list_message_participants(self) -> List[Tuple[str, Optional[str]]]:
        try:
            message_ids = await self.client.zrange(self._key("messages", "by_time"), 0, -1)
            messages = await self._load_messages(message_ids)
        except RedisError as e:
            raise StoreError(str(e)) from e

        return [(m.session_id, m.user_id) for m in messages]

    # ===========================
    # Session summaries
    # ===========================

    async def merge_session_summary(self, session_id: str, fields: Dict[str, Any]) -> None:
        mapping = {
            name: json.dumps(to_jsonable_python(value))
            for name, value in fields.items()
        }
        mapping["session_id"] = json.dumps(session_id)

        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.hset(self._key("chat_session", session_id), mapping=mapping)
            pipe.sadd(self._key("chat_sessions"), session_id)
            await pipe.execute()
        except RedisError as e:
            logger.error(f"Redis error merging session summary {session_id}: {e}")
            raise StoreError(str(e)) from e

    async def get_session_summary(self, session_id: str) -> Optional[ChatSessionSummary]:
        try:
            raw = await self.client.hgetall(self._key("chat_session", session_id))
        except RedisError as e:
            raise StoreError(str(e)) from e

        if not raw:
            return None
        return ChatSessionSummary(**{name: json.loads(value) for name, value in raw.items()})

    async def count_sessions(self) -> int:
        try:
            return await self.client.scard(self._key("chat_sessions"))
        except RedisError as e:
            raise StoreError(str(e)) from e

    async def list_session_owners(self) -> List[str]:
        try:
            session_ids = await self.client.smembers(self._key("chat_sessions"))
            if not session_ids:
                return []

            pipe = self.client.pipeline(transaction=False)
            for session_id in session_ids:
                pipe.hget(self._key("chat_session", session_id), "user_id")
            owners = await pipe.execute()
        except RedisError as e:
            raise StoreError(str(e)) from e

        decoded = [json.loads(owner) for owner in owners if owner is not None]
        return [owner for owner in decoded if owner]

    async def list_session_summaries(
        self,
        limit: int,
        cursor: Optional[str] = None
    ) -> Tuple[List[ChatSessionSummary], Optional[str]]:
        try:
            session_ids = await self.client.smembers(self._key("chat_sessions"))
            if not session_ids:
                return [], None

            pipe = self.client.pipeline(transaction=False)
            for session_id in session_ids:
                pipe.hgetall(self._key("chat_session", session_id))
            rows = await pipe.execute()
        except RedisError as e:
            raise StoreError(str(e)) from e

        summaries = [
            ChatSessionSummary(**{name: json.loads(value) for name, value in row.items()})
            for row in rows
            if row
        ]
        return paginate_summaries(summaries, limit, cursor)

    # ===========================
    # Escalations
    # ===========================

    async def create_escalation_if_absent(
        self,
        record: EscalationRecord
    ) -> Tuple[EscalationRecord, bool]:
        try:
            created, raw = await self._create_escalation(
                keys=[
                    self._key("escalation", record.session_id),
                    self._key("escalations"),
                    self._status_key(record.status),
                ],
                args=[
                    record.model_dump_json(),
                    _to_ms(record.escalated_at),
                    record.session_id,
                ]
            )
        except RedisError as e:
            logger.error(f"Redis error creating escalation {record.session_id}: {e}")
            raise StoreError(str(e)) from e

        stored = EscalationRecord.model_validate_json(raw)
        if int(created) == 1:
            logger.info(f"Created escalation for session {record.session_id}")
        return stored, int(created) == 1

    async def get_escalation(self, session_id: str) -> Optional[EscalationRecord]:
        try:
            raw = await self.client.get(self._key("escalation", session_id))
        except RedisError as e:
            raise StoreError(str(e)) from e

        return EscalationRecord.model_validate_json(raw) if raw else None

    async def list_escalations(self) -> List[EscalationRecord]:
        try:
            session_ids = await self.client.zrevrange(self._key("escalations"), 0, -1)
            if not session_ids:
                return []
            raw_records = await self.client.mget(
                [self._key("escalation", sid) for sid in session_ids]
            )
        except RedisError as e:
            raise StoreError(str(e)) from e

        return [
            EscalationRecord.model_validate_json(raw)
            for raw in raw_records
            if raw is not None
        ]

    async def count_escalations(self, status: Optional[EscalationStatus] = None) -> int:
        try:
            if status is None:
                return await self.client.zcard(self._key("escalations"))
            return await self.client.scard(self._status_key(status))
        except RedisError as e:
            raise StoreError(str(e)) from e

    async def advance_escalation(
        self,
        session_id: str,
        status: EscalationStatus,
        resolved_by: Optional[str] = None,
        at: Optional[datetime] = None
    ) -> Optional[EscalationRecord]:
        resolved_at = ensure_aware(at) if at else utcnow()

        try:
            outcome, raw = await self._advance_escalation(
                keys=[
                    self._key("escalation", session_id),
                    self._status_key(EscalationStatus.PENDING),
                    self._status_key(EscalationStatus.IN_PROGRESS),
                    self._status_key(EscalationStatus.RESOLVED),
                ],
                args=[
                    status.value,
                    resolved_at.isoformat(),
                    resolved_by or "",
                    session_id,
                ]
            )
        except RedisError as e:
            logger.error(f"Redis error advancing escalation {session_id}: {e}")
            raise StoreError(str(e)) from e

        outcome = int(outcome)
        if outcome == 0:
            return None

        record = EscalationRecord.model_validate_json(raw)
        if outcome == -1:
            raise InvalidStatusTransition(record.status, status)

        logger.info(f"Escalation {session_id} advanced to {status.value}")
        return record

    # ===========================
    # Lifecycle
    # ===========================

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def get_stats(self) -> Dict[str, Any]:
        try:
            info = await self.client.info()
            pipe = self.client.pipeline(transaction=False)
            pipe.zcard(self._key("messages", "by_time"))
            pipe.scard(self._key("chat_sessions"))
            pipe.zcard(self._key("escalations"))
            messages, sessions, escalations = await pipe.execute()
        except RedisError as e:
            raise StoreError(str(e)) from e

        return {
            "store_type": "redis",
            "messages": messages,
            "sessions": sessions,
            "escalations": escalations,
            "redis_version": info.get("redis_version"),
            "connected_clients": info.get("connected_clients"),
            "used_memory_human": info.get("used_memory_human"),
        }

    async def close(self) -> None:
        await self.client.aclose()
        await self.pool.disconnect()
        logger.info("RedisSupportStore closed")


__all__ = ['RedisSupportStore']
