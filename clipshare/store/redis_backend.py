# clipshare/store/redis_backend.py
# Redis-backed store: one hash per entry, one sorted set for its viewers,
# one list per client history. Multi-field writes run as Lua scripts so each
# command is atomic on the server.

from __future__ import annotations

import logging
import time
from typing import AsyncIterator, List, Optional, Sequence

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from clipshare.models.entry import Entry, UpdateOutcome, UpdateStatus
from clipshare.store.backend import (
    StoreBackend,
    code_from_entry_key,
    entry_key,
    history_key,
    viewers_key,
)

logger = logging.getLogger(__name__)

# KEYS[1]=entry  ARGV: content, created_ms, owner ('' for none), ttl_seconds
INSERT_ENTRY = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 0
end
if ARGV[3] ~= '' then
  redis.call('HSET', KEYS[1], 'content', ARGV[1], 'count', 0, 'created', ARGV[2], 'owner', ARGV[3])
else
  redis.call('HSET', KEYS[1], 'content', ARGV[1], 'count', 0, 'created', ARGV[2])
end
redis.call('EXPIRE', KEYS[1], ARGV[4])
return 1
"""

# KEYS[1]=entry -> {content, count, created, owner} or nil
FETCH_AND_COUNT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return nil
end
local count = redis.call('HINCRBY', KEYS[1], 'count', 1)
local fields = redis.call('HMGET', KEYS[1], 'content', 'created', 'owner')
return {fields[1], count, fields[2], fields[3]}
"""

# KEYS[1]=entry  ARGV: content, requester -> {status, pttl}
# HSET keeps the key's expiry, so the deadline carries over unchanged.
REPLACE_CONTENT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return {-1, -2}
end
local owner = redis.call('HGET', KEYS[1], 'owner')
if (not owner) or owner == '' or owner ~= ARGV[2] then
  return {0, -2}
end
redis.call('HSET', KEYS[1], 'content', ARGV[1])
return {1, redis.call('PTTL', KEYS[1])}
"""

# KEYS[1]=entry  ARGV: owner
SET_OWNER_IF_ABSENT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 0
end
return redis.call('HSETNX', KEYS[1], 'owner', ARGV[1])
"""

# KEYS[1]=viewers zset, KEYS[2]=entry  ARGV: now_ms, ttl_ms, client_id
# Score is the member's own deadline; the set never outlives the entry.
TOUCH_VIEWER = """
local entry_ttl = redis.call('PTTL', KEYS[2])
if entry_ttl == -2 then
  redis.call('DEL', KEYS[1])
  return -1
end
local now = tonumber(ARGV[1])
local ttl = tonumber(ARGV[2])
redis.call('ZADD', KEYS[1], now + ttl, ARGV[3])
redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', now)
local key_ttl = ttl
if entry_ttl > 0 and entry_ttl < key_ttl then
  key_ttl = entry_ttl
end
redis.call('PEXPIRE', KEYS[1], key_ttl)
return redis.call('ZCARD', KEYS[1])
"""


def _to_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class RedisBackend(StoreBackend):
    name = "redis"
    unavailable_errors = (RedisConnectionError, RedisTimeoutError, OSError)

    def __init__(self, url: str, socket_timeout: Optional[float] = None):
        self._url = url
        self._client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        self._db = int(self._client.connection_pool.connection_kwargs.get("db", 0) or 0)
        self._insert = self._client.register_script(INSERT_ENTRY)
        self._fetch = self._client.register_script(FETCH_AND_COUNT)
        self._replace = self._client.register_script(REPLACE_CONTENT)
        self._set_owner = self._client.register_script(SET_OWNER_IF_ABSENT)
        self._touch_viewer = self._client.register_script(TOUCH_VIEWER)

    async def connect(self) -> None:
        await self._client.ping()
        logger.info("Connected to Redis", extra={"db": self._db})

    async def close(self) -> None:
        await self._client.aclose()

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    # --- entries ---

    async def insert_entry(self, code, content, created_at, owner_id, ttl) -> bool:
        created = await self._insert(
            keys=[entry_key(code)],
            args=[content, created_at, owner_id or "", ttl],
        )
        return bool(created)

    async def fetch_and_count(self, code: str) -> Optional[Entry]:
        row = await self._fetch(keys=[entry_key(code)])
        if not row:
            return None
        # Redis drops trailing nils from script replies
        content, count, created, owner = (list(row) + [None] * 4)[:4]
        if content is None:
            return None
        return Entry(
            code=code,
            content=content,
            retrieval_count=int(count),
            created_at=_to_int(created),
            owner_id=owner or None,
        )

    async def read_entries(self, codes: Sequence[str]) -> List[Optional[Entry]]:
        if not codes:
            return []
        async with self._client.pipeline(transaction=False) as pipe:
            for code in codes:
                pipe.hmget(entry_key(code), "content", "count", "created", "owner")
            rows = await pipe.execute()

        result: List[Optional[Entry]] = []
        for code, (content, count, created, owner) in zip(codes, rows):
            if content is None:
                result.append(None)
                continue
            result.append(Entry(
                code=code,
                content=content,
                retrieval_count=_to_int(count) or 0,
                created_at=_to_int(created),
                owner_id=owner or None,
            ))
        return result

    async def replace_content(self, code: str, content: str, requester_id: str) -> UpdateOutcome:
        status, pttl = await self._replace(keys=[entry_key(code)], args=[content, requester_id])
        if int(status) < 0:
            return UpdateOutcome(UpdateStatus.NOT_FOUND)
        if int(status) == 0:
            return UpdateOutcome(UpdateStatus.FORBIDDEN)
        pttl = int(pttl)
        return UpdateOutcome(UpdateStatus.UPDATED, ttl=pttl / 1000 if pttl >= 0 else None)

    async def set_owner_if_absent(self, code: str, owner_id: str) -> bool:
        return bool(await self._set_owner(keys=[entry_key(code)], args=[owner_id]))

    async def entry_ttl(self, code: str) -> Optional[float]:
        pttl = await self._client.pttl(entry_key(code))
        if pttl == -2:
            return None
        if pttl == -1:
            # Should not happen for keys we write; report as immortal
            return float("inf")
        return pttl / 1000

    async def touch_viewer(self, code: str, client_id: str, ttl: int) -> Optional[int]:
        now_ms = int(time.time() * 1000)
        count = await self._touch_viewer(
            keys=[viewers_key(code), entry_key(code)],
            args=[now_ms, ttl * 1000, client_id],
        )
        count = int(count)
        return None if count < 0 else count

    # --- history ---

    async def push_history(self, client_id: str, code: str, ttl: int, max_items: int) -> None:
        key = history_key(client_id)
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.lpush(key, code)
            if max_items:
                pipe.ltrim(key, 0, max_items - 1)
            pipe.expire(key, ttl)
            await pipe.execute()

    async def read_history(self, client_id: str) -> List[str]:
        return await self._client.lrange(history_key(client_id), 0, -1)

    # --- events ---

    async def _enable_keyspace_events(self) -> None:
        """Make sure hash write events are published (E + h flags)."""
        try:
            current = await self._client.config_get("notify-keyspace-events")
            flags = set(current.get("notify-keyspace-events", ""))
            if "E" in flags and ("h" in flags or "A" in flags):
                return
            await self._client.config_set("notify-keyspace-events", "".join(sorted(flags | {"E", "h"})))
            logger.info("Enabled Redis keyspace events for hash writes")
        except ResponseError as e:
            # Managed Redis often disables CONFIG; events then depend on server config
            logger.warning(f"Could not enable keyspace events: {e}")

    async def content_mutations(self) -> AsyncIterator[str]:
        await self._enable_keyspace_events()
        channel = f"__keyevent@{self._db}__:hset"
        # Own connection without a read timeout: listen() blocks between events
        listener = aioredis.from_url(self._url, decode_responses=True)
        pubsub = listener.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(channel)
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                code = code_from_entry_key(message.get("data") or "")
                if code:
                    yield code
        finally:
            await pubsub.aclose()
            await listener.aclose()
