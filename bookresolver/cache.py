"""
Canonical record store and the background write-back queue.

Records are stored as JSON under `book:<key>` (last write wins). Titles are
indexed in a lexicographically ordered sorted set so the store can answer
title-prefix searches without a scan.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from bookresolver.errors import SourceError
from bookresolver.models import BookRecord

BOOK_KEY_PREFIX = "book:"
TITLE_INDEX_KEY = "book-titles"
_INDEX_SEPARATOR = "\x00"


def isbn_key(isbn: str) -> str:
    return f"isbn:{isbn}"


def _index_member(title: str, key: str) -> str:
    return f"{title.lower()}{_INDEX_SEPARATOR}{key}"


def _stale_member(previous: Optional[str], key: str, member: Optional[str]) -> Optional[str]:
    """The index entry of the record being replaced, when its title changes."""
    if not previous: return None
    try:
        old = json.loads(previous)
    except ValueError:
        return None
    old_title = old.get("title") if isinstance(old, dict) else None
    if not isinstance(old_title, str) or not old_title: return None
    old_member = _index_member(old_title, key)
    return old_member if old_member != member else None


def _prefix_upper_bound(prefix: str) -> str:
    """Exclusive ZRANGEBYLEX bound that sorts after every string starting with `prefix`."""
    while prefix:
        code = ord(prefix[-1]) + 1
        if code <= 0x10FFFF:
            if 0xD800 <= code <= 0xDFFF: code = 0xE000  # surrogates have no UTF-8 form
            return f"({prefix[:-1]}{chr(code)}"
        prefix = prefix[:-1]
    return "+"


class CacheStore(Protocol):
    async def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    async def put(self, key: str, record: Dict[str, Any]) -> None: ...

    async def search_by_title_prefix(self, text: str, limit: int) -> List[Dict[str, Any]]: ...


class RedisCacheStore:
    """CacheStore backed by Redis. Redis failures surface as SourceError."""

    def __init__(self, redis: Redis):
        self.redis = redis

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            raw = await self.redis.get(BOOK_KEY_PREFIX + key)
        except RedisError as e:
            raise SourceError("cache", f"Redis GET error: {e}") from e
        if not raw: return None
        return self._decode(raw)

    async def put(self, key: str, record: Dict[str, Any]) -> None:
        title = record.get("title")
        member = _index_member(title, key) if title else None
        try:
            previous = await self.redis.get(BOOK_KEY_PREFIX + key)
            stale = _stale_member(previous, key, member)
            async with self.redis.pipeline(transaction=False) as pipe:
                pipe.set(BOOK_KEY_PREFIX + key, json.dumps(record))
                if stale:
                    pipe.zrem(TITLE_INDEX_KEY, stale)
                if member:
                    pipe.zadd(TITLE_INDEX_KEY, {member: 0})
                await pipe.execute()
        except RedisError as e:
            raise SourceError("cache", f"Redis SET error: {e}") from e

    async def search_by_title_prefix(self, text: str, limit: int) -> List[Dict[str, Any]]:
        prefix = text.lower()
        try:
            members = await self.redis.zrangebylex(
                TITLE_INDEX_KEY, f"[{prefix}" if prefix else "-", _prefix_upper_bound(prefix), start=0, num=limit
            )
            keys = [BOOK_KEY_PREFIX + m.split(_INDEX_SEPARATOR, 1)[-1] for m in members]
            raws = await self.redis.mget(keys) if keys else []
        except RedisError as e:
            raise SourceError("cache", f"Redis index error: {e}") from e
        records = [self._decode(raw) for raw in raws if raw]
        # a concurrent rewrite can leave an index entry pointing at a retitled record
        return [r for r in records if isinstance(r, dict) and str(r.get("title") or "").lower().startswith(prefix)]

    async def ping(self) -> None:
        await self.redis.ping()

    @staticmethod
    def _decode(raw: str) -> Dict[str, Any]:
        try:
            return json.loads(raw)
        except ValueError as e:
            raise SourceError("cache", "stored record is not valid JSON") from e


class CacheWriter:
    """
    Fire-and-forget cache write-back.

    `submit` never waits: writes go on a bounded queue drained by one worker
    task, and when the queue is full the write runs as a detached task so it
    is still attempted. Failures are logged and dropped.
    """

    def __init__(self, store: CacheStore, max_pending: int = 100):
        self.store = store
        self._queue: "asyncio.Queue[Tuple[str, BookRecord]]" = asyncio.Queue(maxsize=max_pending)
        self._worker: Optional[asyncio.Task] = None
        self._detached: Set[asyncio.Task] = set()

    def submit(self, key: str, record: BookRecord) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
        try:
            self._queue.put_nowait((key, record))
        except asyncio.QueueFull:
            logger.warning(f"Cache write queue full; writing {key} in a detached task.")
            task = asyncio.create_task(self._write(key, record))
            self._detached.add(task)
            task.add_done_callback(self._detached.discard)

    async def _run(self) -> None:
        while True:
            key, record = await self._queue.get()
            try:
                await self._write(key, record)
            finally:
                self._queue.task_done()

    async def _write(self, key: str, record: BookRecord) -> None:
        try:
            await self.store.put(key, record.to_payload())
            logger.info(f"Cached {key} ('{record.title}')")
        except Exception as e:
            logger.error(f"Cache write for {key} failed: {e}")

    async def join(self) -> None:
        """Wait until every submitted write has been attempted."""
        await self._queue.join()
        if self._detached:
            await asyncio.gather(*self._detached)

    async def close(self) -> None:
        await self.join()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
