"""Shared fakes: an in-memory cache store and a scripted upstream for httpx.MockTransport."""
import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
from redis.exceptions import ConnectionError as RedisConnectionError

from bookresolver.errors import SourceError

GOOGLE_HOST = "www.googleapis.com"
OPEN_LIBRARY_HOST = "openlibrary.org"
CENTRAL_URL = "https://central.test"
CENTRAL_HOST = "central.test"


class FakeCacheStore:
    """Dict-backed CacheStore. Set `fail` to make every call raise SourceError."""

    def __init__(self, fail: bool = False):
        self.data: Dict[str, Dict[str, Any]] = {}
        self.fail = fail
        self.puts: List[str] = []

    def _check(self):
        if self.fail:
            raise SourceError("cache", "store unavailable")

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        self._check()
        return self.data.get(key)

    async def put(self, key: str, record: Dict[str, Any]) -> None:
        self._check()
        self.puts.append(key)
        self.data[key] = record

    async def search_by_title_prefix(self, text: str, limit: int) -> List[Dict[str, Any]]:
        self._check()
        prefix = text.lower()
        matches = [r for r in self.data.values() if r.get("title", "").lower().startswith(prefix)]
        return matches[:limit]


Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], List[Any]]


class FakeUpstream:
    """
    Routes requests by (host, path) to canned responses and records every call.
    A route may be a Response, a callable taking the request, or a list consumed
    one entry per call. Unrouted requests get a 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.calls: List[httpx.Request] = []

    def add(self, host: str, path: str, handler: Handler) -> "FakeUpstream":
        self.routes[(host, path)] = handler
        return self

    def calls_to(self, host: str, path: Optional[str] = None) -> List[httpx.Request]:
        return [r for r in self.calls if r.url.host == host and (path is None or r.url.path == path)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.url.host, request.url.path))
        if isinstance(handler, list):
            handler = handler.pop(0) if len(handler) > 1 else handler[0]
        if handler is None:
            return httpx.Response(404, json={"error": "no route"})
        if isinstance(handler, httpx.Response):
            return handler
        return handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def timeout(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


def volume(title: Optional[str], *, volume_id: str = "vol", isbn13: Optional[str] = None,
           isbn10: Optional[str] = None, thumbnail: Optional[str] = None, description: Optional[str] = None,
           authors: Optional[List[str]] = None, categories: Optional[List[str]] = None) -> Dict[str, Any]:
    """A Google Books volume item."""
    info: Dict[str, Any] = {}
    if title is not None: info["title"] = title
    if authors: info["authors"] = authors
    if description: info["description"] = description
    if categories: info["categories"] = categories
    if thumbnail: info["imageLinks"] = {"thumbnail": thumbnail}
    ids = []
    if isbn13: ids.append({"type": "ISBN_13", "identifier": isbn13})
    if isbn10: ids.append({"type": "ISBN_10", "identifier": isbn10})
    if ids: info["industryIdentifiers"] = ids
    return {"id": volume_id, "volumeInfo": info}


def volumes(*items: Dict[str, Any]) -> httpx.Response:
    return httpx.Response(200, json={"totalItems": len(items), "items": list(items)})


LONG_DESCRIPTION = (
    "A sweeping story of family, memory and the choices that shape a life, "
    "told across three generations."
)


class StalledCacheStore(FakeCacheStore):
    """A store whose reads never answer, like a Redis that stopped responding."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(3600)

    async def search_by_title_prefix(self, text: str, limit: int) -> List[Dict[str, Any]]:
        await asyncio.sleep(3600)
        return []


class FakeRedis:
    """
    The slice of redis.asyncio.Redis that RedisCacheStore uses: strings,
    one lexicographic sorted set per key and non-transactional pipelines.
    Set `fail_pipeline` to make pipeline execution raise a RedisError.
    """

    def __init__(self, fail_pipeline: bool = False):
        self.values: Dict[str, str] = {}
        self.zsets: Dict[str, set] = {}
        self.fail_pipeline = fail_pipeline

    async def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    async def set(self, key: str, value: str) -> bool:
        self.values[key] = value
        return True

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        return [self.values.get(k) for k in keys]

    async def zadd(self, name: str, mapping: Dict[str, float]) -> int:
        members = self.zsets.setdefault(name, set())
        added = len(set(mapping) - members)
        members.update(mapping)
        return added

    async def zrem(self, name: str, *values: str) -> int:
        members = self.zsets.get(name, set())
        removed = len(members & set(values))
        members.difference_update(values)
        return removed

    async def zrangebylex(self, name: str, min: str, max: str, start: Optional[int] = None,
                          num: Optional[int] = None) -> List[str]:
        matches = [m for m in sorted(self.zsets.get(name, set())) if _above(m, min) and _below(m, max)]
        if start is not None and num is not None:
            matches = matches[start:start + num]
        return matches

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)


def _above(member: str, bound: str) -> bool:
    if bound == "-": return True
    if bound == "+": return False
    return member >= bound[1:] if bound[0] == "[" else member > bound[1:]


def _below(member: str, bound: str) -> bool:
    if bound == "+": return True
    if bound == "-": return False
    return member <= bound[1:] if bound[0] == "[" else member < bound[1:]


class FakePipeline:
    def __init__(self, redis: FakeRedis):
        self.redis = redis
        self.commands: List[Tuple[str, tuple]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.commands = []

    def set(self, *args) -> "FakePipeline":
        self.commands.append(("set", args))
        return self

    def zadd(self, *args) -> "FakePipeline":
        self.commands.append(("zadd", args))
        return self

    def zrem(self, *args) -> "FakePipeline":
        self.commands.append(("zrem", args))
        return self

    async def execute(self) -> List[Any]:
        if self.redis.fail_pipeline:
            raise RedisConnectionError("connection reset by peer")
        return [await getattr(self.redis, name)(*args) for name, args in self.commands]
