import asyncio
from typing import Any, Awaitable

from bookresolver.cache import CacheStore, isbn_key
from bookresolver.errors import SourceError
from bookresolver.models import (
    BookRecord, Hit, Identifier, Listing, NotFound, SearchResult, SourceOrigin, SourceResult, TextQuery,
)
from bookresolver.sources.base import BookSource


class CacheSource(BookSource):
    """The cheapest tier: canonical records previously written back by the resolver."""
    name = "cache"
    origin = SourceOrigin.CACHE
    supports_text_search = True

    def __init__(self, store: CacheStore, timeout: float = 10.0):
        self.store = store
        self.timeout = timeout

    async def _bounded(self, call: Awaitable[Any]) -> Any:
        # store calls are bounded like every other tier
        try:
            return await asyncio.wait_for(call, self.timeout)
        except asyncio.TimeoutError as e:
            raise SourceError(self.name, f"timed out after {self.timeout}s") from e

    async def _resolve(self, identifier: Identifier) -> SourceResult:
        data = await self._bounded(self.store.get(isbn_key(identifier.value)))
        if data is None: return NotFound("cache miss")
        record = BookRecord.from_payload(data, origin=SourceOrigin.CACHE)
        if record is None: return NotFound("cached entry is not a valid record")
        return Hit(record)

    async def _search(self, query: TextQuery, max_results: int) -> SearchResult:
        rows = await self._bounded(self.store.search_by_title_prefix(query.text, max_results))
        records = [r for r in (BookRecord.from_payload(row, origin=SourceOrigin.CACHE) for row in rows) if r]
        if not records: return NotFound("no cached titles")
        return Listing(records)
