from typing import Any, Dict

import httpx
from loguru import logger

from bookresolver.errors import SourceError
from bookresolver.models import (
    BookRecord, DiscoveryQuery, Hit, Identifier, Listing, NotFound, SearchResult, SourceFailure,
    SourceOrigin, SourceResult,
)
from bookresolver.sources.base import BookSource, fetch_json

NOT_FOUND_ERROR = "not-found"


class CentralServiceSource(BookSource):
    """
    Client for the hosted lookup/discovery service.

    Anything other than a well-formed answer is a failure, never a miss:
    NotFound is reserved for an explicit not-found reply (HTTP 404 or
    `{"success": false, "error": "not-found"}`).
    """
    name = "central_service"
    origin = SourceOrigin.CENTRAL_SERVICE

    def __init__(self, client: httpx.AsyncClient, base_url: str, timeout: float = 15.0):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _call(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        status, data = await fetch_json(
            self.client, f"{self.base_url}/{endpoint}", source=self.name, timeout=self.timeout,
            method="POST", json=payload,
        )
        if status == 404:
            return {"success": False, "error": NOT_FOUND_ERROR}
        if data is None:
            raise SourceError(self.name, f"HTTP {status} from {endpoint}")
        if not isinstance(data, dict) or not isinstance(data.get("success"), bool):
            raise SourceError(self.name, f"{endpoint} response has no success flag")
        return data

    async def _resolve(self, identifier: Identifier) -> SourceResult:
        data = await self._call("lookupBook", {"isbn": identifier.value})
        if not data["success"]:
            if data.get("error") == NOT_FOUND_ERROR:
                return NotFound("central service reported not found")
            raise SourceError(self.name, f"lookup failed: {data.get('error', 'unknown error')}")
        if "book" not in data:
            raise SourceError(self.name, "lookup response has no 'book' field")
        if not isinstance(data["book"], dict):
            raise SourceError(self.name, "'book' is not an object")

        record = BookRecord.from_payload(data["book"], origin=SourceOrigin.CENTRAL_SERVICE)
        if record is None: return NotFound("central record has no title")
        return Hit(record)

    async def discover(self, query: DiscoveryQuery) -> SearchResult:
        """Listing (possibly empty) for a structurally valid answer, SourceFailure otherwise."""
        payload: Dict[str, Any] = {
            "genre": query.genre,
            "excludeISBNs": sorted(query.exclude_identifiers),
            "limit": query.limit,
        }
        if query.user_preferences:
            payload["userPreferences"] = query.user_preferences

        try:
            data = await self._call("discoverBooks", payload)
            if data["success"] is not True:
                raise SourceError(self.name, f"discovery failed: {data.get('error', 'unknown error')}")
            books = data.get("books")
            if not isinstance(books, list):
                raise SourceError(self.name, "discovery response has no 'books' list")
        except SourceError as e:
            logger.warning(f"{self.name}: discovery for genre={query.genre} failed: {e.reason}")
            return SourceFailure(self.name, e.reason)

        records = [r for r in (BookRecord.from_payload(b, origin=SourceOrigin.CENTRAL_SERVICE) for b in books) if r]
        return Listing(records)
