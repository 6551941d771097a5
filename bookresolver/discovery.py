import random
from typing import AbstractSet, List, Optional

from loguru import logger

from bookresolver.genres import pick_fallback_phrase
from bookresolver.models import BookRecord, DiscoveryQuery, Listing, TextQuery
from bookresolver.sources.base import BookSource
from bookresolver.sources.central import CentralServiceSource

MIN_FALLBACK_DESCRIPTION = 50


def is_excluded(record: BookRecord, exclude: AbstractSet[str]) -> bool:
    return bool(record.identifiers() & exclude)


def passes_fallback_gate(record: BookRecord, exclude: AbstractSet[str]) -> bool:
    """Locally discovered candidates need a title, a cover and a real description."""
    if not record.title.strip(): return False
    if not record.cover_image_url: return False
    if not record.description or len(record.description) <= MIN_FALLBACK_DESCRIPTION: return False
    return not is_excluded(record, exclude)


class DiscoveryEngine:
    """
    Genre discovery. The central service is authoritative whenever it gives a
    structurally valid answer, including an empty one; only a failed or
    malformed call falls back to a single local catalog search.
    """

    def __init__(self, central: Optional[CentralServiceSource], catalog: BookSource,
                 rng: Optional[random.Random] = None):
        self.central = central
        self.catalog = catalog
        self.rng = rng or random.Random()

    async def discover(self, query: DiscoveryQuery) -> List[BookRecord]:
        if self.central is not None:
            result = await self.central.discover(query)
            if isinstance(result, Listing):
                books = [b for b in result.records if self._acceptable_central(b, query)]
                logger.info(f"Discovery genre={query.genre}: {len(books)} book(s) from central service")
                return books
            logger.warning(f"Discovery genre={query.genre}: central service unavailable ({result.reason}), using fallback")
        return await self._fallback(query)

    @staticmethod
    def _acceptable_central(record: BookRecord, query: DiscoveryQuery) -> bool:
        title = record.title.strip()
        # An upstream record titled with the genre key is a malformed placeholder
        if not title or title == query.genre: return False
        return not is_excluded(record, query.exclude_identifiers)

    async def _fallback(self, query: DiscoveryQuery) -> List[BookRecord]:
        phrase = pick_fallback_phrase(query.genre, self.rng)
        result = await self.catalog.search_by_text(TextQuery(phrase), query.limit)
        if not isinstance(result, Listing):
            logger.warning(f"Discovery fallback for '{phrase}' returned nothing usable")
            return []

        books = [b for b in result.records if passes_fallback_gate(b, query.exclude_identifiers)]
        # catalog order is relevance, not discovery order
        self.rng.shuffle(books)
        logger.info(f"Discovery fallback genre={query.genre} phrase='{phrase}': {len(books)} book(s)")
        return books[:query.limit]
