from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from bookresolver.cache import CacheWriter, isbn_key
from bookresolver.merger import merge, pin_identifier, titles_match
from bookresolver.models import BookRecord, Hit, Identifier, Listing, Resolution, TextQuery
from bookresolver.normalizer import normalize
from bookresolver.sources.base import BookSource

ENHANCEMENT_CANDIDATES = 5
DEFAULT_SEARCH_RESULTS = 20


@dataclass
class Tier:
    """One step of the point-lookup chain."""
    source: BookSource
    write_back: bool = True  # submit the resolved record to the cache writer
    enhance: bool = False  # fill missing cover/description by title search


class Resolver:
    """
    Point lookups walk `tiers` in order and stop at the first titled hit.
    There is no fan-out: the cheapest tier goes first, and every failure or
    miss simply moves on to the next one. Free-text queries skip the chain
    and go to the title index, then the catalog's text search.
    """

    def __init__(
        self,
        tiers: Sequence[Tier],
        enhancer: Optional[BookSource] = None,
        title_index: Optional[BookSource] = None,
        text_search: Optional[BookSource] = None,
        cache_writer: Optional[CacheWriter] = None,
    ):
        self.tiers = list(tiers)
        self.enhancer = enhancer
        self.title_index = title_index
        self.text_search = text_search
        self.cache_writer = cache_writer

    async def lookup(self, raw_query: str, max_results: int = DEFAULT_SEARCH_RESULTS) -> Resolution:
        """Resolve an ISBN or free-text query. Raises ValidationError for an empty query."""
        query = normalize(raw_query)
        if isinstance(query, Identifier):
            return await self.resolve_identifier(query)
        return await self.search_text(query, max_results)

    async def resolve_identifier(self, identifier: Identifier) -> Resolution:
        for tier in self.tiers:
            result = await tier.source.resolve_by_identifier(identifier)
            if not isinstance(result, Hit):
                logger.info(f"{identifier.value}: {tier.source.name} -> {type(result).__name__}")
                continue

            record = pin_identifier(result.record, identifier)
            if tier.enhance and self.enhancer is not None and not record.is_complete():
                record = await self._enhance(record, identifier)
            if tier.write_back:
                self._write_back(identifier, record)
            logger.info(f"{identifier.value}: resolved by {tier.source.name} ('{record.title}')")
            return Resolution([record], tier.source.origin)

        logger.info(f"{identifier.value}: not found in any tier")
        return Resolution()

    async def search_text(self, query: TextQuery, max_results: int = DEFAULT_SEARCH_RESULTS) -> Resolution:
        if self.title_index is not None:
            result = await self.title_index.search_by_text(query, max_results)
            if isinstance(result, Listing) and result.records:
                return Resolution(result.records, self.title_index.origin)

        if self.text_search is not None:
            result = await self.text_search.search_by_text(query, max_results)
            if isinstance(result, Listing):
                records = [r for r in result.records if r.title.strip()]
                return Resolution(records, self.text_search.origin)
        return Resolution()

    async def _enhance(self, record: BookRecord, identifier: Identifier) -> BookRecord:
        search = f"{record.title} {record.authors[0]}" if record.authors else record.title
        result = await self.enhancer.search_by_text(TextQuery(search), ENHANCEMENT_CANDIDATES)
        if not isinstance(result, Listing):
            return record

        candidates: List[BookRecord] = result.records[:ENHANCEMENT_CANDIDATES]
        for candidate in candidates:
            if not titles_match(record.title, candidate.title): continue
            fills_cover = record.cover_image_url is None and candidate.cover_image_url is not None
            fills_description = record.description is None and candidate.description is not None
            if not (fills_cover or fills_description): continue

            record = merge(record, candidate, identifier)
            logger.info(f"{identifier.value}: enhanced from '{candidate.title}' ({candidate.id})")
            if record.is_complete(): break
        return record

    def _write_back(self, identifier: Identifier, record: BookRecord) -> None:
        if self.cache_writer is None or not record.title: return
        self.cache_writer.submit(isbn_key(identifier.value), record)
