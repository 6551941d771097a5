"""
Composition root: every adapter is built once here and shared by reference.
"""
from dataclasses import dataclass
from typing import Optional

import httpx
from loguru import logger
from redis.asyncio import Redis

from bookresolver.cache import CacheStore, CacheWriter, RedisCacheStore
from bookresolver.config import Settings
from bookresolver.discovery import DiscoveryEngine
from bookresolver.orchestrator import Resolver, Tier
from bookresolver.recommender import Recommender
from bookresolver.sources import (
    CacheSource, CentralServiceSource, GoogleBooksSource, OpenLibrarySource,
)


@dataclass
class Services:
    resolver: Resolver  # cache -> central service -> catalogs, with enhancement
    central_resolver: Resolver  # server side of lookupBook: cache -> Open Library -> Google Books
    discovery: DiscoveryEngine
    recommender: Recommender
    cache_writer: CacheWriter
    google: GoogleBooksSource
    open_library: OpenLibrarySource
    http_client: Optional[httpx.AsyncClient] = None
    cache_store: Optional[CacheStore] = None
    redis: Optional[Redis] = None

    async def aclose(self) -> None:
        await self.cache_writer.close()
        if self.http_client is not None:
            await self.http_client.aclose()
        if self.redis is not None:
            await self.redis.aclose()


def wire_services(
    settings: Settings,
    http_client: httpx.AsyncClient,
    store: CacheStore,
    redis: Optional[Redis] = None,
) -> Services:
    cache = CacheSource(store, timeout=settings.source_timeout)
    central = CentralServiceSource(http_client, settings.central_service_url, timeout=settings.central_timeout)
    google = GoogleBooksSource(http_client, settings.google_api_key, timeout=settings.source_timeout)
    open_library = OpenLibrarySource(http_client, timeout=settings.source_timeout)
    writer = CacheWriter(store, max_pending=settings.cache_queue_size)

    tiers = [Tier(cache, write_back=False), Tier(central), Tier(google, enhance=True)]
    if settings.open_library_fallback:
        tiers.append(Tier(open_library, enhance=True))

    resolver = Resolver(tiers, enhancer=google, title_index=cache, text_search=google, cache_writer=writer)
    central_resolver = Resolver(
        [Tier(cache, write_back=False), Tier(open_library), Tier(google)],
        cache_writer=writer,
    )
    return Services(
        resolver=resolver,
        central_resolver=central_resolver,
        discovery=DiscoveryEngine(central, google),
        recommender=Recommender(google),
        cache_writer=writer,
        google=google,
        open_library=open_library,
        http_client=http_client,
        cache_store=store,
        redis=redis,
    )


def build_services(settings: Settings) -> Services:
    redis = Redis.from_url(
        settings.redis_url, decode_responses=True, encoding="utf-8",
        socket_timeout=settings.source_timeout, socket_connect_timeout=settings.source_timeout,
    )
    logger.info(f"Redis cache configured at {settings.redis_url}")
    http_client = httpx.AsyncClient(headers={"User-Agent": "bookresolver/1.0"})
    return wire_services(settings, http_client, RedisCacheStore(redis), redis=redis)
