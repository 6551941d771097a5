"""Tests for the source adapters against a scripted upstream."""
import asyncio
import json

import httpx

from bookresolver.models import (
    DiscoveryQuery, Hit, Identifier, IdentifierKind, Listing, NotFound, SourceFailure, SourceOrigin, TextQuery,
)
from bookresolver.sources import CacheSource, CentralServiceSource, GoogleBooksSource, OpenLibrarySource
from bookresolver.sources.google_books import best_cover_url, parse_volume
from bookresolver.sources.open_library import parse_edition, parse_search_doc
from tests.fakes import (
    CENTRAL_HOST, CENTRAL_URL, GOOGLE_HOST, OPEN_LIBRARY_HOST, FakeCacheStore, StalledCacheStore, timeout,
    volume, volumes,
)

ISBN = Identifier("9780143127741", IdentifierKind.ISBN13)
VOLUMES_PATH = "/books/v1/volumes"


# --- Google Books ---

def test_parse_volume_prefers_isbn13_and_largest_cover():
    item = volume("The Overstory", isbn13="9780393635522", isbn10="039363552X", authors=["Richard Powers"])
    item["volumeInfo"]["imageLinks"] = {
        "smallThumbnail": "http://books.google.com/books/content?id=x&zoom=5&edge=curl",
        "thumbnail": "http://books.google.com/books/content?id=x&zoom=1&edge=curl",
        "large": "http://books.google.com/books/content?id=x&zoom=3&edge=curl",
    }
    item["volumeInfo"]["description"] = "<p>A <b>novel</b> about trees &amp; people.</p>"

    record = parse_volume(item)

    assert record.isbn == "9780393635522"
    assert record.isbn10 == "039363552X"
    assert record.cover_image_url == "https://books.google.com/books/content?id=x&zoom=3"
    assert record.description == "A novel about trees & people."
    assert record.source_origin == SourceOrigin.CATALOG_A


def test_thumbnail_cover_is_upgraded_and_secured():
    url = best_cover_url({"thumbnail": "http://books.google.com/books/content?id=x&zoom=1"})

    assert url == "https://books.google.com/books/content?id=x&zoom=2"


def test_parse_volume_discards_untitled_items():
    assert parse_volume(volume(None, isbn13="9780393635522")) is None
    assert parse_volume(volume("   ")) is None
    assert parse_volume("not a dict") is None


def test_google_resolve_sends_isbn_query(upstream):
    upstream.add(GOOGLE_HOST, VOLUMES_PATH, volumes(volume("The Overstory", isbn13="9780143127741")))
    source = GoogleBooksSource(upstream.client(), api_key="k")

    result = asyncio.run(source.resolve_by_identifier(ISBN))

    assert isinstance(result, Hit)
    assert result.record.title == "The Overstory"
    params = upstream.calls[0].url.params
    assert params["q"] == "isbn:9780143127741"
    assert params["key"] == "k"
    assert params["printType"] == "books"
    assert params["langRestrict"] == "en"
    assert params["orderBy"] == "relevance"


def test_google_empty_items_and_errors_map_to_not_found(upstream):
    upstream.add(GOOGLE_HOST, VOLUMES_PATH, [
        httpx.Response(200, json={"totalItems": 0}),
        httpx.Response(403, json={"error": "quota"}),
    ])
    source = GoogleBooksSource(upstream.client(), api_key="k")

    assert isinstance(asyncio.run(source.resolve_by_identifier(ISBN)), NotFound)
    assert isinstance(asyncio.run(source.resolve_by_identifier(ISBN)), NotFound)


def test_google_timeout_is_source_failure(upstream):
    upstream.add(GOOGLE_HOST, VOLUMES_PATH, timeout)
    source = GoogleBooksSource(upstream.client(), api_key="k", timeout=0.5)

    result = asyncio.run(source.search_by_text(TextQuery("anything"), 5))

    assert isinstance(result, SourceFailure)
    assert "timed out" in result.reason


def test_google_search_caps_max_results(upstream):
    upstream.add(GOOGLE_HOST, VOLUMES_PATH, volumes(volume("A"), volume(None), volume("B")))
    source = GoogleBooksSource(upstream.client(), api_key="k")

    result = asyncio.run(source.search_by_text(TextQuery("a"), 100))

    assert [r.title for r in result.records] == ["A", "B"]
    assert upstream.calls[0].url.params["maxResults"] == "40"


# --- Open Library ---

def test_open_library_resolves_up_to_three_authors(upstream):
    upstream.add(OPEN_LIBRARY_HOST, "/isbn/9780143127741.json", httpx.Response(200, json={
        "title": "The Overstory",
        "authors": [{"key": f"/authors/OL{i}A"} for i in range(1, 5)],
        "description": {"value": "Nine Americans and the trees."},
        "number_of_pages": 502,
        "publishers": ["Norton"],
    }))
    upstream.add(OPEN_LIBRARY_HOST, "/authors/OL1A.json", httpx.Response(200, json={"name": "Richard Powers"}))
    upstream.add(OPEN_LIBRARY_HOST, "/authors/OL2A.json", timeout)
    upstream.add(OPEN_LIBRARY_HOST, "/authors/OL3A.json", httpx.Response(200, json={"name": "Second Author"}))
    source = OpenLibrarySource(upstream.client())

    result = asyncio.run(source.resolve_by_identifier(ISBN))

    assert isinstance(result, Hit)
    record = result.record
    assert record.authors == ["Richard Powers", "Second Author"]
    assert record.description == "Nine Americans and the trees."
    assert record.cover_image_url == "https://covers.openlibrary.org/b/isbn/9780143127741-L.jpg"
    assert record.isbn13 == "9780143127741"
    assert record.page_count == 502
    assert upstream.calls_to(OPEN_LIBRARY_HOST, "/authors/OL4A.json") == []


def test_open_library_missing_edition_is_not_found(upstream):
    source = OpenLibrarySource(upstream.client())

    assert isinstance(asyncio.run(source.resolve_by_identifier(ISBN)), NotFound)


# --- Central service ---

def central(upstream) -> CentralServiceSource:
    return CentralServiceSource(upstream.client(), CENTRAL_URL)


def test_central_lookup_hit(upstream):
    upstream.add(CENTRAL_HOST, "/lookupBook", httpx.Response(200, json={
        "success": True, "book": {"isbn": "9780143127741", "title": "The Overstory", "coverImageUrl": "https://c"},
    }))

    result = asyncio.run(central(upstream).resolve_by_identifier(ISBN))

    assert isinstance(result, Hit)
    assert result.record.cover_image_url == "https://c"
    assert result.record.source_origin == SourceOrigin.CENTRAL_SERVICE
    assert upstream.calls[0].method == "POST"


def test_central_malformed_payloads_are_failures_not_misses(upstream):
    upstream.add(CENTRAL_HOST, "/lookupBook", [
        httpx.Response(200, json={"book": {"title": "No flag"}}),
        httpx.Response(200, json={"success": True}),
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(500, json={"success": False}),
    ])
    source = central(upstream)

    for _ in range(4):
        assert isinstance(asyncio.run(source.resolve_by_identifier(ISBN)), SourceFailure)


def test_central_explicit_not_found(upstream):
    upstream.add(CENTRAL_HOST, "/lookupBook", [
        httpx.Response(404, json={"success": False, "error": "not-found"}),
        httpx.Response(200, json={"success": False, "error": "not-found"}),
    ])
    source = central(upstream)

    assert isinstance(asyncio.run(source.resolve_by_identifier(ISBN)), NotFound)
    assert isinstance(asyncio.run(source.resolve_by_identifier(ISBN)), NotFound)


def test_central_discover_sends_contract_and_parses_books(upstream):
    upstream.add(CENTRAL_HOST, "/discoverBooks", httpx.Response(200, json={
        "success": True, "genre": "romance", "books": [{"isbn": "1", "title": "Beach Read"}, {"isbn": "2"}],
    }))
    query = DiscoveryQuery(genre="romance", exclude_identifiers=frozenset({"9"}), limit=5,
                           user_preferences={"genreScores": {"romance": 2}})

    result = asyncio.run(central(upstream).discover(query))

    assert isinstance(result, Listing)
    assert [b.title for b in result.records] == ["Beach Read"]
    sent = json.loads(upstream.calls[0].content)
    assert sent["excludeISBNs"] == ["9"]
    assert sent["userPreferences"] == {"genreScores": {"romance": 2}}
    assert sent["limit"] == 5


# --- Cache ---

def test_cache_source_hit_and_miss(store):
    store.data["isbn:9780143127741"] = {"title": "The Overstory", "isbn": "9780143127741"}
    source = CacheSource(store)

    hit = asyncio.run(source.resolve_by_identifier(ISBN))
    miss = asyncio.run(source.resolve_by_identifier(Identifier("9780000000000", IdentifierKind.ISBN13)))

    assert isinstance(hit, Hit)
    assert hit.record.source_origin == SourceOrigin.CACHE
    assert isinstance(miss, NotFound)


def test_cache_source_store_errors_are_failures():
    source = CacheSource(FakeCacheStore(fail=True))

    assert isinstance(asyncio.run(source.resolve_by_identifier(ISBN)), SourceFailure)
    assert isinstance(asyncio.run(source.search_by_text(TextQuery("over"), 5)), SourceFailure)


def test_cache_source_stalled_store_times_out():
    source = CacheSource(StalledCacheStore(), timeout=0.05)

    result = asyncio.run(source.resolve_by_identifier(ISBN))
    search = asyncio.run(source.search_by_text(TextQuery("over"), 5))

    assert isinstance(result, SourceFailure)
    assert "timed out" in result.reason
    assert isinstance(search, SourceFailure)


def test_bare_string_list_fields_are_kept_whole():
    item = volume("The Overstory")
    item["volumeInfo"]["categories"] = "Fiction"
    edition = parse_edition({"title": "The Overstory", "publishers": "W. W. Norton", "subjects": "Trees"},
                            "9780143127741", [])
    doc = parse_search_doc({"title": "The Overstory", "publisher": "W. W. Norton", "subject": "Trees",
                            "isbn": "9780143127741"})

    record = parse_volume(item)

    assert record.genre == "Fiction"
    assert record.categories == ["Fiction"]
    assert edition.publisher == "W. W. Norton"
    assert edition.categories == ["Trees"]
    assert doc.publisher == "W. W. Norton"
    assert doc.categories == ["Trees"]
    assert doc.isbn13 == "9780143127741"
