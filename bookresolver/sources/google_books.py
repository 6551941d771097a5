from typing import Any, Dict, List, Optional, Tuple

import httpx

from bookresolver.errors import SourceError
from bookresolver.models import (
    BookRecord, Hit, Identifier, Listing, NotFound, SearchResult, SourceOrigin, SourceResult, TextQuery,
)
from bookresolver.sources.base import BookSource, as_list, clean_html_text, ensure_https, fetch_json

GOOGLE_BOOKS_API_URL = "https://www.googleapis.com/books/v1/volumes"
MAX_RESULTS_LIMIT = 40  # API ceiling

# Largest variant first
COVER_VARIANTS = ("extraLarge", "large", "medium", "small", "thumbnail", "smallThumbnail")
THUMBNAIL_VARIANTS = {"thumbnail", "smallThumbnail"}


def _get_isbns(volume_info: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    isbn_13, isbn_10 = None, None
    for i in volume_info.get("industryIdentifiers") or []:
        if not isinstance(i, dict): continue
        if i.get("type") == "ISBN_13" and not isbn_13: isbn_13 = i.get("identifier")
        elif i.get("type") == "ISBN_10" and not isbn_10: isbn_10 = i.get("identifier")
    return isbn_13, isbn_10


def best_cover_url(image_links: Optional[Dict[str, Any]]) -> Optional[str]:
    """Pick the largest image variant, force HTTPS and ask for a bigger render of thumbnails."""
    if not isinstance(image_links, dict): return None
    for variant in COVER_VARIANTS:
        url = ensure_https(image_links.get(variant))
        if not url: continue
        if variant in THUMBNAIL_VARIANTS:
            url = url.replace("zoom=1", "zoom=2")
        return url
    return None


def parse_volume(item: Any) -> Optional[BookRecord]:
    """Map one Google Books volume onto a BookRecord; untitled volumes are discarded."""
    if not isinstance(item, dict): return None
    info = item.get("volumeInfo") or {}
    if not isinstance(info, dict): return None

    isbn_13, isbn_10 = _get_isbns(info)
    categories = as_list(info.get("categories"))
    return BookRecord.from_payload({
        "id": item.get("id") or isbn_13 or isbn_10,
        "isbn": isbn_13 or isbn_10,
        "isbn13": isbn_13,
        "isbn10": isbn_10,
        "title": info.get("title"),
        "authors": info.get("authors"),
        "cover_image_url": best_cover_url(info.get("imageLinks")),
        "description": clean_html_text(info.get("description")),
        "page_count": info.get("pageCount"),
        "publish_date": info.get("publishedDate"),
        "publisher": info.get("publisher"),
        "genre": categories[0] if categories else None,
        "categories": categories,
        "language": info.get("language"),
        "average_rating": info.get("averageRating"),
        "ratings_count": info.get("ratingsCount"),
    }, origin=SourceOrigin.CATALOG_A)


class GoogleBooksSource(BookSource):
    """Catalog A: the Google Books volumes API."""
    name = "google_books"
    origin = SourceOrigin.CATALOG_A
    supports_text_search = True

    def __init__(self, client: httpx.AsyncClient, api_key: Optional[str], timeout: float = 10.0,
                 base_url: str = GOOGLE_BOOKS_API_URL):
        self.client = client
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url

    async def _volumes(self, q: str, max_results: int) -> Optional[List[Any]]:
        params = {
            "q": q,
            "maxResults": max(1, min(max_results, MAX_RESULTS_LIMIT)),
            "orderBy": "relevance",
            "printType": "books",
            "langRestrict": "en",
            "key": self.api_key,
        }
        status, data = await fetch_json(self.client, self.base_url, source=self.name, timeout=self.timeout, params=params)
        if data is None: return None
        if not isinstance(data, dict):
            raise SourceError(self.name, "unexpected payload shape")
        items = data.get("items") or []
        if not isinstance(items, list):
            raise SourceError(self.name, "'items' is not a list")
        return items

    async def _resolve(self, identifier: Identifier) -> SourceResult:
        items = await self._volumes(f"isbn:{identifier.value}", 5)
        if not items: return NotFound(f"no volume for isbn:{identifier.value}")
        for item in items:
            record = parse_volume(item)
            if record is not None:
                return Hit(record)
        return NotFound("matching volumes have no title")

    async def _search(self, query: TextQuery, max_results: int) -> SearchResult:
        items = await self._volumes(query.text, max_results)
        records = [r for r in (parse_volume(item) for item in items or []) if r is not None]
        if not records: return NotFound(f"no volumes for '{query.text}'")
        return Listing(records)

    async def ping(self) -> int:
        status, _ = await fetch_json(self.client, self.base_url, source=self.name, timeout=5.0,
                                     params={"q": "a", "maxResults": 1, "fields": "totalItems", "key": self.api_key})
        return status
