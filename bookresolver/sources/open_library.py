import asyncio
from typing import Any, Dict, List, Optional, Tuple

import httpx
from loguru import logger

from bookresolver.errors import SourceError
from bookresolver.models import (
    BookRecord, Hit, Identifier, Listing, NotFound, SearchResult, SourceOrigin, SourceResult, TextQuery,
)
from bookresolver.sources.base import BookSource, as_list, clean_html_text, fetch_json

OPEN_LIBRARY_API_URL = "https://openlibrary.org"
OPEN_LIBRARY_COVERS_URL = "https://covers.openlibrary.org/b"
MAX_AUTHOR_LOOKUPS = 3
SEARCH_FIELDS = "key,title,author_name,isbn,publisher,subject,first_publish_year,cover_i,language"

LANGUAGE_CODES = {"eng": "en", "spa": "es", "fre": "fr", "ger": "de", "ita": "it", "por": "pt"}


def _description(raw: Any) -> Optional[str]:
    if isinstance(raw, dict): raw = raw.get("value")
    return clean_html_text(raw) if isinstance(raw, str) else None


def _language(languages: Any) -> Optional[str]:
    if not languages or not isinstance(languages, list): return None
    first = languages[0]
    code = first.get("key", "") if isinstance(first, dict) else str(first)
    code = code.replace("/languages/", "")
    return LANGUAGE_CODES.get(code, code) or None


def _get_isbns(isbns: Any) -> Tuple[Optional[str], Optional[str]]:
    isbn_13, isbn_10 = None, None
    for isbn in as_list(isbns):
        if not isinstance(isbn, str): continue
        if len(isbn) == 13 and not isbn_13: isbn_13 = isbn
        elif len(isbn) == 10 and not isbn_10: isbn_10 = isbn
    return isbn_13, isbn_10


def parse_edition(data: Dict[str, Any], isbn: str, authors: List[str]) -> Optional[BookRecord]:
    """Map an /isbn/<isbn>.json edition document onto a BookRecord."""
    publishers = as_list(data.get("publishers"))
    subjects = as_list(data.get("subjects"))
    return BookRecord.from_payload({
        "id": isbn,
        "isbn": isbn,
        "isbn13": isbn if len(isbn) == 13 else None,
        "isbn10": isbn if len(isbn) == 10 else None,
        "title": data.get("title"),
        "authors": authors,
        "cover_image_url": f"{OPEN_LIBRARY_COVERS_URL}/isbn/{isbn}-L.jpg",
        "description": _description(data.get("description")),
        "page_count": data.get("number_of_pages"),
        "publish_date": data.get("publish_date"),
        "publisher": publishers[0] if publishers else None,
        "categories": [s for s in subjects if isinstance(s, str)][:3],
        "language": _language(data.get("languages")),
    }, origin=SourceOrigin.CATALOG_B)


def parse_search_doc(doc: Any) -> Optional[BookRecord]:
    """Map one /search.json doc onto a BookRecord."""
    if not isinstance(doc, dict): return None
    isbn_13, isbn_10 = _get_isbns(doc.get("isbn"))
    publishers = as_list(doc.get("publisher"))
    cover_url = None
    if doc.get("cover_i"):
        cover_url = f"{OPEN_LIBRARY_COVERS_URL}/id/{doc['cover_i']}-L.jpg"
    year = doc.get("first_publish_year")
    return BookRecord.from_payload({
        "id": doc.get("key") or isbn_13 or isbn_10,
        "isbn": isbn_13 or isbn_10,
        "isbn13": isbn_13,
        "isbn10": isbn_10,
        "title": doc.get("title"),
        "authors": doc.get("author_name"),
        "cover_image_url": cover_url,
        "publish_date": str(year) if year else None,
        "publisher": publishers[0] if publishers else None,
        "categories": as_list(doc.get("subject"))[:3],
        "language": _language(doc.get("language")),
    }, origin=SourceOrigin.CATALOG_B)


class OpenLibrarySource(BookSource):
    """Catalog B: Open Library edition lookups and search."""
    name = "open_library"
    origin = SourceOrigin.CATALOG_B
    supports_text_search = True

    def __init__(self, client: httpx.AsyncClient, timeout: float = 10.0, base_url: str = OPEN_LIBRARY_API_URL):
        self.client = client
        self.timeout = timeout
        self.base_url = base_url

    async def _resolve(self, identifier: Identifier) -> SourceResult:
        url = f"{self.base_url}/isbn/{identifier.value}.json"
        status, data = await fetch_json(self.client, url, source=self.name, timeout=self.timeout)
        if data is None: return NotFound(f"HTTP {status} for {identifier.value}")
        if not isinstance(data, dict):
            raise SourceError(self.name, "unexpected payload shape")

        authors = await self._author_names(data.get("authors") or [])
        record = parse_edition(data, identifier.value, authors)
        if record is None: return NotFound("edition has no title")
        return Hit(record)

    async def _author_names(self, refs: List[Any]) -> List[str]:
        keys = []
        for a in refs:
            if not isinstance(a, dict): continue
            if "author" in a and isinstance(a["author"], dict) and "key" in a["author"]: keys.append(a["author"]["key"])
            elif "key" in a: keys.append(a["key"])
        # at most MAX_AUTHOR_LOOKUPS fetches, concurrently
        names = await asyncio.gather(*(self._author_name(k) for k in keys[:MAX_AUTHOR_LOOKUPS]))
        return [n for n in names if n]

    async def _author_name(self, key: str) -> Optional[str]:
        try:
            _, data = await fetch_json(self.client, f"{self.base_url}{key}.json", source=self.name, timeout=self.timeout)
        except SourceError as e:
            logger.info(f"open_library: author {key} skipped: {e.reason}")
            return None
        if not isinstance(data, dict): return None
        name = data.get("name")
        return name if isinstance(name, str) and name else None

    async def _search(self, query: TextQuery, max_results: int) -> SearchResult:
        params = {"q": query.text, "limit": max_results, "fields": SEARCH_FIELDS}
        status, data = await fetch_json(
            self.client, f"{self.base_url}/search.json", source=self.name, timeout=self.timeout, params=params
        )
        if data is None: return NotFound(f"HTTP {status} for '{query.text}'")
        if not isinstance(data, dict) or not isinstance(data.get("docs", []), list):
            raise SourceError(self.name, "unexpected search payload shape")
        records = [r for r in (parse_search_doc(d) for d in data.get("docs", [])) if r is not None]
        if not records: return NotFound(f"no docs for '{query.text}'")
        return Listing(records)

    async def ping(self) -> int:
        status, _ = await fetch_json(self.client, f"{self.base_url}/works/OL45804W.json", source=self.name, timeout=5.0)
        return status
