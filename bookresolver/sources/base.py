import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx
from loguru import logger

from bookresolver.errors import SourceError
from bookresolver.models import (
    Identifier, SearchResult, SourceFailure, SourceOrigin, SourceResult, TextQuery,
)


class BookSource(ABC):
    """
    One upstream tier. Subclasses implement `_resolve` (and optionally
    `_search`) and may raise SourceError freely; the public methods turn any
    SourceError into a SourceFailure so callers only ever see tagged results.
    """
    name: str = "source"
    origin: SourceOrigin
    supports_text_search: bool = False

    async def resolve_by_identifier(self, identifier: Identifier) -> SourceResult:
        try:
            return await self._resolve(identifier)
        except SourceError as e:
            logger.warning(f"{self.name}: lookup of {identifier.value} failed: {e.reason}")
            return SourceFailure(self.name, e.reason)

    async def search_by_text(self, query: TextQuery, max_results: int = 20) -> SearchResult:
        if not self.supports_text_search:
            return SourceFailure(self.name, "text search not supported")
        try:
            return await self._search(query, max_results)
        except SourceError as e:
            logger.warning(f"{self.name}: search for '{query.text}' failed: {e.reason}")
            return SourceFailure(self.name, e.reason)

    @abstractmethod
    async def _resolve(self, identifier: Identifier) -> SourceResult: ...

    async def _search(self, query: TextQuery, max_results: int) -> SearchResult:
        raise SourceError(self.name, "text search not supported")


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    source: str,
    timeout: float,
    method: str = "GET",
    params: Optional[Dict[str, Any]] = None,
    json: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    follow_redirects: bool = True,
) -> Tuple[int, Any]:
    """
    Perform one request and decode the JSON body.

    Returns (status_code, data); data is None for non-2xx responses so each
    adapter can decide what a given status means. Timeouts, transport errors
    and undecodable bodies raise SourceError.
    """
    filtered_params = {k: v for k, v in (params or {}).items() if v is not None}
    try:
        resp = await client.request(
            method, url, params=filtered_params or None, json=json, headers=headers,
            timeout=timeout, follow_redirects=follow_redirects,
        )
    except httpx.TimeoutException as e:
        raise SourceError(source, f"timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise SourceError(source, f"transport error: {e!r}") from e

    if not resp.is_success:
        logger.info(f"{source}: {method} {url} returned {resp.status_code}")
        return resp.status_code, None
    try:
        return resp.status_code, resp.json()
    except ValueError as e:
        raise SourceError(source, "response body is not JSON") from e


# --------------------------------------------------------------------
# Field cleanup shared by the catalog adapters
# --------------------------------------------------------------------

def ensure_https(url: Optional[str]) -> Optional[str]:
    if not url: return None
    secure_url = url.replace("http://", "https://")
    if "books.google.com" in secure_url:
        secure_url = secure_url.replace("&edge=curl", "")
    return secure_url


def clean_html_text(text: Optional[str]) -> Optional[str]:
    if not text: return None
    clean = re.sub(r'<[^>]+>', ' ', text)
    clean = clean.replace("&quot;", '"').replace("&apos;", "'").replace("&#39;", "'").replace("&amp;", "&")
    return re.sub(r'\s+', ' ', clean).strip() or None


def as_list(value: Any) -> List[Any]:
    """Upstream list fields sometimes arrive as a bare string."""
    if isinstance(value, list): return value
    if isinstance(value, str) and value: return [value]
    return []
