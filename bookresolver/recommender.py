"""
Central discovery: the server side of `discoverBooks`.

Runs several catalog searches for a genre, then quality-gates, de-duplicates,
shuffles and optionally personalises the candidates.
"""
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from bookresolver.discovery import is_excluded
from bookresolver.errors import ValidationError
from bookresolver.genres import (
    BLACKLISTED_CATEGORIES, BLACKLISTED_TITLE_WORDS, EDUCATIONAL_PHRASES, FICTION_CATEGORIES,
    POPULAR_NOVEL_QUERIES, Genre, get_genre,
)
from bookresolver.models import BookRecord, Listing, TextQuery
from bookresolver.sources.base import BookSource

RANDOM_QUERY_COUNT = 8
GENRE_QUERY_COUNT = 5
RESULTS_PER_QUERY = 12
MIN_DESCRIPTION = 20


@dataclass
class Recommendation:
    genre: str
    books: List[BookRecord] = field(default_factory=list)
    total_found: int = 0


def is_blacklisted(book: BookRecord) -> bool:
    """Educational, reference and summary titles never make it into discovery."""
    title = book.title.lower()
    categories = " ".join(book.categories).lower()
    description = (book.description or "").lower()
    if any(word in title for word in BLACKLISTED_TITLE_WORDS): return True
    if any(cat in categories for cat in BLACKLISTED_CATEGORIES): return True
    return any(phrase in description for phrase in EDUCATIONAL_PHRASES)


def has_fiction_category(book: BookRecord) -> bool:
    if not book.categories: return True  # benefit of the doubt for books from fiction searches
    categories = " ".join(book.categories).lower()
    if any(cat in categories for cat in FICTION_CATEGORIES): return True
    title = book.title.lower()
    return "novel" in title or "fiction" in title


def passes_quality_gate(book: BookRecord, genre: Genre) -> bool:
    if not book.isbn: return False
    if not book.cover_image_url: return False
    if not book.description or len(book.description) <= MIN_DESCRIPTION: return False
    if is_blacklisted(book): return False
    if genre.is_fiction and not has_fiction_category(book): return False
    return True


def deduplicate_by_isbn(books: Iterable[BookRecord]) -> List[BookRecord]:
    seen = set()
    unique = []
    for book in books:
        if book.isbn in seen: continue
        seen.add(book.isbn)
        unique.append(book)
    return unique


def _score(value: Any) -> float:
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0


def preference_score(book: BookRecord, preferences: Dict[str, Any]) -> float:
    genre_scores = preferences.get("genreScores") or {}
    author_scores = preferences.get("authorScores") or {}
    score = 0.0
    for category in (c.lower() for c in book.categories):
        for genre, genre_score in genre_scores.items():
            if str(genre).lower() in category:
                score += _score(genre_score)
    for author in book.authors:
        score += _score(author_scores.get(author))
    return score


def apply_preference_scoring(books: List[BookRecord], preferences: Dict[str, Any]) -> List[BookRecord]:
    """Higher preference score first; the sort is stable, so ties keep their shuffled order."""
    return sorted(books, key=lambda b: preference_score(b, preferences), reverse=True)


class Recommender:
    def __init__(self, catalog: BookSource, rng: Optional[random.Random] = None):
        self.catalog = catalog
        self.rng = rng or random.Random()

    def _pick_queries(self, genre: Genre) -> List[str]:
        if genre.id == "random":
            pool, count = POPULAR_NOVEL_QUERIES, RANDOM_QUERY_COUNT
        else:
            pool, count = genre.queries, GENRE_QUERY_COUNT
        return self.rng.sample(pool, min(count, len(pool)))

    async def recommend(
        self,
        genre: str = "random",
        exclude_isbns: Iterable[str] = (),
        limit: int = 20,
        user_preferences: Optional[Dict[str, Any]] = None,
    ) -> Recommendation:
        genre_config = get_genre(genre)
        if genre_config is None:
            raise ValidationError(f"Invalid genre: {genre}")
        if limit <= 0:
            raise ValidationError("limit must be positive")

        candidates: List[BookRecord] = []
        for q in self._pick_queries(genre_config):
            result = await self.catalog.search_by_text(TextQuery(q), RESULTS_PER_QUERY)
            if isinstance(result, Listing):
                candidates.extend(result.records)
                logger.info(f"Fetched {len(result.records)} books for: '{q}'")
            else:
                logger.warning(f"Skipping discovery query '{q}': {getattr(result, 'reason', result)}")

        exclude = frozenset(exclude_isbns)
        books = [b for b in candidates if passes_quality_gate(b, genre_config) and not is_excluded(b, exclude)]
        books = deduplicate_by_isbn(books)
        self.rng.shuffle(books)
        if user_preferences and user_preferences.get("genreScores"):
            books = apply_preference_scoring(books, user_preferences)

        logger.info(f"Discovery genre={genre_config.id}: returning {min(limit, len(books))} of {len(books)}")
        return Recommendation(genre=genre_config.id, books=books[:limit], total_found=len(books))
