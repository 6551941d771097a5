"""
The discovery genre table.

Both discovery paths read this one table: the central recommender searches
with `queries`, the local fallback with `fallback_phrases`. Genre keys cross
the service boundary, so a remote central service must be deployed from the
same table.
"""
import random
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Genre(BaseModel):
    """A discovery genre and the search phrases used to fill it."""
    id: str  # e.g. "scifi"
    label: str  # e.g. "Sci-Fi"
    is_fiction: bool = True
    queries: List[str] = Field(default_factory=list)
    fallback_phrases: List[str] = Field(default_factory=list)


GENRES: List[Genre] = [
    Genre(id="random", label="Random"),
    Genre(id="romance", label="Romance", queries=[
        "Colleen Hoover romance", "Emily Henry romance", "Ali Hazelwood romance",
        "Tessa Bailey romance", "Christina Lauren romance", "Helen Hoang romance",
        "Beach Read Emily Henry", "Love Hypothesis", "It Ends With Us",
        "romance novel bestseller 2024", "contemporary romance fiction",
    ], fallback_phrases=["Colleen Hoover romance", "Emily Henry romance", "romance novel bestseller"]),
    Genre(id="thriller", label="Thriller", queries=[
        "Freida McFadden thriller", "Riley Sager thriller", "Lisa Jewell thriller",
        "The Housemaid", "Gone Girl Gillian Flynn", "The Silent Patient",
        "psychological thriller bestseller", "domestic thriller novel",
        "Ruth Ware thriller", "Karin Slaughter thriller",
    ], fallback_phrases=["Freida McFadden thriller", "psychological thriller bestseller", "The Housemaid"]),
    Genre(id="mystery", label="Mystery", queries=[
        "Agatha Christie mystery", "cozy mystery bestseller", "detective novel fiction",
        "murder mystery novel", "Louise Penny mystery", "Tana French mystery",
        "whodunit novel", "crime fiction bestseller",
    ], fallback_phrases=["mystery thriller", "detective fiction", "crime novel bestseller"]),
    Genre(id="fantasy", label="Fantasy", queries=[
        "Sarah J Maas fantasy", "Fourth Wing Rebecca Yarros", "Leigh Bardugo fantasy",
        "Holly Black faerie", "A Court of Thorns and Roses", "romantasy bestseller",
        "Brandon Sanderson fantasy", "epic fantasy novel", "Crescent City",
        "fantasy romance novel",
    ], fallback_phrases=["Sarah J Maas fantasy", "Fourth Wing", "romantasy bestseller"]),
    Genre(id="scifi", label="Sci-Fi", queries=[
        "Project Hail Mary Andy Weir", "Dune Frank Herbert", "The Martian",
        "Blake Crouch science fiction", "Dark Matter novel", "Recursion novel",
        "space opera novel", "Becky Chambers science fiction",
        "science fiction bestseller novel", "dystopian fiction novel",
    ], fallback_phrases=["Project Hail Mary", "science fiction bestseller", "Blake Crouch novel"]),
    Genre(id="horror", label="Horror", queries=[
        "Stephen King horror novel", "horror fiction bestseller", "Paul Tremblay horror",
        "gothic horror novel", "Grady Hendrix horror", "haunted house novel",
        "supernatural horror fiction", "It Stephen King",
    ], fallback_phrases=["Stephen King horror", "horror fiction bestseller", "supernatural horror"]),
    Genre(id="literary", label="Literary Fiction", queries=[
        "Booker Prize winner", "literary fiction bestseller", "Pulitzer fiction winner",
        "book club fiction pick", "National Book Award fiction",
        "literary novel 2024", "literary fiction award winner",
    ], fallback_phrases=["Booker Prize winner", "literary fiction bestseller", "book club fiction"]),
    Genre(id="historical", label="Historical Fiction", queries=[
        "Kristin Hannah historical", "historical fiction bestseller", "World War II novel fiction",
        "The Nightingale novel", "All the Light We Cannot See",
        "Kate Quinn historical", "historical romance novel",
    ], fallback_phrases=["Kristin Hannah historical", "historical fiction bestseller", "World War II novel"]),
    Genre(id="contemporary", label="Contemporary", queries=[
        "contemporary fiction bestseller", "Reese's Book Club pick", "BookTok fiction",
        "women's fiction novel", "book club pick 2024", "literary fiction bestseller",
    ], fallback_phrases=["contemporary fiction bestseller", "Reese Book Club pick", "women fiction"]),
    Genre(id="youngadult", label="Young Adult", queries=[
        "YA fantasy bestseller", "young adult romance", "YA dystopian novel",
        "Adam Silvera YA", "Cassandra Clare YA", "Sarah J Maas YA",
        "young adult fiction bestseller",
    ], fallback_phrases=["YA fantasy bestseller", "young adult romance", "YA fiction bestseller"]),
    Genre(id="selfhelp", label="Self-Help", is_fiction=False, queries=[
        "Atomic Habits James Clear", "Brene Brown book", "The Subtle Art of Not Giving",
        "self improvement bestseller", "You Are a Badass", "The Power of Now",
        "Mark Manson book", "personal development bestseller",
    ], fallback_phrases=["Atomic Habits", "self improvement bestseller", "Brene Brown book"]),
    Genre(id="biography", label="Biography", is_fiction=False, queries=[
        "biography bestseller", "memoir bestseller", "celebrity memoir",
        "autobiography bestseller", "Becoming Michelle Obama", "inspirational memoir",
    ], fallback_phrases=["biography bestseller", "memoir bestseller", "celebrity memoir"]),
    Genre(id="business", label="Business", is_fiction=False, queries=[
        "business bestseller book", "startup book", "leadership book bestseller",
        "entrepreneurship book", "Think and Grow Rich", "business strategy book",
    ], fallback_phrases=["business bestseller book", "startup book", "leadership book"]),
    Genre(id="psychology", label="Psychology", is_fiction=False, queries=[
        "psychology bestseller book", "Thinking Fast and Slow", "mindset book",
        "behavioral psychology book", "popular psychology book",
    ], fallback_phrases=["psychology bestseller book", "Thinking Fast and Slow", "behavioral psychology"]),
    Genre(id="truecrime", label="True Crime", is_fiction=False, queries=[
        "true crime bestseller", "true crime book", "crime documentary book",
        "murder investigation book", "criminal case book",
    ], fallback_phrases=["true crime bestseller", "true crime book", "murder investigation book"]),
]

GENRE_TABLE: Dict[str, Genre] = {g.id: g for g in GENRES}

# Fallback discovery phrases for "random" and unrecognized genres
GENERAL_BESTSELLER_PHRASES = [
    "bestseller fiction 2024",
    "popular books 2024",
    "New York Times bestseller",
    "BookTok recommendations",
    "award winning fiction",
]

# Central discovery queries for "random": a diverse mix across genres
POPULAR_NOVEL_QUERIES = [
    "Colleen Hoover novel", "Emily Henry romance", "Taylor Jenkins Reid novel",
    "Ali Hazelwood romance", "Tessa Bailey romance", "Christina Lauren novel",
    "Freida McFadden thriller", "Riley Sager thriller", "Lisa Jewell thriller",
    "Ruth Ware mystery", "The Housemaid novel", "Gone Girl",
    "Sarah J Maas fantasy", "Fourth Wing", "Leigh Bardugo fantasy",
    "Holly Black faerie", "romantasy bestseller",
    "Project Hail Mary", "Andy Weir novel", "Blake Crouch novel",
    "Reese's Book Club pick", "BookTok bestseller", "book club fiction",
    "It Ends With Us", "Where the Crawdads Sing", "The Seven Husbands", "Verity",
    "Kristin Hannah novel", "historical fiction bestseller",
    "Stephen King novel", "horror fiction bestseller",
    "Atomic Habits", "Brene Brown book", "self improvement bestseller",
]

# --- QUALITY GATES (central discovery) ---
BLACKLISTED_CATEGORIES = [
    "textbook", "education", "study guide", "workbook", "academic",
    "reference", "dictionary", "encyclopedia", "manual", "handbook",
    "for dummies", "complete idiot", "programming", "coding", "computer science",
    "mathematics", "engineering", "medical", "nursing", "health & fitness",
    "law", "legal", "accounting", "statistics", "economics",
    "test prep", "exam", "certification", "teaching", "curriculum",
    "juvenile", "children's", "kids", "picture book", "board book",
    "social science", "political science", "research", "scholarly",
    "history", "american history", "world history", "antiques", "crafts",
    "cooking", "gardening", "travel guide", "nature", "science",
    "religion", "philosophy", "games", "sports", "pets",
]

BLACKLISTED_TITLE_WORDS = [
    "dummies", "idiots", "fundamentals", "handbook", "guide to",
    "textbook", "workbook", "tutorial", "manual", "reference",
    "exam", "test prep", "certification", "101", "study guide",
    "volume", "vol.", "edition", "research methods", "analysis of",
    "theory of", "principles of", "concepts of", "studies in",
    "research", "ethics in", "ethics of", "methodology",
    "introduction to", "foundations of", "handbook of",
    "journal", "proceedings", "symposium", "dissertation",
    "encyclopedia", "dictionary", "almanac", "atlas",
    "through history", "in history", "history of", "american history",
    "complete guide", "ultimate guide", "beginner's guide",
    "how to", "learn to", "teach yourself", "for beginners",
    # summaries and condensed editions
    "summary of", "summary:", "in 30 minutes", "in 15 minutes",
    "in 20 minutes", "key takeaways", "book summary", "quick read",
    "condensed", "cliff notes", "cliffnotes", "sparknotes", "study notes",
    "analysis:", "review of", "discussion of",
]

EDUCATIONAL_PHRASES = [
    "learn how to", "this textbook", "study guide", "exam prep",
    "course", "curriculum", "students will", "exercises and",
    "step-by-step instructions", "comprehensive guide to",
    "learn the basics", "master the art of", "teaches you",
]

FICTION_CATEGORIES = [
    "fiction", "novel", "romance", "thriller", "mystery", "fantasy",
    "science fiction", "horror", "literary", "contemporary", "historical fiction",
    "young adult", "women's fiction", "suspense", "crime fiction",
]


def get_genre(genre_id: Optional[str]) -> Optional[Genre]:
    if not genre_id: return None
    return GENRE_TABLE.get(genre_id.lower())


def fallback_phrases(genre_id: Optional[str]) -> List[str]:
    """Phrases for the local discovery fallback; general bestsellers for random/unknown genres."""
    genre = get_genre(genre_id)
    if genre is None or genre.id == "random" or not genre.fallback_phrases:
        return GENERAL_BESTSELLER_PHRASES
    return genre.fallback_phrases


def pick_fallback_phrase(genre_id: Optional[str], rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(fallback_phrases(genre_id))


def list_genres() -> List[Dict[str, str]]:
    return [{"id": g.id, "label": g.label} for g in GENRES]
