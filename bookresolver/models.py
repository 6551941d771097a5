from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Set, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel


class SourceOrigin(str, Enum):
    CACHE = "cache"
    CENTRAL_SERVICE = "centralService"
    CATALOG_A = "catalogA"
    CATALOG_B = "catalogB"


class IdentifierKind(str, Enum):
    ISBN10 = "ISBN10"
    ISBN13 = "ISBN13"


@dataclass(frozen=True)
class Identifier:
    value: str
    kind: IdentifierKind


@dataclass(frozen=True)
class TextQuery:
    text: str


Query = Union[Identifier, TextQuery]


# --------------------------------------------------------------------
# Canonical record
# --------------------------------------------------------------------

class BookRecord(BaseModel):
    """
    Canonical book record. Attributes are snake_case in Python and camelCase
    on the wire (coverImageUrl, pageCount, ...), matching what the central
    service and the cache store exchange.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    isbn: Optional[str] = None
    isbn10: Optional[str] = None
    isbn13: Optional[str] = None
    title: str = Field(min_length=1)
    authors: List[str] = Field(default_factory=list)
    cover_image_url: Optional[str] = None
    description: Optional[str] = None
    page_count: Optional[int] = None
    publish_date: Optional[str] = None
    publisher: Optional[str] = None
    genre: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    language: str = "en"
    average_rating: Optional[float] = None
    ratings_count: Optional[int] = None
    source_origin: Optional[SourceOrigin] = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v: Any) -> Any:
        if isinstance(v, str): return v.strip()
        return v

    @field_validator("authors", "categories", mode="before")
    @classmethod
    def _clean_string_list(cls, v: Any) -> List[str]:
        if not v: return []
        if isinstance(v, str): return [v]
        return [str(item) for item in v if item]

    @field_validator("page_count", mode="before")
    @classmethod
    def _positive_pages(cls, v: Any) -> Optional[int]:
        if isinstance(v, bool) or not isinstance(v, (int, float)): return None
        return int(v) if v > 0 else None

    @field_validator("language", mode="before")
    @classmethod
    def _default_language(cls, v: Any) -> str:
        return v or "en"

    @property
    def primary_identifier(self) -> Optional[str]:
        return self.isbn or self.isbn13 or self.isbn10 or self.id

    def identifiers(self) -> Set[str]:
        return {i for i in (self.isbn, self.isbn13, self.isbn10) if i}

    def is_complete(self) -> bool:
        """A record needs no enhancement once it has both a cover and a description."""
        return self.cover_image_url is not None and self.description is not None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_payload(cls, data: Any, origin: Optional[SourceOrigin] = None) -> Optional["BookRecord"]:
        """Parse an upstream dict; returns None for anything that is not a valid titled record."""
        if not isinstance(data, dict): return None
        try:
            record = cls.model_validate(data)
        except PydanticValidationError as e:
            logger.debug(f"Discarding malformed book payload: {e.error_count()} error(s)")
            return None
        if origin is not None:
            record = record.model_copy(update={"source_origin": origin})
        return record


# --------------------------------------------------------------------
# Requests
# --------------------------------------------------------------------

class DiscoveryQuery(BaseModel):
    genre: str = "random"
    exclude_identifiers: FrozenSet[str] = Field(default_factory=frozenset)
    limit: int = Field(20, gt=0)
    user_preferences: Optional[Dict[str, Any]] = None


# --------------------------------------------------------------------
# Tagged source results
# --------------------------------------------------------------------

@dataclass(frozen=True)
class Hit:
    record: BookRecord


@dataclass(frozen=True)
class Listing:
    records: List[BookRecord]


@dataclass(frozen=True)
class NotFound:
    reason: str = "not found"


@dataclass(frozen=True)
class SourceFailure:
    source: str
    reason: str


SourceResult = Union[Hit, NotFound, SourceFailure]
SearchResult = Union[Listing, NotFound, SourceFailure]


@dataclass
class Resolution:
    """Outcome of one orchestrated lookup: the records plus the tier that produced them."""
    records: List[BookRecord] = field(default_factory=list)
    origin: Optional[SourceOrigin] = None

    @property
    def found(self) -> bool:
        return bool(self.records)
