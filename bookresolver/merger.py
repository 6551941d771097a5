from typing import Any, Dict, Optional

from bookresolver.models import BookRecord, Identifier, IdentifierKind

# Fields owned by whichever record is the base; never filled from a candidate.
_BASE_OWNED = {"title", "language", "source_origin"}
# With a pinned ISBN, another edition's identifiers must not leak in.
_IDENTIFIER_FIELDS = {"isbn", "isbn10", "isbn13"}


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, list) and not value)


def merge(base: BookRecord, candidate: BookRecord, pinned_identifier: Optional[Identifier] = None) -> BookRecord:
    """
    Fill the gaps in `base` from `candidate` without overwriting anything base already has.

    Cache and central-service records arrive first and so act as the base;
    later, poorer sources can only contribute fields the base lacks. When the
    lookup was made by an explicit ISBN, that ISBN is pinned on the result and
    the candidate's identifiers are ignored, since it may be a different edition.
    """
    updates: Dict[str, Any] = {}
    skipped = _BASE_OWNED | _IDENTIFIER_FIELDS if pinned_identifier is not None else _BASE_OWNED
    for name in BookRecord.model_fields:
        if name in skipped: continue
        if _is_missing(getattr(base, name)):
            value = getattr(candidate, name)
            if not _is_missing(value):
                updates[name] = value

    if pinned_identifier is not None:
        updates["isbn"] = pinned_identifier.value
        if pinned_identifier.kind == IdentifierKind.ISBN13:
            updates["isbn13"] = pinned_identifier.value
        else:
            updates["isbn10"] = pinned_identifier.value
        if base.id is None:
            updates["id"] = pinned_identifier.value

    return base.model_copy(update=updates, deep=True)


def pin_identifier(record: BookRecord, identifier: Identifier) -> BookRecord:
    """Force a record's identifier fields to the ISBN the caller asked for."""
    return merge(record, record, identifier)


def titles_match(original: str, candidate: Optional[str]) -> bool:
    """Case-insensitive substring match in either direction."""
    if not original or not candidate: return False
    a, b = original.lower(), candidate.lower()
    return a in b or b in a
